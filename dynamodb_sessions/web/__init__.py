"""Web layer integration: middleware plugging a SessionStore into Starlette/FastAPI."""

from dynamodb_sessions.web.middleware import ServerSessionMiddleware

__all__ = ["ServerSessionMiddleware"]
