"""Server-side session middleware for Starlette/FastAPI applications.

Unlike starlette's SessionMiddleware, which signs the whole session into the
cookie, the cookie here carries only an opaque session id; the payload lives
in a SessionStore.
"""

import json
import logging
import secrets
from typing import Any, Dict, Literal, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp

from dynamodb_sessions.core.utils.logging_config import session_ref
from dynamodb_sessions.stores.base import SessionStore

logger = logging.getLogger(__name__)

# Payload key holding cookie metadata (maxAge in milliseconds); hidden from handlers
COOKIE_META_KEY = "cookie"


class ServerSessionMiddleware(BaseHTTPMiddleware):
    """
    Load `request.session` from a SessionStore and persist it after the response.

    - a cleared session is destroyed and its cookie removed
    - a changed session is written with set()
    - an unchanged, non-empty session has its expiry refreshed with touch()
    """

    def __init__(
        self,
        app: ASGIApp,
        store: SessionStore,
        cookie_name: str = "session_id",
        max_age: int = 86400,
        path: str = "/",
        same_site: Literal["lax", "strict", "none"] = "lax",
        https_only: bool = False,
    ):
        super().__init__(app)
        self.store = store
        self.cookie_name = cookie_name
        self.max_age = max_age
        self.path = path
        self.same_site = same_site
        self.https_only = https_only

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        session_id = request.cookies.get(self.cookie_name)
        loaded: Optional[Dict[str, Any]] = None
        if session_id:
            loaded = await self.store.get(session_id)

        data = dict(loaded or {})
        data.pop(COOKIE_META_KEY, None)
        snapshot = self._snapshot(data)
        request.scope["session"] = data

        response = await call_next(request)

        session = request.scope["session"]
        if not session:
            if session_id:
                if loaded is not None:
                    await self.store.destroy(session_id)
                    logger.debug("Destroyed cleared session", extra={"session": session_ref(session_id)})
                response.delete_cookie(self.cookie_name, path=self.path)
            return response

        if loaded is None:
            # Never adopt an id the store does not know about
            session_id = secrets.token_urlsafe(32)

        payload = {**session, COOKIE_META_KEY: {"maxAge": self.max_age * 1000}}
        if loaded is None or self._snapshot(session) != snapshot:
            await self.store.set(session_id, payload)
        else:
            await self.store.touch(session_id, payload)

        response.set_cookie(
            self.cookie_name,
            session_id,
            max_age=self.max_age,
            path=self.path,
            httponly=True,
            samesite=self.same_site,
            secure=self.https_only,
        )
        return response

    @staticmethod
    def _snapshot(session: Dict[str, Any]) -> str:
        return json.dumps(session, sort_keys=True, default=str)
