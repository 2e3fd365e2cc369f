"""DynamoDB-backed server-side session store for async web applications."""

from dynamodb_sessions.core.config import SessionStoreSettings
from dynamodb_sessions.core.exceptions import SessionSerializationError, SessionStoreError
from dynamodb_sessions.stores.base import SessionStore
from dynamodb_sessions.stores.dynamodb import DynamoDBSessionStore

__version__ = "1.0.0"

__all__ = [
    "DynamoDBSessionStore",
    "SessionSerializationError",
    "SessionStore",
    "SessionStoreError",
    "SessionStoreSettings",
]
