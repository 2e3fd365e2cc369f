"""Session store implementations.

`SessionStore` is the contract a session middleware consumes;
`DynamoDBSessionStore` implements it on a DynamoDB table.
"""

from dynamodb_sessions.stores.base import SessionStore
from dynamodb_sessions.stores.dynamodb import DynamoDBSessionStore

__all__ = ["DynamoDBSessionStore", "SessionStore"]
