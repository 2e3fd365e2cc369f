"""Exceptions raised by the session store.

Failures from the DynamoDB client itself (botocore ClientError / BotoCoreError)
are not wrapped; they reach the caller unchanged.
"""


class SessionStoreError(Exception):
    """Base class for errors raised by the session store itself"""
    pass


class SessionSerializationError(SessionStoreError, ValueError):
    """Raised when a session payload cannot be encoded or a stored one decoded"""
    pass
