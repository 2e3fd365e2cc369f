"""Abstract base class for session store implementations.

This module defines the store contract a session middleware relies on to load,
persist, refresh and expire sessions. Methods are async so implementations can
talk to their backend without blocking the event loop.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from dynamodb_sessions.core.utils.logging_config import session_ref

logger = logging.getLogger(__name__)


class SessionStore(ABC):
    """Abstract base class for session stores.

    Session ids passed to every method are raw ids as found in the client
    cookie; any key namespacing is the implementation's concern.

    Example usage:
        await store.set(sid, {"cookie": {"maxAge": 60000}, "user": "alice"})
        session = await store.get(sid)
        await store.destroy(sid)
    """

    @abstractmethod
    async def get(self, session_id: str) -> Optional[Dict[str, Any]]:
        """Load a session.

        Returns:
            The session payload, or None when the session does not exist or
            has expired. A missing session is not an error.

        Raises:
            SessionSerializationError: If the stored payload cannot be decoded.
        """
        pass

    @abstractmethod
    async def set(self, session_id: str, session: Dict[str, Any]) -> None:
        """Persist a session, replacing whatever was stored under the id.

        Raises:
            SessionSerializationError: If the payload cannot be encoded.
        """
        pass

    @abstractmethod
    async def destroy(self, session_id: str) -> None:
        """Delete a session. Deleting an unknown id succeeds."""
        pass

    @abstractmethod
    async def touch(self, session_id: str, session: Dict[str, Any]) -> None:
        """Refresh a session's expiry without rewriting its payload."""
        pass

    def destroy_in_background(self, session_id: str) -> "asyncio.Task[None]":
        """Delete a session without waiting for the outcome.

        Failures are logged, never raised. Callers that need to know whether
        the delete succeeded must await destroy() instead.
        """
        return asyncio.get_running_loop().create_task(self._destroy_quietly(session_id))

    async def _destroy_quietly(self, session_id: str) -> None:
        try:
            await self.destroy(session_id)
        except Exception as e:
            logger.warning(
                f"Background session destroy failed: {e}",
                extra={"session": session_ref(session_id), "operation": "destroy"},
            )
