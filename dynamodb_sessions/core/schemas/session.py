"""Session record schema and payload serialization"""

import json
import math
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from dynamodb_sessions.core.exceptions import SessionSerializationError

# One day in milliseconds
ONE_DAY_MS = 86_400_000

# Tag distinguishing session items from anything else sharing the table
SESSION_RECORD_TYPE = "connect-session"

SessionPayload = Dict[str, Any]


class SessionRecord(BaseModel):
    """One persisted session, as stored in the sessions table.

    `expires` and `sess` are optional because items written by other means
    (e.g. an UpdateItem upsert from touch) can lack them.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="Prefixed session key (table hash key)")
    expires: Optional[int] = Field(None, description="Expiry as epoch milliseconds")
    sess: Optional[str] = Field(None, description="JSON-encoded session payload")
    type: str = SESSION_RECORD_TYPE

    def is_expired(self, now_ms: int) -> bool:
        return self.expires is not None and now_ms >= self.expires

    @property
    def has_payload(self) -> bool:
        return bool(self.sess)

    def to_item(self) -> Dict[str, Dict[str, str]]:
        """Render as a DynamoDB attribute-value map for PutItem"""
        item = {
            "id": {"S": self.id},
            "type": {"S": self.type},
        }
        if self.expires is not None:
            item["expires"] = {"N": str(self.expires)}
        if self.sess is not None:
            item["sess"] = {"S": self.sess}
        return item

    @classmethod
    def from_item(cls, item: Mapping[str, Mapping[str, str]]) -> "SessionRecord":
        """Build a record from a GetItem/Scan attribute-value map"""
        expires = item.get("expires", {}).get("N")
        return cls(
            id=item["id"]["S"],
            expires=_parse_number(expires) if expires else None,
            sess=item.get("sess", {}).get("S"),
            type=item.get("type", {}).get("S", SESSION_RECORD_TYPE),
        )


def compute_expires(session: Mapping[str, Any], now_ms: int) -> int:
    """
    Absolute expiry for a session written at `now_ms`.

    Uses session["cookie"]["maxAge"] (milliseconds) when it is a finite
    number, otherwise the one-day default.
    """
    cookie = session.get("cookie")
    if isinstance(cookie, Mapping):
        max_age = cookie.get("maxAge")
        if _is_finite_number(max_age):
            return now_ms + int(max_age)
    return now_ms + ONE_DAY_MS


def serialize_session(session: Mapping[str, Any]) -> str:
    """Encode a session payload as JSON text"""
    try:
        return json.dumps(session, separators=(",", ":"), allow_nan=False)
    except (TypeError, ValueError) as e:
        raise SessionSerializationError(f"Session payload is not JSON-serializable: {e}") from e


def deserialize_session(raw: str) -> SessionPayload:
    """Decode a stored session payload"""
    try:
        return json.loads(raw)
    except (TypeError, ValueError) as e:
        raise SessionSerializationError(f"Stored session payload is not valid JSON: {e}") from e


def _is_finite_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return isinstance(value, int) or math.isfinite(value)


def _parse_number(raw: str) -> int:
    # DynamoDB numbers carry up to 38 significant digits
    try:
        return int(Decimal(raw))
    except (InvalidOperation, OverflowError, ValueError) as e:
        raise SessionSerializationError(f"Stored expiry is not a number: {raw!r}") from e
