"""BSON values -> plain JSON values for API responses."""
import base64
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Tuple

from bson import ObjectId
from bson.decimal128 import Decimal128
from bson.regex import Regex
from bson.timestamp import Timestamp

# First matching type wins; bson.Binary is a bytes subclass.
_ENCODERS: Tuple[Tuple[type, Callable[[Any], Any]], ...] = (
    (ObjectId, str),
    (Decimal128, lambda v: str(v.to_decimal())),
    (datetime, lambda v: v.isoformat()),
    (Timestamp, lambda v: v.as_datetime().isoformat()),
    (uuid.UUID, str),
    (bytes, lambda v: base64.b64encode(v).decode("ascii")),
    (Regex, lambda v: f"/{v.pattern}/"),
)


def to_jsonable(value: Any) -> Any:
    """Encode a document, list or single BSON value; nested containers are walked."""
    if isinstance(value, dict):
        return {key: to_jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(item) for item in value]
    for kind, encode in _ENCODERS:
        if isinstance(value, kind):
            return encode(value)
    return value


def utcnow() -> datetime:
    """Current UTC time as a naive datetime, matching what pymongo returns by default."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
