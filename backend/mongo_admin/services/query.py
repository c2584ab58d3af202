"""Search + custom filter -> one find() predicate.

Search runs as a case-insensitive substring match over text fields. Which
fields depends on the strategy:

* ``fixed``  - the conventional identifier/contact fields in SEARCH_FIELDS
* ``sample`` - scalar fields of one sampled document
* ``auto``   - ``fixed``, falling back to ``sample`` when it matches nothing

A custom filter arrives as a JSON string (MongoDB Extended JSON is accepted).
Anything that does not parse into a plain predicate is dropped, never raised.
"""
import json
import re
from typing import Any, Dict, List, Optional, Union

from bson import json_util
from bson.errors import BSONError
from bson.regex import Regex
from pymongo.collection import Collection

from ..logger import get_logger
from .identifiers import as_object_id

logger = get_logger("services.query")

SEARCH_FIELDS = (
    "id",
    "name",
    "username",
    "userName",
    "user_name",
    "email",
    "phone",
    "number",
    "title",
    "sessionId",
    "session_id",
    "userId",
    "user_id",
    "chatId",
    "chat_id",
)

SEARCH_STRATEGIES = ("auto", "fixed", "sample")

# Operators accepted at the top level of a custom filter.
TOP_LEVEL_OPERATORS = {"$and", "$or", "$nor", "$text", "$expr", "$comment"}
LOGICAL_OPERATORS = {"$and", "$or", "$nor"}
# Operators accepted inside a field condition.
FIELD_OPERATORS = {
    "$eq", "$ne", "$gt", "$gte", "$lt", "$lte", "$in", "$nin", "$all",
    "$exists", "$type", "$regex", "$options", "$not", "$elemMatch", "$size", "$mod",
}
LIST_OPERATORS = {"$in", "$nin", "$all"}


def parse_filter(raw: Union[str, Dict[str, Any], None]) -> Optional[Dict[str, Any]]:
    """Return the filter as a predicate dict, or None when absent or malformed."""
    if raw is None:
        return None
    if isinstance(raw, dict):
        parsed: Any = raw
    else:
        text = raw.strip()
        if not text:
            return None
        try:
            parsed = json_util.loads(text)
        except (ValueError, TypeError, BSONError, RecursionError) as e:
            logger.debug("Ignoring unparsable filter (%d chars): %s", len(text), e)
            return None
    if not isinstance(parsed, dict):
        logger.debug("Ignoring non-object filter")
        return None
    try:
        valid = _valid_predicate(parsed)
    except RecursionError:
        valid = False
    if not valid:
        logger.debug("Ignoring filter with unsupported operators or shape")
        return None
    return parsed or None


def _compiles(pattern: Any) -> bool:
    try:
        re.compile(pattern)
    except (re.error, TypeError, OverflowError):
        return False
    return True


def _is_operator_doc(value: Any) -> bool:
    return isinstance(value, dict) and any(isinstance(k, str) and k.startswith("$") for k in value)


def _valid_value(value: Any) -> bool:
    """A field's condition: a literal, a regex, or a document of field operators."""
    if isinstance(value, Regex):
        return _compiles(value.pattern)
    if _is_operator_doc(value):
        return _valid_operators(value)
    return True


def _valid_operators(ops: Dict[str, Any]) -> bool:
    for op, arg in ops.items():
        if op not in FIELD_OPERATORS:
            return False
        if op in LIST_OPERATORS:
            if not isinstance(arg, list) or not all(_valid_value(a) for a in arg):
                return False
        elif op == "$regex":
            pattern = arg.pattern if isinstance(arg, Regex) else arg
            if not isinstance(pattern, str) or not _compiles(pattern):
                return False
        elif op == "$options":
            if "$regex" not in ops or not isinstance(arg, str):
                return False
        elif op == "$not":
            if not (isinstance(arg, Regex) or _is_operator_doc(arg)) or not _valid_value(arg):
                return False
        elif op == "$elemMatch":
            if not isinstance(arg, dict) or not arg:
                return False
            if not (_valid_operators(arg) if _is_operator_doc(arg) else _valid_predicate(arg)):
                return False
        elif op == "$size":
            if isinstance(arg, bool) or not isinstance(arg, int) or arg < 0:
                return False
        elif op == "$mod":
            if not isinstance(arg, list) or len(arg) != 2:
                return False
            if not all(isinstance(a, (int, float)) and not isinstance(a, bool) for a in arg) or arg[0] == 0:
                return False
    return True


def _valid_predicate(pred: Dict[str, Any]) -> bool:
    for key, value in pred.items():
        if not isinstance(key, str) or not key:
            return False
        if key.startswith("$"):
            if key not in TOP_LEVEL_OPERATORS:
                return False
            if key in LOGICAL_OPERATORS:
                if not isinstance(value, list) or not value:
                    return False
                if not all(isinstance(v, dict) and _valid_predicate(v) for v in value):
                    return False
        elif not _valid_value(value):
            return False
    return True


def _regex(term: str) -> Dict[str, Any]:
    return {"$regex": re.escape(term), "$options": "i"}


def _as_number(term: str) -> Optional[Union[int, float]]:
    try:
        return int(term)
    except ValueError:
        pass
    try:
        value = float(term)
    except ValueError:
        return None
    return value if value == value else None  # NaN


def fixed_field_conditions(term: str) -> List[Dict[str, Any]]:
    return [{field: _regex(term)} for field in SEARCH_FIELDS]


def sampled_field_conditions(collection: Collection, term: str) -> List[Dict[str, Any]]:
    """Conditions over the scalar top-level fields of one sampled document."""
    sample = collection.find_one({})
    if not sample:
        return []
    number = _as_number(term)
    conditions: List[Dict[str, Any]] = []
    for field, value in sample.items():
        if isinstance(value, str):
            conditions.append({field: _regex(term)})
        elif isinstance(value, (int, float)) and not isinstance(value, bool) and number is not None:
            conditions.append({field: number})
    return conditions


def search_predicate(collection: Collection, search: Optional[str], strategy: str = "auto") -> Dict[str, Any]:
    term = (search or "").strip()
    if not term:
        return {}
    if strategy not in SEARCH_STRATEGIES:
        logger.warning("Unknown search strategy %r; using 'auto'", strategy)
        strategy = "auto"

    if strategy == "sample":
        conditions = sampled_field_conditions(collection, term)
    else:
        conditions = fixed_field_conditions(term)
        if strategy == "auto" and collection.find_one({"$or": conditions}, {"_id": 1}) is None:
            sampled = sampled_field_conditions(collection, term)
            if sampled:
                conditions = sampled

    oid = as_object_id(term)
    if oid is not None:
        conditions.insert(0, {"_id": oid})
    if not conditions:
        # Nothing searchable (e.g. empty collection): match nothing rather than everything.
        return {"_id": {"$exists": False}}
    return {"$or": conditions}


def merge_predicates(search: Dict[str, Any], custom: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Combine so neither side is lost: plain merge when keys are disjoint, $and otherwise."""
    if not custom:
        return dict(search)
    if not search:
        return dict(custom)
    if set(search).isdisjoint(custom):
        merged = dict(search)
        merged.update(custom)
        return merged
    return {"$and": [search, custom]}


def build_query(
    collection: Collection,
    search: Optional[str] = None,
    raw_filter: Union[str, Dict[str, Any], None] = None,
    strategy: str = "auto",
) -> Dict[str, Any]:
    return merge_predicates(search_predicate(collection, search, strategy), parse_filter(raw_filter))


def describe_query(query: Dict[str, Any]) -> str:
    """Compact JSON rendering for log lines."""
    return json.dumps(query, default=str, separators=(",", ":"))
