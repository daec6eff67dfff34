import json
import logging
from typing import Optional, List, Any, Dict, Union

from cms_api.core.exceptions import InvalidQueryError
from cms_api.schemas.batch import Accountability

logger = logging.getLogger(__name__)

EXPORT_FORMATS = {"json", "csv", "xml"}

# Query keys allowed inside ``deep``, written with a leading underscore there
DEEP_QUERY_KEYS = {"fields", "sort", "filter", "limit", "offset", "page", "search", "group_by", "aggregate"}


def parse_list_param(value: Union[str, List[Any], None]) -> List[str]:
    """
    Parse a list-like query parameter (fields, sort, meta, group_by).

    Args:
        value: Comma-separated string or a list of strings

    Returns:
        List of trimmed, non-empty entries in their original order
    """
    if value is None:
        return []

    if isinstance(value, str):
        value = value.split(",")
    elif not isinstance(value, (list, tuple)):
        raise InvalidQueryError(f"Expected a string or a list, got {type(value).__name__}")

    result = []
    for item in value:
        item = str(item).strip()
        if item:
            result.append(item)

    return result


def parse_json_param(name: str, value: Any) -> Dict[str, Any]:
    """
    Parse an object parameter that may arrive JSON encoded.

    Args:
        name: Parameter name, used in error messages
        value: Dict or JSON string

    Returns:
        The decoded dictionary
    """
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            raise InvalidQueryError(f'"{name}" query parameter must be valid JSON')

    if not isinstance(value, dict):
        raise InvalidQueryError(f'"{name}" query parameter must be an object')

    return value


def parse_int_param(name: str, value: Any, minimum: int) -> int:
    """Parse an integer parameter and enforce its lower bound."""
    if isinstance(value, bool):
        raise InvalidQueryError(f'"{name}" query parameter must be an integer')

    try:
        number = int(value)
    except (TypeError, ValueError):
        raise InvalidQueryError(f'"{name}" query parameter must be an integer')

    if isinstance(value, float) and not value.is_integer():
        raise InvalidQueryError(f'"{name}" query parameter must be an integer')

    if number < minimum:
        raise InvalidQueryError(f'"{name}" query parameter must be at least {minimum}')

    return number


def apply_dynamic_variables(value: Any, accountability: Optional[Accountability]) -> Any:
    """Replace $CURRENT_USER / $CURRENT_ROLE placeholders in a filter."""
    if isinstance(value, dict):
        return {key: apply_dynamic_variables(item, accountability) for key, item in value.items()}
    if isinstance(value, list):
        return [apply_dynamic_variables(item, accountability) for item in value]
    if value == "$CURRENT_USER":
        return accountability.user if accountability else None
    if value == "$CURRENT_ROLE":
        return accountability.role if accountability else None
    return value


def sanitize_filter(value: Any, accountability: Optional[Accountability] = None) -> Dict[str, Any]:
    return apply_dynamic_variables(parse_json_param("filter", value), accountability)


def sanitize_aggregate(value: Any) -> Dict[str, List[str]]:
    aggregate = parse_json_param("aggregate", value)
    return {operation: parse_list_param(fields) for operation, fields in aggregate.items()}


def sanitize_deep(value: Any, accountability: Optional[Accountability] = None) -> Dict[str, Any]:
    """
    Sanitize a ``deep`` parameter.

    Relational fields nest freely; keys starting with an underscore are
    query parameters for that level and get sanitized like top-level ones.
    """
    deep = parse_json_param("deep", value)

    result: Dict[str, Any] = {}
    for key, nested in deep.items():
        if key.startswith("_"):
            name = key[1:]
            if name not in DEEP_QUERY_KEYS:
                logger.debug("Dropping unknown deep query key: %s", key)
                continue
            result[key] = sanitize_query({name: nested}, accountability)[name]
        else:
            result[key] = sanitize_deep(nested, accountability)

    return result


def sanitize_query(
    raw: Optional[Dict[str, Any]],
    accountability: Optional[Accountability] = None,
) -> Dict[str, Any]:
    """
    Normalize a raw query into canonical container shapes.

    Only keys present in ``raw`` end up in the result, unknown keys are
    dropped. Sanitizing an already sanitized query returns it unchanged.

    Args:
        raw: Query as received (request body ``query`` or URL params)
        accountability: Caller identity for dynamic filter variables

    Returns:
        Sanitized query dictionary
    """
    if not raw:
        return {}

    query: Dict[str, Any] = {}

    if "fields" in raw:
        query["fields"] = parse_list_param(raw["fields"])

    if "sort" in raw:
        query["sort"] = parse_list_param(raw["sort"])

    if "filter" in raw:
        query["filter"] = sanitize_filter(raw["filter"], accountability)

    if "limit" in raw:
        query["limit"] = parse_int_param("limit", raw["limit"], minimum=-1)

    if "offset" in raw:
        query["offset"] = parse_int_param("offset", raw["offset"], minimum=0)

    if "page" in raw:
        query["page"] = parse_int_param("page", raw["page"], minimum=1)

    if "meta" in raw:
        query["meta"] = parse_list_param(raw["meta"])

    if "search" in raw:
        if not isinstance(raw["search"], str):
            raise InvalidQueryError('"search" query parameter must be a string')
        query["search"] = raw["search"]

    if "export" in raw:
        if raw["export"] not in EXPORT_FORMATS:
            raise InvalidQueryError(
                f'"export" query parameter must be one of {", ".join(sorted(EXPORT_FORMATS))}'
            )
        query["export"] = raw["export"]

    if "deep" in raw:
        query["deep"] = sanitize_deep(raw["deep"], accountability)

    if "alias" in raw:
        query["alias"] = parse_json_param("alias", raw["alias"])

    if "aggregate" in raw:
        query["aggregate"] = sanitize_aggregate(raw["aggregate"])

    group_by = raw.get("group_by", raw.get("groupBy"))
    if group_by is not None:
        query["group_by"] = parse_list_param(group_by)

    return query
