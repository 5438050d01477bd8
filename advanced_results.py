"""
Filtered, sorted and paginated listings driven by query-string parameters.

    GET /products?price[lte]=20&select=name,price&sort=-price&page=2&limit=10
"""

import math
import os
import re
from typing import Any, Dict, List, Mapping, Optional, Tuple

from pymongo import ASCENDING, DESCENDING

from database import populate, serialize

DEFAULT_PAGE_LIMIT = int(os.getenv("DEFAULT_PAGE_LIMIT", 25))

RESERVED_PARAMS = ("select", "sort", "page", "limit")
OPERATORS = ("gt", "gte", "lt", "lte", "in")

_FILTER_KEY = re.compile(r"^(?P<field>[\w.]+)\[(?P<op>\w+)\]$")


def _coerce(value: str) -> Any:
    try:
        return int(value)
    except ValueError:
        pass
    try:
        number = float(value)
    except ValueError:
        return value
    # nan and inf stay strings
    return number if math.isfinite(number) else value


def build_filter(params: Mapping[str, str], numeric_fields: Tuple[str, ...] = ()) -> Dict[str, Any]:
    """Translate query parameters into a Mongo filter.

    Operator values are always coerced to numbers when they look like one;
    plain equality values only for `numeric_fields`.
    """
    query: Dict[str, Any] = {}
    for key, value in params.items():
        if key in RESERVED_PARAMS or "$" in key:
            continue
        match = _FILTER_KEY.match(key)
        if not match:
            query[key] = _coerce(value) if key in numeric_fields else value
            continue
        field, op = match.group("field"), match.group("op")
        if op not in OPERATORS:
            continue
        if op == "in":
            operand = [_coerce(v) for v in value.split(",") if v]
        else:
            operand = _coerce(value)
        query.setdefault(field, {})
        if isinstance(query[field], dict):
            query[field]["$" + op] = operand
    return query


def build_sort(sort: Optional[str]) -> List[Tuple[str, int]]:
    if not sort:
        return [("created_at", DESCENDING)]
    spec = []
    for name in sort.split(","):
        name = name.strip()
        direction = ASCENDING
        if name.startswith("-"):
            name, direction = name[1:].strip(), DESCENDING
        if name and "$" not in name:
            spec.append((name, direction))
    return spec or [("created_at", DESCENDING)]


def _positive_int(value: Optional[str], default: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return number if number > 0 else default


def advanced_results(db, collection_name: str, params: Mapping[str, str], numeric_fields: Tuple[str, ...] = ()) -> dict:
    query = build_filter(params, numeric_fields)

    projection = None
    if params.get("select"):
        projection = {name.strip(): 1 for name in params["select"].split(",") if name.strip() and "$" not in name} or None

    page = _positive_int(params.get("page"), 1)
    limit = _positive_int(params.get("limit"), DEFAULT_PAGE_LIMIT)
    start = (page - 1) * limit
    end = page * limit
    total = db[collection_name].count_documents(query)

    cursor = db[collection_name].find(query, projection).sort(build_sort(params.get("sort"))).skip(start).limit(limit)

    results = []
    for doc in cursor:
        item = serialize(doc)
        populate(db, item, "user", "user", ["name", "email"])
        results.append(item)

    pagination = {}
    if end < total:
        pagination["next"] = {"page": page + 1, "limit": limit}
    if start > 0:
        pagination["prev"] = {"page": page - 1, "limit": limit}

    return {
        "success": True,
        "count": len(results),
        "pagination": pagination,
        "data": results,
    }
