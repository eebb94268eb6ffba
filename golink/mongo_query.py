"""MongoDB filters and find options built from generic query options."""

from dataclasses import dataclass, field
from typing import Any, Optional

from bson import ObjectId
from bson.errors import InvalidId

from .dto import PaginationOptions, QueryOptions, SearchFilter, SortOption

_DEFAULT_SORT_KEY = "created_at"
_ID_KEYS = ("_id", "id")


@dataclass
class FindOptions:
    """Limit, skip and sort for a find call."""

    limit: int
    sort: dict[str, int] = field(default_factory=dict)
    skip: Optional[int] = None


def _object_id_from_hex(text: str) -> Optional[ObjectId]:
    if len(text) != 24:
        return None
    try:
        return ObjectId(text)
    except (InvalidId, TypeError):
        return None


def apply_query_options(opts: Optional[QueryOptions]) -> tuple[dict[str, Any], FindOptions]:
    """Build the filter and find options, using a cursor on _id when one is given."""
    if opts is None:
        opts = QueryOptions()
    if opts.pagination is None:
        opts.pagination = PaginationOptions()
    opts.pagination.set_defaults()

    query = build_filter(opts.filters)
    find_options = FindOptions(limit=opts.pagination.page_size, sort=build_sort(opts.sort))

    cursor = opts.pagination.cursor
    if cursor is not None and cursor != "":
        cursor_value = cursor
        if isinstance(cursor, str):
            object_id = _object_id_from_hex(cursor)
            if object_id is not None:
                cursor_value = object_id

        ascending = False
        for option in opts.sort:
            if option.key in _ID_KEYS:
                ascending = option.order == 1
                break

        cursor_filter = {"_id": {"$gt" if ascending else "$lt": cursor_value}}
        if "_id" in query:
            query = {"$and": [query, cursor_filter]}
        else:
            query.update(cursor_filter)
    else:
        find_options.skip = (opts.pagination.page - 1) * opts.pagination.page_size

    return query, find_options


def build_filter(filters: Optional[list[SearchFilter]]) -> dict[str, Any]:
    """Build a MongoDB filter document from search filters."""
    query: dict[str, Any] = {}
    if filters is None:
        return query

    for item in filters:
        if item.key == "" or item.value is None:
            continue
        if item.type == "search":
            if isinstance(item.value, str) and item.value:
                query[item.key] = {"$regex": item.value, "$options": "i"}
        elif item.type == "filter":
            if isinstance(item.value, str):
                object_id = _object_id_from_hex(item.value)
                if object_id is not None:
                    query[item.key] = {"$in": [object_id]}
            else:
                query[item.key] = item.value
        else:
            query[item.key] = item.value
    return query


def build_sort(sorts: Optional[list[SortOption]]) -> dict[str, int]:
    """Build a sort document; invalid orders sort descending, default is newest first."""
    sort: dict[str, int] = {}
    if sorts is not None:
        for item in sorts:
            if item.key == "":
                continue
            sort[item.key] = item.order if item.order in (1, -1) else -1
    if not sort:
        sort[_DEFAULT_SORT_KEY] = -1
    return sort