"""Elasticsearch request bodies built from generic query options."""

from typing import Any, Optional

from .dto import PaginationOptions, QueryOptions, SearchFilter, SortOption

_MUST_CLAUSES = {"match": "match", "phrase": "match_phrase"}
_FILTER_CLAUSES = {"term": "term", "wildcard": "wildcard"}


def build_search_query(opts: Optional[QueryOptions] = None) -> dict[str, Any]:
    """Build a complete search body: pagination, query and sort."""
    if opts is None:
        opts = QueryOptions()

    body: dict[str, Any] = dict(build_pagination(opts.pagination))
    body["query"] = build_filter(opts.filters) or {"match_all": {}}

    sort = build_sort(opts.sort)
    if sort:
        body["sort"] = sort
    return body


def build_pagination(pagination: Optional[PaginationOptions]) -> dict[str, Any]:
    """Build size plus either search_after (cursor) or from (offset)."""
    if pagination is None:
        pagination = PaginationOptions()
    pagination.set_defaults()

    result: dict[str, Any] = {"size": pagination.page_size}
    cursor = pagination.cursor
    if cursor is not None and cursor != "":
        if isinstance(cursor, (list, tuple)):
            result["search_after"] = list(cursor)
        else:
            # A single value assumes a single-field sort such as _id.
            result["search_after"] = [cursor]
        return result

    result["from"] = (pagination.page - 1) * pagination.page_size
    return result


def build_filter(filters: Optional[list[SearchFilter]]) -> Optional[dict[str, Any]]:
    """Build a bool query from filters, or None when nothing applies."""
    if not filters:
        return None

    must: list[dict[str, Any]] = []
    filter_clauses: list[dict[str, Any]] = []
    for item in filters:
        if item.type in _MUST_CLAUSES:
            must.append({_MUST_CLAUSES[item.type]: {item.key: item.value}})
        elif item.type in _FILTER_CLAUSES:
            filter_clauses.append({_FILTER_CLAUSES[item.type]: {item.key: item.value}})

    bool_query: dict[str, Any] = {}
    if must:
        bool_query["must"] = must
    if filter_clauses:
        bool_query["filter"] = filter_clauses
    if not bool_query:
        return None
    return {"bool": bool_query}


def build_sort(sorts: Optional[list[SortOption]]) -> list[dict[str, Any]]:
    """Build the sort list; order -1 sorts descending, anything else ascending."""
    if not sorts:
        return []
    return [
        {item.key: {"order": "desc" if item.order == -1 else "asc"}}
        for item in sorts
    ]