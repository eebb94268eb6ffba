"""Query, pagination and repository contracts shared by the storage backends."""

from dataclasses import dataclass, field
from typing import Any, Generic, Optional, Protocol, TypeVar

T = TypeVar("T")
ID = TypeVar("ID")

DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 10


@dataclass
class SearchFilter:
    """A single search or filter condition on one field."""

    key: str = ""
    value: Any = None
    type: str = ""


@dataclass
class SortOption:
    """Sort on one field: 1 ascending, -1 descending."""

    key: str = ""
    order: int = 0


@dataclass
class PaginationOptions:
    """Page-based or cursor-based pagination parameters."""

    page: int = 0
    page_size: int = 0
    cursor: Any = None

    def set_defaults(self) -> None:
        """Replace non-positive page and page size with their defaults."""
        if self.page <= 0:
            self.page = DEFAULT_PAGE
        if self.page_size <= 0:
            self.page_size = DEFAULT_PAGE_SIZE


@dataclass
class QueryOptions:
    """Pagination, filters and sorting for a find query."""

    pagination: Optional[PaginationOptions] = None
    filters: list[SearchFilter] = field(default_factory=list)
    sort: list[SortOption] = field(default_factory=list)


@dataclass
class PaginationMeta:
    """Pagination information returned with a page of records."""

    current_page: int
    page_size: int
    total_pages: int
    total_items: int
    has_next: bool
    has_prev: bool


@dataclass
class Paginated(Generic[T]):
    """A page of records together with its pagination information."""

    records: list[T] = field(default_factory=list)
    pagination: Optional[PaginationMeta] = None


def calculate_pagination(current_page: int, page_size: int, total_items: int) -> PaginationMeta:
    """Compute page counts and navigation flags for a result set."""
    total_pages = (total_items + page_size - 1) // page_size
    current_page = min(current_page, total_pages)
    if total_pages == 0:
        total_pages = 1
    return PaginationMeta(
        current_page=current_page,
        page_size=page_size,
        total_pages=total_pages,
        total_items=total_items,
        has_next=current_page < total_pages,
        has_prev=current_page > 1,
    )


class Repository(Protocol[T, ID]):
    """Operations every repository provides."""

    def create(self, model: T) -> None:
        """Insert a model."""

    def update(self, model: T) -> None:
        """Update a model."""

    def delete(self, item_id: ID) -> None:
        """Remove the model with the given id."""

    def get(self, item_id: ID) -> Optional[T]:
        """Fetch the model with the given id."""

    def find(self, opts: Optional[QueryOptions]) -> Paginated[T]:
        """Fetch a page of models matching the options."""

    def exists(self, item_id: ID) -> bool:
        """Tell whether a model with the given id exists."""

    def create_batch(self, models: list[T]) -> None:
        """Insert several models."""

    def delete_batch(self, ids: list[ID]) -> None:
        """Remove several models by id."""