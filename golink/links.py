"""Link entities, request and response shapes, the storage record and shared constants."""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from http import HTTPStatus
from typing import Any, Optional

from .mapper import CREATED_AT_COLUMN, ID_COLUMN, UPDATED_AT_COLUMN, BaseModel, Model

URL = "golink.com"

LINK_CACHE_PREFIX = "link::"
LINK_CACHE_TTL = timedelta(hours=1)

CONSUMER_GROUP_LINK_CDC = "link_cdc_group"
TOPIC_LINK_CDC = "golink.links.generation_ks.links"

TABLE_NAME = "links"
ORIGINAL_URL_COLUMN = "original_url"

CODE_DATABASE_ERROR = "DATABASE_ERROR"
CODE_INTERNAL_SERVER = "INTERNAL_SERVER"


def link_cache_key(link_id: str) -> str:
    """Return the cache key under which a link is stored."""
    return LINK_CACHE_PREFIX + link_id


@dataclass
class Link:
    """A short code and the URL it points to."""

    id: str = ""
    original_url: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class CreateLinkRequest:
    """A request to shorten a URL."""

    original_url: str = ""


@dataclass
class LinkResponse:
    """The shortened link handed back to the caller."""

    short_link: str = ""


class Operation(str, Enum):
    """Kind of change carried by a change event."""

    CREATE = "c"
    UPDATE = "u"
    DELETE = "d"
    READ = "r"


@dataclass
class ChangeEvent:
    """A change to a link row, with its state before and after."""

    op: Operation
    before: Optional[Link] = None
    after: Optional[Link] = None
    source: Any = None
    ts_ms: int = 0


class ServiceError(Exception):
    """A service operation failed; carries an error code and an HTTP status."""

    def __init__(
        self,
        message: str,
        code: str = CODE_INTERNAL_SERVER,
        status: int = HTTPStatus.INTERNAL_SERVER_ERROR,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.status = int(status)


def to_link_entity(request: CreateLinkRequest) -> Link:
    """Build a new link, without an id yet, from a creation request."""
    now = datetime.now(timezone.utc)
    return Link(original_url=request.original_url, created_at=now, updated_at=now)


def to_link_response(link: Link) -> LinkResponse:
    """Build the response carrying the full short link."""
    return LinkResponse(short_link=f"{URL}/{link.id}")


@dataclass
class LinkRecord(BaseModel[str], Model):
    """A link as stored in the links table."""

    original_url: str = ""

    @classmethod
    def from_entity(cls, link: Link) -> "LinkRecord":
        """Build a record from a link."""
        return cls(
            id=link.id,
            created_at=link.created_at,
            updated_at=link.updated_at,
            original_url=link.original_url,
        )

    def to_entity(self) -> Link:
        """Build a link from this record."""
        return Link(
            id=self.id or "",
            original_url=self.original_url,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    def table_name(self) -> str:
        """Return the table links are stored in."""
        return TABLE_NAME

    def column_names(self) -> list[str]:
        """Return the column names in storage order."""
        return [ID_COLUMN, CREATED_AT_COLUMN, UPDATED_AT_COLUMN, ORIGINAL_URL_COLUMN]

    def column_values(self) -> list[Any]:
        """Return the column values in storage order."""
        return [self.id, self.created_at, self.updated_at, self.original_url]