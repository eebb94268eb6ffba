"""The link generation side: short code creation, storage and caching."""

import logging
from http import HTTPStatus
from typing import Any, Optional

from .links import (
    CODE_DATABASE_ERROR,
    LINK_CACHE_TTL,
    CreateLinkRequest,
    Link,
    LinkRecord,
    LinkResponse,
    ServiceError,
    link_cache_key,
    to_link_entity,
    to_link_response,
)
from .unique import SnowflakeNode, base62_encode
from .widecolumn import Session, WideColumnRepository

DEFAULT_TTL = 2592000  # 30 days, in seconds

_log = logging.getLogger(__name__)


class LinkCache:
    """Writes links to the cache engine."""

    def __init__(self, engine: Any) -> None:
        self._engine = engine

    def set(self, link: Link) -> None:
        """Cache a link under its short code."""
        self._engine.set(link_cache_key(link.id), link, LINK_CACHE_TTL)


class LinkRepository:
    """Stores links in the wide column store."""

    def __init__(self, session: Session) -> None:
        self._repo: WideColumnRepository[LinkRecord] = WideColumnRepository(session, LinkRecord())

    def create(self, link: Link) -> None:
        """Store a link that expires after the default TTL."""
        self._repo.create_with_ttl(LinkRecord.from_entity(link), DEFAULT_TTL)


class LinkService:
    """Creates short links."""

    def __init__(
        self,
        repository: LinkRepository,
        node: SnowflakeNode,
        cache: LinkCache,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._repository = repository
        self._node = node
        self._cache = cache
        self._log = logger or _log

    def create(self, request: CreateLinkRequest) -> LinkResponse:
        """Generate a short code for the URL, store and cache it."""
        short_code = base62_encode(self._node.generate())
        link = to_link_entity(request)
        link.id = short_code

        try:
            self._repository.create(link)
        except Exception as exc:
            raise ServiceError(
                "failed to create link", CODE_DATABASE_ERROR, HTTPStatus.INTERNAL_SERVER_ERROR
            ) from exc

        try:
            self._cache.set(link)
        except Exception as exc:
            self._log.warning("Failed to cache link %s: %s", short_code, exc)

        self._log.info("Link created successfully shortCode=%s link=%r", short_code, link)
        return to_link_response(link)


class LinkHandler:
    """Request handler for link creation."""

    def __init__(self, service: LinkService) -> None:
        self._service = service

    def create(self, request: CreateLinkRequest) -> LinkResponse:
        """Create a new short link."""
        return self._service.create(request)