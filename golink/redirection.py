"""The redirection side: short code lookup, caching and change replication."""

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from http import HTTPStatus
from typing import Any, Optional

from .links import (
    CODE_INTERNAL_SERVER,
    LINK_CACHE_TTL,
    ChangeEvent,
    Link,
    LinkRecord,
    Operation,
    ServiceError,
    link_cache_key,
)
from .widecolumn import Session, WideColumnRepository

_log = logging.getLogger(__name__)


def _parse_time(value: Any) -> Optional[datetime]:
    if not isinstance(value, str) or not value:
        return None
    text = value[:-1] + "+00:00" if value.endswith("Z") else value
    return datetime.fromisoformat(text)


class LinkCache:
    """Reads and writes links in the cache engine."""

    def __init__(self, engine: Any) -> None:
        self._engine = engine

    def set(self, link: Link) -> None:
        """Cache a link under its short code."""
        self._engine.set(link_cache_key(link.id), link, LINK_CACHE_TTL)

    def get(self, link_id: str) -> Link:
        """Return the cached link; the engine raises when it is absent."""
        data = json.loads(self._engine.get(link_cache_key(link_id)))
        if not isinstance(data, dict):
            raise ValueError("cached link is not an object")
        return Link(
            id=data.get("id") or "",
            original_url=data.get("original_url") or "",
            created_at=_parse_time(data.get("created_at")),
            updated_at=_parse_time(data.get("updated_at")),
        )

    def delete_batch(self, ids: list[str]) -> None:
        """Remove several links from the cache."""
        self._engine.delete_batch([link_cache_key(link_id) for link_id in ids])


class LinkRepository:
    """Reads and replicates links in the wide column store."""

    def __init__(self, session: Session) -> None:
        self._repo: WideColumnRepository[LinkRecord] = WideColumnRepository(session, LinkRecord())

    def get_original_url(self, short_code: str) -> Link:
        """Return the link for a short code; raise NotFoundError if absent."""
        return self._repo.get(short_code).to_entity()

    def create_batch(self, links: list[Link]) -> None:
        """Store several links."""
        self._repo.create_batch([LinkRecord.from_entity(link) for link in links])

    def delete_batch(self, ids: list[str]) -> None:
        """Remove several links by short code."""
        self._repo.delete_batch(list(ids))


class LinkService:
    """Resolves short codes and applies replicated changes."""

    def __init__(
        self,
        repository: LinkRepository,
        cache: LinkCache,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._repository = repository
        self._cache = cache
        self._log = logger or _log

    def get_original_url(self, short_code: str) -> str:
        """Return the original URL, from the cache when possible."""
        try:
            cached = self._cache.get(short_code)
        except Exception:
            cached = None
        if cached is not None:
            self._log.info("Link found in cache shortCode=%s originalURL=%s", short_code, cached.original_url)
            return cached.original_url

        link = self._repository.get_original_url(short_code)
        try:
            self._cache.set(link)
        except Exception as exc:
            self._log.error("Failed to set link in cache: %s", exc)

        self._log.info("Link found in database shortCode=%s originalURL=%s", short_code, link.original_url)
        return link.original_url

    def handle_link_batch_change(self, batch: list[ChangeEvent]) -> None:
        """Store created links and remove deleted ones from store and cache."""
        to_create = [event.after for event in batch if event.op == Operation.CREATE and event.after is not None]
        to_delete = [event.before.id for event in batch if event.op == Operation.DELETE and event.before is not None]

        if to_create:
            try:
                self._repository.create_batch(to_create)
            except Exception as exc:
                raise ServiceError(
                    "failed to batch save link", CODE_INTERNAL_SERVER, HTTPStatus.INTERNAL_SERVER_ERROR
                ) from exc

        if to_delete:
            try:
                self._repository.delete_batch(to_delete)
                self._cache.delete_batch(to_delete)
            except Exception as exc:
                raise ServiceError(
                    "failed to batch remove link", CODE_INTERNAL_SERVER, HTTPStatus.INTERNAL_SERVER_ERROR
                ) from exc


@dataclass
class RedirectReply:
    """What the redirect handler answers: a redirect or a JSON error."""

    status: int
    location: Optional[str] = None
    body: Optional[dict[str, str]] = None


class LinkHandler:
    """Request handler that redirects short codes to their URLs."""

    def __init__(self, service: LinkService) -> None:
        self._service = service

    def redirect(self, short_code: str) -> RedirectReply:
        """Resolve a short code into a redirect, or an error reply."""
        if not short_code:
            return RedirectReply(status=HTTPStatus.BAD_REQUEST, body={"error": "invalid short code"})
        try:
            url = self._service.get_original_url(short_code)
        except Exception:
            return RedirectReply(status=HTTPStatus.NOT_FOUND, body={"error": "link not found"})
        return RedirectReply(status=HTTPStatus.FOUND, location=url)