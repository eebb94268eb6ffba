"""URL shortener building blocks: short-link generation and redirection services, with shared query, cache, storage, messaging, logging and configuration helpers."""

__version__ = "0.1.0"