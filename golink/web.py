"""HTTP applications for the generation and redirection services."""

from dataclasses import asdict
from http import HTTPStatus
from typing import Any

from flask import Flask, redirect, request

from .links import CreateLinkRequest, ServiceError

RELEASE_MODE = "release"


def ping() -> tuple[dict[str, str], int]:
    """Health check answer."""
    return {"status": "OK", "message": "I'm running!"}, int(HTTPStatus.OK)


def _new_app(mode: str) -> Flask:
    app = Flask(__name__)
    app.debug = mode != RELEASE_MODE
    app.add_url_rule("/ping", "ping", ping, methods=["GET"])
    return app


def create_generation_app(handler: Any, mode: str = "debug") -> Flask:
    """Build the app exposing POST /links for short link creation."""
    app = _new_app(mode)

    def create_link():
        payload = request.get_json(silent=True)
        if not isinstance(payload, dict):
            return {"error": "invalid request body"}, int(HTTPStatus.BAD_REQUEST)
        original_url = payload.get("original_url", "")
        if not isinstance(original_url, str):
            return {"error": "invalid request body"}, int(HTTPStatus.BAD_REQUEST)
        try:
            response = handler.create(CreateLinkRequest(original_url=original_url))
        except ServiceError as exc:
            return {"code": exc.code, "message": exc.message}, exc.status
        return asdict(response), int(HTTPStatus.OK)

    app.add_url_rule("/links", "create_link", create_link, methods=["POST"])
    return app


def create_redirection_app(handler: Any, mode: str = "debug") -> Flask:
    """Build the app redirecting GET /<short_code> to the original URL."""
    app = _new_app(mode)

    def follow(short_code: str):
        reply = handler.redirect(short_code)
        if reply.location is not None:
            return redirect(reply.location, code=int(reply.status))
        return reply.body or {}, int(reply.status)

    app.add_url_rule("/<short_code>", "redirect", follow, methods=["GET"])
    return app