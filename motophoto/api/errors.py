"""API error types and their JSON rendering."""

import logging

from fastapi import FastAPI, Request, Response

from ..db.repository import NotFoundError
from .responses import write_json

logger = logging.getLogger(__name__)


class APIError(Exception):
    """Base class for errors rendered as {"error": message}."""

    status_code = 500
    message = "internal server error"

    def to_response(self) -> Response:
        return write_json(self.status_code, {"error": self.message})


class InternalError(APIError):
    """An unexpected handler failure. Never carries internal detail to the client."""
    pass


async def not_found_handler(request: Request, exc: NotFoundError) -> Response:
    logger.debug(f"Lookup failed: {exc}")
    return write_json(404, {"error": "event not found"})


async def api_error_handler(request: Request, exc: APIError) -> Response:
    return exc.to_response()


def register_exception_handlers(app: FastAPI) -> None:
    """Install the handlers that map domain errors to JSON bodies."""
    app.add_exception_handler(NotFoundError, not_found_handler)
    app.add_exception_handler(APIError, api_error_handler)
