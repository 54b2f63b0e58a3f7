"""JSON response helpers."""

import json
import logging
from typing import Any

from fastapi import Response
from fastapi.responses import PlainTextResponse

logger = logging.getLogger(__name__)


def write_json(status_code: int, value: Any) -> Response:
    """
    Build a JSON response with the given status code.

    The body is serialized before any header is sent, so a value that cannot
    be encoded yields a plain 500 instead of a truncated stream.
    """
    try:
        body = json.dumps(value, ensure_ascii=False, allow_nan=False, separators=(',', ':'))
    except (TypeError, ValueError) as e:
        logger.error(f"Failed to encode response: {e}")
        return PlainTextResponse("failed to encode response", status_code=500)

    return Response(
        content=body.encode('utf-8'),
        status_code=status_code,
        media_type='application/json',
    )
