"""Cross-cutting request middleware.

install_middleware() builds the chain below, outermost first:

    request id -> real ip -> access log -> recoverer -> gzip -> CORS -> routes
"""

import logging
import time
import uuid
from typing import Awaitable, Callable

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from ..config.cors import CORS_CONFIG
from .errors import InternalError

logger = logging.getLogger(__name__)
access_logger = logging.getLogger('motophoto.api.access')

REQUEST_ID_HEADER = 'X-Request-ID'

# Checked in order; X-Forwarded-For may hold a chain, the client is first
REAL_IP_HEADERS = ('True-Client-IP', 'X-Real-IP', 'X-Forwarded-For')

GZIP_MINIMUM_SIZE = 1000
GZIP_COMPRESS_LEVEL = 5

CallNext = Callable[[Request], Awaitable[Response]]


def resolve_client_ip(request: Request) -> str:
    """Client address as declared by the client or the forwarding proxy."""
    for header in REAL_IP_HEADERS:
        value = request.headers.get(header)
        if value:
            ip = value.split(',')[0].strip()
            if ip:
                return ip
    return request.client.host if request.client else '-'


async def request_id_middleware(request: Request, call_next: CallNext) -> Response:
    request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
    request.state.request_id = request_id
    response = await call_next(request)
    response.headers[REQUEST_ID_HEADER] = request_id
    return response


async def real_ip_middleware(request: Request, call_next: CallNext) -> Response:
    request.state.client_ip = resolve_client_ip(request)
    return await call_next(request)


async def access_log_middleware(request: Request, call_next: CallNext) -> Response:
    start = time.perf_counter()
    response = await call_next(request)
    duration_ms = (time.perf_counter() - start) * 1000

    request_id = getattr(request.state, 'request_id', '-')
    client_ip = getattr(request.state, 'client_ip', '-')
    access_logger.info(
        f'"{request.method} {request.url.path}" {response.status_code} '
        f'{duration_ms:.2f}ms from {client_ip} [{request_id}]',
        extra={
            'request_id': request_id,
            'client_ip': client_ip,
            'method': request.method,
            'path': request.url.path,
            'status': response.status_code,
            'duration_ms': round(duration_ms, 2),
        },
    )
    return response


async def recoverer_middleware(request: Request, call_next: CallNext) -> Response:
    """Turn an unhandled handler exception into an opaque 500."""
    try:
        return await call_next(request)
    except Exception:
        request_id = getattr(request.state, 'request_id', '-')
        logger.exception(f"Unhandled error in {request.method} {request.url.path} [{request_id}]")
        return InternalError().to_response()


def install_middleware(app: FastAPI) -> None:
    """Install the middleware chain. Starlette runs the last one added first."""
    app.add_middleware(CORSMiddleware, **CORS_CONFIG)
    app.add_middleware(GZipMiddleware, minimum_size=GZIP_MINIMUM_SIZE, compresslevel=GZIP_COMPRESS_LEVEL)
    app.middleware('http')(recoverer_middleware)
    app.middleware('http')(access_log_middleware)
    app.middleware('http')(real_ip_middleware)
    app.middleware('http')(request_id_middleware)
