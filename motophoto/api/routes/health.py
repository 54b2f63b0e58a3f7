"""Health check routes for the FastAPI application."""

from fastapi import APIRouter, Response

from ..responses import write_json

router = APIRouter(tags=["health"])

@router.get("/health")
async def health_check() -> Response:
    """Health check endpoint. Does not touch the database."""
    return write_json(200, {"status": "ok"})
