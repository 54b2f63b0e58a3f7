"""CORS configuration for the FastAPI application."""

# CORS Origins configuration
ALLOWED_ORIGINS = [
    "http://localhost:5173",  # Vite dev server
    "http://localhost:3000",  # Web frontend
]

# CORS Methods configuration
ALLOWED_METHODS = [
    "GET",
    "POST",
    "PUT",
    "DELETE",
    "OPTIONS",  # Required for CORS preflight
]

# CORS Headers configuration
ALLOWED_HEADERS = [
    "Accept",
    "Authorization",
    "Content-Type",
]

EXPOSED_HEADERS = [
    "Link",  # Pagination
]

CORS_CONFIG = {
    "allow_origins": ALLOWED_ORIGINS,
    "allow_credentials": True,
    "allow_methods": ALLOWED_METHODS,
    "allow_headers": ALLOWED_HEADERS,
    "expose_headers": EXPOSED_HEADERS,
    "max_age": 300,  # Cache preflight requests for 5 minutes
}
