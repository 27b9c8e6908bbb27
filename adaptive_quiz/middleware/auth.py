from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

# Non-API prefixes that are always public (docs)
PUBLIC_PREFIXES = (
    "/docs",
    "/openapi",
    "/redoc",
)


class AuthMiddleware(BaseHTTPMiddleware):
    """Reject API calls without a bearer token; routes decode the token themselves."""

    async def dispatch(self, request: Request, call_next):
        path = request.url.path

        # CORS preflight never carries credentials
        if request.method == "OPTIONS":
            return await call_next(request)

        if path.startswith(PUBLIC_PREFIXES) or not path.startswith("/api/"):
            return await call_next(request)

        auth_header = request.headers.get("Authorization", "")
        if auth_header.lower().startswith("bearer ") and auth_header[7:].strip():
            return await call_next(request)

        return JSONResponse(
            status_code=401,
            content={"detail": "Not authenticated", "error": "authentication_required", "retryable": False},
        )
