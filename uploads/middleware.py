from fastapi import Request, Response
from fastapi.responses import PlainTextResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp

from uploads import config

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": f"Content-Type, {config.API_KEY_HEADER}",
}

API_PREFIX = "/api/"
PUBLIC_API_PATHS = ("/api/login",)


def is_valid_api_key(supplied: str, expected: str) -> bool:
    """An empty configured key never matches."""
    return bool(expected) and supplied == expected


class AccessGateMiddleware(BaseHTTPMiddleware):
    """CORS headers and API-key check for every ``/api/`` route.

    Preflight ``OPTIONS`` requests are answered before the key check.
    ``/api/login`` gets CORS headers but no key check. Other paths,
    including ``/file/``, pass through untouched.
    """

    def __init__(self, app: ASGIApp, api_key: str):
        super().__init__(app)
        self.api_key = api_key

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if not request.url.path.startswith(API_PREFIX):
            return await call_next(request)

        if request.method == "OPTIONS":
            return Response(status_code=200, headers=CORS_HEADERS)

        if request.url.path not in PUBLIC_API_PATHS:
            supplied = request.headers.get(config.API_KEY_HEADER, "")
            if not is_valid_api_key(supplied, self.api_key):
                return PlainTextResponse(
                    "Access denied. Invalid or missing API Key.",
                    status_code=401,
                    headers=CORS_HEADERS,
                )

        response = await call_next(request)
        response.headers.update(CORS_HEADERS)
        return response
