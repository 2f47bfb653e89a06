import os

from starlette.datastructures import Headers
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import Response

CORS_ALLOW_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ALLOW_ORIGINS", "https://primify.ai").split(",")
    if origin.strip()
]
CORS_ALLOW_METHODS = ["POST", "OPTIONS"]
CORS_ALLOW_HEADERS = ["Content-Type"]


class NoContentPreflightCORSMiddleware(CORSMiddleware):
    """CORSMiddleware that answers every preflight with an empty 204.

    Rejected preflights carry no Access-Control-Allow-Origin header, so the
    browser still blocks the cross-origin call.
    """

    def preflight_response(self, request_headers: Headers) -> Response:
        response = super().preflight_response(request_headers)
        if response.status_code != 200:
            return Response(status_code=204)
        headers = {
            key: value
            for key, value in response.headers.items()
            if key.lower() not in {"content-length", "content-type"}
        }
        return Response(status_code=204, headers=headers)
