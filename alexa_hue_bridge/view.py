"""View base class and middlewares shared by every hub application."""
from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from http import HTTPStatus
import json
import logging
from typing import Any

from aiohttp import hdrs, web

from .const import V2_EVENTSTREAM_PATH, V2_RESOURCE_PATH

_LOGGER = logging.getLogger(__name__)

# Keys used to store references in each hub's aiohttp app
KEY_CONTROLLER = "alexa_hue_bridge_controller"
KEY_HUB = "alexa_hue_bridge_hub"

CORS_HEADERS = {
    hdrs.ACCESS_CONTROL_ALLOW_ORIGIN: "*",
    hdrs.ACCESS_CONTROL_ALLOW_METHODS: "GET, PUT, POST, DELETE, OPTIONS",
    hdrs.ACCESS_CONTROL_ALLOW_HEADERS: "Content-Type, Authorization, hue-application-key",
}

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


def json_response(
    result: Any,
    status_code: HTTPStatus | int = HTTPStatus.OK,
    headers: Mapping[str, str] | None = None,
) -> web.Response:
    """Return a JSON response."""
    return web.Response(
        text=json.dumps(result),
        content_type="application/json",
        status=int(status_code),
        headers=headers,
    )


def hue_api_error(error_type: int, address: str, description: str) -> list[dict[str, Any]]:
    """Build a Hue API error response array.

    Error types from the Hue API:
      1 = unauthorized user
      2 = body contains invalid JSON
      3 = resource not available
      4 = method not available
      6 = parameter not available
      901 = internal error
    """
    return [{"error": {"type": error_type, "address": address, "description": description}}]


def v2_envelope(
    data: list[Any] | None = None, errors: list[dict[str, Any]] | None = None
) -> dict[str, Any]:
    """Build the ``{errors, data}`` envelope of the resource API."""
    return {"errors": errors or [], "data": data or []}


def v2_error_response(error_type: int, address: str, description: str) -> web.Response:
    """Return a resource API error, 404 for missing resources and 400 otherwise."""
    status = HTTPStatus.NOT_FOUND if error_type == 3 else HTTPStatus.BAD_REQUEST
    error = {"type": error_type, "address": address, "description": description}
    return json_response(v2_envelope(errors=[error]), status, headers=CORS_HEADERS)


def _is_v2_path(path: str) -> bool:
    return path.startswith((V2_RESOURCE_PATH, V2_EVENTSTREAM_PATH))


class HueView:
    """Base view, routed by the HTTP methods it implements."""

    url: str | None = None
    extra_urls: list[str] = []
    name: str | None = None

    @staticmethod
    def json(
        result: Any,
        status_code: HTTPStatus | int = HTTPStatus.OK,
        headers: Mapping[str, str] | None = None,
    ) -> web.Response:
        """Return a JSON response."""
        return json_response(result, status_code, headers)

    def json_message(
        self,
        message: str,
        status_code: HTTPStatus | int = HTTPStatus.OK,
        headers: Mapping[str, str] | None = None,
    ) -> web.Response:
        """Return a JSON message response."""
        return self.json({"message": message}, status_code, headers=headers)

    def register(self, app: web.Application, router: web.UrlDispatcher) -> None:
        """Register the view with a router."""
        assert self.url is not None, "No url set for view"
        urls = [self.url, *self.extra_urls]

        for method in ("get", "post", "put", "delete", "options"):
            if not (handler := getattr(self, method, None)):
                continue
            wrapped = _request_handler_factory(handler)
            for url in urls:
                router.add_route(method.upper(), url, wrapped)


def _request_handler_factory(handler: Callable[..., Awaitable[web.StreamResponse]]) -> Handler:
    """Wrap a view method so it receives the path parameters as arguments."""

    async def handle(request: web.Request) -> web.StreamResponse:
        return await handler(request, **request.match_info)

    return handle


# ---------------------------------------------------------------------------
# Middlewares
# ---------------------------------------------------------------------------


@web.middleware
async def request_logging_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    """Log every request the hub serves."""
    hub = request.app[KEY_HUB]
    _LOGGER.debug("%s -> %s %s", hub.port, request.method, request.path_qs)
    if request.can_read_body:
        # Views decode strictly and answer 400 on bad bodies
        body = await request.read()
        if body:
            _LOGGER.debug("Request body: %s", body.decode(errors="replace"))
    return await handler(request)


@web.middleware
async def draining_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    """Refuse requests that reach a hub which is shutting down."""
    hub = request.app[KEY_HUB]
    if hub.closing:
        _LOGGER.debug("Hub %d is draining, refusing %s", hub.index, request.path)
        return json_response(
            {"error": "Service unavailable, hub is shutting down"},
            HTTPStatus.SERVICE_UNAVAILABLE,
            headers={hdrs.CONNECTION: "close"},
        )
    return await handler(request)


@web.middleware
async def internal_error_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    """Map unexpected view errors onto protocol error responses."""
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except Exception:  # noqa: BLE001
        _LOGGER.exception("Error handling %s %s", request.method, request.path)
        if _is_v2_path(request.path):
            return v2_error_response(1, request.path, "internal error")
        return json_response(
            hue_api_error(901, request.path, "Internal error"),
            HTTPStatus.INTERNAL_SERVER_ERROR,
        )


HUB_MIDDLEWARES = (
    request_logging_middleware,
    draining_middleware,
    internal_error_middleware,
)
