from __future__ import annotations

from contextvars import ContextVar

from fastapi.routing import APIRoute
from starlette.requests import Request


# Read by the slow-query listener in db.py; 'background' outside a request.
current_endpoint: ContextVar[str] = ContextVar('current_endpoint', default='background')


def endpoint_label(method: str, path_template: str) -> str:
    return f'{method} {path_template}'


class EndpointNameRoute(APIRoute):
    """Route class that tags each request with its method and path template."""

    def get_route_handler(self):
        handler = super().get_route_handler()
        path_template = self.path_format

        async def tagged_handler(request: Request):
            reset_token = current_endpoint.set(endpoint_label(request.method, path_template))
            try:
                return await handler(request)
            finally:
                current_endpoint.reset(reset_token)

        return tagged_handler
