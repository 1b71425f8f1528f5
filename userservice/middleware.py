"""ASGI middleware applied to every users-service response."""
from __future__ import annotations

from starlette.datastructures import MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send


class JSONContentTypeMiddleware:
    """Force ``Content-Type: application/json`` on every HTTP response,
    including empty-bodied ones."""

    def __init__(self, app: ASGIApp, *, media_type: str = "application/json") -> None:
        self.app = app
        self.media_type = media_type

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        async def send_with_content_type(message: Message) -> None:
            if message["type"] == "http.response.start":
                message.setdefault("headers", [])
                headers = MutableHeaders(scope=message)
                headers["content-type"] = self.media_type
            await send(message)

        await self.app(scope, receive, send_with_content_type)


__all__ = ["JSONContentTypeMiddleware"]
