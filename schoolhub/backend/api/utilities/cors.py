# schoolhub/backend/api/utilities/cors.py

from starlette.middleware.cors import CORSMiddleware
from starlette.types import ASGIApp, Receive, Scope, Send


class PathScopedCORSMiddleware(CORSMiddleware):
    """CORSMiddleware that leaves some path prefixes to routes which set their own CORS headers."""

    def __init__(self, app: ASGIApp, excluded_prefixes: tuple[str, ...] = (), **kwargs) -> None:
        super().__init__(app, **kwargs)
        self.excluded_prefixes = tuple(excluded_prefixes)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http" and self.excluded_prefixes and scope["path"].startswith(self.excluded_prefixes):
            await self.app(scope, receive, send)
            return
        await super().__call__(scope, receive, send)
