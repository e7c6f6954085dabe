from typing import Annotated, cast

from fastapi import Depends, Request

from kvauth.app import App
from kvauth.core.modules.session.models import Session

DEFAULT_CLIENT_IP = "127.0.0.1"


async def get_app(request: Request) -> App:
    return cast(App, request.app.state.app)


def client_ip(request: Request) -> str:
    """Client address as seen through Cloudflare or a reverse proxy."""
    connecting_ip = request.headers.get("cf-connecting-ip")
    if connecting_ip:
        return connecting_ip.strip()
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first
    if request.client and request.client.host:
        return request.client.host
    return DEFAULT_CLIENT_IP


async def get_client_ip(request: Request) -> str:
    return client_ip(request)


async def get_optional_session(app: Annotated[App, Depends(get_app)], request: Request) -> Session | None:
    """Session for the request, or None. Never rejects the request by itself."""
    return await app.get_session(request.headers.get("cookie"))


# Type aliases for dependencies
AppDep = Annotated[App, Depends(get_app)]
ClientIpDep = Annotated[str, Depends(get_client_ip)]
SessionDep = Annotated[Session | None, Depends(get_optional_session)]
