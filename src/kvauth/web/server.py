from collections.abc import AsyncGenerator, Awaitable, Callable
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import RedirectResponse, Response

from kvauth.app import App
from kvauth.config import Config
from kvauth.core.kv import KVLimitExceededError
from kvauth.errors import UserError
from kvauth.web.error_handlers import (
    SECURITY_HEADERS,
    general_exception_handler,
    kv_limit_error_handler,
    user_error_handler,
)
from kvauth.web.routers import auth_router, contact_router, pages_router


def create_fastapi_app(app_instance: App, config: Config) -> FastAPI:
    """Create and configure FastAPI application."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
        """FastAPI application lifespan management."""
        app.state.app = app_instance
        app.state.config = config
        async with app_instance.lifespan():
            yield

    app = FastAPI(title="kvauth", lifespan=lifespan, docs_url=None, redoc_url=None, openapi_url=None)

    if config.force_https:

        @app.middleware("http")
        async def https_redirect(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
            if request.url.scheme == "http" and "x-forwarded-proto" not in request.headers:
                return RedirectResponse(str(request.url.replace(scheme="https")), status_code=301)
            return await call_next(request)

    # Outermost middleware; also covers the HTTPS redirect
    @app.middleware("http")
    async def security_headers(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        return response

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        return {"status": "healthy"}

    app.include_router(pages_router)
    app.include_router(auth_router)
    app.include_router(contact_router)

    app.add_exception_handler(UserError, user_error_handler)
    app.add_exception_handler(KVLimitExceededError, kv_limit_error_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    return app
