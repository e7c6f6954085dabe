from kvauth.web.routers.auth import router as auth_router
from kvauth.web.routers.contact import router as contact_router
from kvauth.web.routers.pages import router as pages_router

__all__ = [
    "auth_router",
    "contact_router",
    "pages_router",
]
