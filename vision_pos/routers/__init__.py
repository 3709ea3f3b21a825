# vision_pos/routers/__init__.py

from .auth.auth_router import router as auth_router

from .quotes.quote_approval_router import router as quote_approval_router
from .quotes.quote_expiration_router import router as quote_expiration_router
from .quotes.quote_status_router import router as quote_status_router
from .quotes.quote_router import router as quote_router


__all__ = [
"auth_router",

"quote_approval_router",
"quote_expiration_router",
"quote_status_router",
"quote_router",
]
