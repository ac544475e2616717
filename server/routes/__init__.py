"""API routes package."""

from server.routes.auth_routes import router as auth_router
from server.routes.embed_routes import router as embed_router
from server.routes.rpc_routes import router as rpc_router

__all__ = ["auth_router", "embed_router", "rpc_router"]
