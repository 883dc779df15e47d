"""FastAPI application serving the remote cart API."""
from fastapi import FastAPI

from cartsync.routers import cart_router


def create_app() -> FastAPI:
    app = FastAPI(title="Cart Sync API", version="1.0.0")
    app.include_router(cart_router)
    return app
