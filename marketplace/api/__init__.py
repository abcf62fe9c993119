# marketplace/api/__init__.py
from fastapi import FastAPI
from marketplace.api.routers import cart, orders, users
from marketplace.api.routers.health import router as health_router


def create_app() -> FastAPI:
    app = FastAPI(
        title="Marketplace Orders Service",
        version="1.0.0",
    )

    app.include_router(health_router)
    app.include_router(users.router)
    app.include_router(cart.router)
    app.include_router(orders.router)
    return app
