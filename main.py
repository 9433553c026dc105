import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from auth_routes import router as auth_router
from customer_routes import router as customer_router
from database import Store
from errors import register_exception_handlers
from order_routes import router as order_router
from product_routes import router as product_router
from settings import settings
from stats_routes import router as stats_router

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def create_app(store: Optional[Store] = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owns_store = app.state.store is None
        if owns_store:
            app.state.store = Store.from_settings(settings)
        logger.info("Starting Shop Management API (%s)", settings.ENVIRONMENT)
        await app.state.store.ensure_indexes()
        yield
        if owns_store:
            app.state.store.close()
            app.state.store = None
        logger.info("Shutdown complete")

    app = FastAPI(title="Shop Management API", lifespan=lifespan)
    app.state.store = store

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    app.include_router(product_router)
    app.include_router(order_router)
    app.include_router(auth_router)
    app.include_router(customer_router)
    app.include_router(stats_router)

    @app.get("/api/health")
    async def health(request: Request):
        connected = await request.app.state.store.ping()
        return {
            "success": True,
            "status": "ok",
            "message": "Server is running",
            "database": "connected" if connected else "unavailable",
        }

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.PORT)
