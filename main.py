import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import auth
import cart
import catalog
import config
import orders
import reports
from auth import get_current_admin
from database import get_store, open_store
from seed import reset_products, seed_store

logger = logging.getLogger(__name__)


def create_app(store=None, seed: Optional[bool] = None) -> FastAPI:
    """Build the API around a persistence handle (MemoryStore or MongoStore)."""
    logging.basicConfig(
        level=config.LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    if store is None:
        store = open_store()
    if seed is None:
        seed = config.SEED_DATA

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if seed:
            seed_store(app.state.store)
        yield
        app.state.store.close()

    app = FastAPI(title="Storefront API", lifespan=lifespan)
    app.state.store = store

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"detail": "Validation error", "errors": jsonable_encoder(exc.errors(), exclude={"ctx", "url"})},
        )

    @app.exception_handler(Exception)
    async def unexpected_error(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})

    @app.get("/")
    def read_root():
        return {"message": "Storefront backend is running"}

    @app.get("/test")
    def test_database(store=Depends(get_store)):
        response = {
            "backend": "✅ Running",
            "database": "❌ Not Available",
            "database_url": "✅ Set" if config.DATABASE_URL else "❌ Not Set",
            "database_name": config.DATABASE_NAME if store.kind == "mongodb" else None,
            "connection_status": "Not Connected",
            "collections": [],
        }
        try:
            response["collections"] = store.collection_names()[:10]
            response["database"] = f"✅ Connected & Working ({store.kind})"
            response["connection_status"] = "Connected"
        except Exception as e:
            logger.warning("Store health check failed: %s", e)
            response["database"] = f"⚠️ Connected but Error: {str(e)[:50]}"
        return response

    @app.post("/api/admin/reset-products")
    def reset_catalog(current: dict = Depends(get_current_admin), store=Depends(get_store)):
        reset_products(store)
        logger.info("Catalog reset by %s", current["username"])
        return {"message": "Products have been reset and reseeded successfully"}

    for module in (auth, catalog, cart, orders, reports):
        app.include_router(module.router)
    return app


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(create_app(), host="0.0.0.0", port=config.PORT)
