import logging
import traceback
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from multiverse_backend.config import CORS_ORIGINS, LOG_LEVEL, PORT, SECRET_KEY, DEV_SECRET_KEY, is_production
from multiverse_backend.db import create_client, get_database, ensure_indexes, check_connection
from multiverse_backend.routes.auth import router as auth_router
from multiverse_backend.routes.referral import router as referral_router

logging.basicConfig(level=getattr(logging, LOG_LEVEL.upper(), logging.INFO))
logger = logging.getLogger("uvicorn.error")


def create_app(mongo_client=None) -> FastAPI:
    """Build the API. The Mongo client is opened once at start-up and shared by every request."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if is_production() and SECRET_KEY == DEV_SECRET_KEY:
            raise RuntimeError("JWT_SECRET must be set when APP_ENV=production")
        owns_client = mongo_client is None
        client = create_client() if owns_client else mongo_client
        app.state.mongo_client = client
        app.state.db = get_database(client)
        ensure_indexes(app.state.db)
        logger.info("Connected to MongoDB")
        try:
            yield
        finally:
            if owns_client:
                client.close()

    app = FastAPI(title="AI Multiverse Backend", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    app.include_router(auth_router, prefix="/api")
    app.include_router(referral_router, prefix="/api/referral")

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "message": exc.detail},
            headers=exc.headers,
        )

    @app.exception_handler(Exception)
    async def universal_exception_handler(request: Request, exc: Exception):
        logger.error("Unhandled exception on path %s:\n%s", request.url.path, traceback.format_exc())
        return JSONResponse(status_code=500, content={"success": False, "message": "Server Error"})

    @app.get("/", response_class=PlainTextResponse)
    async def home():
        return "AI Multiverse Backend is Running! 🚀"

    @app.get("/health")
    def health_check(request: Request):
        if check_connection(request.app.state.mongo_client):
            return JSONResponse(content={"status": "ok", "database": "connected"})
        return JSONResponse(content={"status": "error", "database": "disconnected"}, status_code=500)

    return app


# Entry point for an external ASGI host (`uvicorn multiverse_backend.main:app`)
app = create_app()


def run():
    if is_production():
        logger.info("APP_ENV=production: serve `multiverse_backend.main:app` from the hosting ASGI server")
        return
    uvicorn.run(app, host="0.0.0.0", port=PORT)


if __name__ == "__main__":
    run()
