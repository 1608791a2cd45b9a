from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from campus_connect.config.settings import settings
from campus_connect.db.db import create_tables
from campus_connect.utils.logging import get_logger
from campus_connect.utils.errors import setup_error_handlers
from campus_connect.utils.responses import ResponseBuilder
from campus_connect.routers import main_router, websocket_router
from campus_connect.middlewares import (
    RequestIDMiddleware,
    DevSecurityMiddleware,
    ProdSecurityMiddleware,
    AuthMiddleware,
)

logger = get_logger()

IS_PRODUCTION = settings.ENVIRONMENT == "production"


@asynccontextmanager
async def lifespan(_: FastAPI):
    logger.info(f"{settings.NAME} {settings.VERSION} starting ({settings.ENVIRONMENT})")
    # Production schemas are managed outside the app
    if not IS_PRODUCTION:
        create_tables()
    yield
    logger.info(f"{settings.NAME} stopped")


def install_middlewares(application: FastAPI) -> None:
    """
    Starlette runs the last added middleware first, so a request passes
    request id -> auth -> security headers -> CORS on its way in.
    """
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_HOSTS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
    )
    application.add_middleware(
        ProdSecurityMiddleware if IS_PRODUCTION else DevSecurityMiddleware
    )
    application.add_middleware(AuthMiddleware)
    application.add_middleware(RequestIDMiddleware)


def create_application() -> FastAPI:
    application = FastAPI(
        title=settings.NAME, version=settings.VERSION, lifespan=lifespan
    )
    setup_error_handlers(application)
    install_middlewares(application)

    @application.get("/health", include_in_schema=False)
    async def liveness(request: Request):
        return ResponseBuilder.success(
            request=request, data={"status": "healthy"}, message="OK"
        )

    application.include_router(main_router, prefix=settings.API_PREFIX, tags=["APIs"])
    application.include_router(
        websocket_router, prefix=settings.WEB_SOCKET_PREFIX, tags=["Realtime"]
    )
    return application


app = create_application()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "campus_connect.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.ENVIRONMENT == "development",
        log_config=None,
        log_level=None,
    )
