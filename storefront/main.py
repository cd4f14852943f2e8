from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

import storefront.models  # noqa: F401
from storefront.api.v1 import api_router
from storefront.core.config import settings
from storefront.core.logging_config import configure_logging
from storefront.core.redis_client import close_redis
from storefront.core.sentry import init_sentry
from storefront.middleware import RequestLoggingMiddleware
from storefront.schemas.error import ErrorResponse
from storefront.services import auth_events
from storefront.services import resume as resume_service


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    yield
    await close_redis()


def get_application() -> FastAPI:
    configure_logging(settings.log_json)
    init_sentry()
    tags_metadata = [
        {"name": "auth", "description": "Authentication and user management"},
        {"name": "catalog", "description": "Products and categories"},
        {"name": "cart", "description": "Cart"},
        {"name": "wishlist", "description": "Saved products"},
        {"name": "intents", "description": "Guest actions deferred until sign-in"},
    ]
    app = FastAPI(
        title=settings.app_name,
        lifespan=lifespan,
        version=settings.app_version,
        openapi_tags=tags_metadata,
        swagger_ui_parameters={"displayRequestDuration": True},
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
        expose_headers=["X-Session-Id", "X-Request-ID"],
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.include_router(api_router, prefix="/api/v1")

    auth_events.bus.subscribe(resume_service.handle_authentication_success)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        payload = ErrorResponse(detail=exc.detail, code=None)
        return JSONResponse(
            status_code=exc.status_code,
            content=jsonable_encoder(payload.model_dump()),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        errors = jsonable_encoder(exc.errors())
        payload = ErrorResponse(detail=errors, code="validation_error")
        return JSONResponse(status_code=422, content=payload.model_dump())

    return app


app = get_application()
