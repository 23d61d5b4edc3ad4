import time
import traceback
import uuid
from contextlib import asynccontextmanager
from os import environ

import logfire
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from granian import Granian
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware

from app.api.errors import app_error_handler
from app.api.v1.routers import recording, stream
from app.api.webhooks import provider
from app.services.integrations.provider_gateway import get_provider_gateway
from app.shared.api import health
from app.shared.api.utils import E_INVALID_PARAMS, api_failure, init_logger
from app.shared.config import config
from app.shared.storage.mongo import close_mongo_clients
from app.schemas.init_schemas import init_schema
from app.utils.app_errors import AppError, AppErrorCode

REQUEST_ID_HEADER = "X-Request-Id"


class HTTPLoggingMiddleware(BaseHTTPMiddleware):
    """Log every request with a short id and turn unhandled exceptions into an E_INTERNAL_ERROR envelope."""

    async def dispatch(self, request: Request, call_next):  # type: ignore
        started = time.perf_counter()
        request_id = uuid.uuid4().hex[:8]
        request.state.request_id = request_id
        route = f"{request.method} {request.url.path}"

        try:
            response = await call_next(request)
        except Exception as exc:
            elapsed_ms = (time.perf_counter() - started) * 1000
            logger.error(
                f"[{request_id}] {route} crashed after {elapsed_ms:.2f}ms: "
                f"{type(exc).__name__}: {exc}\n{traceback.format_exc()}"
            )
            failure = api_failure(
                errcode=AppErrorCode.E_INTERNAL_ERROR,
                errmesg=f"Internal server error (request_id: {request_id})",
            )
            return ORJSONResponse(status_code=500, content=failure.model_dump())

        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(f"[{request_id}] {route} -> {response.status_code} in {elapsed_ms:.2f}ms")
        response.headers[REQUEST_ID_HEADER] = request_id
        return response


async def app_validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()

    logger.warning(
        "Validation error: path={} method={} errors={}",
        request.url.path,
        request.method,
        errors,
    )

    failure = api_failure(E_INVALID_PARAMS, errmesg=str(errors))

    return ORJSONResponse(status_code=422, content=failure.model_dump())


@asynccontextmanager
async def lifespan(server: FastAPI):
    init_logger()

    logger.info("Application startup...")

    # Initialize MongoDB schemas and Beanie ODM
    await init_schema()

    gateway = get_provider_gateway()
    logger.info(f"Provider gateway ready (demo_mode={gateway.config.demo_mode})")

    if config.get_bool("LOGFIRE_ENABLE"):
        logger.info("Logfire initializing")

        logfire.configure(
            token=config.get("LOGFIRE_TOKEN"),
            service_name="livecast",
            service_version=environ.get("BUILD_COMMIT") or "dev",
        )

        logger.info("Logfire instrument fastapi")
        logfire.instrument_fastapi(server, capture_headers=True)

        logger.info("Logfire instrument mongo")
        logfire.instrument_pymongo(capture_statement=config.get_bool("DEBUG"))

        logger.info("Logfire instrument pydantic")
        logfire.instrument_pydantic()

    yield

    logger.info("Application shutdown...")

    close_mongo_clients()


def include_routes(server: FastAPI, prefix: str = "/api/v1") -> None:
    server.include_router(health.router)
    server.include_router(provider.router)
    server.include_router(stream.router, prefix=prefix, tags=["Stream"])
    server.include_router(recording.router, prefix=prefix, tags=["Recording"])


def create_app() -> FastAPI:
    server = FastAPI(
        version="1.0",
        title="Livecast API",
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )

    server.add_middleware(HTTPLoggingMiddleware)

    server.add_middleware(
        CORSMiddleware,  # type: ignore
        allow_origins=[o.strip() for o in config.get("API_CORS_ORIGINS", "*").split(",") if o.strip()],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    server.add_exception_handler(RequestValidationError, app_validation_exception_handler)  # type: ignore
    server.add_exception_handler(AppError, app_error_handler)  # type: ignore

    include_routes(server)
    return server


app = create_app()


def build_granian_kwargs():
    kwargs = {
        "interface": "asgi",
        "address": config.get("API_HOST", "0.0.0.0"),
        "port": config.get_int("API_PORT", 8000),
        "workers": config.get_int("API_WORKERS", 1),
        "reload": config.get_bool("DEBUG"),
    }

    return kwargs


if __name__ == "__main__":
    granian_kwargs = build_granian_kwargs()
    Granian("app.main:app", **granian_kwargs).serve()
