import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from .api.api_endpoints import router as tools_router
from .api.health import router as health_router
from .errors import ToolError
from .infra.db import init_db
from .log_config import setup_logging
from .settings import get_settings


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    settings = get_settings()
    setup_logging(settings.log_level, log_file=settings.log_file)
    init_db(settings.database_url)
    yield


async def tool_error_handler(request: Request, exc: ToolError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.warning(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
    return JSONResponse(exc.to_payload(), status_code=exc.status_code)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        {"error": "Invalid request payload.", "details": jsonable_encoder(exc.errors())},
        status_code=status.HTTP_400_BAD_REQUEST,
    )


app = FastAPI(title="Web Tools API", version="1.0.0", lifespan=lifespan)
app.add_exception_handler(ToolError, tool_error_handler)
app.add_exception_handler(RequestValidationError, validation_error_handler)
app.include_router(health_router)
app.include_router(tools_router)
