import sys
import os

# Add the project root directory to sys.path to resolve 'app' imports
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
from loguru import logger
import uuid
from app.core.config import settings
from app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    request_validation_exception_handler,
    unhandled_exception_handler,
)
from app.api.endpoints import router as api_router
from app.core.logging import setup_logging
from app.models import HealthStatus, ServiceStatus
from app.services.extractor import ExtractorService, resolve_extractor_location
from app.services.youtube_api import build_http_client

@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    location = resolve_extractor_location(settings)
    app.state.extractor_service = ExtractorService.from_settings(location, settings)
    app.state.http_client = build_http_client(settings)
    logger.info(f"🚀 {settings.PROJECT_NAME} startup on port {settings.PORT}")
    yield
    await app.state.http_client.aclose()
    logger.info("🛑 Application shutdown")

app = FastAPI(title=settings.PROJECT_NAME, version=settings.VERSION, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    request_id = str(uuid.uuid4())
    with logger.contextualize(request_id=request_id):
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

app.include_router(api_router, prefix="/api")

@app.get("/", response_model=ServiceStatus)
async def root():
    return ServiceStatus(status="online", service=settings.PROJECT_NAME, version=settings.VERSION)

@app.get("/health", response_model=HealthStatus)
async def health_check():
    return HealthStatus()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("app.main:app", host="0.0.0.0", port=settings.PORT)
