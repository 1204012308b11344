"""
Base service class for 254Carbon Access Layer services.

Every service gets the same FastAPI skeleton: CORS, request timing with
pass correlation, ``/health``, ``/metrics`` and JSON error handlers for
``AccessLayerException``.
"""

import os
import time
from typing import Dict, Iterable

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CollectorRegistry, generate_latest, CONTENT_TYPE_LATEST

from shared.config import get_config
from shared.errors import AccessLayerException
from shared.logging import configure_logging, get_logger, set_pass_context, clear_context
from shared.metrics import get_metrics_collector

VERSION = "1.0.0"
PASS_ID_HEADER = "X-Pass-ID"


class BaseService:
    """Base service class with common functionality."""

    def __init__(self, service_name: str, port: int, capabilities: Iterable[str] = ()):
        self.service_name = service_name
        self.port = port
        self.capabilities = list(capabilities)
        self.config = get_config(service_name, port)
        self.logger = get_logger(f"{service_name}.service")
        self.metrics = get_metrics_collector(service_name, CollectorRegistry())
        self._start_time = time.time()

        configure_logging(service_name, self.config.log_level)

        self.app = FastAPI(
            title=f"{service_name.title()} Service",
            description=f"254Carbon Access Layer - {service_name.title()} Service",
            version=VERSION,
            docs_url="/docs" if self.config.env == "local" else None,
            redoc_url="/redoc" if self.config.env == "local" else None,
        )
        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"] if self.config.env == "local" else [],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
        self.app.middleware("http")(self._track_request)

        self._setup_routes()
        self._setup_error_handlers()

    async def _track_request(self, request: Request, call_next):
        """Time the request and tag it with a pass id for log correlation."""
        pass_id = set_pass_context(pass_id=request.headers.get(PASS_ID_HEADER))
        start_time = time.time()
        try:
            response = await call_next(request)
            duration = time.time() - start_time

            self.metrics.record_http_request(
                method=request.method,
                endpoint=request.url.path,
                status_code=response.status_code,
                duration=duration
            )
            self.logger.info(
                "HTTP request",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=round(duration * 1000, 2)
            )

            response.headers[PASS_ID_HEADER] = pass_id
            return response
        finally:
            clear_context()

    def _setup_routes(self):
        """Set up the root, health and metrics routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": self.service_name,
                "message": f"254Carbon Access Layer - {self.service_name.title()} Service",
                "version": VERSION,
                "capabilities": self.capabilities
            }

        @self.app.get("/health")
        async def health_check():
            """Health check endpoint."""
            try:
                dependencies = await self._check_dependencies()
            except Exception as e:
                self.logger.error("Health check failed", error=str(e))
                self.metrics.record_health_check("error")
                return JSONResponse(
                    status_code=503,
                    content={
                        "service": self.service_name,
                        "status": "error",
                        "error": str(e)
                    }
                )

            self.metrics.record_health_check("ok")
            return {
                "service": self.service_name,
                "status": "ok",
                "uptime_seconds": time.time() - self._start_time,
                "dependencies": dependencies,
                "version": VERSION,
                "commit": os.getenv("GIT_COMMIT", "unknown")
            }

        @self.app.get("/metrics")
        async def metrics_endpoint():
            """Prometheus metrics endpoint."""
            return Response(
                content=generate_latest(self.metrics.registry),
                media_type=CONTENT_TYPE_LATEST
            )

    def _setup_error_handlers(self):
        """Render errors as ErrorResponse payloads."""

        @self.app.exception_handler(AccessLayerException)
        async def access_layer_exception_handler(request: Request, exc: AccessLayerException):
            self.logger.error(
                "Access layer error",
                code=exc.code,
                message=exc.message,
                details=exc.details
            )
            self.metrics.record_error(exc.code)
            return JSONResponse(
                status_code=exc.status_code,
                content=exc.to_response().model_dump()
            )

        @self.app.exception_handler(Exception)
        async def general_exception_handler(request: Request, exc: Exception):
            self.logger.error("Unhandled exception", error=str(exc), exc_info=True)
            self.metrics.record_error("INTERNAL_ERROR")
            return JSONResponse(
                status_code=500,
                content={
                    "code": "INTERNAL_ERROR",
                    "message": "Internal server error",
                    "details": {}
                }
            )

    async def _check_dependencies(self) -> Dict[str, str]:
        """Check service dependencies. Override in subclasses."""
        return {}

    def run(self):
        """Run the service."""
        import uvicorn

        if self.config.enable_metrics_server:
            self.metrics.start_metrics_server(self.config.metrics_port)

        uvicorn.run(
            self.app,
            host=self.config.host,
            port=self.config.port,
            log_level=self.config.log_level.lower()
        )
