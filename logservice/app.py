"""FastAPI server for log-service: echoes requests, enriched by a dependency."""

import json
import socket
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from loguru import logger

from logservice.services.client import CallResult, ResilientClient
from logservice.services.correlation import CorrelationContext
from logservice.services.errors import InvalidTargetError
from logservice.services.invocation import DependencyTarget
from logservice.services.retry import RetryPolicy
from logservice.settings import Settings, global_settings

ROUTED_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


class LogServiceServer:
    """HTTP server that answers every request and enriches it from a dependency."""

    def __init__(
        self,
        settings: Settings,
        client: ResilientClient | None = None,
    ):
        self.settings = settings
        self.client = client or ResilientClient(RetryPolicy.from_settings(settings))
        self.target = DependencyTarget(
            url=settings.dependency_url,
            method=settings.dependency_method,
            service_id="dependency",
        )
        self.hostname = socket.gethostname()

        self.app = FastAPI(title="log-service", lifespan=self.lifespan)

        self.app.middleware("http")(self.correlation_middleware)
        self.app.exception_handler(InvalidTargetError)(self.handle_invalid_target)

        # Register routes
        self.app.get("/healthz", response_class=PlainTextResponse)(self.health_check)
        self.app.api_route("/{path:path}", methods=ROUTED_METHODS)(self.handle_request)

    @asynccontextmanager
    async def lifespan(self, app: FastAPI):
        logger.info(
            f"log-service starting on port {self.settings.port} "
            f"(version: {self.settings.app_version})"
        )
        yield
        await self.client.close()
        logger.info("log-service stopped")

    async def correlation_middleware(self, request: Request, call_next):
        """Attach a CorrelationContext to the request and echo its header."""
        header = self.settings.correlation_header
        correlation = CorrelationContext.obtain_or_create(
            request.headers.get(header), header
        )
        request.state.correlation = correlation

        logger.bind(
            correlation_id=correlation.id,
            method=request.method,
            path=request.url.path,
            hostname=self.hostname,
            version=self.settings.app_version,
        ).info("Handling request")

        response = await call_next(request)
        response.headers[header] = correlation.id
        return response

    async def handle_invalid_target(
        self, request: Request, exc: InvalidTargetError
    ) -> JSONResponse:
        logger.error(f"Misconfigured dependency target: {exc}")
        return JSONResponse(
            status_code=500,
            content={"error": "invalid_dependency_target", "detail": str(exc)},
        )

    async def health_check(self) -> str:
        """Health check endpoint."""
        return "ok"

    async def handle_request(self, request: Request, path: str) -> dict[str, Any]:
        """Echo the request, enriched with the dependency's payload when healthy."""
        correlation: CorrelationContext = request.state.correlation
        primary = {
            "message": "Hello from log-service",
            "received": {
                "method": request.method,
                "path": request.url.path,
                "query": dict(request.query_params),
                "body": await self._read_body(request),
                "headers": dict(request.headers),
            },
            "environment": {
                "hostname": self.hostname,
                "version": self.settings.app_version,
                "logLevel": self.settings.log_level,
            },
        }

        logger.bind(correlation_id=correlation.id).info(
            f"Calling dependency: {self.target.url}"
        )
        result = await self.client.call(self.target, correlation, primary)
        return self._render(result)

    @staticmethod
    async def _read_body(request: Request) -> Any:
        raw = await request.body()
        if not raw:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            return raw.decode("utf-8", errors="replace")

    @staticmethod
    def _render(result: CallResult[dict[str, Any]]) -> dict[str, Any]:
        degraded = None
        if result.degraded:
            degraded = {
                "reason": result.degradation_reason.value,
                "attempts": result.attempts,
            }
        return {
            **result.primary,
            "enrichment": result.enrichment,
            "degraded": degraded,
        }


def create_app(
    settings: Settings | None = None,
    client: ResilientClient | None = None,
) -> FastAPI:
    """Create the log-service FastAPI app.

    Args:
        settings: Settings to use (default: global_settings)
        client: Pre-built ResilientClient, e.g. with a mocked transport

    Returns:
        FastAPI app
    """
    server = LogServiceServer(settings or global_settings, client)
    return server.app


def get_app() -> FastAPI:
    """App factory for uvicorn: uvicorn logservice.app:get_app --factory"""
    return create_app()
