"""
FastAPI application exposing extraction over HTTP.

``POST /api/parse`` extracts one URL and returns the structured result plus a
deep link for the requested note app. ``GET /api/parse`` describes the
service. Failures come back as a structured envelope with a category and an
actionable hint, never as a stack trace.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncGenerator, Dict, Optional
from uuid import uuid4

import structlog
from fastapi import Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from noteferry import __version__
from noteferry.config import Config
from noteferry.container import NoteFerryContainer
from noteferry.errors import ErrorCategory, ExtractionFailed, user_message
from noteferry.extractor.manager import ExtractionOrchestrator
from noteferry.extractor.models import AIOptions, ExtractedContent, ExtractionOptions
from noteferry.output.formatter import OutputFormat, format_output
from noteferry.utils.share_text import extract_share_url

logger = structlog.get_logger(__name__)


class ParseOptions(BaseModel):
    timeout_ms: int = Field(default=10000, gt=0, le=60000)
    headers: Dict[str, str] = Field(default_factory=dict)
    preloaded_html: Optional[str] = None
    force_headless_browser: bool = False

    def to_options(self) -> ExtractionOptions:
        return ExtractionOptions(
            timeout_ms=self.timeout_ms,
            headers=dict(self.headers),
            preloaded_html=self.preloaded_html,
            force_headless_browser=self.force_headless_browser,
        )


class AIRequestOptions(BaseModel):
    enable_summary: bool = True
    enable_title_optimization: bool = True
    enable_categorization: bool = True
    use_cache: bool = True

    def to_options(self) -> AIOptions:
        return AIOptions(
            summarize=self.enable_summary,
            optimize_title=self.enable_title_optimization,
            categorize=self.enable_categorization,
            use_cache=self.use_cache,
        )


class ParseRequest(BaseModel):
    url: str = Field(..., min_length=1, description="A URL, or share text containing one.")
    output_format: OutputFormat = OutputFormat.FLOMO
    options: ParseOptions = Field(default_factory=ParseOptions)
    ai_enhance: bool = False
    ai_options: AIRequestOptions = Field(default_factory=AIRequestOptions)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _failure(
    status_code: int, error: str, category: ErrorCategory, extra: Optional[Dict[str, Any]] = None
) -> JSONResponse:
    body: Dict[str, Any] = {
        "success": False,
        "error": error,
        "category": category.value,
        "parsed_at": _now(),
    }
    body.update(extra or {})
    return JSONResponse(status_code=status_code, content=body)


def create_app(container: Optional[Any] = None, config: Optional[Config] = None) -> FastAPI:
    """Build the application. ``container`` defaults to a NoteFerryContainer for ``config``."""
    config = config or Config()
    container = container or NoteFerryContainer(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        logger.info("Starting NoteFerry API", version=__version__)
        async with container.lifecycle():
            app.state.container = container
            yield
        logger.info("NoteFerry API stopped")

    app = FastAPI(title="NoteFerry", version=__version__, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.cors_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
        max_age=86400,
    )

    @app.middleware("http")
    async def bind_request_id(request: Request, call_next: Any) -> Any:
        request_id = request.headers.get("X-Request-ID") or uuid4().hex
        structlog.contextvars.bind_contextvars(request_id=request_id)
        try:
            response = await call_next(request)
        finally:
            structlog.contextvars.unbind_contextvars("request_id")
        response.headers["X-Request-ID"] = request_id
        return response

    def get_orchestrator(request: Request) -> ExtractionOrchestrator:
        return request.app.state.container.orchestrator

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        fields = sorted({".".join(str(part) for part in error["loc"][1:]) for error in exc.errors()})
        return _failure(
            status.HTTP_400_BAD_REQUEST,
            f"Invalid request fields: {', '.join(fields) or 'body'}",
            ErrorCategory.VALIDATION,
        )

    @app.post("/api/parse")
    async def parse(payload: ParseRequest, orchestrator: ExtractionOrchestrator = Depends(get_orchestrator)) -> Any:
        share = extract_share_url(payload.url)
        if not share.success or share.url is None:
            return _failure(
                status.HTTP_400_BAD_REQUEST,
                user_message(ErrorCategory.VALIDATION),
                ErrorCategory.VALIDATION,
                {"reason": share.error},
            )

        options = payload.options.to_options()
        try:
            content: ExtractedContent
            if payload.ai_enhance:
                content = await orchestrator.extract_with_ai(share.url, options, payload.ai_options.to_options())
            else:
                content = await orchestrator.extract(share.url, options)
        except ExtractionFailed as e:
            code = status.HTTP_400_BAD_REQUEST if e.category is ErrorCategory.VALIDATION else status.HTTP_502_BAD_GATEWAY
            return _failure(code, e.hint, e.category, {"attempts": e.to_dict()["attempts"]})

        deep_link = None
        if payload.output_format is not OutputFormat.RAW:
            deep_link = format_output(content, payload.output_format)

        return JSONResponse(
            content={
                "success": True,
                "data": content.to_dict(),
                "deep_link": deep_link,
                "parsed_at": _now(),
            },
            headers={"Cache-Control": "public, max-age=300"},
        )

    @app.get("/api/parse")
    async def describe(orchestrator: ExtractionOrchestrator = Depends(get_orchestrator)) -> Dict[str, Any]:
        return {
            "name": "NoteFerry",
            "version": __version__,
            "supported_platforms": [platform.value for platform in orchestrator.supported_platforms()],
            "ai_available": orchestrator.ai_available,
            "headless_browser": orchestrator.headless_available,
            "output_formats": [fmt.value for fmt in OutputFormat],
            "endpoints": {
                "parse": {
                    "method": "POST",
                    "path": "/api/parse",
                    "parameters": {
                        "url": "string, required. A URL or share text containing one.",
                        "output_format": "flomo | notes | raw",
                        "options": "timeout_ms, headers, preloaded_html, force_headless_browser",
                        "ai_enhance": "boolean",
                        "ai_options": "enable_summary, enable_title_optimization, enable_categorization, use_cache",
                    },
                }
            },
        }

    return app
