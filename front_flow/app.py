"""Application factory for the FRONT Flow FastAPI backend."""

import logging
import os

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import LLMSettings, get_llm_settings
from .errors import (
    ArtifactMissingError,
    BusyError,
    GateClosedError,
    GatewayNotConfiguredError,
    GenerationError,
    InvalidFieldError,
    MissingFieldsError,
    SelectionLimitError,
    SessionNotFoundError,
    WizardError,
    WrongStepError,
)
from .gateway import GenerationGateway
from .routers import wizard
from .session import SessionStore
from .wizard import StepController


DEFAULT_ALLOWED_ORIGINS = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]

# Most specific classes first; the first isinstance match wins.
ERROR_STATUS = [
    (SessionNotFoundError, 404),
    (MissingFieldsError, 422),
    (InvalidFieldError, 422),
    (SelectionLimitError, 422),
    (BusyError, 409),
    (GateClosedError, 409),
    (WrongStepError, 409),
    (ArtifactMissingError, 409),
    (GatewayNotConfiguredError, 503),
    (GenerationError, 502),
]


def _resolve_allowed_origins() -> list[str]:
    """Return allowed origins, optionally sourced from an env override."""

    raw = os.getenv("FRONT_ALLOWED_ORIGINS")
    if raw:
        return [origin.strip() for origin in raw.split(",") if origin.strip()]
    return DEFAULT_ALLOWED_ORIGINS


def _status_for(exc: WizardError) -> int:
    for error_type, status in ERROR_STATUS:
        if isinstance(exc, error_type):
            return status
    return 400


def _resolve_log_level(name: str) -> int:
    """Map a level name to its number, falling back to INFO for unknown names."""

    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.INFO


async def _wizard_error_handler(request: Request, exc: WizardError) -> JSONResponse:
    return JSONResponse(status_code=_status_for(exc), content={"detail": exc.to_dict()})


def create_app(
    settings: LLMSettings | None = None,
    gateway: GenerationGateway | None = None,
) -> FastAPI:
    """Create and configure a FastAPI application instance.

    *settings* default to the environment; *gateway* defaults to an OpenAI
    gateway built from those settings.
    """
    settings = settings or get_llm_settings()
    logging.basicConfig(
        level=_resolve_log_level(settings.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(
        title="FRONT Flow Backend",
        version="0.1.0",
        description="Guided customer experience workshop backed by an LLM.",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_resolve_allowed_origins(),
        allow_origin_regex=r"http://localhost:\d+$",
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.llm_settings = settings
    app.state.controller = StepController(SessionStore(), gateway or GenerationGateway(settings))
    app.add_exception_handler(WizardError, _wizard_error_handler)
    app.include_router(wizard.router)
    return app


app = create_app()
