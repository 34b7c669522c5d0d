"""Wizard endpoints for the FRONT Flow FastAPI backend."""

from __future__ import annotations

from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, Request, Response

from ..export import artifact_to_html, html_to_word_document, step_to_csv
from ..schemas import (
    FieldUpdate,
    FormField,
    KpiDefinition,
    LanguageUpdate,
    SessionView,
    StepDefinition,
    StepId,
)
from ..wizard import STEP_REGISTRY, StepController, build_view, list_kpis, list_step_definitions


router = APIRouter(prefix="/wizard", tags=["wizard"])


def get_controller(request: Request) -> StepController:
    return request.app.state.controller


def _content_disposition(filename: str) -> str:
    """Build an attachment header that keeps non-ASCII names intact."""

    name = filename.replace('"', "").replace("\n", "").replace("\r", "")
    fallback = "".join(char if ord(char) < 128 else "_" for char in name)
    if fallback == name:
        return f'attachment; filename="{name}"'
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(name, safe='')}"


def _download(content: str, media_type: str, filename: str) -> Response:
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": _content_disposition(filename)},
    )


@router.get("/health")
async def healthcheck() -> dict[str, str]:
    """Simple health check endpoint."""

    return {"status": "ok"}


@router.get("/steps", response_model=list[StepDefinition])
async def list_steps() -> list[StepDefinition]:
    """Expose step metadata to the UI."""

    return list_step_definitions()


@router.get("/kpis", response_model=list[KpiDefinition])
async def list_kpis_endpoint() -> list[KpiDefinition]:
    return list_kpis()


@router.post("/sessions", response_model=SessionView, status_code=201)
async def create_session(controller: StepController = Depends(get_controller)) -> SessionView:
    return build_view(controller.create_session())


@router.get("/sessions/{session_id}", response_model=SessionView)
async def fetch_session(session_id: str, controller: StepController = Depends(get_controller)) -> SessionView:
    return controller.view(session_id)


@router.delete("/sessions/{session_id}", status_code=204)
async def discard_session(session_id: str, controller: StepController = Depends(get_controller)) -> Response:
    controller.store.discard(session_id)
    return Response(status_code=204)


@router.put("/sessions/{session_id}/fields/{field}", response_model=SessionView)
async def set_field(
    session_id: str,
    field: FormField,
    payload: FieldUpdate,
    controller: StepController = Depends(get_controller),
) -> SessionView:
    return build_view(controller.set_field(session_id, field, payload.value))


@router.put("/sessions/{session_id}/language", response_model=SessionView)
async def set_language(
    session_id: str,
    payload: LanguageUpdate,
    controller: StepController = Depends(get_controller),
) -> SessionView:
    return build_view(controller.set_language(session_id, payload.language))


@router.post("/sessions/{session_id}/kpis/{kpi}", response_model=SessionView)
async def toggle_kpi(session_id: str, kpi: str, controller: StepController = Depends(get_controller)) -> SessionView:
    """Select the KPI, or deselect it when already selected."""

    return build_view(controller.toggle_kpi(session_id, kpi))


@router.post("/sessions/{session_id}/submit", response_model=SessionView)
async def submit_step(session_id: str, controller: StepController = Depends(get_controller)) -> SessionView:
    """Generate the artifact for the current step."""

    return build_view(await controller.submit_step(session_id))


@router.post("/sessions/{session_id}/suggest/{field}", response_model=SessionView)
async def suggest_field(
    session_id: str,
    field: FormField,
    controller: StepController = Depends(get_controller),
) -> SessionView:
    return build_view(await controller.suggest_field(session_id, field))


@router.post("/sessions/{session_id}/advance", response_model=SessionView)
async def advance(session_id: str, controller: StepController = Depends(get_controller)) -> SessionView:
    return build_view(controller.advance(session_id))


@router.post("/sessions/{session_id}/reset", response_model=SessionView)
async def reset(session_id: str, controller: StepController = Depends(get_controller)) -> SessionView:
    return build_view(controller.reset(session_id))


@router.get("/sessions/{session_id}/export/{step}/csv")
async def export_csv(
    session_id: str,
    step: StepId,
    filename: Optional[str] = None,
    controller: StepController = Depends(get_controller),
) -> Response:
    content = step_to_csv(controller.get_session(session_id), step)
    return _download(content, "text/csv; charset=utf-8", filename or f"{step.value}.csv")


@router.get("/sessions/{session_id}/export/{step}/doc")
async def export_doc(
    session_id: str,
    step: StepId,
    filename: Optional[str] = None,
    controller: StepController = Depends(get_controller),
) -> Response:
    label = STEP_REGISTRY[step].label
    fragment = artifact_to_html(controller.get_session(session_id), step, label)
    return _download(html_to_word_document(fragment, label), "application/msword", filename or f"{step.value}.doc")
