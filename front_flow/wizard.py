"""Step registry and the controller driving a wizard session."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Iterable, List

from .errors import (
    BusyError,
    GateClosedError,
    GenerationError,
    InvalidFieldError,
    MissingFieldsError,
    SelectionLimitError,
    WrongStepError,
)
from .gateway import GenerationGateway
from .schemas import (
    FieldDefinition,
    FormField,
    KpiDefinition,
    Language,
    SessionView,
    StepDefinition,
    StepGate,
    StepId,
    StepPhase,
    WizardSession,
)
from .session import SessionStore

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Field definitions
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FieldInfo:
    """Describe a settable input field."""

    field: FormField
    label: str
    suggestable: bool


def _fields(*entries: tuple[FormField, str, bool]) -> Dict[FormField, FieldInfo]:
    return {field: FieldInfo(field=field, label=label, suggestable=suggestable) for field, label, suggestable in entries}


FIELD_REGISTRY: Dict[FormField, FieldInfo] = _fields(
    (FormField.DIAGNOSIS_FEELING, "Customer Feeling", True),
    (FormField.DIAGNOSIS_GOAL, "Business Goal", True),
    (FormField.DIAGNOSIS_PROBLEM, "Main Pain Point", True),
    (FormField.JOURNEY_CHANNELS, "Contact Channels", True),
    (FormField.JOURNEY_TOOLS, "Support Tools", True),
    (FormField.JOURNEY_EXAMPLE_RESPONSE, "Example Response", True),
    (FormField.MANIFESTO_ADJECTIVES, "Brand Adjectives", True),
    (FormField.MANIFESTO_FORM, "Form of Address", True),
    (FormField.MANIFESTO_FORBIDDEN, "Forbidden Phrase", True),
    (FormField.MANIFESTO_PREFERRED, "Preferred Phrase", True),
    (FormField.VOC_RAW_MESSAGES, "Customer Messages", False),
    (FormField.SELF_SERVICE_QUESTIONS, "Top Customer Questions", False),
)

KPI_CATALOG: Dict[str, str] = {
    "first_response_time": "First Response Time",
    "average_handle_time": "Average Handle Time",
    "time_to_resolution": "Time to Resolution",
    "first_contact_resolution": "First Contact Resolution",
    "csat": "Customer Satisfaction (CSAT)",
    "nps": "Net Promoter Score (NPS)",
    "ces": "Customer Effort Score (CES)",
    "self_service_rate": "Self-Service Resolution Rate",
    "contact_rate": "Contacts per Order",
}

REQUIRED_KPI_SELECTIONS = 3

SUGGESTION_CONTEXT_STEPS = (StepId.DIAGNOSIS, StepId.JOURNEY, StepId.MANIFESTO)


# ---------------------------------------------------------------------------
# Step generators
# ---------------------------------------------------------------------------


GeneratorFn = Callable[[GenerationGateway, WizardSession], Awaitable[object]]


def _context_json(session: WizardSession, steps: Iterable[StepId], **extra: object) -> str:
    """Serialize the records of *steps* into a JSON prompt context."""

    payload: Dict[str, object] = {
        step.value: session.step_data(step).model_dump(mode="json", by_alias=True) for step in steps
    }
    payload.update(extra)
    return json.dumps(payload, ensure_ascii=False)


async def _generate_mission(gateway: GenerationGateway, session: WizardSession) -> object:
    data = session.diagnosis
    return await gateway.generate_mission(data.feeling, data.goal, data.problem, session.language)


async def _generate_journey_audit(gateway: GenerationGateway, session: WizardSession) -> object:
    data = session.journey
    return await gateway.analyze_journey(data.channels, data.tools, data.example_response, session.language)


async def _generate_manifesto(gateway: GenerationGateway, session: WizardSession) -> object:
    data = session.manifesto
    return await gateway.generate_manifesto(
        data.adjectives, data.form, data.forbidden, data.preferred, session.language
    )


async def _generate_voc(gateway: GenerationGateway, session: WizardSession) -> object:
    return await gateway.analyze_voc(session.voc.raw_messages, session.language)


async def _generate_faq(gateway: GenerationGateway, session: WizardSession) -> object:
    return await gateway.generate_faq(session.self_service.questions, session.language)


async def _generate_proactive(gateway: GenerationGateway, session: WizardSession) -> object:
    # Every earlier step feeds the prompt; the strategy itself is left out.
    earlier = [step for step in StepId if step is not StepId.PROACTIVE]
    context = _context_json(session, earlier, language=session.language.value)
    return await gateway.generate_proactive_strategy(context, session.language)


# ---------------------------------------------------------------------------
# Step registry
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StepInfo:
    """Runtime definition used by the registry below."""

    step: StepId
    label: str
    description: str
    gate: StepGate
    generator: GeneratorFn | None = None

    @property
    def fields(self) -> List[FieldInfo]:
        return [info for info in FIELD_REGISTRY.values() if info.field.step is self.step]


STEP_REGISTRY: Dict[StepId, StepInfo] = {
    StepId.DIAGNOSIS: StepInfo(
        step=StepId.DIAGNOSIS,
        label="Diagnosis",
        description="Define how customers should feel and turn it into a service mission.",
        gate=StepGate.GENERATION,
        generator=_generate_mission,
    ),
    StepId.JOURNEY: StepInfo(
        step=StepId.JOURNEY,
        label="Journey Map",
        description="Audit channels, tools and a real reply to find three pain points.",
        gate=StepGate.GENERATION,
        generator=_generate_journey_audit,
    ),
    StepId.MANIFESTO: StepInfo(
        step=StepId.MANIFESTO,
        label="Manifesto",
        description="Set the communication voice as three guiding principles.",
        gate=StepGate.GENERATION,
        generator=_generate_manifesto,
    ),
    StepId.DASHBOARD: StepInfo(
        step=StepId.DASHBOARD,
        label="Dashboard",
        description="Pick exactly three KPIs to track.",
        gate=StepGate.SELECTION,
    ),
    StepId.VOC: StepInfo(
        step=StepId.VOC,
        label="Voice of Customer",
        description="Run a 3C analysis with systemic actions over raw customer messages.",
        gate=StepGate.GENERATION,
        generator=_generate_voc,
    ),
    StepId.SELF_SERVICE: StepInfo(
        step=StepId.SELF_SERVICE,
        label="Self-Service",
        description="Turn the most frequent questions into an FAQ with proactive actions.",
        gate=StepGate.GENERATION,
        generator=_generate_faq,
    ),
    StepId.SPRINT: StepInfo(
        step=StepId.SPRINT,
        label="Sprint",
        description="Plan the improvement sprint.",
        gate=StepGate.NONE,
    ),
    StepId.FEEDBACK: StepInfo(
        step=StepId.FEEDBACK,
        label="Feedback",
        description="Collect feedback on the changes.",
        gate=StepGate.NONE,
    ),
    StepId.PROACTIVE: StepInfo(
        step=StepId.PROACTIVE,
        label="Proactive Strategy",
        description="Identify two proactive moments from everything gathered so far.",
        gate=StepGate.GENERATION,
        generator=_generate_proactive,
    ),
}

if set(STEP_REGISTRY) != set(StepId):
    raise RuntimeError("Every StepId needs a STEP_REGISTRY entry.")


def list_step_definitions() -> List[StepDefinition]:
    """Return UI-friendly descriptors for all steps."""

    return [
        StepDefinition(
            id=info.step,
            order=info.step.order,
            label=info.label,
            description=info.description,
            gate=info.gate,
            fields=[
                FieldDefinition(id=field.field, label=field.label, suggestable=field.suggestable)
                for field in info.fields
            ],
        )
        for info in sorted(STEP_REGISTRY.values(), key=lambda item: item.step.order)
    ]


def list_kpis() -> List[KpiDefinition]:
    return [KpiDefinition(id=kpi_id, label=label) for kpi_id, label in KPI_CATALOG.items()]


# ---------------------------------------------------------------------------
# Derived state
# ---------------------------------------------------------------------------


def missing_fields(session: WizardSession, step: StepId) -> List[FormField]:
    """Return the required fields of *step* that are still blank."""

    data = session.step_data(step)
    return [info.field for info in STEP_REGISTRY[step].fields if not getattr(data, info.field.attribute).strip()]


def step_phase(session: WizardSession, step: StepId) -> StepPhase:
    info = STEP_REGISTRY[step]
    if session.submitting_step is step:
        return StepPhase.GENERATING
    if info.gate is StepGate.GENERATION:
        return StepPhase.COMPLETE if session.artifact(step) else StepPhase.EDITING
    if info.gate is StepGate.SELECTION:
        selected = len(session.dashboard.selected_kpis)
        return StepPhase.COMPLETE if selected == REQUIRED_KPI_SELECTIONS else StepPhase.EDITING
    return StepPhase.COMPLETE if step.order < session.current_step.order else StepPhase.EDITING


def gate_satisfied(session: WizardSession) -> bool:
    """True when the current step's own gate allows moving on."""

    info = STEP_REGISTRY[session.current_step]
    if info.gate is StepGate.GENERATION:
        return bool(session.artifact(info.step))
    if info.gate is StepGate.SELECTION:
        return len(session.dashboard.selected_kpis) == REQUIRED_KPI_SELECTIONS
    return True


def can_advance(session: WizardSession) -> bool:
    if session.current_step.is_last:
        return False
    if session.submitting_step is not None or session.suggesting_field is not None:
        return False
    return gate_satisfied(session)


def build_view(session: WizardSession) -> SessionView:
    return SessionView(
        session=session,
        current_step_number=session.current_step.order,
        phases={step: step_phase(session, step) for step in StepId},
        can_advance=can_advance(session),
    )


# ---------------------------------------------------------------------------
# Controller
# ---------------------------------------------------------------------------


class StepController:
    """Apply user actions to sessions held in a :class:`SessionStore`.

    Each action validates its preconditions before touching the session, so a
    rejected action leaves the state unchanged. Two classes of generation
    call exist, main submit and field suggestion, and each is limited to one
    outstanding call per session through the ``submitting_step`` and
    ``suggesting_field`` markers.
    """

    def __init__(self, store: SessionStore, gateway: GenerationGateway) -> None:
        self.store = store
        self.gateway = gateway

    def create_session(self) -> WizardSession:
        return self.store.create()

    def get_session(self, session_id: str) -> WizardSession:
        return self.store.get(session_id)

    def set_field(self, session_id: str, field: FormField, value: str) -> WizardSession:
        session = self.store.get(session_id)
        if field.step is not session.current_step:
            raise WrongStepError(
                f"Field '{field.value}' belongs to step '{field.step.value}', "
                f"current step is '{session.current_step.value}'."
            )
        setattr(session.step_data(field.step), field.attribute, value)
        return session

    def set_language(self, session_id: str, language: Language) -> WizardSession:
        session = self.store.get(session_id)
        session.language = language
        return session

    def toggle_kpi(self, session_id: str, kpi: str) -> WizardSession:
        session = self.store.get(session_id)
        if session.current_step is not StepId.DASHBOARD:
            raise WrongStepError("KPIs can only be selected on the dashboard step.")
        if kpi not in KPI_CATALOG:
            raise InvalidFieldError(f"Unknown KPI '{kpi}'.")

        selected = session.dashboard.selected_kpis
        if kpi in selected:
            selected.remove(kpi)
        elif len(selected) >= REQUIRED_KPI_SELECTIONS:
            raise SelectionLimitError(f"Exactly {REQUIRED_KPI_SELECTIONS} KPIs may be selected.")
        else:
            selected.append(kpi)
        return session

    async def submit_step(self, session_id: str) -> WizardSession:
        """Generate the artifact of the current step."""

        session = self.store.get(session_id)
        step = session.current_step
        info = STEP_REGISTRY[step]
        if info.generator is None:
            raise WrongStepError(f"Step '{step.value}' has nothing to generate.")
        if session.submitting_step is not None:
            raise BusyError("A generation is already in progress.")
        missing = missing_fields(session, step)
        if missing:
            raise MissingFieldsError(field.value for field in missing)

        session.submitting_step = step
        try:
            artifact = await info.generator(self.gateway, session)
        except GenerationError:
            logger.exception("Generation failed for step %s in session %s", step.value, session_id)
            raise
        finally:
            session.submitting_step = None

        if not self.store.is_current(session):
            logger.warning("Dropping %s result for stale session %s", step.value, session_id)
            return self.store.get(session_id)

        session.step_data(step).artifact = artifact
        logger.info("Stored %s artifact for session %s", step.value, session_id)
        return session

    async def suggest_field(self, session_id: str, field: FormField) -> WizardSession:
        """Ask the gateway for a value for one field and store it."""

        session = self.store.get(session_id)
        info = FIELD_REGISTRY[field]
        if not info.suggestable:
            raise InvalidFieldError(f"Field '{field.value}' does not support suggestions.")
        if field.step is not session.current_step:
            raise WrongStepError(f"Field '{field.value}' is not on the current step.")
        if session.suggesting_field is not None:
            raise BusyError("A suggestion is already in progress.")

        context = _context_json(session, SUGGESTION_CONTEXT_STEPS)
        session.suggesting_field = field
        try:
            suggestion = await self.gateway.generate_suggestion(info.label, context, session.language)
        except GenerationError:
            logger.exception("Suggestion failed for field %s in session %s", field.value, session_id)
            raise
        finally:
            session.suggesting_field = None

        if not self.store.is_current(session):
            logger.warning("Dropping suggestion for %s from stale session %s", field.value, session_id)
            return self.store.get(session_id)

        setattr(session.step_data(field.step), field.attribute, suggestion)
        return session

    def advance(self, session_id: str) -> WizardSession:
        session = self.store.get(session_id)
        if session.current_step.is_last:
            raise GateClosedError("Already on the final step.")
        if session.submitting_step is not None or session.suggesting_field is not None:
            raise BusyError("Cannot advance while a generation is in progress.")
        if not gate_satisfied(session):
            raise GateClosedError(f"Step '{session.current_step.value}' is not complete.")

        session.current_step = StepId.from_order(session.current_step.order + 1)
        logger.info("Session %s advanced to %s", session_id, session.current_step.value)
        return session

    def reset(self, session_id: str) -> WizardSession:
        return self.store.reset(session_id)

    def view(self, session_id: str) -> SessionView:
        return build_view(self.store.get(session_id))
