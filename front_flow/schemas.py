"""Pydantic models and enums for the FRONT Flow wizard API."""

from __future__ import annotations

from enum import Enum
from typing import Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


class StepId(str, Enum):
    """Enumerate the nine wizard steps in their fixed order."""

    DIAGNOSIS = "diagnosis"
    JOURNEY = "journey"
    MANIFESTO = "manifesto"
    DASHBOARD = "dashboard"
    VOC = "voc"
    SELF_SERVICE = "self_service"
    SPRINT = "sprint"
    FEEDBACK = "feedback"
    PROACTIVE = "proactive"

    @property
    def order(self) -> int:
        """Return the 1-based position of the step."""
        return list(StepId).index(self) + 1

    @classmethod
    def from_order(cls, order: int) -> "StepId":
        members = list(cls)
        if not 1 <= order <= len(members):
            raise ValueError(f"Step order must be between 1 and {len(members)}, got {order}.")
        return members[order - 1]

    @property
    def is_last(self) -> bool:
        return self.order == len(StepId)


class Language(str, Enum):
    """Output languages threaded into every generation request."""

    PL = "pl"
    EN = "en"
    DE = "de"
    ES = "es"

    @property
    def display_name(self) -> str:
        names = {
            Language.PL: "Polish",
            Language.EN: "English",
            Language.DE: "German",
            Language.ES: "Spanish",
        }
        return names[self]


class StepPhase(str, Enum):
    """Sub-state of a single step."""

    EDITING = "editing"
    GENERATING = "generating"
    COMPLETE = "complete"


class StepGate(str, Enum):
    """What a step requires before the wizard may advance past it."""

    GENERATION = "generation"
    SELECTION = "selection"
    NONE = "none"


class FormField(str, Enum):
    """Every settable input field, one member per step/field pair."""

    DIAGNOSIS_FEELING = "diagnosis.feeling"
    DIAGNOSIS_GOAL = "diagnosis.goal"
    DIAGNOSIS_PROBLEM = "diagnosis.problem"
    JOURNEY_CHANNELS = "journey.channels"
    JOURNEY_TOOLS = "journey.tools"
    JOURNEY_EXAMPLE_RESPONSE = "journey.example_response"
    MANIFESTO_ADJECTIVES = "manifesto.adjectives"
    MANIFESTO_FORM = "manifesto.form"
    MANIFESTO_FORBIDDEN = "manifesto.forbidden"
    MANIFESTO_PREFERRED = "manifesto.preferred"
    VOC_RAW_MESSAGES = "voc.raw_messages"
    SELF_SERVICE_QUESTIONS = "self_service.questions"

    @property
    def step(self) -> StepId:
        return StepId(self.value.split(".", 1)[0])

    @property
    def attribute(self) -> str:
        return self.value.split(".", 1)[1]


# ---------------------------------------------------------------------------
# Generated item types
# ---------------------------------------------------------------------------


class VocItem(BaseModel):
    """One row of the voice-of-customer analysis."""

    model_config = ConfigDict(populate_by_name=True)

    problem: str
    cause: str
    response: str
    system_action: str = Field(..., alias="systemAction")


class FaqItem(BaseModel):
    """One entry of the generated FAQ."""

    model_config = ConfigDict(populate_by_name=True)

    question: str
    answer: str
    proactive_action: str = Field(..., alias="proactiveAction")


# ---------------------------------------------------------------------------
# Per-step records
# ---------------------------------------------------------------------------


class DiagnosisData(BaseModel):
    feeling: str = ""
    goal: str = ""
    problem: str = ""
    artifact: Optional[str] = Field(default=None, description="Generated customer service mission.")


class JourneyData(BaseModel):
    channels: str = ""
    tools: str = ""
    example_response: str = ""
    artifact: Optional[str] = Field(default=None, description="Journey audit listing three pain points.")


class ManifestoData(BaseModel):
    adjectives: str = ""
    form: str = ""
    forbidden: str = ""
    preferred: str = ""
    artifact: Optional[str] = Field(default=None, description="Communication manifesto with three principles.")


class DashboardData(BaseModel):
    selected_kpis: List[str] = Field(default_factory=list)


class VocData(BaseModel):
    raw_messages: str = ""
    artifact: Optional[List[VocItem]] = None


class SelfServiceData(BaseModel):
    questions: str = ""
    artifact: Optional[List[FaqItem]] = None


class SprintData(BaseModel):
    pass


class FeedbackData(BaseModel):
    pass


class ProactiveData(BaseModel):
    artifact: Optional[str] = Field(default=None, description="Two proactive moments derived from the whole session.")


class WizardSession(BaseModel):
    """The complete in-memory state of one user's wizard run."""

    session_id: str
    run_id: str = Field(default_factory=lambda: uuid4().hex)
    current_step: StepId = StepId.DIAGNOSIS
    language: Language = Language.PL
    diagnosis: DiagnosisData = Field(default_factory=DiagnosisData)
    journey: JourneyData = Field(default_factory=JourneyData)
    manifesto: ManifestoData = Field(default_factory=ManifestoData)
    dashboard: DashboardData = Field(default_factory=DashboardData)
    voc: VocData = Field(default_factory=VocData)
    self_service: SelfServiceData = Field(default_factory=SelfServiceData)
    sprint: SprintData = Field(default_factory=SprintData)
    feedback: FeedbackData = Field(default_factory=FeedbackData)
    proactive: ProactiveData = Field(default_factory=ProactiveData)
    submitting_step: Optional[StepId] = None
    suggesting_field: Optional[FormField] = None

    def step_data(self, step: StepId) -> BaseModel:
        """Return the record holding the inputs and artifact of *step*."""

        return getattr(self, step.value)

    def artifact(self, step: StepId) -> object | None:
        return getattr(self.step_data(step), "artifact", None)


# ---------------------------------------------------------------------------
# API payloads
# ---------------------------------------------------------------------------


class FieldDefinition(BaseModel):
    id: FormField
    label: str
    suggestable: bool


class StepDefinition(BaseModel):
    """Expose metadata that describes a step to the UI."""

    id: StepId
    order: int
    label: str
    description: str
    gate: StepGate
    fields: List[FieldDefinition]


class KpiDefinition(BaseModel):
    id: str
    label: str


class FieldUpdate(BaseModel):
    value: str = Field(..., description="New value for the field.")


class LanguageUpdate(BaseModel):
    language: Language


class SessionView(BaseModel):
    """Session state plus the derived values the UI needs to render a step."""

    session: WizardSession
    current_step_number: int
    phases: Dict[StepId, StepPhase]
    can_advance: bool
