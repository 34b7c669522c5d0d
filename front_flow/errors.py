"""Exception taxonomy for the wizard and the generation gateway."""

from __future__ import annotations

from typing import Iterable


class WizardError(Exception):
    """Base exception carrying a stable machine-readable code."""

    code = "WIZARD_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, str]:
        return {"code": self.code, "message": self.message}


class SessionNotFoundError(WizardError):
    """Raised when a session id is unknown or was discarded."""

    code = "SESSION_NOT_FOUND"

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session '{session_id}' not found.")
        self.session_id = session_id


class InvalidFieldError(WizardError):
    """Raised for an unknown KPI or a field that cannot take the action."""

    code = "INVALID_FIELD"


class WrongStepError(WizardError):
    """Raised when an action targets a step other than the current one."""

    code = "WRONG_STEP"


class MissingFieldsError(WizardError):
    """Raised when a submit is attempted with empty required fields."""

    code = "MISSING_FIELDS"

    def __init__(self, fields: Iterable[str]) -> None:
        self.fields = list(fields)
        super().__init__(f"Required fields are empty: {', '.join(self.fields)}.")


class SelectionLimitError(WizardError):
    """Raised when selecting more KPIs than the dashboard allows."""

    code = "SELECTION_LIMIT"


class BusyError(WizardError):
    """Raised when a call of the same class is already in flight."""

    code = "BUSY"


class GateClosedError(WizardError):
    """Raised when advancing from a step whose gate is not satisfied."""

    code = "GATE_CLOSED"


class ArtifactMissingError(WizardError):
    """Raised when exporting a step that has no generated artifact."""

    code = "ARTIFACT_MISSING"


class GenerationError(WizardError):
    """Raised when the LLM provider call fails."""

    code = "GENERATION_FAILED"


class GatewayNotConfiguredError(GenerationError):
    """Raised when no API key is configured."""

    code = "GATEWAY_NOT_CONFIGURED"


class EmptyResponseError(GenerationError):
    """Raised when the provider returns no usable content."""

    code = "EMPTY_RESPONSE"


class MalformedResponseError(GenerationError):
    """Raised when structured output cannot be parsed or validated."""

    code = "MALFORMED_RESPONSE"
