"""Export sinks turning generated artifacts into downloadable files."""

from __future__ import annotations

import html
from typing import Any, Iterable, List, Mapping, Sequence

from pydantic import BaseModel

from .errors import ArtifactMissingError, InvalidFieldError
from .schemas import StepId, WizardSession

CSV_STEPS = {
    StepId.VOC: ["problem", "cause", "response", "systemAction"],
    StepId.SELF_SERVICE: ["question", "answer", "proactiveAction"],
}

WORD_HEADER = (
    "<html xmlns:o='urn:schemas-microsoft-com:office:office' "
    "xmlns:w='urn:schemas-microsoft-com:office:word' "
    "xmlns='http://www.w3.org/TR/REC-html40'>"
    "<head><meta charset='utf-8'><title>{title}</title></head><body>"
)
WORD_FOOTER = "</body></html>"


def _quote(value: Any) -> str:
    text = "" if value is None else str(value)
    return '"' + text.replace('"', '""') + '"'


def rows_to_csv(rows: Iterable[Mapping[str, Any]], headers: Sequence[str]) -> str:
    """Render *rows* as comma-separated text with a plain header line."""

    lines = [",".join(headers)]
    for row in rows:
        lines.append(",".join(_quote(row.get(header)) for header in headers))
    return "\n".join(lines)


def html_to_word_document(fragment: str, title: str = "") -> str:
    """Wrap a markup fragment so legacy word processors open it as a document."""

    return WORD_HEADER.format(title=html.escape(title)) + fragment + WORD_FOOTER


def _item_rows(items: List[BaseModel]) -> List[dict]:
    return [item.model_dump(by_alias=True) for item in items]


def _require_artifact(session: WizardSession, step: StepId) -> Any:
    artifact = session.artifact(step)
    if not artifact:
        raise ArtifactMissingError(f"Step '{step.value}' has no generated content to export.")
    return artifact


def step_to_csv(session: WizardSession, step: StepId) -> str:
    headers = CSV_STEPS.get(step)
    if headers is None:
        raise InvalidFieldError(f"Step '{step.value}' has no tabular export.")
    return rows_to_csv(_item_rows(_require_artifact(session, step)), headers)


def artifact_to_html(session: WizardSession, step: StepId, heading: str) -> str:
    """Render a step artifact as an HTML fragment."""

    artifact = _require_artifact(session, step)
    parts = [f"<h1>{html.escape(heading)}</h1>"]
    if isinstance(artifact, str):
        parts.extend(
            f"<p>{html.escape(paragraph)}</p>" for paragraph in artifact.split("\n") if paragraph.strip()
        )
        return "".join(parts)

    headers = CSV_STEPS[step]
    parts.append("<table border='1'><tr>")
    parts.extend(f"<th>{html.escape(header)}</th>" for header in headers)
    parts.append("</tr>")
    for row in _item_rows(artifact):
        parts.append("<tr>")
        parts.extend(f"<td>{html.escape(str(row.get(header, '')))}</td>" for header in headers)
        parts.append("</tr>")
    parts.append("</table>")
    return "".join(parts)
