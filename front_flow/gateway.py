"""OpenAI-backed generation gateway used by the wizard steps."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from textwrap import dedent
from typing import Any, Dict, List, Sequence, Type, TypeVar

from openai import APIError, AsyncOpenAI
from pydantic import BaseModel, TypeAdapter, ValidationError

from .config import LLMSettings
from .errors import (
    EmptyResponseError,
    GatewayNotConfiguredError,
    GenerationError,
    MalformedResponseError,
)
from .schemas import FaqItem, Language, VocItem

logger = logging.getLogger(__name__)

# Opening quote mapped to the closing quotes that may pair with it.
QUOTE_PAIRS = {
    '"': '"',
    "'": "'",
    "“": "”",
    "„": "”“",
    "‚": "’‘",
    "‘": "’",
    "«": "»",
    "»": "«",
}

ItemT = TypeVar("ItemT", bound=BaseModel)


@dataclass(frozen=True)
class PromptSpec:
    """Container describing how to call the LLM for one operation."""

    system_prompt: str
    user_prompt: str
    temperature: float = 0.7
    max_tokens: int = 900
    schema_name: str | None = None
    json_schema: Dict[str, Any] | None = None


def _item_array_schema(properties: Sequence[str]) -> Dict[str, Any]:
    """Wrap an array of flat string records in a strict top-level object."""

    return {
        "type": "object",
        "properties": {
            "items": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {name: {"type": "string"} for name in properties},
                    "required": list(properties),
                    "additionalProperties": False,
                },
            }
        },
        "required": ["items"],
        "additionalProperties": False,
    }


VOC_SCHEMA = _item_array_schema(["problem", "cause", "response", "systemAction"])
FAQ_SCHEMA = _item_array_schema(["question", "answer", "proactiveAction"])


def _parse_structured_response(raw_text: str) -> Any:
    """Coerce the model output into JSON, tolerating Markdown code fences."""

    text = raw_text.strip()
    if text.startswith("```"):
        lines = [line.rstrip() for line in text.splitlines()]
        if len(lines) >= 2:
            lines = lines[1:]
            if lines and lines[-1].strip() == "```":
                lines = lines[:-1]
            text = "\n".join(lines).strip()
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise MalformedResponseError(f"Model output is not valid JSON: {exc.msg}.") from exc


def _strip_quotes(text: str) -> str:
    """Remove one pair of quotes wrapping the whole text, if present."""

    text = text.strip()
    if len(text) >= 2 and text[-1] in QUOTE_PAIRS.get(text[0], ""):
        text = text[1:-1].strip()
    return text


def _language_hint(language: Language) -> str:
    return f"Write the answer in {language.display_name}."


class GenerationGateway:
    """Stateless set of generation operations over a chat-completions API.

    Settings are injected once at construction; the client is created lazily
    so the application can start without a credential and report the missing
    key only when a generation is requested.
    """

    def __init__(self, settings: LLMSettings, client: AsyncOpenAI | None = None) -> None:
        self._settings = settings
        self._client = client

    @property
    def model(self) -> str:
        return self._settings.model

    def _get_client(self) -> AsyncOpenAI:
        if self._client is not None:
            return self._client
        if not self._settings.api_key:
            raise GatewayNotConfiguredError("No LLM API key configured; set OPENAI_API_KEY.")
        self._client = AsyncOpenAI(
            api_key=self._settings.api_key,
            base_url=self._settings.base_url,
            timeout=self._settings.timeout_seconds,
        )
        return self._client

    async def _invoke(self, spec: PromptSpec) -> str:
        client = self._get_client()
        extra: Dict[str, Any] = {}
        if spec.json_schema is not None:
            extra["response_format"] = {
                "type": "json_schema",
                "json_schema": {
                    "name": spec.schema_name or "items",
                    "schema": spec.json_schema,
                    "strict": True,
                },
            }
        try:
            response = await client.chat.completions.create(
                model=self._settings.model,
                messages=[
                    {"role": "system", "content": spec.system_prompt.strip()},
                    {"role": "user", "content": spec.user_prompt.strip()},
                ],
                temperature=spec.temperature,
                max_tokens=spec.max_tokens,
                **extra,
            )
        except APIError as exc:
            raise GenerationError(f"LLM provider call failed: {exc}") from exc

        message = response.choices[0].message.content if response.choices else None
        if not message or not message.strip():
            raise EmptyResponseError("LLM provider returned an empty response.")
        return message.strip()

    async def _invoke_items(self, spec: PromptSpec, item_type: Type[ItemT]) -> List[ItemT]:
        payload = _parse_structured_response(await self._invoke(spec))
        items = payload.get("items") if isinstance(payload, dict) else payload
        if not isinstance(items, list):
            raise MalformedResponseError("Model output does not contain an item array.")
        try:
            parsed = TypeAdapter(List[item_type]).validate_python(items)
        except ValidationError as exc:
            logger.warning("Structured output failed validation for %s: %s", item_type.__name__, exc)
            raise MalformedResponseError(
                f"Model output does not match the {item_type.__name__} schema."
            ) from exc
        if not parsed:
            raise EmptyResponseError("Model returned no items.")
        return parsed

    async def generate_mission(self, feeling: str, goal: str, problem: str, language: Language) -> str:
        user_prompt = dedent(
            f"""
            You are FRONT, a customer experience expert. Based on these three answers:
            1. How the customer should feel: {feeling}
            2. Business goal: {goal}
            3. Main problem: {problem}

            Write a "Customer Service Mission" using exactly this sentence template:
            "Our mission is to make every customer feel [feeling] after contacting us, by [goal].
            Our first objective is to eliminate the problem of [problem]."
            {_language_hint(language)}
            """
        )
        spec = PromptSpec(
            system_prompt="You are an expert in customer experience strategy.",
            user_prompt=user_prompt,
            temperature=0.7,
            max_tokens=400,
        )
        return await self._invoke(spec)

    async def analyze_journey(self, channels: str, tools: str, example_response: str, language: Language) -> str:
        user_prompt = dedent(
            f"""
            You are a customer journey auditor. Analyse the contact channels ({channels}),
            the tools in use ({tools}) and this example reply sent to a customer: "{example_response}".

            Name exactly 3 concrete pain points as "Pain #1", "Pain #2" and "Pain #3", in plain text.
            {_language_hint(language)}
            """
        )
        spec = PromptSpec(
            system_prompt="You are an expert customer journey auditor.",
            user_prompt=user_prompt,
            temperature=0.6,
            max_tokens=800,
        )
        return await self._invoke(spec)

    async def generate_manifesto(
        self,
        adjectives: str,
        form: str,
        forbidden: str,
        preferred: str,
        language: Language,
    ) -> str:
        user_prompt = dedent(
            f"""
            Create the FRONT Communication Manifesto.
            Brand adjectives: {adjectives}. Form of address: {form}.
            Forbidden phrase: {forbidden}. Preferred phrase: {preferred}.

            Phrase the rules as exactly 3 numbered principles.
            {_language_hint(language)}
            """
        )
        spec = PromptSpec(
            system_prompt="You are an expert in brand voice and customer communication.",
            user_prompt=user_prompt,
            temperature=0.7,
            max_tokens=700,
        )
        return await self._invoke(spec)

    async def analyze_voc(self, raw_messages: str, language: Language) -> List[VocItem]:
        user_prompt = dedent(
            f"""
            Analyse these customer messages:

            {raw_messages}

            Apply the 3C analysis (Concern, Cause, Correction) and add a systemic action for each concern.
            Return JSON with an "items" array; every item has the string keys
            "problem", "cause", "response" and "systemAction".
            {_language_hint(language)}
            """
        )
        spec = PromptSpec(
            system_prompt="You are a voice-of-customer analyst.",
            user_prompt=user_prompt,
            temperature=0.5,
            max_tokens=1200,
            schema_name="voc_analysis",
            json_schema=VOC_SCHEMA,
        )
        return await self._invoke_items(spec, VocItem)

    async def generate_faq(self, questions: str, language: Language) -> List[FaqItem]:
        user_prompt = dedent(
            f"""
            Create an FAQ section for these customer questions:

            {questions}

            For each question write a clear answer and one proactive action that prevents the question.
            Return JSON with an "items" array; every item has the string keys
            "question", "answer" and "proactiveAction".
            {_language_hint(language)}
            """
        )
        spec = PromptSpec(
            system_prompt="You are a self-service and knowledge base specialist.",
            user_prompt=user_prompt,
            temperature=0.6,
            max_tokens=1500,
            schema_name="faq",
            json_schema=FAQ_SCHEMA,
        )
        return await self._invoke_items(spec, FaqItem)

    async def generate_proactive_strategy(self, context: str, language: Language) -> str:
        user_prompt = dedent(
            f"""
            Using the full context of this engagement:

            {context}

            Identify 2 key proactive moments ("Moment #1" and "Moment #2").
            For each, describe the Problem and the Proactive Action.
            {_language_hint(language)}
            """
        )
        spec = PromptSpec(
            system_prompt="You are a proactive customer service strategist.",
            user_prompt=user_prompt,
            temperature=0.7,
            max_tokens=900,
        )
        return await self._invoke(spec)

    async def generate_suggestion(self, field_label: str, context: str, language: Language) -> str:
        user_prompt = dedent(
            f"""
            A user is filling in a customer experience workshop form.
            Context gathered so far (JSON): {context}

            Suggest a value for the field "{field_label}".
            Reply with one short phrase only, without quotes or explanations.
            {_language_hint(language)}
            """
        )
        spec = PromptSpec(
            system_prompt="You help users complete customer experience workshop forms.",
            user_prompt=user_prompt,
            temperature=0.9,
            max_tokens=80,
        )
        suggestion = _strip_quotes(await self._invoke(spec))
        if not suggestion:
            raise EmptyResponseError("Suggestion was empty after removing quotes.")
        return suggestion
