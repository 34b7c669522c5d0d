from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Tuple

import pytest

from front_flow.config import get_llm_settings
from front_flow.schemas import FaqItem, VocItem
from front_flow.session import SessionStore
from front_flow.wizard import StepController


class FakeGateway:
    """Records calls and returns canned results instead of calling an LLM."""

    def __init__(self) -> None:
        self.calls: List[Tuple[str, Tuple[Any, ...]]] = []
        self.responses: Dict[str, Any] = {
            "generate_mission": "Naszą misją jest...",
            "analyze_journey": "Pain #1\nPain #2\nPain #3",
            "generate_manifesto": "1. Be clear\n2. Be kind\n3. Be quick",
            "analyze_voc": [
                VocItem(problem="Late parcel", cause="Courier delay", response="Apologise", systemAction="Track SLA"),
            ],
            "generate_faq": [
                FaqItem(question="Where is my order?", answer="Check tracking.", proactiveAction="Send tracking link"),
            ],
            "generate_proactive_strategy": "Moment #1\nMoment #2",
            "generate_suggestion": "Spokój",
        }
        self.error: Exception | None = None
        self.hold: asyncio.Event | None = None

    async def _respond(self, name: str, *args: Any) -> Any:
        self.calls.append((name, args))
        if self.hold is not None:
            await self.hold.wait()
        if self.error is not None:
            raise self.error
        return self.responses[name]

    async def generate_mission(self, feeling, goal, problem, language):
        return await self._respond("generate_mission", feeling, goal, problem, language)

    async def analyze_journey(self, channels, tools, example_response, language):
        return await self._respond("analyze_journey", channels, tools, example_response, language)

    async def generate_manifesto(self, adjectives, form, forbidden, preferred, language):
        return await self._respond("generate_manifesto", adjectives, form, forbidden, preferred, language)

    async def analyze_voc(self, raw_messages, language):
        return await self._respond("analyze_voc", raw_messages, language)

    async def generate_faq(self, questions, language):
        return await self._respond("generate_faq", questions, language)

    async def generate_proactive_strategy(self, context, language):
        return await self._respond("generate_proactive_strategy", context, language)

    async def generate_suggestion(self, field_label, context, language):
        return await self._respond("generate_suggestion", field_label, context, language)


@pytest.fixture(autouse=True)
def clear_llm_cache() -> None:
    """Ensure cached settings do not leak between tests."""

    get_llm_settings.cache_clear()


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def controller(gateway: FakeGateway) -> StepController:
    return StepController(SessionStore(), gateway)
