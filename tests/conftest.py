"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import asyncio
import json
import os
from pathlib import Path
from typing import Any

import pytest

from proseforge.models import (
    CanonMetadata,
    CharacterRecord,
    StoryCanon,
    Volume,
)


@pytest.fixture(autouse=True, scope="session")
def disable_langsmith_tracing() -> None:
    """Disable LangSmith tracing during test runs.

    LangChain picks the variable up if it is set in the developer's shell.
    Set LANGSMITH_TEST_TRACING=true to override for debugging.
    """
    if os.environ.get("LANGSMITH_TEST_TRACING", "").lower() != "true":
        os.environ["LANGSMITH_TRACING"] = "false"


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


# --- Completion service ---


class ScriptedCompletionService:
    """Completion service that replays a fixed script.

    Each script item is returned in order; exceptions are raised instead,
    and a float is treated as a delay in seconds before returning "".
    """

    def __init__(self, script: list[Any]) -> None:
        self.script = list(script)
        self.calls: list[dict[str, Any]] = []

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int,
        temperature: float,
    ) -> str:
        self.calls.append(
            {
                "system_prompt": system_prompt,
                "user_prompt": user_prompt,
                "max_tokens": max_tokens,
                "temperature": temperature,
            }
        )
        if not self.script:
            raise AssertionError("completion service called more often than scripted")
        item = self.script.pop(0)
        if isinstance(item, BaseException):
            raise item
        if isinstance(item, float):
            await asyncio.sleep(item)
            return ""
        return str(item)


@pytest.fixture
def scripted_service() -> type[ScriptedCompletionService]:
    """Return the scripted completion service class."""
    return ScriptedCompletionService


# --- Sample data ---

GOOD_PROSE = """Mara pushed the door open and stepped into the cold kitchen.

The smell of burnt coffee hung in the dark room. She heard the kettle tick as it cooled.

"You're late," Jonah said. He sat at the table, hands wrapped around a warm mug.

She thought about lying. She knew he would see through it.

"The train stopped twice," she said, and leaned against the counter.

He turned the mug slowly. The sound of the ceramic on wood felt too loud.

Mara realized he had been waiting for hours. She reached for his hand."""

LEAKY_PROSE = """Mara pushed the door open and stepped into the cold kitchen.

According to the story bible, dragons cannot fly, so she was safe."""


@pytest.fixture
def good_prose() -> str:
    """Scene-based prose that passes every validator check."""
    return GOOD_PROSE


@pytest.fixture
def leaky_prose() -> str:
    """Prose that names its own story bible."""
    return LEAKY_PROSE


@pytest.fixture
def sample_canon() -> StoryCanon:
    """A small locked canon."""
    return StoryCanon(
        whitepaper="A courier falls for the stationmaster's son.",
        characters=[
            CharacterRecord(
                full_name="Mara Elise Vance", short_name="Mara", description="protagonist"
            ),
            CharacterRecord(
                full_name="Jonah Reyes", short_name="Jonah", description="love interest"
            ),
        ],
        core_premise="Two people keep missing the same train.",
        world_rules=["Trains never run on Sundays"],
        themes=["longing", "timing"],
        hard_constraints=["Jonah never leaves the town"],
        metadata=CanonMetadata(title="Last Train", genre="romance", pov="third"),
        locked=True,
    )


@pytest.fixture
def sample_volume() -> Volume:
    return Volume(volume_number=1, title="Departures", theme="Missed chances")


def chapter_json(content: str, summary: str = "Mara comes home late.", **delta: Any) -> str:
    """Serialize a chapter response the way a model would."""
    state_delta = {
        "characterStates": {"Mara": "home"},
        "worldChanges": [],
        "plotProgression": ["Mara returns"],
        "emotionalState": "guilty",
        "unresolvedThreads": ["Why was the train late?"],
        **delta,
    }
    return json.dumps({"content": content, "summary": summary, "stateDelta": state_delta})


def page_json(words: int, **fields: Any) -> str:
    """Serialize a page response with ``words`` words of content."""
    content = " ".join(["rain"] * words)
    return json.dumps({"content": content, **fields})


@pytest.fixture
def make_chapter_json() -> Any:
    return chapter_json


@pytest.fixture
def make_page_json() -> Any:
    return page_json
