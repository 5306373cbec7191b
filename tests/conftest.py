from __future__ import annotations

import pytest
from tandem.config import RuntimeSettings, TasksConfig
from tandem.core.runtime import AgentRuntime
from tandem.models.character import Character

from tests.fakes import InMemoryDatabaseAdapter


@pytest.fixture
def adapter() -> InMemoryDatabaseAdapter:
    return InMemoryDatabaseAdapter()


@pytest.fixture
def character() -> Character:
    return Character(
        name="Ada",
        system="You are Ada, a careful assistant.",
        bio=["Ada helps the Acme team.", "She is precise."],
        topics=["robotics", "open source"],
        post_examples=["Shipping beats polishing."],
    )


@pytest.fixture
def settings() -> RuntimeSettings:
    return RuntimeSettings(agent_name="Ada", tasks=TasksConfig(enabled=False))


@pytest.fixture
def runtime(
    character: Character,
    adapter: InMemoryDatabaseAdapter,
    settings: RuntimeSettings,
) -> AgentRuntime:
    return AgentRuntime(character=character, adapter=adapter, settings=settings)
