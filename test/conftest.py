from __future__ import annotations

from typing import List

import pytest

from codepilot_ai.agent_core.planning.mission import MissionManager
from codepilot_ai.agent_core.policy.engine import PolicyEngine
from codepilot_ai.agent_core.runtime.timeline import TimelineRecorder


class FakeClock:
    """Manually advanced monotonic clock, in seconds."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance_ms(self, ms: float) -> None:
        self.now += ms / 1000


class RecordingSleep:
    """Async sleep replacement that records requested delays and returns immediately."""

    def __init__(self) -> None:
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def no_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def timeline() -> TimelineRecorder:
    return TimelineRecorder()


@pytest.fixture
def mission(timeline: TimelineRecorder) -> MissionManager:
    return MissionManager(timeline=timeline)


@pytest.fixture
def policy(mission: MissionManager) -> PolicyEngine:
    engine = PolicyEngine(spec_provider=mission.get_task_spec)
    mission.set_policy_engine(engine)
    return engine
