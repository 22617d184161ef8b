from __future__ import annotations

"""Per-session wiring of the execution core.

An ``AgentSession`` owns one instance of every stateful collaborator (timeline,
policy engine, mission manager, metrics) and hands them to the ``ToolRuntime``
it builds. Two sessions share nothing.

Typical usage::

    session = AgentSession.create()
    runtime = session.build_tool_runtime(
        ToolExecutionContext(profile_name="general", provider="anthropic", model="claude"),
    )
    output = await runtime.execute(ToolCallRequest(name="GetMission"))
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from ..core.config import Settings, get_settings
from .observability import CacheMetrics, MetricsCollector, PerformanceMonitor
from .planning.mission import MissionManager
from .policy.engine import PolicyEngine
from .runtime.context import ContextManager
from .runtime.core_tools import ToolExecutionContext
from .runtime.models import ToolSuite
from .runtime.timeline import TimelineRecorder
from .runtime.tool_runtime import ToolRuntime, ToolRuntimeObserver, create_default_tool_runtime
from .tools.mission import build_mission_suite

logger = logging.getLogger(__name__)


@dataclass
class AgentSession:
    """
    Explicit dependency container for one agent session.

    Attributes:
        settings: Settings the session was created from.
        timeline: Shared event log for the runtime and the mission manager.
        policy: Guardrail engine reading the mission manager's task spec.
        mission: Mission and plan state.
        metrics: Tool and provider metrics.
        cache_metrics: Counters shared by the runtime's result cache.
        monitor: In-flight call tracking.
        context_manager: Tool output truncation.
    """

    settings: Settings
    timeline: TimelineRecorder
    policy: PolicyEngine
    mission: MissionManager
    metrics: MetricsCollector = field(default_factory=MetricsCollector)
    cache_metrics: CacheMetrics = field(default_factory=CacheMetrics)
    monitor: Optional[PerformanceMonitor] = None
    context_manager: ContextManager = field(default_factory=ContextManager)

    def __post_init__(self) -> None:
        if self.monitor is None:
            self.monitor = PerformanceMonitor(collector=self.metrics, cache_metrics=self.cache_metrics)

    @classmethod
    def create(cls, settings: Optional[Settings] = None, *, session_id: Optional[str] = None) -> "AgentSession":
        """
        Wire a fresh session from ``settings`` (the cached settings by default).

        The policy engine reads the task spec straight from the mission manager,
        so a spec recorded through the mission tools takes effect on the next call.
        """
        settings = settings or get_settings()
        timeline = TimelineRecorder()
        mission = MissionManager(timeline=timeline)
        guardrails = settings.guardrails.model_dump(exclude_none=True)
        policy = PolicyEngine(spec_provider=mission.get_task_spec, config=guardrails)
        mission.set_policy_engine(policy)

        metrics = MetricsCollector(session_id=session_id)
        session = cls(
            settings=settings,
            timeline=timeline,
            policy=policy,
            mission=mission,
            metrics=metrics,
            context_manager=ContextManager(max_tool_output_length=settings.runtime.max_tool_output_length),
        )
        logger.info(f"Agent session {metrics.session_id} created")
        return session

    @property
    def session_id(self) -> str:
        return self.metrics.session_id

    def build_tool_runtime(
        self,
        context: ToolExecutionContext,
        suites: Optional[Iterable[ToolSuite]] = None,
        *,
        observer: Optional[ToolRuntimeObserver] = None,
        **overrides: Any,
    ) -> ToolRuntime:
        """
        Build a ``ToolRuntime`` bound to this session.

        The runtime gets the ``runtime.core`` suite, the ``mission`` suite and
        then ``suites``. Cache options come from ``settings.runtime``; keyword
        ``overrides`` replace any ``ToolRuntime`` option.
        """
        runtime_cfg = self.settings.runtime
        options: dict[str, Any] = {
            "policy": self.policy,
            "timeline": self.timeline,
            "observer": observer,
            "context_manager": self.context_manager,
            "metrics_collector": self.metrics,
            "performance_monitor": self.monitor,
            "cache_metrics": self.cache_metrics,
            "enable_cache": runtime_cfg.enable_cache,
            "cache_ttl_ms": runtime_cfg.cache_ttl_ms,
            "max_cache_entries": runtime_cfg.max_cache_entries,
            "cache_sweep_interval_ms": runtime_cfg.cache_sweep_interval_ms,
        }
        options.update(overrides)
        mission_suite = build_mission_suite(self.mission, self.policy, self.timeline)
        return create_default_tool_runtime(context, [mission_suite, *(suites or [])], **options)
