from __future__ import annotations

"""In-process metrics for a session.

- ``CacheMetrics`` counts tool-result cache hits, misses, writes and evictions.
- ``MetricsCollector`` stores per-call tool and provider metrics plus periodic
  system snapshots, and summarizes them.
- ``PerformanceMonitor`` tracks in-flight tool and provider calls and the
  recent error rate, recording a system snapshot on demand.

Nothing here is persisted; every collaborator is owned by one ``AgentSession``.
"""

import json
import logging
import time
import uuid
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

SYSTEM_SUMMARY_WINDOW = 10


def _now_ms() -> float:
    return time.time() * 1000


class CacheMetrics:
    """Counters for the tool-result cache."""

    def __init__(self) -> None:
        self.hits = 0
        self.misses = 0
        self.writes = 0
        self.evictions = 0
        self.bytes_stored = 0

    def record_hit(self) -> None:
        self.hits += 1

    def record_miss(self) -> None:
        self.misses += 1

    def record_write(self, size_bytes: int) -> None:
        self.writes += 1
        if size_bytes > 0:
            self.bytes_stored += size_bytes

    def record_eviction(self, size_bytes: Optional[int] = None) -> None:
        self.evictions += 1
        if size_bytes and size_bytes > 0:
            self.bytes_stored = max(0, self.bytes_stored - size_bytes)

    def hit_rate(self) -> float:
        """Hit rate as a percentage of lookups."""
        lookups = self.hits + self.misses
        return self.hits / lookups * 100 if lookups else 0.0

    def snapshot(self) -> Dict[str, float]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "writes": self.writes,
            "evictions": self.evictions,
            "bytes_stored": self.bytes_stored,
            "hit_rate": self.hit_rate(),
        }


@dataclass
class ToolExecutionMetrics:
    tool_name: str
    start_time: float
    success: bool
    end_time: Optional[float] = None
    duration_ms: Optional[float] = None
    error: Optional[str] = None
    retry_count: int = 0
    input_size_bytes: Optional[int] = None
    output_size_bytes: Optional[int] = None


@dataclass
class ProviderCallMetrics:
    provider: str
    model: str
    start_time: float
    success: bool
    end_time: Optional[float] = None
    duration_ms: Optional[float] = None
    error: Optional[str] = None
    input_tokens: Optional[int] = None
    output_tokens: Optional[int] = None
    total_tokens: Optional[int] = None
    cost: Optional[float] = None
    retry_count: int = 0

    def __post_init__(self) -> None:
        self.provider = (self.provider or "").strip() or "unknown"
        self.model = (self.model or "").strip() or "unknown"
        if self.duration_ms is None and self.end_time is not None:
            self.duration_ms = max(0.0, self.end_time - self.start_time)
        if self.total_tokens is None and (self.input_tokens is not None or self.output_tokens is not None):
            self.total_tokens = (self.input_tokens or 0) + (self.output_tokens or 0)
        if self.error is not None and not self.error.strip():
            self.error = None


@dataclass
class SystemMetrics:
    timestamp: float
    active_tool_executions: int
    active_provider_calls: int
    cache_hit_rate: float
    error_rate: float


class MetricsCollector:
    """Collect tool, provider and system metrics for one session."""

    def __init__(self, session_id: Optional[str] = None) -> None:
        self.session_id = session_id or f"session-{uuid.uuid4().hex[:12]}"
        self._start_time = _now_ms()
        self._tools: List[ToolExecutionMetrics] = []
        self._providers: List[ProviderCallMetrics] = []
        self._system: List[SystemMetrics] = []

    def record_tool_execution(self, metrics: ToolExecutionMetrics) -> None:
        self._tools.append(metrics)

    def record_provider_call(self, metrics: ProviderCallMetrics) -> None:
        self._providers.append(metrics)

    def record_system_metrics(self, metrics: SystemMetrics) -> None:
        self._system.append(metrics)

    def get_tool_metrics(self) -> List[ToolExecutionMetrics]:
        return list(self._tools)

    def get_provider_metrics(self) -> List[ProviderCallMetrics]:
        return list(self._providers)

    def get_system_metrics(self) -> List[SystemMetrics]:
        return list(self._system)

    def _tools_summary(self) -> Dict[str, Any]:
        total = len(self._tools)
        successful = sum(1 for m in self._tools if m.success)
        timed = sorted(
            (m for m in self._tools if m.duration_ms is not None),
            key=lambda m: m.duration_ms,
            reverse=True,
        )
        return {
            "total": total,
            "successful": successful,
            "failed": total - successful,
            "average_duration_ms": sum(m.duration_ms for m in timed) / len(timed) if timed else 0.0,
            "slowest_tool": timed[0].tool_name if timed else None,
            "fastest_tool": timed[-1].tool_name if timed else None,
        }

    def _providers_summary(self) -> Dict[str, Any]:
        total = len(self._providers)
        successful = sum(1 for m in self._providers if m.success)
        durations = [m.duration_ms for m in self._providers if m.duration_ms is not None]
        total_tokens = sum(m.total_tokens or 0 for m in self._providers)
        return {
            "total": total,
            "successful": successful,
            "failed": total - successful,
            "average_duration_ms": sum(durations) / len(durations) if durations else 0.0,
            "total_tokens": total_tokens,
            "total_cost": sum(m.cost or 0.0 for m in self._providers),
            "average_tokens_per_call": total_tokens / total if total else 0.0,
        }

    def _system_summary(self) -> Dict[str, Any]:
        recent = self._system[-SYSTEM_SUMMARY_WINDOW:]
        return {
            "uptime_ms": max(1.0, _now_ms() - self._start_time),
            "cache_hit_rate": sum(m.cache_hit_rate for m in recent) / len(recent) if recent else 0.0,
            "error_rate": sum(m.error_rate for m in recent) / len(recent) if recent else 0.0,
        }

    def get_summary(self) -> Dict[str, Dict[str, Any]]:
        return {
            "tools": self._tools_summary(),
            "providers": self._providers_summary(),
            "system": self._system_summary(),
        }

    def get_session_metrics(self) -> Dict[str, Any]:
        tools = self._tools_summary()
        providers = self._providers_summary()
        now = _now_ms()
        return {
            "session_id": self.session_id,
            "start_time": self._start_time,
            "end_time": now,
            "duration_ms": max(1.0, now - self._start_time),
            "total_tools": tools["total"],
            "successful_tools": tools["successful"],
            "failed_tools": tools["failed"],
            "total_provider_calls": providers["total"],
            "total_tokens": providers["total_tokens"],
            "total_cost": providers["total_cost"],
        }

    def export_metrics(self) -> str:
        """Serialize everything collected so far as indented JSON."""
        return json.dumps(
            {
                "session": self.get_session_metrics(),
                "summary": self.get_summary(),
                "tools": [asdict(m) for m in self._tools],
                "providers": [asdict(m) for m in self._providers],
                "system": [asdict(m) for m in self._system],
            },
            indent=2,
        )

    def clear(self) -> None:
        self._tools.clear()
        self._providers.clear()
        self._system.clear()


@dataclass
class PerformanceMonitor:
    """Track in-flight calls and the error rate since the last snapshot."""

    collector: MetricsCollector = field(default_factory=MetricsCollector)
    cache_metrics: CacheMetrics = field(default_factory=CacheMetrics)
    active_tool_executions: int = 0
    active_provider_calls: int = 0
    _recent_errors: int = 0
    _recent_operations: int = 0

    def track_tool_start(self) -> None:
        self.active_tool_executions += 1
        self._recent_operations += 1

    def track_tool_end(self, success: bool) -> None:
        self.active_tool_executions = max(0, self.active_tool_executions - 1)
        if not success:
            self._recent_errors += 1

    def track_provider_start(self) -> None:
        self.active_provider_calls += 1
        self._recent_operations += 1

    def track_provider_end(self, success: bool) -> None:
        self.active_provider_calls = max(0, self.active_provider_calls - 1)
        if not success:
            self._recent_errors += 1

    def capture_system_metrics(self) -> SystemMetrics:
        """Record a system snapshot and reset the recent error counters."""
        error_rate = self._recent_errors / self._recent_operations * 100 if self._recent_operations else 0.0
        metrics = SystemMetrics(
            timestamp=_now_ms(),
            active_tool_executions=self.active_tool_executions,
            active_provider_calls=self.active_provider_calls,
            cache_hit_rate=self.cache_metrics.hit_rate(),
            error_rate=error_rate,
        )
        self.collector.record_system_metrics(metrics)
        logger.debug(
            f"System metrics: {metrics.active_tool_executions} active tools, "
            f"cache hit rate {metrics.cache_hit_rate:.1f}%, error rate {metrics.error_rate:.1f}%"
        )
        self._recent_errors = 0
        self._recent_operations = 0
        return metrics

    def snapshot(self) -> Dict[str, Any]:
        self.capture_system_metrics()
        system = self.collector.get_summary()["system"]
        return {
            "uptime_ms": system["uptime_ms"],
            "active_tools": self.active_tool_executions,
            "active_providers": self.active_provider_calls,
            "cache_hit_rate": system["cache_hit_rate"],
            "error_rate": system["error_rate"],
        }
