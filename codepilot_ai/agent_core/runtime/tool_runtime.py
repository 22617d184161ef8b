from __future__ import annotations

"""Tool registration and the per-call execution pipeline.

``ToolRuntime`` turns a model-issued ``ToolCallRequest`` into a string result.
For every call it runs, in order:

1. tool resolution,
2. argument normalization (generic, then the tool's own normalizer),
3. policy evaluation (block / dry-run / allow),
4. a lazy cache sweep and, for idempotent tools, a cache lookup,
5. argument validation and the handler, wrapped in ``with_retry``,
6. truncation, cache write, timeline, metrics and observer notifications.

Internally each call produces a ``ToolOutcome``; ``execute`` renders it to
text and never raises (task cancellation aside). ``execute_outcome`` exposes
the structured form.

Dependencies (policy, timeline, metrics, monitor, context manager, clock,
error classifier, argument validator) are all injected; nothing is global.
"""

import inspect
import json
import logging
import time
from typing import Any, Callable, Dict, Iterable, List, Optional

from ...core import monitoring
from ..errors import PolicyBlockedError, ToolArgumentValidationError, ToolNotFoundError, ToolRegistrationError
from ..observability import CacheMetrics, MetricsCollector, PerformanceMonitor, ToolExecutionMetrics
from ..policy.base import PolicyEvaluator
from ..policy.models import ToolPolicyDecision
from ..retry.classification import is_retryable_error
from ..retry.strategy import BASH_RETRY_CONFIG, FAST_RETRY_CONFIG, RetryConfig, with_retry
from ..schemas.domain import PolicyAction, Severity, TimelineStatus
from .cache import (
    DEFAULT_CACHE_SWEEP_INTERVAL_MS,
    DEFAULT_CACHE_TTL_MS,
    DEFAULT_MAX_CACHE_ENTRIES,
    ToolResultCache,
)
from .context import ContextManager
from .core_tools import CORE_SUITE_ID, ToolExecutionContext, build_core_suite
from .models import (
    Err,
    ErrorKind,
    Ok,
    ToolCallRequest,
    ToolDefinition,
    ToolOutcome,
    ToolSuite,
    normalize_call_arguments,
)
from .timeline import TimelineRecorder
from .validation import ArgumentValidator, validate_tool_arguments

logger = logging.getLogger(__name__)

# Idempotent tools whose results are safe to cache.
CACHEABLE_TOOLS = frozenset(
    {
        "Read",
        "read_file",
        "Glob",
        "glob_search",
        "Grep",
        "grep_search",
        "find_definition",
        "analyze_code_quality",
        "extract_exports",
    }
)

BASH_TOOLS = frozenset({"Bash", "bash", "execute_bash", "execute_bash_stream"})

POLICY_FAILURE_REASON = "Policy evaluation failed; blocking to stay safe."
EMPTY_RESULT_MESSAGE = "Tool execution failed"


class ToolRuntimeObserver:
    """Lifecycle callbacks for tool execution. Override the ones you need."""

    def on_tool_start(self, call: ToolCallRequest) -> None:
        pass

    def on_tool_result(self, call: ToolCallRequest, output: str) -> None:
        pass

    def on_tool_error(self, call: ToolCallRequest, error: str) -> None:
        pass

    def on_cache_hit(self, call: ToolCallRequest) -> None:
        pass


def retry_config_for(tool_name: str) -> RetryConfig:
    """Shell tools get the long-timeout preset; everything else the fast one."""
    return BASH_RETRY_CONFIG if tool_name in BASH_TOOLS else FAST_RETRY_CONFIG


def cache_key(name: str, args: Dict[str, Any]) -> str:
    return f"{name}:{json.dumps(args, sort_keys=True, default=str)}"


def _render_result(result: Any) -> str:
    if isinstance(result, str):
        return result
    return json.dumps(result, indent=2, default=str)


class _ToolRecord:
    __slots__ = ("suite_id", "definition")

    def __init__(self, suite_id: str, definition: ToolDefinition) -> None:
        self.suite_id = suite_id
        self.definition = definition


class ToolRuntime:
    """
    Registry of tool suites plus the guarded execution pipeline.

    Tool names are unique across active suites. Registration order is kept and
    used by ``list_provider_tools``.
    """

    def __init__(
        self,
        base_tools: Optional[Iterable[ToolDefinition]] = None,
        *,
        policy: Optional[PolicyEvaluator] = None,
        timeline: Optional[TimelineRecorder] = None,
        observer: Optional[ToolRuntimeObserver] = None,
        context_manager: Optional[ContextManager] = None,
        metrics_collector: Optional[MetricsCollector] = None,
        performance_monitor: Optional[PerformanceMonitor] = None,
        cache_metrics: Optional[CacheMetrics] = None,
        enable_cache: bool = True,
        cache_ttl_ms: float = DEFAULT_CACHE_TTL_MS,
        max_cache_entries: int = DEFAULT_MAX_CACHE_ENTRIES,
        cache_sweep_interval_ms: float = DEFAULT_CACHE_SWEEP_INTERVAL_MS,
        should_retry: Callable[[BaseException], bool] = is_retryable_error,
        validator: ArgumentValidator = validate_tool_arguments,
        clock: Callable[[], float] = time.monotonic,
        sleep: Optional[Callable[[float], Any]] = None,
    ) -> None:
        """
        Args:
            base_tools: Tools registered immediately as the ``runtime.core`` suite.
            policy: Guardrail evaluator; ``None`` means every call is allowed.
            timeline: Recorder for blocked/started/retrying/succeeded/failed events.
            observer: Lifecycle callbacks.
            context_manager: Truncates successful outputs.
            metrics_collector: Receives one ``ToolExecutionMetrics`` per executed call.
            performance_monitor: Tracks in-flight calls.
            cache_metrics: Cache counters; a private instance is created when omitted.
            enable_cache: Cache results of idempotent tools.
            cache_ttl_ms: Lifetime of a cached result measured from its write.
            max_cache_entries: Cache capacity (at least 1).
            cache_sweep_interval_ms: Minimum time between lazy sweeps (at least 1s).
            should_retry: Decides whether a handler error is transient.
            validator: Checks arguments against the tool's parameter schema.
            clock: Monotonic clock in seconds, shared with the cache.
            sleep: Backoff sleep override, mainly for tests.
        """
        self._registry: Dict[str, _ToolRecord] = {}
        self._order: List[str] = []
        self._policy = policy
        self._timeline = timeline
        self._observer = observer
        self._context_manager = context_manager
        self._metrics = metrics_collector
        self._monitor = performance_monitor
        self._enable_cache = enable_cache
        self._should_retry = should_retry
        self._validator = validator
        self._clock = clock
        self._sleep = sleep
        self._cache = ToolResultCache(
            ttl_ms=cache_ttl_ms,
            max_entries=max_cache_entries,
            sweep_interval_ms=cache_sweep_interval_ms,
            metrics=cache_metrics,
            clock=clock,
        )
        tools = list(base_tools or [])
        if tools:
            self.register_suite(ToolSuite(id=CORE_SUITE_ID, description="Core runtime metadata tools", tools=tools))

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register_suite(self, suite: ToolSuite) -> None:
        """
        Register ``suite``, replacing any suite previously registered with the same id.

        Raises:
            ValueError: If the suite id is blank.
            ToolRegistrationError: If a tool name is blank or owned by another suite.
                The registry is left unchanged in that case.
        """
        suite_id = (suite.id or "").strip()
        if not suite_id:
            raise ValueError("Tool suite id cannot be blank.")

        incoming: List[ToolDefinition] = []
        names: set[str] = set()
        for definition in suite.tools:
            name = (definition.name or "").strip()
            if not name:
                raise ToolRegistrationError(f'Tool names cannot be blank (suite "{suite_id}").')
            existing = self._registry.get(definition.name)
            if definition.name in names or (existing is not None and existing.suite_id != suite.id):
                owner = suite.id if definition.name in names else existing.suite_id
                raise ToolRegistrationError(f'Tool "{definition.name}" already registered by suite "{owner}".')
            names.add(definition.name)
            incoming.append(definition)

        self.unregister_suite(suite.id)
        for definition in incoming:
            self._registry[definition.name] = _ToolRecord(suite.id, definition)
            self._order.append(definition.name)
        logger.debug(f"Registered tool suite '{suite.id}' with {len(incoming)} tools")

    def unregister_suite(self, suite_id: str) -> None:
        if not suite_id or not suite_id.strip():
            return
        owned = [name for name, record in self._registry.items() if record.suite_id == suite_id]
        for name in owned:
            del self._registry[name]
            self._order.remove(name)

    def has_tool(self, name: str) -> bool:
        return name in self._registry

    def get_tool(self, name: str) -> Optional[ToolDefinition]:
        record = self._registry.get(name)
        return record.definition if record is not None else None

    def list_provider_tools(self) -> List[Dict[str, Any]]:
        """Tool schemas in registration order, as forwarded to the provider."""
        return [self._registry[name].definition.to_provider_schema() for name in self._order]

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def execute(self, call: ToolCallRequest) -> str:
        """Run ``call`` through the pipeline and return text for the model."""
        outcome = await self.execute_outcome(call)
        return outcome.render()

    async def execute_outcome(self, call: ToolCallRequest) -> ToolOutcome:
        record = self._registry.get(call.name)
        if record is None:
            message = str(ToolNotFoundError(call.name))
            self._notify("on_tool_error", call, message)
            return Err(ErrorKind.not_found, message)
        definition = record.definition

        args = normalize_call_arguments(call.arguments)
        if definition.normalize_arguments is not None:
            try:
                args = dict(definition.normalize_arguments(args))
            except Exception as e:
                return self._normalization_failed(call, e)
        exec_call = ToolCallRequest(name=call.name, arguments=args, id=call.id)

        decision = self._evaluate_policy(exec_call, definition)
        if decision is not None and decision.action == PolicyAction.block:
            return self._blocked(exec_call, decision)
        if decision is not None and decision.action == PolicyAction.dry_run:
            return self._dry_run(exec_call, decision)

        call_args = {**args, **(decision.sanitized_arguments or {})} if decision is not None else args
        exec_call = ToolCallRequest(name=call.name, arguments=call_args, id=call.id)

        cacheable = self._enable_cache and self._is_cacheable(definition)
        key = cache_key(call.name, call_args) if cacheable else None
        if self._enable_cache:
            self._cache.maybe_sweep()
        if key is not None:
            cached = self._cache.get(key)
            if cached is not None:
                logger.debug(f"Cache hit for tool '{call.name}'")
                self._notify("on_cache_hit", exec_call)
                self._notify("on_tool_result", exec_call, cached)
                return Ok(cached, cached=True)

        return await self._run_handler(exec_call, definition, call_args, key)

    def _is_cacheable(self, definition: ToolDefinition) -> bool:
        if definition.cacheable is not None:
            return definition.cacheable
        return definition.name in CACHEABLE_TOOLS

    def _evaluate_policy(self, call: ToolCallRequest, definition: ToolDefinition) -> Optional[ToolPolicyDecision]:
        if self._policy is None:
            return None
        try:
            return self._policy.evaluate(call, definition)
        except Exception as e:
            logger.warning(f"Policy evaluation failed for tool '{call.name}': {e}")
            return ToolPolicyDecision(action=PolicyAction.block, reason=POLICY_FAILURE_REASON, severity=Severity.high)

    def _normalization_failed(self, call: ToolCallRequest, error: Exception) -> Err:
        message = str(
            ToolArgumentValidationError(call.name, [f"could not normalize arguments ({type(error).__name__}: {error})"])
        )
        logger.warning(f"Argument normalizer for tool '{call.name}' raised: {error}")
        self._record(
            "tool_execution",
            status=TimelineStatus.failed,
            tool=call.name,
            message=message,
            metadata={"tool_call_id": call.id},
        )
        self._notify("on_tool_error", call, message)
        return Err(ErrorKind.validation, message)

    def _blocked(self, call: ToolCallRequest, decision: ToolPolicyDecision) -> Err:
        message = str(PolicyBlockedError(call.name, decision))
        logger.info(f"Tool '{call.name}' blocked by policy: {message}")
        self._record(
            "policy_blocked",
            status=TimelineStatus.blocked,
            tool=call.name,
            message=message,
            metadata={"tool_call_id": call.id},
        )
        monitoring.log_policy_decision(
            call.name,
            action=decision.action.value,
            reason=message,
            severity=decision.severity.value if decision.severity else None,
        )
        self._notify("on_tool_error", call, message)
        return Err(ErrorKind.policy_blocked, message)

    def _dry_run(self, call: ToolCallRequest, decision: ToolPolicyDecision) -> Ok:
        preview = decision.preview or f'Dry-run blocked execution of "{call.name}".'
        logger.info(f"Tool '{call.name}' demoted to dry-run: {decision.reason}")
        self._record(
            "tool_execution",
            status=TimelineStatus.skipped,
            tool=call.name,
            message=preview,
            metadata={"tool_call_id": call.id},
        )
        monitoring.log_policy_decision(
            call.name,
            action=decision.action.value,
            reason=decision.reason,
            severity=decision.severity.value if decision.severity else None,
        )
        self._notify("on_tool_result", call, preview)
        return Ok(preview, dry_run=True)

    async def _run_handler(
        self,
        call: ToolCallRequest,
        definition: ToolDefinition,
        call_args: Dict[str, Any],
        key: Optional[str],
    ) -> ToolOutcome:
        self._notify("on_tool_start", call)
        self._record(
            "tool_execution",
            status=TimelineStatus.started,
            tool=call.name,
            metadata={"tool_call_id": call.id, "arguments": call_args},
        )
        start_ms = self._clock() * 1000
        if self._monitor is not None:
            self._monitor.track_tool_start()
        attempts = 0

        try:
            self._validator(definition.name, definition.parameters, call_args)

            async def invoke() -> Any:
                result = definition.handler(dict(call_args))
                if inspect.isawaitable(result):
                    result = await result
                return result

            def on_retry(attempt: int, error: BaseException, delay_ms: float) -> None:
                logger.info(f"Retrying tool '{call.name}' (attempt {attempt} failed: {error})")
                self._record(
                    "tool_execution",
                    status=TimelineStatus.retrying,
                    tool=call.name,
                    message=f"Retry attempt {attempt}: {error}",
                    metadata={"tool_call_id": call.id, "attempt": attempt, "delay_ms": delay_ms},
                )

            retry_kwargs: Dict[str, Any] = {}
            if self._sleep is not None:
                retry_kwargs["sleep"] = self._sleep
            retry = await with_retry(
                invoke,
                self._should_retry,
                retry_config_for(call.name),
                on_retry,
                **retry_kwargs,
            )
            attempts = retry.attempts
            if not retry.success:
                raise retry.error or RuntimeError(EMPTY_RESULT_MESSAGE)
            if retry.result is None or retry.result == "":
                raise RuntimeError(EMPTY_RESULT_MESSAGE)

            output = _render_result(retry.result)
            if self._context_manager is not None:
                truncated = self._context_manager.truncate_tool_output(output, call.name)
                if truncated.was_truncated:
                    logger.debug(
                        f"Truncated {call.name} output: {truncated.original_length} -> {truncated.truncated_length} chars"
                    )
                    output = truncated.content

            if key is not None:
                self._cache.put(key, output)
        except Exception as e:
            return self._failed(call, e, start_ms, attempts)

        duration_ms = self._clock() * 1000 - start_ms
        self._record(
            "tool_execution",
            status=TimelineStatus.succeeded,
            tool=call.name,
            message="completed",
            metadata={"tool_call_id": call.id, "attempts": attempts},
        )
        if self._metrics is not None:
            self._metrics.record_tool_execution(
                ToolExecutionMetrics(
                    tool_name=call.name,
                    start_time=start_ms,
                    end_time=start_ms + duration_ms,
                    duration_ms=duration_ms,
                    success=True,
                    retry_count=attempts - 1,
                    input_size_bytes=len(json.dumps(call_args, default=str)),
                    output_size_bytes=len(output.encode("utf-8")),
                )
            )
        if self._monitor is not None:
            self._monitor.track_tool_end(True)
        monitoring.log_tool_execution(call.name, success=True, duration_ms=duration_ms, attempts=attempts)
        self._notify("on_tool_result", call, output)
        return Ok(output, attempts=attempts)

    def _failed(self, call: ToolCallRequest, error: Exception, start_ms: float, attempts: int) -> Err:
        if isinstance(error, ToolArgumentValidationError):
            kind = ErrorKind.validation
            message = str(error)
        else:
            kind = ErrorKind.execution
            message = f'Failed to run "{call.name}": {error}'
        logger.warning(f"Tool '{call.name}' failed after {attempts} attempt(s): {error}")

        duration_ms = self._clock() * 1000 - start_ms
        self._record(
            "tool_execution",
            status=TimelineStatus.failed,
            tool=call.name,
            message=message,
            metadata={"tool_call_id": call.id, "attempts": attempts},
        )
        if self._metrics is not None:
            self._metrics.record_tool_execution(
                ToolExecutionMetrics(
                    tool_name=call.name,
                    start_time=start_ms,
                    end_time=start_ms + duration_ms,
                    duration_ms=duration_ms,
                    success=False,
                    error=message,
                    retry_count=max(0, attempts - 1),
                )
            )
        if self._monitor is not None:
            self._monitor.track_tool_end(False)
        monitoring.log_tool_execution(call.name, success=False, duration_ms=duration_ms, attempts=attempts)
        monitoring.log_error(type(error).__name__, str(error), {"tool_name": call.name})
        self._notify("on_tool_error", call, message)
        return Err(kind, message, attempts=attempts)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _record(self, action: str, **fields: Any) -> None:
        if self._timeline is not None:
            self._timeline.record(action, **fields)

    def _notify(self, hook: str, *args: Any) -> None:
        if self._observer is None:
            return
        try:
            getattr(self._observer, hook)(*args)
        except Exception as e:
            logger.warning(f"Tool runtime observer {hook} raised: {e}")

    # ------------------------------------------------------------------
    # Cache
    # ------------------------------------------------------------------

    def clear_cache(self) -> None:
        """Drop every cached result, counting each as an eviction."""
        self._cache.clear()

    def get_cache_stats(self) -> Dict[str, float]:
        return self._cache.stats()


def create_default_tool_runtime(
    context: ToolExecutionContext,
    suites: Optional[Iterable[ToolSuite]] = None,
    **options: Any,
) -> ToolRuntime:
    """
    Build a ``ToolRuntime`` with the ``runtime.core`` suite and then ``suites``.

    Keyword options are forwarded to ``ToolRuntime``.
    """
    runtime = ToolRuntime(build_core_suite(context).tools, **options)
    for suite in suites or []:
        runtime.register_suite(suite)
    return runtime
