"""CodePilot-AI.

Execution core for an interactive coding-agent CLI. A model issues tool calls;
this package decides whether each call may run, runs it with retries and
caching, and tracks the mission and plan the calls are working towards.

Core subpackages
----------------

- ``codepilot_ai.agent_core``: tool runtime, guardrail policy, retry and
  circuit breaking, task/plan contracts, mission state machine and the
  ``AgentSession`` that wires them together.
- ``codepilot_ai.core``: settings (pydantic-settings), logging configuration
  and optional Logfire tracing.

Nothing is process-global: every stateful collaborator belongs to one
``AgentSession``.
"""
