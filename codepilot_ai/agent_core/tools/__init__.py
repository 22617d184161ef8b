"""Tool suites that expose agent state to the model.

- ``mission``: mission, task spec, plan and guardrail tools bound to one
  ``AgentSession``'s ``MissionManager`` and ``PolicyEngine``.
"""

from .mission import MISSION_SUITE_ID, build_mission_suite, build_mission_tools

__all__ = [
    "MISSION_SUITE_ID",
    "build_mission_suite",
    "build_mission_tools",
]
