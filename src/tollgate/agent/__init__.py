"""The browser agent loop."""

from tollgate.agent.loop import (
    MAX_TURNS,
    AgentConfig,
    AgentResult,
    AgentTurn,
    BrowserAgentLoop,
    LoopStatus,
    describe_action,
)

__all__ = [
    "MAX_TURNS",
    "AgentConfig",
    "AgentResult",
    "AgentTurn",
    "BrowserAgentLoop",
    "LoopStatus",
    "describe_action",
]
