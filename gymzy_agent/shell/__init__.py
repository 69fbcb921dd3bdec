"""
Shell - Turn handling for the Gymzy coach.

Modules:
- agent: CoachAgent, the process_turn entry point
- router: lexical intent routing (workout / app_control / general)
- reasoning: step-wise state machine for workout requests
- dispatcher: app-control tool execution
- safety_gate: confirmation for destructive tools
- tools: declared app-control tools and argument validation
- streaming: chunk delivery and cooperative abort
- context: per-turn context and bounded conversation memory
- instruction: prompt templates

Only the dependency-free pieces are re-exported here; libs.llm imports
shell.streaming, so importing the agent from this package would be circular.
"""

from gymzy_agent.shell.context import ConversationSession, TurnContext, log_event
from gymzy_agent.shell.streaming import AbortSignal, StreamSession, TurnAborted

__all__ = [
    "AbortSignal",
    "ConversationSession",
    "StreamSession",
    "TurnAborted",
    "TurnContext",
    "log_event",
]
