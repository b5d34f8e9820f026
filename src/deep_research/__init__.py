from .agent import SearchEvaluationAgent, create_tool_agent, run_tool_agent
from .agent_engine import AgentResearchEngine, create_agent_research_engine
from .chat import ChatAgent, create_chat_agent
from .config import DEFAULT_BREADTH, DEFAULT_DEPTH, ResearchConfig
from .confirmation import APPROVAL_NO, APPROVAL_YES, ToolConfirmationGate
from .engine import DeepResearchEngine
from .errors import (
    ConfigurationError,
    DeepResearchError,
    InvalidResearchRequest,
    UpstreamModelError,
)
from .logging import configure_logging, get_logger
from .messages import UIMessage
from .progress import (
    CollectingProgressSink,
    NullProgressSink,
    ProgressSink,
    QueueProgressSink,
    SourceEvent,
    StatusEvent,
)
from .report import ReportSynthesizer
from .session import DeepResearchSession, create_research_session
from .state import (
    AlternateResearchState,
    DeepResearchOutcome,
    Learning,
    Report,
    Research,
    ResearchQuery,
    SearchResult,
)
from .tools import ToolSpec, WebSearchCapability, merge_tool_sets

__all__ = [
    # Core
    "DeepResearchEngine",
    "DeepResearchSession",
    "create_research_session",
    "ReportSynthesizer",
    "ResearchConfig",
    "DEFAULT_DEPTH",
    "DEFAULT_BREADTH",
    # Data model
    "SearchResult",
    "ResearchQuery",
    "Learning",
    "Research",
    "AlternateResearchState",
    "Report",
    "DeepResearchOutcome",
    # Progress
    "ProgressSink",
    "StatusEvent",
    "SourceEvent",
    "NullProgressSink",
    "CollectingProgressSink",
    "QueueProgressSink",
    # Agents and tools
    "AgentResearchEngine",
    "create_agent_research_engine",
    "SearchEvaluationAgent",
    "create_tool_agent",
    "run_tool_agent",
    "ToolSpec",
    "WebSearchCapability",
    "merge_tool_sets",
    "ChatAgent",
    "create_chat_agent",
    "ToolConfirmationGate",
    "UIMessage",
    "APPROVAL_YES",
    "APPROVAL_NO",
    # Errors
    "DeepResearchError",
    "UpstreamModelError",
    "InvalidResearchRequest",
    "ConfigurationError",
    # Logging
    "configure_logging",
    "get_logger",
]
