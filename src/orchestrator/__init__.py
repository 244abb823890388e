"""Tool Orchestrator.

Drives the language model through deciding, executing, evaluating and
synthesizing, using tools from the sealed tool registry.
"""

from orchestrator.llm import (
    GatewayUnavailable,
    LLMConfigurationError,
    LLMProvider,
    MockLLMProvider,
    create_llm_provider,
)
from orchestrator.conversation import InternalConversationLog
from orchestrator.assembler import ResultAssembler
from orchestrator.core import ToolOrchestrator, orchestrate

__all__ = [
    "GatewayUnavailable",
    "LLMConfigurationError",
    "LLMProvider",
    "MockLLMProvider",
    "create_llm_provider",
    "InternalConversationLog",
    "ResultAssembler",
    "ToolOrchestrator",
    "orchestrate",
]
