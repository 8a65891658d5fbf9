"""LLM-backed collaborators."""

from .base import AgentConfig, BaseAgent, build_chat_model
from .generator import MODULE_GENERATOR_PROMPT, ModuleGeneratorAgent

__all__ = [
    "AgentConfig",
    "BaseAgent",
    "build_chat_model",
    "MODULE_GENERATOR_PROMPT",
    "ModuleGeneratorAgent",
]
