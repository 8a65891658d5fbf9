"""Base class for LLM-backed collaborators.

Provides:
- Chat model construction (Claude via langchain-anthropic) unless one is injected
- System prompt prepended to every call
- Per-agent bound logger
"""

import structlog
from langchain_anthropic import ChatAnthropic
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, SystemMessage
from pydantic import BaseModel, Field

from codeweave.core.config import Settings, get_settings

logger = structlog.get_logger()


class AgentConfig(BaseModel):
    """Model parameters and retry budget of an agent."""

    name: str
    model: str = "claude-sonnet-4-20250514"
    temperature: float = 0.0
    max_tokens: int = 8192
    max_attempts: int = Field(default=2, ge=1)
    system_prompt: str = ""

    @classmethod
    def from_settings(cls, name: str, settings: Settings | None = None, **overrides) -> "AgentConfig":
        """Config with the model parameters from ``Settings``."""
        settings = settings or get_settings()
        return cls(**{
            "name": name,
            "model": settings.llm_model,
            "temperature": settings.llm_temperature,
            "max_tokens": settings.llm_max_tokens,
            **overrides,
        })


def build_chat_model(config: AgentConfig) -> BaseChatModel:
    """Claude chat model for an agent config."""
    return ChatAnthropic(
        model=config.model,
        temperature=config.temperature,
        max_tokens=config.max_tokens,
    )


class BaseAgent:
    """LLM-backed agent; subclasses set ``default_system_prompt``."""

    default_system_prompt: str = ""

    def __init__(self, config: AgentConfig, llm: BaseChatModel | None = None):
        self.config = config
        self.llm = llm if llm is not None else build_chat_model(config)
        self._logger = logger.bind(agent=config.name)

    @property
    def system_prompt(self) -> str:
        return self.config.system_prompt or self.default_system_prompt

    async def invoke(self, messages: list[BaseMessage], **log_fields) -> AIMessage:
        """Send messages to the model after the system prompt."""
        if self.system_prompt:
            messages = [SystemMessage(content=self.system_prompt), *messages]

        await self._logger.adebug(
            "Calling chat model",
            model=self.config.model,
            messages=len(messages),
            **log_fields,
        )
        return await self.llm.ainvoke(messages)
