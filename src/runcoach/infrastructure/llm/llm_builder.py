"""
infrastructure.llm.llm_builder - Centralized chat-model construction.

Single source of truth for building chat models for the agents, the
router and single-shot completions. The provider is controlled by the
LLM_PROVIDER environment variable.

Supported providers:
    - "openai"     → langchain_openai.ChatOpenAI
    - "groq"       → langchain_groq.ChatGroq
    - "ollama"     → langchain_ollama.ChatOllama
    - "anthropic"  → langchain_anthropic.ChatAnthropic

Provider packages are imported lazily so only the selected one needs to
be configured.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from langchain_core.language_models import BaseChatModel

from runcoach.domain.exceptions import ConfigError
from runcoach.infrastructure.log import CoachLogger, get_logger


def build_llm(
    *,
    provider: str,
    model: str,
    temperature: float = 0,
    ollama_base_url: str = "http://localhost:11434/",
    openai_api_key: str = "",
    groq_api_key: str = "",
    anthropic_api_key: str = "",
    json_mode: bool = False,
    max_tokens: Optional[int] = None,
    logger: Optional[CoachLogger] = None,
) -> BaseChatModel:
    """Build a chat model for the given provider.

    Args:
        provider: One of "openai", "groq", "ollama", "anthropic".
        model: Model name for the selected provider.
        temperature: Sampling temperature.
        json_mode: Ask the provider for a JSON object response (not
                   supported by anthropic; ignored there).
        max_tokens: Maximum output tokens.

    Raises:
        ConfigError: If the provider is unknown or credentials are missing.
    """
    logger = logger or get_logger(__name__)
    provider = provider.lower().strip()

    if provider == "openai":
        from langchain_openai import ChatOpenAI

        if not openai_api_key:
            raise ConfigError("OPENAI_API_KEY is required when LLM_PROVIDER='openai'")

        kwargs: Dict[str, Any] = {
            "model": model,
            "temperature": temperature,
            "api_key": openai_api_key,
            "stream_usage": True,
        }
        if json_mode:
            kwargs["model_kwargs"] = {"response_format": {"type": "json_object"}}
        if max_tokens is not None:
            kwargs["max_tokens"] = max_tokens

        logger.info("Building OpenAI chat model (model=%s, json_mode=%s)", model, json_mode)
        return ChatOpenAI(**kwargs)

    elif provider == "groq":
        from langchain_groq import ChatGroq

        if not groq_api_key:
            raise ConfigError("GROQ_API_KEY is required when LLM_PROVIDER='groq'")

        kwargs = {
            "model": model,
            "temperature": temperature,
            "api_key": groq_api_key,
            "max_tokens": max_tokens if max_tokens is not None else 1024,
        }
        if json_mode:
            kwargs["model_kwargs"] = {"response_format": {"type": "json_object"}}

        logger.info("Building Groq chat model (model=%s, json_mode=%s)", model, json_mode)
        return ChatGroq(**kwargs)

    elif provider == "ollama":
        from langchain_ollama import ChatOllama

        kwargs = {
            "model": model,
            "temperature": temperature,
            "base_url": ollama_base_url,
        }
        if json_mode:
            kwargs["format"] = "json"
        if max_tokens is not None:
            kwargs["num_predict"] = max_tokens

        logger.info("Building ChatOllama (model=%s, json_mode=%s)", model, json_mode)
        return ChatOllama(**kwargs)

    elif provider == "anthropic":
        from langchain_anthropic import ChatAnthropic

        if not anthropic_api_key:
            raise ConfigError("ANTHROPIC_API_KEY is required when LLM_PROVIDER='anthropic'")

        logger.info("Building Anthropic chat model (model=%s)", model)
        return ChatAnthropic(
            model=model,
            temperature=temperature,
            api_key=anthropic_api_key,
            max_tokens=max_tokens if max_tokens is not None else 4096,
        )

    raise ConfigError(
        f"Unsupported LLM_PROVIDER: '{provider}'. "
        "Must be 'openai', 'groq', 'ollama' or 'anthropic'."
    )
