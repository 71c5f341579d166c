"""
infrastructure.llm.client - The LLM client handed to workflows.

Bundles the tool-calling conversation service (used by agent harnesses)
with single-shot completions (used by the router and by short text
generation steps) behind one object.
"""

from __future__ import annotations

from typing import Optional

from langchain_core.language_models import BaseChatModel
from langchain_core.output_parsers import StrOutputParser
from langchain_core.prompts import ChatPromptTemplate

from runcoach.domain.exceptions import LLMError
from runcoach.domain.ports import ConversationServicePort
from runcoach.infrastructure.log import CoachLogger, get_logger

_COMPLETION_PROMPT = ChatPromptTemplate.from_messages([
    ("system", "{system}"),
    ("human", "{input}"),
])


class LLMClient:
    """Conversation service plus ``prompt | llm | parser`` completions."""

    def __init__(
        self,
        conversation: ConversationServicePort,
        chat_model: BaseChatModel,
        fast_chat_model: Optional[BaseChatModel] = None,
        *,
        provider: str = "",
        logger: Optional[CoachLogger] = None,
    ):
        self._conversation = conversation
        self._chain = _COMPLETION_PROMPT | chat_model | StrOutputParser()
        self._fast_chain = (
            _COMPLETION_PROMPT | fast_chat_model | StrOutputParser()
            if fast_chat_model is not None else self._chain
        )
        self._provider = provider
        self._logger = logger or get_logger(__name__)

    @property
    def conversation(self) -> ConversationServicePort:
        return self._conversation

    async def complete(self, system_prompt: str, user_prompt: str, *, fast: bool = False) -> str:
        """Single completion, no tools. Raises LLMError on provider failure."""
        chain = self._fast_chain if fast else self._chain
        try:
            return await chain.ainvoke({"system": system_prompt, "input": user_prompt})
        except Exception as e:
            self._logger.warning("Completion failed (fast=%s): %s", fast, e)
            raise LLMError(
                f"Completion failed: {e}",
                provider=self._provider,
                retryable=_looks_retryable(e),
            ) from e


def _looks_retryable(exc: Exception) -> bool:
    status = getattr(exc, "status_code", None)
    if status is not None:
        return status == 429 or status >= 500
    return "timeout" in type(exc).__name__.lower()
