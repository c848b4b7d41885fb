"""
Query rewriting: turns a follow-up question into a standalone one.
"""

from typing import List, Optional, Sequence
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from langchain_google_genai import ChatGoogleGenerativeAI

from ..config import Settings, settings as default_settings
from ..models import Turn
from ..utils import with_timeout, log_processing_info, handle_processing_error
import logging

logger = logging.getLogger(__name__)

REWRITE_INSTRUCTION = (
    "Rephrase the user's question into a standalone question based on the conversation history. "
    "Only output the rewritten question."
)


def message_text(message: BaseMessage) -> str:
    """Flatten a chat model reply into plain text."""
    content = message.content
    if isinstance(content, str):
        return content
    parts = []
    for block in content:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text", ""))
    return "".join(parts)


def turns_to_messages(turns: Sequence[Turn]) -> List[BaseMessage]:
    """Convert history turns into chat messages, preserving order."""
    return [
        HumanMessage(content=turn.text) if turn.role == "user" else AIMessage(content=turn.text)
        for turn in turns
    ]


class QueryRewriter:
    """Rewrites questions using the conversation history."""

    def __init__(self, llm: Optional[BaseChatModel] = None, config: Optional[Settings] = None):
        self.settings = config or default_settings
        self.llm = llm or self._initialize_llm()

    def _initialize_llm(self) -> ChatGoogleGenerativeAI:
        llm = ChatGoogleGenerativeAI(
            model=self.settings.google_chat_model,
            api_key=self.settings.google_api_key,
        )
        log_processing_info("Rewrite LLM initialized", {"model": self.settings.google_chat_model})
        return llm

    def build_messages(self, question: str, history: Sequence[Turn]) -> List[BaseMessage]:
        window = self.settings.rewrite_history_window
        replayed = list(history)[-window:] if window else list(history)
        return [
            SystemMessage(content=REWRITE_INSTRUCTION),
            *turns_to_messages(replayed),
            HumanMessage(content=question),
        ]

    async def rewrite(self, question: str, history: Sequence[Turn]) -> str:
        """
        Produce a standalone version of ``question``.

        Returns the question unchanged when there is no history, and falls
        back to it when the model fails or replies with nothing.
        """
        if not history:
            return question

        try:
            response = await with_timeout(
                self.llm.ainvoke(self.build_messages(question, history)),
                self.settings.collaborator_timeout_seconds,
            )
            rewritten = message_text(response).strip()
        except Exception as e:
            handle_processing_error("query_rewrite", e, {"question": question, "turns": len(history)})
            return question

        if not rewritten:
            logger.warning("Query rewrite returned empty content, using original question")
            return question

        return rewritten
