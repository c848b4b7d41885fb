"""
Chat service: relevance filtering, context assembly and answer generation.
"""

from typing import List, Optional, Sequence
from langchain_core.language_models import BaseChatModel
from langchain_google_genai import ChatGoogleGenerativeAI

from ..config import Settings, settings as default_settings
from ..exceptions import GenerationError
from ..models import REFUSAL_ANSWER, AnswerResult, RetrievalResult
from ..utils import (
    measure_time,
    with_timeout,
    log_processing_info,
    handle_processing_error,
    truncate,
)
from .query_rewriter import message_text
import logging

logger = logging.getLogger(__name__)

CONTEXT_SEPARATOR = "\n\n---\n\n"

REFUSAL_PHRASES = (
    "couldn't find",
    "could not find",
    "don't know",
    "do not know",
)


def filter_results(results: Sequence[RetrievalResult], threshold: float) -> List[str]:
    """Keep the texts of results scoring at least ``threshold``, in retrieved order."""
    return [
        result.text
        for result in results
        if result.score >= threshold and result.text.strip()
    ]


def build_context(texts: Sequence[str]) -> str:
    """Join chunk texts into one context blob; empty when nothing survived."""
    return CONTEXT_SEPARATOR.join(texts)


def is_refusal(answer: str) -> bool:
    normalized = answer.replace("’", "'").lower()
    return any(phrase in normalized for phrase in REFUSAL_PHRASES)


def resolve_answer(result: AnswerResult) -> str:
    """Map a generation outcome to the text returned to the user."""
    if not result.ok:
        return REFUSAL_ANSWER
    if is_refusal(result.answer):
        return REFUSAL_ANSWER
    return result.answer


class ChatService:
    """Service for generating answers using the LLM."""

    def __init__(self, llm: Optional[BaseChatModel] = None, config: Optional[Settings] = None):
        """Initialize the chat service."""
        self.settings = config or default_settings
        self.llm = llm or self._initialize_llm()

    def _initialize_llm(self) -> ChatGoogleGenerativeAI:
        """Initialize the language model."""
        llm = ChatGoogleGenerativeAI(
            model=self.settings.google_chat_model,
            api_key=self.settings.google_api_key,
            temperature=self.settings.google_temperature,
            max_output_tokens=self.settings.google_max_tokens,
        )

        log_processing_info("LLM initialized", {
            "model": self.settings.google_chat_model,
            "temperature": self.settings.google_temperature,
            "max_output_tokens": self.settings.google_max_tokens
        })
        return llm

    def _create_prompt(self, question: str, context: str) -> str:
        """
        Create a prompt for the LLM.

        Args:
            question: User's question
            context: Context from retrieved chunks

        Returns:
            Formatted prompt string
        """
        return (
            f"Context: {context}\n\n"
            f"Question: {question}\n\n"
            "Answer the question using ONLY the context above. "
            f"If the answer cannot be found in the context, say \"{REFUSAL_ANSWER}\""
        )

    @measure_time
    async def generate_response(self, question: str, context: str) -> AnswerResult:
        """
        Ask the LLM to answer ``question`` from ``context``.

        Returns:
            AnswerResult holding either the raw answer or the GenerationError
        """
        if not context:
            return AnswerResult(answer=REFUSAL_ANSWER)

        try:
            response = await with_timeout(
                self.llm.ainvoke(self._create_prompt(question, context)),
                self.settings.collaborator_timeout_seconds,
            )
            answer = message_text(response).strip()
        except Exception as e:
            handle_processing_error(
                "response_generation",
                e,
                {"question": question, "context_length": len(context)}
            )
            return AnswerResult(error=GenerationError(f"Failed to generate response: {e}", cause=e))

        if not answer:
            return AnswerResult(error=GenerationError("Model returned an empty answer"))

        log_processing_info("Response generated", {
            "question_length": len(question),
            "context_length": len(context),
            "answer": truncate(answer)
        })
        return AnswerResult(answer=answer)

    async def generate(self, question: str, context: str) -> str:
        """Answer ``question`` from ``context``, degrading to the refusal on any failure."""
        return resolve_answer(await self.generate_response(question, context))
