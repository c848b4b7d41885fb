from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

from conftest import RecordingChatModel
from pdf_qa.models import Turn
from pdf_qa.services import QueryRewriter
from pdf_qa.services.query_rewriter import REWRITE_INSTRUCTION, message_text

HISTORY = [
    Turn(role="user", text="What does the manual cover?"),
    Turn(role="model", text="It covers the X200 blender."),
]


async def test_empty_history_returns_question_without_calling_model(test_settings):
    llm = RecordingChatModel()
    rewriter = QueryRewriter(llm=llm, config=test_settings)

    assert await rewriter.rewrite("How long is the warranty?", []) == "How long is the warranty?"
    assert llm.calls == []


async def test_history_is_replayed_in_order_before_the_question(test_settings):
    llm = RecordingChatModel(responses=["  How long is the X200 blender warranty?\n"])
    rewriter = QueryRewriter(llm=llm, config=test_settings)

    rewritten = await rewriter.rewrite("And its warranty?", HISTORY)

    assert rewritten == "How long is the X200 blender warranty?"
    (messages,) = llm.calls
    assert isinstance(messages[0], SystemMessage)
    assert messages[0].content == REWRITE_INSTRUCTION
    assert [type(m) for m in messages[1:]] == [HumanMessage, AIMessage, HumanMessage]
    assert [m.content for m in messages[1:]] == [
        "What does the manual cover?",
        "It covers the X200 blender.",
        "And its warranty?",
    ]


async def test_only_the_configured_window_is_replayed(test_settings):
    config = test_settings.model_copy(update={"rewrite_history_window": 2})
    llm = RecordingChatModel(responses=["standalone"])
    rewriter = QueryRewriter(llm=llm, config=config)
    history = [Turn(role="user" if i % 2 == 0 else "model", text=f"turn {i}") for i in range(6)]

    await rewriter.rewrite("next?", history)

    (messages,) = llm.calls
    assert [m.content for m in messages[1:]] == ["turn 4", "turn 5", "next?"]


async def test_model_failure_falls_back_to_original_question(test_settings):
    llm = RecordingChatModel(error=RuntimeError("429 quota exceeded"))
    rewriter = QueryRewriter(llm=llm, config=test_settings)

    assert await rewriter.rewrite("And its warranty?", HISTORY) == "And its warranty?"
    assert len(llm.calls) == 1


async def test_empty_reply_falls_back_to_original_question(test_settings):
    rewriter = QueryRewriter(llm=RecordingChatModel(responses=["   "]), config=test_settings)

    assert await rewriter.rewrite("And its warranty?", HISTORY) == "And its warranty?"


async def test_timeout_falls_back_to_original_question(test_settings):
    config = test_settings.model_copy(update={"collaborator_timeout_seconds": 0.01})
    rewriter = QueryRewriter(llm=RecordingChatModel(responses=["late"], delay=0.5), config=config)

    assert await rewriter.rewrite("And its warranty?", HISTORY) == "And its warranty?"


def test_message_text_joins_content_blocks():
    message = AIMessage(content=[{"type": "text", "text": "How long "}, "is it?"])

    assert message_text(message) == "How long is it?"
