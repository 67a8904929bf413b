"""
Tests for the model router.
Pure heuristics, no LLM involved.
"""

from andy.agents.decision import ModelRouter
from andy.storage.models import ChatResponse, ConversationContext, Message


def test_technical_message_routes_to_claude():
    router = ModelRouter()
    assert router.determine_model("Calculate my tax deductions for my W2 form", ConversationContext()) == "claude"


def test_small_talk_routes_to_gpt4():
    router = ModelRouter()
    assert router.determine_model("hi there", ConversationContext()) == "gpt4"


def test_routing_is_deterministic():
    router = ModelRouter()
    ctx = ConversationContext()
    results = {router.determine_model("How do 1099 deductions work?", ctx) for _ in range(20)}
    assert len(results) == 1


def test_technical_score_ignores_stop_words():
    router = ModelRouter()
    assert router.technical_score("Calculate my tax deductions for my W2 form") == 1.0
    assert router.technical_score("hi there") == 0.0
    assert router.technical_score("") == 0.0
    assert router.technical_score("the my for") == 0.0


def test_technical_score_partial():
    router = ModelRouter()
    # tax, refund out of tax, refund, weather, today
    assert router.technical_score("tax refund weather today") == 0.5


def test_punctuation_and_case_are_normalized():
    router = ModelRouter()
    assert router.technical_score("W-2? 1099!") == 1.0


def test_score_at_threshold_does_not_route_up():
    router = ModelRouter(technical_keywords=["tax"], stop_words=[], technical_threshold=0.5)
    assert router.technical_score("tax season") == 0.5
    assert router.determine_model("tax season", {}) == "gpt4"


def test_large_context_routes_to_claude():
    router = ModelRouter()
    history = [Message(content="x" * 200, role="user") for _ in range(5)]
    ctx = ConversationContext(conversation_history=history)
    assert router.context_complexity(ctx) == 1.0
    assert router.determine_model("hi there", ctx) == "claude"


def test_context_complexity_scales_with_size():
    router = ModelRouter(context_norm_chars=1000)
    assert router.context_complexity(None) == 0.0
    assert router.context_complexity({}) == 0.002
    small = ConversationContext(last_response=ChatResponse(content="ok", source="gpt4"))
    assert 0 < router.context_complexity(small) < 0.8


def test_custom_config():
    router = ModelRouter.from_config({
        "routing": {
            "technical_keywords": ["mortgage"],
            "stop_words": [],
            "technical_threshold": 0.3,
            "complex_model": "big",
            "baseline_model": "small",
        }
    })
    assert router.determine_model("mortgage rates now", {}) == "big"
    assert router.determine_model("tax tax tax", {}) == "small"


def test_decide_explains_itself():
    decision = ModelRouter().decide("Calculate my tax deductions for my W2 form", {})
    assert decision.model == "claude"
    assert decision.technical_score == 1.0
    assert "technical" in decision.reasoning
