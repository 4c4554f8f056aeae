from __future__ import annotations

import asyncio
import json
import math
import time
from datetime import datetime
from unittest.mock import patch

import pytest

from errors import JudgmentFailure
from models import SCORE_AXES, Shop
from services.judge import (
    FallbackVerdict,
    _init_llm,
    build_prompt,
    composite_score,
    fallback_verdict,
    judge_battle,
    judge_battle_async,
    parse_verdict,
)


def _reply(winner: str, a: int = 8, b: int = 6, reasoning: str = "Better espresso.") -> str:
    return json.dumps(
        {
            "winner": winner,
            "scores": {
                "shopA": {"quality": a, "ambiance": a, "service": a, "uniqueness": a},
                "shopB": {"quality": b, "ambiance": b, "service": b, "uniqueness": b},
            },
            "reasoning": reasoning,
        }
    )


def _assert_well_formed(result, shop_a: Shop, shop_b: Shop) -> None:
    assert result.winner.name in {shop_a.name, shop_b.name}
    for scores in (result.scores_a, result.scores_b):
        for axis in SCORE_AXES:
            value = getattr(scores, axis)
            assert isinstance(value, int)
            assert 1 <= value <= 10
    datetime.fromisoformat(result.timestamp.replace("Z", "+00:00"))


def test_prompt_names_both_shops(make_shop) -> None:
    a, b = make_shop(1, rating=4.7, reviews=321), make_shop(2, rating=4.1, reviews=55)
    prompt = build_prompt(a, b)
    for text in ("Cafe 1", "1 Market St", "4.7/5 (321 reviews)", "Cafe 2", "4.1/5 (55 reviews)"):
        assert text in prompt
    for axis in SCORE_AXES:
        assert axis in prompt
    assert '"Cafe 1" or "Cafe 2"' in prompt


def test_llm_verdict_from_fenced_block(cfg, make_shop) -> None:
    a, b = make_shop(1), make_shop(2)
    reply = f"Here is my verdict:\n```json\n{_reply('Cafe 2', a=5, b=9)}\n```\nEnjoy!"
    result = judge_battle(cfg, a, b, llm=lambda prompt: reply)

    assert result.fallback is False
    assert result.winner == b
    assert result.scores_a.quality == 5
    assert result.scores_b.uniqueness == 9
    assert result.reasoning == "Better espresso."
    _assert_well_formed(result, a, b)


def test_llm_verdict_from_json_in_prose(cfg, make_shop) -> None:
    a, b = make_shop(1), make_shop(2)
    reply = f"<think>weighing beans</think>After careful tasting {_reply('cafe 1')} that is final."
    result = judge_battle(cfg, a, b, llm=lambda prompt: reply)
    assert result.fallback is False
    assert result.winner == a


def test_parse_accepts_shop1_shop2_keys_and_clamps(make_shop) -> None:
    a, b = make_shop(1), make_shop(2)
    reply = json.dumps(
        {
            "winner": "Cafe 1",
            "scores": {
                "shop1": {"quality": 11, "ambiance": "7", "service": 8.6, "uniqueness": 0},
                "shop2": {"quality": 5, "ambiance": 5, "service": 5, "uniqueness": 5},
            },
            "reasoning": "ok",
        }
    )
    verdict = parse_verdict(reply, a, b)
    assert verdict.scores_a.to_dict() == {"quality": 10, "ambiance": 7, "service": 9, "uniqueness": 1}


@pytest.mark.parametrize(
    "reply",
    [
        "sorry, I cannot",
        "{not json at all}",
        json.dumps({"winner": "Cafe 1", "reasoning": "no scores"}),
        json.dumps({"winner": "Cafe 1", "scores": {"shopA": {"quality": 5}}, "reasoning": "x"}),
        _reply("Some Other Cafe"),
        _reply("Cafe 1", reasoning=""),
        json.dumps(
            {
                "winner": "Cafe 1",
                "scores": {
                    "shopA": {"quality": "great", "ambiance": 5, "service": 5, "uniqueness": 5},
                    "shopB": {"quality": 5, "ambiance": 5, "service": 5, "uniqueness": 5},
                },
                "reasoning": "x",
            }
        ),
    ],
)
def test_parse_rejects_malformed(make_shop, reply) -> None:
    with pytest.raises(JudgmentFailure):
        parse_verdict(reply, make_shop(1), make_shop(2))


def test_malformed_llm_output_falls_back(cfg, make_shop) -> None:
    a, b = make_shop(1, rating=4.2, reviews=80), make_shop(2, rating=4.8, reviews=400)
    result = judge_battle(cfg, a, b, llm=lambda prompt: "sorry, I cannot")

    assert result.fallback is True
    assert result.winner == b
    _assert_well_formed(result, a, b)


def test_llm_exception_falls_back(cfg, make_shop) -> None:
    def boom(prompt: str) -> str:
        raise ConnectionError("network down")

    a, b = make_shop(1), make_shop(2)
    result = judge_battle(cfg, a, b, llm=boom)
    assert result.fallback is True
    _assert_well_formed(result, a, b)


def test_unconfigured_llm_uses_fallback(cfg, make_shop) -> None:
    a, b = make_shop(1), make_shop(2)
    with patch("services.judge._init_llm") as init:
        result = judge_battle(cfg, a, b)
    init.assert_not_called()
    assert result.fallback is True


def test_configured_provider_is_called(cfg, make_shop) -> None:
    cfg.llm_provider = "ollama"
    a, b = make_shop(1), make_shop(2)
    with patch("services.judge.call_llm", return_value=_reply("Cafe 2")) as call:
        result = judge_battle(cfg, a, b)
    call.assert_called_once()
    assert result.fallback is False
    assert result.winner == b


def test_fallback_tie_goes_to_shop_a(make_shop) -> None:
    a = Shop(shop_id="a", name="Alpha", address="1 A St", rating=4.5, review_count=100)
    b = Shop(shop_id="b", name="Beta", address="2 B St", rating=4.5, review_count=100)
    verdict = fallback_verdict(a, b)

    assert isinstance(verdict, FallbackVerdict)
    assert verdict.winner_is_a is True
    assert "tie" in verdict.reasoning
    assert "higher" not in verdict.reasoning


def test_fallback_scores_and_reasoning(make_shop) -> None:
    a, b = make_shop(1, rating=4.25, reviews=12), make_shop(2, rating=0.2, reviews=5000)
    verdict = fallback_verdict(a, b)

    assert verdict.scores_a.to_dict() == {axis: 9 for axis in SCORE_AXES}
    assert verdict.scores_b.to_dict() == {axis: 1 for axis in SCORE_AXES}
    assert verdict.winner_is_a is True
    assert "Cafe 1 (4.25/5, 12 reviews)" in verdict.reasoning
    assert "Cafe 2 (0.2/5, 5000 reviews)" in verdict.reasoning
    assert "Detailed AI analysis unavailable" in verdict.reasoning


def test_composite_score(make_shop) -> None:
    shop = make_shop(1, rating=4.0, reviews=99)
    assert composite_score(shop) == pytest.approx(4.0 * math.log10(100))


def test_fallback_with_llm_disabled_ties_to_a(cfg) -> None:
    a = Shop(shop_id="a", name="Alpha", address="1 A St", rating=4.5, review_count=100)
    b = Shop(shop_id="b", name="Beta", address="2 B St", rating=4.5, review_count=100)
    result = judge_battle(cfg, a, b)
    assert result.fallback is True
    assert result.winner.name == "Alpha"


def test_async_judge_times_out_to_fallback(cfg, make_shop) -> None:
    cfg.llm_timeout = 0.05
    a, b = make_shop(1, rating=3.0), make_shop(2, rating=4.9)

    def slow(prompt: str) -> str:
        time.sleep(0.5)
        return _reply("Cafe 1")

    result = asyncio.run(judge_battle_async(cfg, a, b, llm=slow))
    assert result.fallback is True
    assert result.winner == b


def test_negative_review_count_still_falls_back(cfg) -> None:
    a = Shop(shop_id="a", name="Alpha", address="1 A St", rating=4.5, review_count=-1)
    b = Shop(shop_id="b", name="Beta", address="2 B St", rating=4.0, review_count=5)

    assert composite_score(a) == 0.0
    result = judge_battle(cfg, a, b, llm=lambda prompt: "sorry, I cannot")
    assert result.fallback is True
    assert result.winner == b
    _assert_well_formed(result, a, b)


def test_llm_clients_get_request_timeout(cfg) -> None:
    cfg.llm_provider = "ollama"
    cfg.llm_timeout = 12.5
    with patch("services.judge.HelloAgentsLLM") as llm_cls:
        _, kind = _init_llm(cfg)
    assert kind == "openai"
    assert llm_cls.call_args.kwargs["timeout"] == 13

    cfg.llm_provider = "google"
    cfg.llm_api_key = "gemini-key"
    with patch("services.judge.GEMINI_AVAILABLE", True), patch("services.judge.genai", create=True) as genai_mod:
        _, kind = _init_llm(cfg)
    assert kind == "gemini"
    assert genai_mod.Client.call_args.kwargs["http_options"] == {"timeout": 12500}
