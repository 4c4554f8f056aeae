from __future__ import annotations

import asyncio
import json
import math
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Union

from hello_agents import HelloAgentsLLM, ToolAwareSimpleAgent
from loguru import logger

from config import Configuration
from errors import JudgmentFailure
from models import SCORE_AXES, AxisScores, BattleResult, Shop
from utils import clamp_int, extract_json_text, strip_thinking_tokens, utc_now_iso

try:
    from google import genai
    GEMINI_AVAILABLE = True
except ImportError:
    GEMINI_AVAILABLE = False


DEFAULT_GEMINI_MODEL = "gemini-2.0-flash"

SYSTEM_PROMPT = (
    "You are a coffee expert judging a single-elimination tournament between coffee shops. "
    "You compare two shops, score both and pick exactly one winner. Only output JSON."
)

SIDE_ALIASES = {"shopA": ("shopA", "shop1", "shop_a"), "shopB": ("shopB", "shop2", "shop_b")}

LlmCall = Callable[[str], str]


@dataclass(frozen=True)
class LlmVerdict:
    winner_is_a: bool
    scores_a: AxisScores
    scores_b: AxisScores
    reasoning: str


@dataclass(frozen=True)
class FallbackVerdict:
    winner_is_a: bool
    scores_a: AxisScores
    scores_b: AxisScores
    reasoning: str


Verdict = Union[LlmVerdict, FallbackVerdict]


def build_prompt(shop_a: Shop, shop_b: Shop) -> str:
    return (
        "Compare these two coffee shops and determine a winner:\n\n"
        f"**Coffee Shop A: {shop_a.name}**\n"
        f"- Address: {shop_a.address}\n"
        f"- Google Rating: {shop_a.rating}/5 ({shop_a.review_count} reviews)\n\n"
        f"**Coffee Shop B: {shop_b.name}**\n"
        f"- Address: {shop_b.address}\n"
        f"- Google Rating: {shop_b.rating}/5 ({shop_b.review_count} reviews)\n\n"
        "1. Score each shop from 1 to 10 (integers) in these categories:\n"
        "   - quality: coffee taste, beans, brewing methods\n"
        "   - ambiance: atmosphere, decor, comfort\n"
        "   - service: staff friendliness, speed, expertise\n"
        "   - uniqueness: special offerings, character, innovation\n"
        "2. Determine the winner based on these scores.\n"
        "3. Give 2-3 paragraphs of reasoning citing specific strengths and weaknesses.\n\n"
        "Respond with a single JSON object and nothing else, exactly in this shape:\n"
        "{\n"
        f'  "winner": {json.dumps(shop_a.name)} or {json.dumps(shop_b.name)},\n'
        '  "scores": {\n'
        '    "shopA": {"quality": <1-10>, "ambiance": <1-10>, "service": <1-10>, "uniqueness": <1-10>},\n'
        '    "shopB": {"quality": <1-10>, "ambiance": <1-10>, "service": <1-10>, "uniqueness": <1-10>}\n'
        "  },\n"
        '  "reasoning": "<detailed explanation>"\n'
        "}"
    )


def _init_llm(cfg: Configuration) -> tuple[Union["genai.Client", HelloAgentsLLM], str]:
    """Initialize LLM with Gemini primary and an OpenAI-compatible fallback."""
    provider = (cfg.llm_provider or "").lower()

    if provider == "google" and GEMINI_AVAILABLE and cfg.llm_api_key:
        try:
            client = genai.Client(
                api_key=cfg.llm_api_key,
                http_options={"timeout": int(cfg.llm_timeout * 1000)},
            )
            logger.debug("Judge using Gemini model: {}", cfg.llm_model_id or DEFAULT_GEMINI_MODEL)
            return client, "gemini"
        except Exception as e:
            logger.warning("Gemini initialization failed in judge: {}, falling back to hello_agents", e)

    kw: Dict[str, Any] = {"temperature": cfg.llm_temperature, "timeout": max(1, math.ceil(cfg.llm_timeout))}
    if cfg.llm_model_id or cfg.local_llm:
        kw["model"] = cfg.llm_model_id or cfg.local_llm
    if cfg.llm_provider:
        kw["provider"] = cfg.llm_provider
    if cfg.llm_base_url:
        kw["base_url"] = cfg.llm_base_url
    elif provider == "ollama":
        kw["base_url"] = cfg.sanitized_ollama_url()
    if cfg.llm_api_key:
        kw["api_key"] = cfg.llm_api_key
    return HelloAgentsLLM(**kw), "openai"


def call_llm(cfg: Configuration, prompt: str) -> str:
    if not cfg.llm_configured:
        raise JudgmentFailure("no LLM provider configured")

    llm_client, llm_type = _init_llm(cfg)
    if llm_type == "gemini":
        response = llm_client.models.generate_content(
            model=cfg.llm_model_id or DEFAULT_GEMINI_MODEL,
            contents=f"{SYSTEM_PROMPT}\n\n{prompt}",
        )
        return response.text or ""

    agent = ToolAwareSimpleAgent(
        name="BattleJudge",
        llm=llm_client,
        system_prompt=SYSTEM_PROMPT,
        enable_tool_calling=False,
    )
    try:
        return agent.run(prompt)
    finally:
        agent.clear_history()


def _side_scores(scores: Dict[str, Any], side: str) -> AxisScores:
    raw = None
    for alias in SIDE_ALIASES[side]:
        if isinstance(scores.get(alias), dict):
            raw = scores[alias]
            break
    if raw is None:
        raise JudgmentFailure(f"missing scores.{side}")

    values: Dict[str, int] = {}
    for axis in SCORE_AXES:
        value = raw.get(axis)
        if isinstance(value, str):
            try:
                value = float(value.strip())
            except ValueError:
                raise JudgmentFailure(f"non-numeric scores.{side}.{axis}: {value!r}")
        if not isinstance(value, (int, float)) or isinstance(value, bool) or math.isnan(value):
            raise JudgmentFailure(f"missing scores.{side}.{axis}")
        values[axis] = clamp_int(value)
    return AxisScores(**values)


def _norm_name(name: str) -> str:
    return " ".join(name.split()).casefold()


def parse_verdict(raw: str, shop_a: Shop, shop_b: Shop) -> LlmVerdict:
    """Parse and validate the judge's reply; raises JudgmentFailure."""
    text = strip_thinking_tokens(raw or "")
    json_text = extract_json_text(text)
    if json_text is None:
        raise JudgmentFailure("no JSON object in judge response")
    try:
        data = json.loads(json_text)
    except json.JSONDecodeError as exc:
        raise JudgmentFailure(f"invalid JSON from judge: {exc}") from exc
    if not isinstance(data, dict):
        raise JudgmentFailure("judge response is not a JSON object")

    winner = data.get("winner")
    scores = data.get("scores")
    reasoning = data.get("reasoning")
    if not isinstance(winner, str) or not winner.strip():
        raise JudgmentFailure("missing winner")
    if not isinstance(scores, dict):
        raise JudgmentFailure("missing scores")
    if not isinstance(reasoning, str) or not reasoning.strip():
        raise JudgmentFailure("missing reasoning")

    scores_a = _side_scores(scores, "shopA")
    scores_b = _side_scores(scores, "shopB")

    # identical names resolve to A
    picked = _norm_name(winner)
    if picked == _norm_name(shop_a.name):
        winner_is_a = True
    elif picked == _norm_name(shop_b.name):
        winner_is_a = False
    else:
        raise JudgmentFailure(f"winner {winner!r} matches neither contender")

    return LlmVerdict(
        winner_is_a=winner_is_a,
        scores_a=scores_a,
        scores_b=scores_b,
        reasoning=reasoning.strip(),
    )


def composite_score(shop: Shop) -> float:
    return shop.rating * math.log10(max(shop.review_count, 0) + 1)


def fallback_verdict(shop_a: Shop, shop_b: Shop) -> FallbackVerdict:
    score_a = composite_score(shop_a)
    score_b = composite_score(shop_b)
    winner_is_a = score_a >= score_b
    winner = shop_a if winner_is_a else shop_b
    if score_a == score_b:
        outcome = f"{winner.name} takes the tie on rating and review volume as the first contender."
    else:
        outcome = f"{winner.name} wins with the higher combined rating and review volume."
    reasoning = (
        f"Based on ratings and review counts: {shop_a.name} ({shop_a.rating}/5, {shop_a.review_count} reviews) "
        f"vs {shop_b.name} ({shop_b.rating}/5, {shop_b.review_count} reviews). {outcome} "
        "Note: Detailed AI analysis unavailable - using fallback comparison."
    )
    return FallbackVerdict(
        winner_is_a=winner_is_a,
        scores_a=AxisScores.uniform(clamp_int(shop_a.rating * 2)),
        scores_b=AxisScores.uniform(clamp_int(shop_b.rating * 2)),
        reasoning=reasoning,
    )


def to_result(verdict: Verdict, shop_a: Shop, shop_b: Shop) -> BattleResult:
    return BattleResult(
        shop_a=shop_a,
        shop_b=shop_b,
        winner=shop_a if verdict.winner_is_a else shop_b,
        reasoning=verdict.reasoning,
        scores_a=verdict.scores_a,
        scores_b=verdict.scores_b,
        timestamp=utc_now_iso(),
        fallback=isinstance(verdict, FallbackVerdict),
    )


def judge_battle(
    cfg: Configuration,
    shop_a: Shop,
    shop_b: Shop,
    *,
    llm: Optional[LlmCall] = None,
) -> BattleResult:
    """Decide a battle between two shops. Never raises.

    ``llm`` replaces the configured provider; it takes the prompt and
    returns the raw reply text.
    """
    prompt = build_prompt(shop_a, shop_b)
    verdict: Verdict
    try:
        raw = llm(prompt) if llm is not None else call_llm(cfg, prompt)
        verdict = parse_verdict(raw, shop_a, shop_b)
    except Exception as exc:
        logger.warning("judgment failed for {} vs {}, using fallback: {}", shop_a.name, shop_b.name, exc)
        verdict = fallback_verdict(shop_a, shop_b)
    return to_result(verdict, shop_a, shop_b)


async def judge_battle_async(
    cfg: Configuration,
    shop_a: Shop,
    shop_b: Shop,
    *,
    llm: Optional[LlmCall] = None,
) -> BattleResult:
    """Run judge_battle off the event loop under the LLM deadline."""
    try:
        return await asyncio.wait_for(
            asyncio.to_thread(judge_battle, cfg, shop_a, shop_b, llm=llm),
            timeout=cfg.llm_timeout,
        )
    except asyncio.TimeoutError:
        logger.warning("judge timed out after {}s for {} vs {}", cfg.llm_timeout, shop_a.name, shop_b.name)
        return to_result(fallback_verdict(shop_a, shop_b), shop_a, shop_b)
