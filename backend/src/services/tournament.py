from __future__ import annotations

from typing import Optional

from loguru import logger

from config import Configuration
from errors import InvalidArgument, InvalidPairing
from models import BattleResult, Tournament
from services.bracket import (
    check_pairing,
    clear_selection,
    commit_battle,
    contenders,
    initialize_bracket,
    reset,
    select_shop,
)
from services.judge import LlmCall, judge_battle_async
from services.orchestrator import resolve, seed_shops
from services.places import PlacesClient
from services.session import TournamentSessionManager


async def start_tournament(
    cfg: Configuration,
    sessions: TournamentSessionManager,
    location: Optional[str],
    *,
    session_id: Optional[str] = None,
    radius: Optional[int] = None,
    client: Optional[PlacesClient] = None,
) -> tuple[str, Tournament]:
    """Resolve ``location``, seed eight shops and store a fresh bracket."""
    loc = await resolve(cfg, location or "", client=client)
    shops = await seed_shops(cfg, loc.lat, loc.lng, radius, client=client)
    tournament = initialize_bracket(
        Tournament(),
        shops,
        location=loc.formatted_address,
        coordinates=(loc.lat, loc.lng),
    )
    if session_id and session_id in sessions:
        # wait out any battle still committing to the old bracket
        async with sessions.lock(session_id):
            sessions.put(session_id, tournament)
        return session_id, tournament
    sid = session_id or sessions.create()
    sessions.put(sid, tournament)
    return sid, tournament


def select_contender(sessions: TournamentSessionManager, session_id: str, shop_id: Optional[str]) -> Tournament:
    if not shop_id:
        raise InvalidArgument("shop_id is required")
    tournament = sessions.get(session_id)
    shop = next((s for s in contenders(tournament) if s.shop_id == shop_id), None)
    if shop is None:
        raise InvalidArgument(f"{shop_id} is not a contender in the {tournament.current_round.value} round")
    return select_shop(tournament, shop)


async def play_selected_battle(
    cfg: Configuration,
    sessions: TournamentSessionManager,
    session_id: str,
    *,
    llm: Optional[LlmCall] = None,
) -> tuple[BattleResult, Tournament]:
    """Judge the two selected shops and commit the verdict."""
    async with sessions.lock(session_id):
        tournament = sessions.get(session_id)
        shop_a, shop_b = tournament.selection
        if shop_a is None or shop_b is None:
            raise InvalidArgument("Select two shops before starting a battle")
        # fail before spending an LLM call on an illegal pairing
        try:
            check_pairing(tournament, shop_a, shop_b)
        except InvalidPairing:
            clear_selection(tournament)
            raise
        result = await judge_battle_async(cfg, shop_a, shop_b, llm=llm)
        commit_battle(tournament, result, strict=True)
        clear_selection(tournament)
        logger.info(
            "session {} battle {} vs {} -> {} round={}",
            session_id,
            shop_a.name,
            shop_b.name,
            result.winner.name,
            tournament.current_round.value,
        )
        return result, tournament


def reset_tournament(sessions: TournamentSessionManager, session_id: str) -> Tournament:
    return reset(sessions.get(session_id))
