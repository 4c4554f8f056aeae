"""Bracket state machine for an eight-shop single-elimination tournament.

The tournament is a plain value owned by the caller. Every operation here
takes it, mutates it in place and returns it; nothing is kept between
calls.

Bracket layout (flat, 15 slots)::

    0-7   quarterfinal seeds
    8-11  semifinal
    12-13 final
    14    champion

Rounds advance Q -> S -> F -> C. A winner is written into the first empty
slot of the next round and ``current_round`` only moves once that round
is completely filled.
"""

from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

from loguru import logger

from errors import BracketOverflow, InvalidPairing, InvalidSeeding
from models import (
    ROUND_POSITIONS,
    SEED_COUNT,
    BattleResult,
    BracketSlot,
    Round,
    Shop,
    Tournament,
    empty_bracket,
)


def slots_for_round(tournament: Tournament, rnd: Round) -> List[BracketSlot]:
    positions = ROUND_POSITIONS[rnd]
    return [tournament.bracket[pos] for pos in positions]


def _round_full(tournament: Tournament, rnd: Round) -> bool:
    return all(slot.shop is not None for slot in slots_for_round(tournament, rnd))


def _occupies(tournament: Tournament, rnd: Round, shop: Shop) -> bool:
    return any(slot.shop is not None and slot.shop.shop_id == shop.shop_id for slot in slots_for_round(tournament, rnd))


def _eliminated(tournament: Tournament, shop: Shop) -> bool:
    return any(b.loser.shop_id == shop.shop_id for b in tournament.battles)


def reset(tournament: Tournament) -> Tournament:
    tournament.location = ""
    tournament.coordinates = None
    tournament.seeds = []
    tournament.bracket = empty_bracket()
    tournament.selection = [None, None]
    tournament.battles = []
    tournament.champion = None
    tournament.current_round = Round.QUARTERFINAL
    return tournament


def initialize_bracket(
    tournament: Tournament,
    shops: Sequence[Shop],
    *,
    location: str = "",
    coordinates: Optional[Tuple[float, float]] = None,
) -> Tournament:
    if len(shops) < SEED_COUNT:
        raise InvalidSeeding(f"a bracket needs {SEED_COUNT} shops, got {len(shops)}")
    seeds = list(shops[:SEED_COUNT])

    reset(tournament)
    tournament.location = location
    tournament.coordinates = coordinates
    tournament.seeds = seeds
    for slot, shop in zip(slots_for_round(tournament, Round.QUARTERFINAL), seeds):
        slot.shop = shop
    logger.info("bracket initialized location={!r} seeds={}", location, [s.name for s in seeds])
    return tournament


def select_shop(tournament: Tournament, shop: Shop) -> Tournament:
    """Toggle ``shop`` in the two-entry selection.

    A selected shop is deselected. Otherwise the first empty entry is
    filled; with both entries taken the A side (entry 0) is replaced.
    Round membership is not checked here.
    """
    first, second = tournament.selection
    if (first and first.shop_id == shop.shop_id) or (second and second.shop_id == shop.shop_id):
        tournament.selection = [
            None if first and first.shop_id == shop.shop_id else first,
            None if second and second.shop_id == shop.shop_id else second,
        ]
    elif first is None:
        tournament.selection = [shop, second]
    elif second is None:
        tournament.selection = [first, shop]
    else:
        tournament.selection = [shop, second]
    return tournament


def clear_selection(tournament: Tournament) -> Tournament:
    tournament.selection = [None, None]
    return tournament


def contenders(tournament: Tournament) -> List[Shop]:
    """Shops of the current round that have neither lost nor advanced."""
    rnd = tournament.current_round
    nxt = rnd.next
    alive: List[Shop] = []
    for slot in slots_for_round(tournament, rnd):
        if slot.shop is None or _eliminated(tournament, slot.shop):
            continue
        if nxt is not None and _occupies(tournament, nxt, slot.shop):
            continue
        alive.append(slot.shop)
    return alive


def check_pairing(tournament: Tournament, shop_a: Shop, shop_b: Shop) -> None:
    if tournament.current_round is Round.CHAMPION:
        raise InvalidPairing("the tournament is over")
    if shop_a.shop_id == shop_b.shop_id:
        raise InvalidPairing("a shop cannot battle itself")
    alive = {s.shop_id for s in contenders(tournament)}
    for shop in (shop_a, shop_b):
        if shop.shop_id not in alive:
            raise InvalidPairing(f"{shop.name} is not a contender in the {tournament.current_round.value} round")


def advance(tournament: Tournament, winner: Shop, from_round: Round) -> Tournament:
    nxt = from_round.next
    if nxt is None:
        raise BracketOverflow("no round after the champion slot")
    target = next((slot for slot in slots_for_round(tournament, nxt) if slot.shop is None), None)
    if target is None:
        raise BracketOverflow(f"{nxt.value} round is already full")

    target.shop = winner
    if _round_full(tournament, nxt):
        tournament.current_round = nxt
        if nxt is Round.CHAMPION:
            tournament.champion = winner
            logger.info("champion crowned: {}", winner.name)
    else:
        tournament.current_round = from_round
    return tournament


def commit_battle(tournament: Tournament, result: BattleResult, *, strict: bool = False) -> Tournament:
    """Record ``result`` and advance its winner out of the current round.

    With ``strict`` the pairing must be two live contenders of the current
    round, otherwise InvalidPairing is raised before anything changes.
    """
    if strict:
        check_pairing(tournament, result.shop_a, result.shop_b)
    nxt = tournament.current_round.next
    if nxt is None or _round_full(tournament, nxt):
        raise BracketOverflow(f"cannot advance out of the {tournament.current_round.value} round")
    tournament.battles.append(result)
    return advance(tournament, result.winner, tournament.current_round)
