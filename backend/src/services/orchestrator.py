"""Request/response operations composing the places client, ranker and judge.

Each operation returns an ``OperationResult`` carrying an HTTP-style status
and a JSON-ready body. Failures use the ``{"success": false, "error": ...}``
envelope.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests
from loguru import logger

from config import Configuration
from errors import InvalidArgument, TournamentError
from models import LocationResult, Shop
from services.judge import LlmCall, judge_battle_async
from services.places import PlacesClient
from services.ranker import rank_and_seed

_session: Optional[requests.Session] = None


@dataclass
class OperationResult:
    status: int
    body: Dict[str, Any]

    @property
    def ok(self) -> bool:
        return self.status < 400


def get_places_client(cfg: Configuration) -> PlacesClient:
    """Per-call client over a process-wide HTTP session."""
    global _session
    if _session is None:
        _session = requests.Session()
    return PlacesClient(cfg, session=_session)


def error_result(exc: Exception) -> OperationResult:
    if isinstance(exc, TournamentError):
        return OperationResult(exc.status_code, {"success": False, "error": str(exc)})
    logger.exception("unexpected failure: {}", exc)
    return OperationResult(500, {"success": False, "error": str(exc) or "Unknown error occurred"})


async def resolve(cfg: Configuration, query: str, *, client: Optional[PlacesClient] = None) -> LocationResult:
    if not query or not str(query).strip():
        raise InvalidArgument("Location is required")
    places = client or get_places_client(cfg)
    return await asyncio.to_thread(places.resolve_location, str(query).strip())


async def seed_shops(
    cfg: Configuration,
    lat: Optional[float],
    lng: Optional[float],
    radius: Optional[int] = None,
    *,
    client: Optional[PlacesClient] = None,
) -> list[Shop]:
    if lat is None or lng is None:
        raise InvalidArgument("Latitude and longitude are required")
    if radius is not None and radius <= 0:
        raise InvalidArgument("Radius must be a positive number of meters")
    places = client or get_places_client(cfg)
    raw = await asyncio.to_thread(places.find_nearby_cafes, lat, lng, radius)
    shops = rank_and_seed(raw, photo_url=places.photo_url)
    logger.info("seeded {} shops near {},{} from {} candidates", len(shops), lat, lng, len(raw))
    return shops


async def locate(cfg: Configuration, query: Optional[str], *, client: Optional[PlacesClient] = None) -> OperationResult:
    try:
        loc = await resolve(cfg, query or "", client=client)
    except Exception as exc:
        return error_result(exc)
    logger.info("location resolved {!r} -> {}", query, loc.formatted_address)
    return OperationResult(
        200,
        {
            "success": True,
            "lat": loc.lat,
            "lng": loc.lng,
            "formattedAddress": loc.formatted_address,
            "location": query,
        },
    )


async def discover(
    cfg: Configuration,
    lat: Optional[float],
    lng: Optional[float],
    radius: Optional[int] = None,
    *,
    client: Optional[PlacesClient] = None,
) -> OperationResult:
    try:
        shops = await seed_shops(cfg, lat, lng, radius, client=client)
    except Exception as exc:
        return error_result(exc)
    return OperationResult(
        200,
        {
            "success": True,
            "coffeeShops": [s.to_dict() for s in shops],
            "count": len(shops),
            "searchLocation": {"lat": lat, "lng": lng},
        },
    )


async def battle(
    cfg: Configuration,
    shop1: Optional[Shop],
    shop2: Optional[Shop],
    *,
    llm: Optional[LlmCall] = None,
) -> OperationResult:
    if shop1 is None or shop2 is None:
        return error_result(InvalidArgument("Both shops are required"))
    try:
        result = await judge_battle_async(cfg, shop1, shop2, llm=llm)
    except Exception as exc:
        return error_result(exc)
    logger.info(
        "battle {} vs {} -> {} (fallback={})", shop1.name, shop2.name, result.winner.name, result.fallback
    )
    return OperationResult(
        200,
        {
            "success": True,
            "winner": result.winner.name,
            "scores": {"shop1": result.scores_a.to_dict(), "shop2": result.scores_b.to_dict()},
            "reasoning": result.reasoning,
            "timestamp": result.timestamp,
            "fallback": result.fallback,
        },
    )
