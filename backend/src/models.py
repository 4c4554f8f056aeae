"""Data models for the coffee shop tournament."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class Round(str, Enum):
    QUARTERFINAL = "quarterfinal"
    SEMIFINAL = "semifinal"
    FINAL = "final"
    CHAMPION = "champion"

    @property
    def next(self) -> Optional["Round"]:
        order = list(Round)
        idx = order.index(self)
        return order[idx + 1] if idx + 1 < len(order) else None


# position ranges of the flat 15-slot bracket
ROUND_POSITIONS: Dict[Round, range] = {
    Round.QUARTERFINAL: range(0, 8),
    Round.SEMIFINAL: range(8, 12),
    Round.FINAL: range(12, 14),
    Round.CHAMPION: range(14, 15),
}

BRACKET_SIZE = 15
SEED_COUNT = 8
SCORE_AXES = ("quality", "ambiance", "service", "uniqueness")


@dataclass
class LocationResult:
    lat: float
    lng: float
    formatted_address: str


@dataclass(frozen=True)
class Shop:
    shop_id: str
    name: str
    address: str
    rating: float
    review_count: int
    lat: float = 0.0
    lng: float = 0.0
    photo_url: Optional[str] = None
    price_level: Optional[int] = None
    open_now: Optional[bool] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.shop_id,
            "placeId": self.shop_id,
            "name": self.name,
            "address": self.address,
            "rating": self.rating,
            "userRatingsTotal": self.review_count,
            "lat": self.lat,
            "lng": self.lng,
            "photoUrl": self.photo_url,
            "priceLevel": self.price_level,
            "openNow": self.open_now,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Shop":
        shop_id = data.get("id") or data.get("placeId") or _brief_id(str(data.get("name", "")))
        return cls(
            shop_id=str(shop_id),
            name=str(data.get("name", "")),
            address=str(data.get("address") or "Address unknown"),
            rating=float(data.get("rating") or 0.0),
            review_count=int(data.get("userRatingsTotal") or 0),
            lat=float(data.get("lat") or 0.0),
            lng=float(data.get("lng") or 0.0),
            photo_url=data.get("photoUrl"),
            price_level=data.get("priceLevel"),
            open_now=data.get("openNow"),
        )

    @classmethod
    def from_brief(cls, name: str, address: str, rating: float, review_count: int) -> "Shop":
        return cls(
            shop_id=_brief_id(name),
            name=name,
            address=address,
            rating=float(rating),
            review_count=int(review_count),
        )


def _brief_id(name: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
    return f"brief:{slug or 'shop'}"


@dataclass(frozen=True)
class AxisScores:
    quality: int
    ambiance: int
    service: int
    uniqueness: int

    def to_dict(self) -> Dict[str, int]:
        return {axis: getattr(self, axis) for axis in SCORE_AXES}

    @classmethod
    def uniform(cls, value: int) -> "AxisScores":
        return cls(quality=value, ambiance=value, service=value, uniqueness=value)


@dataclass(frozen=True)
class BattleResult:
    shop_a: Shop
    shop_b: Shop
    winner: Shop
    reasoning: str
    scores_a: AxisScores
    scores_b: AxisScores
    timestamp: str
    fallback: bool = False

    @property
    def loser(self) -> Shop:
        return self.shop_b if self.winner.shop_id == self.shop_a.shop_id else self.shop_a

    def to_dict(self) -> Dict[str, Any]:
        return {
            "shop1": self.shop_a.to_dict(),
            "shop2": self.shop_b.to_dict(),
            "winner": self.winner.to_dict(),
            "reasoning": self.reasoning,
            "scores": {"shop1": self.scores_a.to_dict(), "shop2": self.scores_b.to_dict()},
            "timestamp": self.timestamp,
            "fallback": self.fallback,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BattleResult":
        scores = data.get("scores") or {}
        return cls(
            shop_a=Shop.from_dict(data["shop1"]),
            shop_b=Shop.from_dict(data["shop2"]),
            winner=Shop.from_dict(data["winner"]),
            reasoning=str(data.get("reasoning", "")),
            scores_a=AxisScores(**scores["shop1"]),
            scores_b=AxisScores(**scores["shop2"]),
            timestamp=str(data.get("timestamp", "")),
            fallback=bool(data.get("fallback", False)),
        )


@dataclass
class BracketSlot:
    position: int
    round: Round
    shop: Optional[Shop] = None


def empty_bracket() -> List[BracketSlot]:
    return [
        BracketSlot(position=pos, round=rnd)
        for rnd, positions in ROUND_POSITIONS.items()
        for pos in positions
    ]


@dataclass
class Tournament:
    location: str = ""
    coordinates: Optional[tuple[float, float]] = None  # lat, lng
    seeds: List[Shop] = field(default_factory=list)
    bracket: List[BracketSlot] = field(default_factory=empty_bracket)
    selection: List[Optional[Shop]] = field(default_factory=lambda: [None, None])
    battles: List[BattleResult] = field(default_factory=list)
    champion: Optional[Shop] = None
    current_round: Round = Round.QUARTERFINAL

    def to_dict(self) -> Dict[str, Any]:
        return {
            "location": self.location,
            "coordinates": (
                {"lat": self.coordinates[0], "lng": self.coordinates[1]} if self.coordinates else None
            ),
            "coffeeShops": [s.to_dict() for s in self.seeds],
            "bracket": [
                {
                    "position": slot.position,
                    "round": slot.round.value,
                    "shop": slot.shop.to_dict() if slot.shop else None,
                }
                for slot in self.bracket
            ],
            "selectedShops": [s.to_dict() if s else None for s in self.selection],
            "battles": [b.to_dict() for b in self.battles],
            "champion": self.champion.to_dict() if self.champion else None,
            "currentRound": self.current_round.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Tournament":
        coords = data.get("coordinates")
        bracket = empty_bracket()
        for raw in data.get("bracket") or []:
            pos = int(raw["position"])
            if 0 <= pos < BRACKET_SIZE and raw.get("shop"):
                bracket[pos].shop = Shop.from_dict(raw["shop"])
        selection = [Shop.from_dict(s) if s else None for s in (data.get("selectedShops") or [None, None])]
        selection = (selection + [None, None])[:2]
        champion = data.get("champion")
        return cls(
            location=str(data.get("location") or ""),
            coordinates=(float(coords["lat"]), float(coords["lng"])) if coords else None,
            seeds=[Shop.from_dict(s) for s in data.get("coffeeShops") or []],
            bracket=bracket,
            selection=selection,
            battles=[BattleResult.from_dict(b) for b in data.get("battles") or []],
            champion=Shop.from_dict(champion) if champion else None,
            current_round=Round(data.get("currentRound") or Round.QUARTERFINAL.value),
        )
