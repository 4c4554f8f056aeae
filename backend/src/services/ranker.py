from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

from errors import InsufficientShops
from models import SEED_COUNT, Shop

MIN_REVIEWS_EXCLUSIVE = 10


def _rating(place: Dict[str, Any]) -> Optional[float]:
    value = place.get("rating")
    if isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0:
        return float(value)
    return None


def _review_count(place: Dict[str, Any]) -> int:
    value = place.get("user_ratings_total")
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return int(value)
    return 0


def is_eligible(place: Dict[str, Any]) -> bool:
    return _rating(place) is not None and _review_count(place) > MIN_REVIEWS_EXCLUSIVE


def to_shop(place: Dict[str, Any], photo_url: Optional[Callable[[str], str]] = None) -> Shop:
    loc = (place.get("geometry") or {}).get("location") or {}
    photo: Optional[str] = None
    photos = place.get("photos") or []
    if photo_url and photos and photos[0].get("photo_reference"):
        photo = photo_url(photos[0]["photo_reference"])
    opening = place.get("opening_hours") or {}
    price = place.get("price_level")
    return Shop(
        shop_id=str(place.get("place_id") or place.get("name")),
        name=str(place.get("name") or "Coffee Shop"),
        address=str(place.get("vicinity") or place.get("formatted_address") or "Address unknown"),
        rating=float(_rating(place) or 0.0),
        review_count=_review_count(place),
        lat=float(loc.get("lat") or 0.0),
        lng=float(loc.get("lng") or 0.0),
        photo_url=photo,
        price_level=int(price) if isinstance(price, (int, float)) else None,
        open_now=opening.get("open_now") if isinstance(opening.get("open_now"), bool) else None,
    )


def rank_and_seed(
    candidates: List[Dict[str, Any]],
    *,
    photo_url: Optional[Callable[[str], str]] = None,
) -> List[Shop]:
    """Filter raw nearby-search results and return the eight seeds.

    Places without a rating or with ten reviews or fewer are dropped. The
    rest are ordered by rating, then review count, both descending; the
    sort is stable so remaining ties keep provider order.
    """
    qualified = [place for place in candidates if is_eligible(place)]
    qualified.sort(key=lambda p: (_rating(p), _review_count(p)), reverse=True)
    top = qualified[:SEED_COUNT]
    if len(top) < SEED_COUNT:
        raise InsufficientShops(len(top))
    return [to_shop(place, photo_url) for place in top]
