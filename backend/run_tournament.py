"""Play a whole tournament for one location against the live providers.

Usage:
  python backend/run_tournament.py "San Francisco, CA" [--radius 3000]
"""

import argparse
import asyncio
import sys
from pathlib import Path

from dotenv import load_dotenv

load_dotenv(Path(__file__).resolve().parent / ".env")
sys.path.insert(0, str(Path(__file__).resolve().parent / "src"))

from config import Configuration  # noqa: E402
from models import Round, Tournament  # noqa: E402
from services.bracket import commit_battle, contenders, initialize_bracket  # noqa: E402
from services.judge import judge_battle_async  # noqa: E402
from services.orchestrator import resolve, seed_shops  # noqa: E402


async def main(location: str, radius: int | None) -> None:
    cfg = Configuration.from_env()
    print(f"=== Config ===\n{cfg.log_summary()}\n")

    loc = await resolve(cfg, location)
    print(f"=== Location ===\n{loc.formatted_address} ({loc.lat:.5f}, {loc.lng:.5f})\n")

    shops = await seed_shops(cfg, loc.lat, loc.lng, radius)
    print("=== Seeds ===")
    for i, s in enumerate(shops, 1):
        print(f"{i}. {s.name} - {s.rating}/5 ({s.review_count} reviews) {s.address}")
    print()

    t = initialize_bracket(Tournament(), shops, location=loc.formatted_address, coordinates=(loc.lat, loc.lng))
    while t.current_round is not Round.CHAMPION:
        stage = t.current_round.value
        a, b = contenders(t)[:2]
        result = await judge_battle_async(cfg, a, b)
        commit_battle(t, result, strict=True)
        tag = " [fallback]" if result.fallback else ""
        print(f"[{stage}] {a.name} vs {b.name} -> {result.winner.name}{tag}")
        print(f"   A {result.scores_a.to_dict()}  B {result.scores_b.to_dict()}")

    print(f"\n=== Champion ===\n{t.champion.name}")
    fallbacks = sum(1 for b in t.battles if b.fallback)
    print(f"Battles: {len(t.battles)}, fallback verdicts: {fallbacks}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("location")
    parser.add_argument("--radius", type=int, default=None)
    args = parser.parse_args()
    asyncio.run(main(args.location, args.radius))
