"""Offline evaluation harness for the coffee shop tournament API.

Plays one full tournament per location through the HTTP endpoints and
records latency, judge fallback rate and failures.

Usage:
  python eval/run_eval.py --base http://localhost:8010 --locations eval/locations.txt --out eval/report_v1
"""

from __future__ import annotations

import argparse
import csv
import json
import math
import statistics
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Optional

import requests


DEFAULT_LOCATIONS = ["San Francisco, CA", "Seattle, WA", "Portland, OR", "Brooklyn, NY"]


def load_locations(path: Optional[Path]) -> list[str]:
  if path is None:
    return list(DEFAULT_LOCATIONS)
  with path.open('r', encoding='utf-8') as fh:
    return [line.strip() for line in fh if line.strip() and not line.startswith('#')]


@dataclass
class EvalResult:
  location: str
  champion: str = ''
  battles: int = 0
  fallbacks: int = 0
  discover_ms: float = float('nan')
  battle_ms: list[float] = field(default_factory=list)
  error: str | None = None

  @property
  def fallback_rate(self) -> float:
    return self.fallbacks / self.battles if self.battles else 0.0

  @property
  def median_battle_ms(self) -> float:
    return statistics.median(self.battle_ms) if self.battle_ms else float('nan')


def _post(base_url: str, path: str, body: dict[str, Any], timeout: float) -> dict[str, Any]:
  response = requests.post(f'{base_url}{path}', json=body, timeout=timeout)
  try:
    data = response.json()
  except ValueError:
    raise RuntimeError(f'{path}: invalid json (HTTP {response.status_code})')
  if not response.ok or not data.get('success'):
    raise RuntimeError(f"{path}: HTTP {response.status_code}: {data.get('error', response.text[:200])}")
  return data


def _brief(shop: dict[str, Any]) -> dict[str, Any]:
  return {k: shop[k] for k in ('name', 'address', 'rating', 'userRatingsTotal')}


def evaluate_location(base_url: str, location: str, timeout: float) -> EvalResult:
  result = EvalResult(location=location)
  started = time.perf_counter()
  loc = _post(base_url, '/location', {'location': location}, timeout)
  found = _post(base_url, '/coffee-shops', {'lat': loc['lat'], 'lng': loc['lng']}, timeout)
  result.discover_ms = (time.perf_counter() - started) * 1000

  # single elimination played client-side: winners of each round pair up in order
  alive: list[dict[str, Any]] = list(found['coffeeShops'])
  while len(alive) > 1:
    winners: list[dict[str, Any]] = []
    for a, b in zip(alive[0::2], alive[1::2]):
      t0 = time.perf_counter()
      verdict = _post(base_url, '/battle', {'shop1': _brief(a), 'shop2': _brief(b)}, timeout)
      result.battle_ms.append((time.perf_counter() - t0) * 1000)
      result.battles += 1
      result.fallbacks += 1 if verdict.get('fallback') else 0
      winners.append(a if verdict['winner'] == a['name'] else b)
    alive = winners
  result.champion = alive[0]['name']
  return result


def main() -> None:
  parser = argparse.ArgumentParser(description='Offline evaluation for the coffee shop tournament')
  parser.add_argument('--base', default='http://localhost:8010', help='FastAPI base URL')
  parser.add_argument('--locations', help='Text file with one location per line')
  parser.add_argument('--concurrency', type=int, default=2, help='Number of worker threads')
  parser.add_argument('--out', default='eval/report_v1', help='Output directory for reports')
  parser.add_argument('--timeout', type=float, default=40.0, help='Request timeout in seconds')
  args = parser.parse_args()

  base_url = args.base.rstrip('/')
  out_dir = Path(args.out)
  out_dir.mkdir(parents=True, exist_ok=True)

  locations_path = Path(args.locations) if args.locations else None
  if locations_path is not None and not locations_path.exists():
    raise FileNotFoundError(f'locations file not found: {locations_path}')
  locations = load_locations(locations_path)

  results: list[EvalResult] = []
  errors: list[dict[str, Any]] = []

  def task(location: str) -> EvalResult:
    try:
      return evaluate_location(base_url, location, args.timeout)
    except (requests.RequestException, RuntimeError, KeyError) as exc:
      return EvalResult(location=location, error=str(exc))

  workers = max(1, args.concurrency)
  with ThreadPoolExecutor(max_workers=workers) as executor:
    future_map = {executor.submit(task, location): location for location in locations}
    for future in as_completed(future_map):
      result = future.result()
      results.append(result)
      if result.error:
        errors.append({'location': result.location, 'error': result.error})

  results.sort(key=lambda item: item.location)

  metrics_path = out_dir / 'metrics.csv'
  with metrics_path.open('w', newline='', encoding='utf-8') as fh:
    writer = csv.writer(fh)
    writer.writerow(['location', 'champion', 'battles', 'fallbacks', 'fallback_rate', 'discover_ms', 'median_battle_ms', 'error'])
    for item in results:
      writer.writerow([
        item.location,
        item.champion,
        item.battles,
        item.fallbacks,
        f'{item.fallback_rate:.3f}',
        f'{item.discover_ms:.1f}' if math.isfinite(item.discover_ms) else 'nan',
        f'{item.median_battle_ms:.1f}' if math.isfinite(item.median_battle_ms) else 'nan',
        item.error or '',
      ])

  ok = [item for item in results if not item.error]
  battle_latencies = [ms for item in ok for ms in item.battle_ms]

  def avg(values: Iterable[float]) -> float:
    values = list(values)
    return sum(values) / len(values) if values else 0.0

  summary_path = out_dir / 'report.md'
  with summary_path.open('w', encoding='utf-8') as fh:
    fh.write('# Evaluation Summary\n\n')
    fh.write(f'- Locations evaluated: {len(results)}\n')
    fh.write(f'- Errors: {len(errors)}\n')
    fh.write(f'- Complete tournaments: {sum(1 for item in ok if item.battles == 7)}\n')
    fh.write(f'- Judge fallback rate: {avg(item.fallback_rate for item in ok):.3f}\n')
    if battle_latencies:
      fh.write(f'- Battle latency mean / median (ms): {avg(battle_latencies):.1f} / {statistics.median(battle_latencies):.1f}\n')
    discover = [item.discover_ms for item in ok if math.isfinite(item.discover_ms)]
    if discover:
      fh.write(f'- Locate + discover median (ms): {statistics.median(discover):.1f}\n')
    fh.write('\n')

    if errors:
      fh.write('## Errors\n')
      for item in errors:
        fh.write(f"- {item['location']}: {item['error']}\n")

  if errors:
    errors_path = out_dir / 'errors.jsonl'
    with errors_path.open('w', encoding='utf-8') as fh:
      for item in errors:
        fh.write(json.dumps(item, ensure_ascii=False) + '\n')

  print(f'Evaluation finished. Metrics written to {metrics_path}')


if __name__ == '__main__':
  main()
