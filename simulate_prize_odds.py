#!/usr/bin/env python3
"""
Preview the odds of a scratch card by drawing from it many times offline.

Usage:
    python simulate_prize_odds.py --card-json card.json --rounds 100000 --seed 42

The card file holds a ledger card payload (the `data` object returned by
`GET /scratch_cards/<id>`, or the full `{"data": ...}` envelope). Stock is
never consumed between rounds: every draw sees the same snapshot, which is
exactly what a single play sees.
"""

import argparse
import json
import os
import random
import sys
from collections import Counter
from pathlib import Path

import django

from scratchcard.cards import Card, CardPayloadError
from scratchcard.selection import (
    compute_stock_view,
    eligible_prizes,
    has_probability_warning,
    probability_total,
    select_prize,
)


def _load_card(path: Path) -> Card:
    raw = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(raw, dict) and "data" in raw:
        raw = raw["data"]
    return Card.from_payload(raw)


def main() -> int:
    os.environ.setdefault("DJANGO_SETTINGS_MODULE", "scratch_backend.settings")
    django.setup()

    parser = argparse.ArgumentParser(description="Simulate prize draws for a scratch card.")
    parser.add_argument("--card-json", required=True, help="Path to a card payload JSON file.")
    parser.add_argument("--rounds", type=int, default=100_000, help="Number of draws (default: 100000)")
    parser.add_argument("--seed", type=int, default=None, help="Seed for a reproducible run.")
    args = parser.parse_args()

    if args.rounds < 1:
        print("--rounds must be a positive integer.", file=sys.stderr)
        return 2

    card_path = Path(args.card_json).expanduser()
    if not card_path.exists():
        print(f"Card file not found: {card_path}", file=sys.stderr)
        return 2

    try:
        card = _load_card(card_path)
    except (json.JSONDecodeError, CardPayloadError) as exc:
        print(f"Failed to read card payload: {exc}", file=sys.stderr)
        return 2

    print(f"[info] card {card.id} ({card.name}), {len(card.prizes)} prizes")
    if has_probability_warning(card):
        print(f"[warn] probabilities sum to {probability_total(card):.6f}, not 1.0")
    for entry in compute_stock_view(card):
        remaining = "unlimited" if entry.remaining is None else entry.remaining
        print(f"[info]   {entry.prize.id} {entry.prize.text!r}: used={entry.used} remaining={remaining}")

    rng = random.Random(args.seed)
    counts: Counter = Counter()
    for _ in range(args.rounds):
        result = select_prize(card, rng)
        if not result.success:
            print(f"[error] {result.error.kind}: {result.error.message}", file=sys.stderr)
            return 1
        counts[result.prize.id] += 1

    candidates = eligible_prizes(card)
    total_weight = sum(prize.probability for prize in candidates)
    print(f"{'prize':<16}{'expected':>10}{'observed':>10}{'count':>10}")
    for prize in candidates:
        expected = prize.probability / total_weight
        observed = counts[prize.id] / args.rounds
        print(f"{prize.id:<16}{expected:>10.4f}{observed:>10.4f}{counts[prize.id]:>10}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
