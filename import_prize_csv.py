#!/usr/bin/env python3
"""
Standalone importer for scratch card prize tables.

Reads a CSV with columns text,quantity,probability[,image]
(default: Resources/prizes.csv) and creates a new scratch card on the
ledger backend. A quantity of -1 or an empty cell means unlimited stock.
"""

import argparse
import csv
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from dotenv import dotenv_values

from scratch_backend.ledger_client import LedgerClient, LedgerError
from scratchcard.cards import UNLIMITED_QUANTITY, CardPayloadError
from scratchcard.selection import PROBABILITY_TOLERANCE

REQUIRED_HEADERS: Sequence[str] = ("text", "quantity", "probability")
OPTIONAL_HEADERS: Sequence[str] = ("image",)


def _read_env(base_dir: Path, key: str) -> Optional[str]:
    value = os.getenv(key)
    if value:
        return value
    env_path = base_dir / ".env"
    if not env_path.exists():
        return None
    return dotenv_values(env_path).get(key) or None


def _validate_headers(fieldnames: List[str]) -> None:
    normalized = [f.strip() for f in fieldnames]
    missing = [name for name in REQUIRED_HEADERS if name not in normalized]
    unknown = [name for name in normalized if name not in (*REQUIRED_HEADERS, *OPTIONAL_HEADERS)]
    if missing or unknown:
        raise ValueError(
            f"CSV header must contain {list(REQUIRED_HEADERS)} "
            f"(optionally {list(OPTIONAL_HEADERS)}), got {normalized}"
        )


def _parse_row(row: Dict[str, str]) -> Dict[str, Any]:
    text = (row.get("text") or "").strip()
    if not text:
        raise ValueError("text must not be empty")
    raw_quantity = (row.get("quantity") or "").strip()
    quantity = UNLIMITED_QUANTITY if raw_quantity == "" else int(raw_quantity)
    if quantity < 0 and quantity != UNLIMITED_QUANTITY:
        raise ValueError(f"quantity must be >= 0 or {UNLIMITED_QUANTITY}")
    probability = float(row["probability"])
    if not 0 <= probability <= 1:
        raise ValueError("probability must be between 0 and 1")
    return {
        "text": text,
        "quantity": quantity,
        "probability": probability,
        "image": (row.get("image") or "").strip() or None,
    }


def main() -> int:
    base_dir = Path(__file__).resolve().parent

    parser = argparse.ArgumentParser(
        description="Create a scratch card on the ledger from a CSV prize table."
    )
    parser.add_argument(
        "--csv-path",
        default="Resources/prizes.csv",
        help="Path to CSV file (default: Resources/prizes.csv)",
    )
    parser.add_argument("--name", required=True, help="Display name of the new scratch card")
    parser.add_argument("--start-time", help="ISO 8601 start of the activation window")
    parser.add_argument("--end-time", help="ISO 8601 end of the activation window")
    parser.add_argument("--ledger-url", help="Ledger base URL (default: LEDGER_API_URL)")
    parser.add_argument("--token", help="Admin bearer token (default: LEDGER_TOKEN)")
    parser.add_argument(
        "--encoding",
        default="utf-8-sig",
        help="CSV encoding (default: utf-8-sig)",
    )
    parser.add_argument(
        "--delimiter",
        default=",",
        help="CSV delimiter (default: ,)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Parse CSV only, do not contact the ledger.",
    )

    args = parser.parse_args()

    csv_path = Path(args.csv_path).expanduser()
    if not csv_path.exists():
        print(f"CSV file not found: {csv_path}", file=sys.stderr)
        return 2

    try:
        with csv_path.open("r", encoding=args.encoding, newline="") as handle:
            reader = csv.DictReader(handle, delimiter=args.delimiter)
            if not reader.fieldnames:
                print("CSV header row is missing.", file=sys.stderr)
                return 2
            _validate_headers(reader.fieldnames)

            prizes: List[Dict[str, Any]] = []
            for line_no, row in enumerate(reader, start=2):
                row = {(key or "").strip(): value for key, value in row.items()}
                try:
                    prizes.append(_parse_row(row))
                except (KeyError, TypeError, ValueError) as exc:
                    print(f"Skipping line {line_no}: {exc}", file=sys.stderr)
    except UnicodeDecodeError as exc:
        print(
            f"Failed to decode CSV. Consider using --encoding gbk. Details: {exc}",
            file=sys.stderr,
        )
        return 2
    except ValueError as exc:
        print(f"Failed to read CSV: {exc}", file=sys.stderr)
        return 2

    if not prizes:
        print("No valid prize rows found.", file=sys.stderr)
        return 2

    total = sum(prize["probability"] for prize in prizes)
    if abs(total - 1.0) > PROBABILITY_TOLERANCE:
        print(f"Warning: probabilities sum to {total:.6f}, not 1.0.", file=sys.stderr)

    if args.dry_run:
        print(f"Dry-run: parsed {len(prizes)} prizes.")
        return 0

    ledger_url = args.ledger_url or _read_env(base_dir, "LEDGER_API_URL")
    token = args.token or _read_env(base_dir, "LEDGER_TOKEN")
    if not ledger_url or not token:
        print("Ledger URL and admin token are required (flags or .env).", file=sys.stderr)
        return 2

    payload: Dict[str, Any] = {
        "name": args.name,
        "start_time": args.start_time,
        "end_time": args.end_time,
        "prizes": prizes,
    }
    try:
        card = LedgerClient(ledger_url, token=token).create_card(payload)
    except LedgerError as exc:
        print(f"Failed to create scratch card: {exc}", file=sys.stderr)
        return 3
    except CardPayloadError as exc:
        print(f"Ledger returned an unexpected card payload: {exc}", file=sys.stderr)
        return 3

    print(f"Created scratch card {card.id} with {len(card.prizes)} prizes from {csv_path}.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
