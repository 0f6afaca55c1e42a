import io
import json
import sys
import tempfile
from contextlib import redirect_stderr, redirect_stdout
from pathlib import Path
from unittest import mock

from django.test import SimpleTestCase

import import_prize_csv
import simulate_prize_odds
from scratchcard.cards import UNLIMITED_QUANTITY


class ImportPrizeCsvTests(SimpleTestCase):
    def test_parse_row_handles_unlimited_quantity(self):
        row = import_prize_csv._parse_row({"text": " Sticker ", "quantity": "", "probability": "0.4"})

        self.assertEqual(row["text"], "Sticker")
        self.assertEqual(row["quantity"], UNLIMITED_QUANTITY)
        self.assertEqual(row["probability"], 0.4)
        self.assertIsNone(row["image"])

    def test_parse_row_rejects_out_of_range_probability(self):
        with self.assertRaises(ValueError):
            import_prize_csv._parse_row({"text": "Mug", "quantity": "3", "probability": "1.5"})

    def test_headers_must_include_required_columns(self):
        with self.assertRaises(ValueError):
            import_prize_csv._validate_headers(["text", "probability"])
        import_prize_csv._validate_headers(["text", "quantity", "probability", "image"])

    def test_creates_card_through_ledger(self):
        with tempfile.TemporaryDirectory() as tmp:
            csv_path = Path(tmp) / "prizes.csv"
            csv_path.write_text("text,quantity,probability\nMug,5,0.7\nSticker,-1,0.3\n", encoding="utf-8")
            argv = [
                "import_prize_csv.py",
                "--csv-path", str(csv_path),
                "--name", "Spring",
                "--ledger-url", "https://ledger.example.com",
                "--token", "admin-token",
            ]
            with mock.patch.object(sys, "argv", argv), mock.patch(
                "import_prize_csv.LedgerClient"
            ) as client_cls, redirect_stdout(io.StringIO()):
                client_cls.return_value.create_card.return_value.id = "card-7"
                client_cls.return_value.create_card.return_value.prizes = ()
                exit_code = import_prize_csv.main()

        self.assertEqual(exit_code, 0)
        client_cls.assert_called_once_with("https://ledger.example.com", token="admin-token")
        payload = client_cls.return_value.create_card.call_args.args[0]
        self.assertEqual(payload["name"], "Spring")
        self.assertEqual([prize["quantity"] for prize in payload["prizes"]], [5, UNLIMITED_QUANTITY])


class SimulatePrizeOddsTests(SimpleTestCase):
    def run_script(self, card_payload, *extra):
        with tempfile.TemporaryDirectory() as tmp:
            card_path = Path(tmp) / "card.json"
            card_path.write_text(json.dumps(card_payload), encoding="utf-8")
            argv = ["simulate_prize_odds.py", "--card-json", str(card_path), *extra]
            stdout, stderr = io.StringIO(), io.StringIO()
            with mock.patch.object(sys, "argv", argv), redirect_stdout(stdout), redirect_stderr(stderr):
                exit_code = simulate_prize_odds.main()
        return exit_code, stdout.getvalue(), stderr.getvalue()

    def test_reports_observed_frequencies(self):
        exit_code, out, _ = self.run_script(
            {
                "data": {
                    "id": "card-1",
                    "name": "Spring",
                    "prizes": [
                        {"id": "A", "text": "Mug", "quantity": None, "probability": 0.5},
                        {"id": "B", "text": "Pen", "quantity": 2, "probability": 0.5, "used_count": 2},
                    ],
                }
            },
            "--rounds", "500", "--seed", "7",
        )

        self.assertEqual(exit_code, 0)
        self.assertIn("A", out)
        self.assertIn("1.0000", out)

    def test_fails_when_card_is_out_of_stock(self):
        exit_code, _, err = self.run_script(
            {"id": "card-1", "prizes": [{"id": "A", "quantity": 1, "probability": 1, "used_count": 1}]},
            "--rounds", "10",
        )

        self.assertEqual(exit_code, 1)
        self.assertIn("out_of_stock", err)
