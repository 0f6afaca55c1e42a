import json
from unittest import mock

import requests
from django.test import SimpleTestCase, override_settings

from scratch_backend.ledger_client import BROADCAST_MAX_LENGTH, LedgerClient, LedgerError


def fake_response(status_code=200, body=None, text=None):
    response = mock.Mock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 300
    response.reason = "Reason"
    if body is None and text is None:
        response.content = b""
        response.json.side_effect = ValueError("no body")
    elif body is not None:
        response.content = json.dumps(body).encode("utf-8")
        response.json.return_value = body
    else:
        response.content = text.encode("utf-8")
        response.text = text
        response.json.side_effect = ValueError("Expecting value")
    return response


CARD_BODY = {
    "data": {
        "id": "card-9",
        "name": "Spring",
        "prizes": [{"id": "p1", "text": "Mug", "quantity": 5, "probability": 1.0, "results": []}],
        "results": [],
    },
    "message": "ok",
}


@override_settings(LEDGER_API_URL="https://ledger.example.com/", LEDGER_TIMEOUT=7)
class LedgerClientTests(SimpleTestCase):
    def setUp(self):
        patcher = mock.patch("scratch_backend.ledger_client.requests.request")
        self.request = patcher.start()
        self.addCleanup(patcher.stop)
        self.client = LedgerClient.from_settings("token-123")

    def test_attaches_bearer_token_and_unwraps_data(self):
        self.request.return_value = fake_response(body=CARD_BODY)

        card = self.client.get_card("card-9")

        self.assertEqual(card.id, "card-9")
        self.assertEqual(card.prizes[0].used_count, 0)
        kwargs = self.request.call_args.kwargs
        self.assertEqual(kwargs["method"], "GET")
        self.assertEqual(kwargs["url"], "https://ledger.example.com/scratch_cards/card-9")
        self.assertEqual(kwargs["headers"]["Authorization"], "Bearer token-123")
        self.assertEqual(kwargs["timeout"], 7)

    def test_error_status_surfaces_backend_message_verbatim(self):
        self.request.return_value = fake_response(404, {"message": "Scratch card not found"})

        with self.assertRaises(LedgerError) as ctx:
            self.client.get_card("missing")

        self.assertEqual(ctx.exception.status_code, 404)
        self.assertEqual(ctx.exception.message, "Scratch card not found")
        self.assertEqual(str(ctx.exception), "API request failed: [404] Scratch card not found")

    def test_error_with_non_json_body_uses_text(self):
        self.request.return_value = fake_response(500, text="Internal Server Error")

        with self.assertRaises(LedgerError) as ctx:
            self.client.get_me()

        self.assertEqual(ctx.exception.status_code, 500)
        self.assertEqual(ctx.exception.message, "Internal Server Error")

    def test_transport_failure_maps_to_bad_gateway(self):
        self.request.side_effect = requests.ConnectionError("connection refused")

        with self.assertRaises(LedgerError) as ctx:
            self.client.get_me()

        self.assertEqual(ctx.exception.status_code, 502)

    def test_submit_result_posts_card_and_prize(self):
        self.request.return_value = fake_response(
            201,
            {"data": {"id": "r1", "user_id": "U1", "scratch_card_id": "card-9", "prize_id": "p1"}},
        )

        result = self.client.submit_result("card-9", "p1")

        self.assertEqual(result.prize_id, "p1")
        kwargs = self.request.call_args.kwargs
        self.assertEqual(kwargs["method"], "POST")
        self.assertTrue(kwargs["url"].endswith("/results/"))
        self.assertEqual(kwargs["json"], {"scratch_card_id": "card-9", "prize_id": "p1"})

    def test_list_users_sends_filters_and_pagination(self):
        self.request.return_value = fake_response(
            body={
                "data": {
                    "items": [{"id": "U1", "display_name": "Mina", "is_admin": False}],
                    "total": 1,
                    "page": 2,
                    "page_size": 10,
                    "total_pages": 1,
                }
            }
        )

        page = self.client.list_users(display_name="Mina", page=2, page_size=10)

        self.assertEqual(page.items[0].id, "U1")
        self.assertEqual(
            self.request.call_args.kwargs["params"],
            {"page": 2, "page_size": 10, "display_name": "Mina"},
        )

    def test_list_results_drops_empty_filters(self):
        self.request.return_value = fake_response(
            body={"data": {"items": [], "total": 0, "page": 1, "page_size": 20, "total_pages": 0}}
        )

        self.client.list_results(user_id="U1", prize_name="", scratch_card_id=None)

        self.assertEqual(self.request.call_args.kwargs["params"], {"user_id": "U1"})

    def test_delete_accepts_empty_body(self):
        self.request.return_value = fake_response(204)

        self.client.delete_result("r1")

        self.assertEqual(self.request.call_args.kwargs["method"], "DELETE")

    def test_broadcast_strips_and_sends_message(self):
        self.request.return_value = fake_response(body={"data": None, "message": "sent"})

        self.client.send_broadcast("  Hello everyone  ")

        self.assertEqual(self.request.call_args.kwargs["json"], {"message": "Hello everyone"})

    def test_broadcast_rejects_empty_and_oversized_messages(self):
        with self.assertRaises(ValueError):
            self.client.send_broadcast("   ")
        with self.assertRaises(ValueError):
            self.client.send_broadcast("x" * (BROADCAST_MAX_LENGTH + 1))

        self.request.assert_not_called()

    def test_broadcast_accepts_message_at_limit(self):
        self.request.return_value = fake_response(body={"data": None})

        self.client.send_broadcast("x" * BROADCAST_MAX_LENGTH)

        self.request.assert_called_once()


class LedgerClientConfigTests(SimpleTestCase):
    @override_settings(LEDGER_API_URL="")
    def test_missing_base_url_is_reported(self):
        with self.assertRaises(LedgerError) as ctx:
            LedgerClient.from_settings("token")

        self.assertEqual(ctx.exception.status_code, 503)
