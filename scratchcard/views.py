from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

import redis
from django.core.exceptions import ImproperlyConfigured
from django.http import JsonResponse
from django.utils import timezone
from django.utils.translation import gettext_lazy as _
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from scratch_backend.ledger_client import LedgerClient, LedgerError

from .cards import Card, CardPayloadError
from .locks import PlayLockError, play_lock
from .selection import (
    INVALID_PROBABILITY_CONFIGURATION,
    NO_PRIZES_CONFIGURED,
    OUT_OF_STOCK,
    compute_stock_view,
    has_probability_warning,
    probability_total,
    select_prize,
)

logger = logging.getLogger(__name__)

SELECTION_ERROR_STATUS = {
    NO_PRIZES_CONFIGURED: 409,
    OUT_OF_STOCK: 409,
    INVALID_PROBABILITY_CONFIGURATION: 422,
}


def _json_error(message: str, status: int = 400, kind: Optional[str] = None) -> JsonResponse:
    error: Dict[str, Any] = {"message": message}
    if kind:
        error["kind"] = kind
    return JsonResponse({"success": False, "error": error}, status=status)


def _ledger_error(exc: LedgerError) -> JsonResponse:
    return _json_error(exc.message, status=exc.status_code, kind="ledger_error")


def _forbidden() -> JsonResponse:
    return _json_error(_("Administrator access required."), status=403, kind="forbidden")


def _bearer_token(request) -> Optional[str]:
    header = request.headers.get("Authorization", "")
    scheme, _sep, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def _parse_body(request) -> Dict[str, Any]:
    if not request.body:
        return {}
    try:
        payload = json.loads(request.body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ValueError(f"Request body is not valid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise ValueError("Request body must be a JSON object.")
    return payload


def _card_summary(card: Card) -> Dict[str, Any]:
    return {
        "card": card.to_payload(),
        "stock": [entry.to_payload() for entry in compute_stock_view(card)],
        "probability_total": probability_total(card),
        "probability_warning": has_probability_warning(card),
        "is_active": card.is_active(timezone.now()),
    }


@require_http_methods(["GET"])
def card_detail(request, card_id: str):
    token = _bearer_token(request)
    if not token:
        return _json_error(_("Authentication required."), status=401)

    try:
        client = LedgerClient.from_settings(token)
        user = client.get_me()
        card = client.get_card(card_id)
    except LedgerError as exc:
        return _ledger_error(exc)
    except CardPayloadError as exc:
        logger.warning("Malformed card payload for %s: %s", card_id, exc)
        return _json_error(str(exc), status=502)

    payload = _card_summary(card)
    payload["has_played"] = card.has_played(user.id)
    return JsonResponse({"success": True, **payload}, json_dumps_params={"ensure_ascii": False})


@require_http_methods(["GET"])
def card_stock(request, card_id: str):
    token = _bearer_token(request)
    if not token:
        return _json_error(_("Authentication required."), status=401)

    try:
        client = LedgerClient.from_settings(token)
        if not client.get_me().is_admin:
            return _forbidden()
        card = client.get_card(card_id)
    except LedgerError as exc:
        return _ledger_error(exc)
    except CardPayloadError as exc:
        logger.warning("Malformed card payload for %s: %s", card_id, exc)
        return _json_error(str(exc), status=502)

    return JsonResponse({"success": True, **_card_summary(card)}, json_dumps_params={"ensure_ascii": False})


@csrf_exempt
@require_http_methods(["POST"])
def play_card(request, card_id: str):
    token = _bearer_token(request)
    if not token:
        return _json_error(_("Authentication required."), status=401)

    try:
        client = LedgerClient.from_settings(token)
        user = client.get_me()
    except LedgerError as exc:
        return _ledger_error(exc)
    except CardPayloadError as exc:
        return _json_error(str(exc), status=502)

    try:
        with play_lock(user.id, card_id):
            card = client.get_card(card_id)

            if not card.is_active(timezone.now()):
                return _json_error(_("This scratch card is not active."), status=403, kind="inactive")

            if card.has_played(user.id):
                return _json_error(
                    _("You have already played this scratch card."), status=409, kind="already_played"
                )

            selection = select_prize(card)
            if not selection.success:
                error = selection.error
                logger.info("Selection for card %s returned %s", card_id, error.kind)
                return _json_error(
                    error.message,
                    status=SELECTION_ERROR_STATUS.get(error.kind, 500),
                    kind=error.kind,
                )

            result = client.submit_result(card.id, selection.prize.id)
    except PlayLockError as exc:
        logger.warning("Play lock unavailable for %s on %s: %s", user.id, card_id, exc)
        return _json_error(
            _("A play for this card is already in progress. Please try again."),
            status=503,
            kind="busy",
        )
    except (ImproperlyConfigured, redis.RedisError) as exc:
        logger.error("Play lock backend unavailable: %s", exc)
        return _json_error(
            _("The service is temporarily unavailable. Please try again later."),
            status=503,
            kind="unavailable",
        )
    except LedgerError as exc:
        return _ledger_error(exc)
    except CardPayloadError as exc:
        logger.warning("Malformed ledger payload while playing %s: %s", card_id, exc)
        return _json_error(str(exc), status=502)

    logger.info("User %s won prize %s on card %s", user.id, selection.prize.id, card.id)
    return JsonResponse(
        {
            "success": True,
            "prize": selection.prize.to_payload(),
            "result": result.to_payload(),
        },
        json_dumps_params={"ensure_ascii": False},
    )


@csrf_exempt
@require_http_methods(["POST"])
def broadcast(request):
    token = _bearer_token(request)
    if not token:
        return _json_error(_("Authentication required."), status=401)

    try:
        payload = _parse_body(request)
    except ValueError as exc:
        return _json_error(str(exc))

    message = payload.get("message")
    if not isinstance(message, str):
        return _json_error(_("message must be a string."))

    try:
        client = LedgerClient.from_settings(token)
        if not client.get_me().is_admin:
            return _forbidden()
        client.send_broadcast(message)
    except CardPayloadError as exc:
        return _json_error(str(exc), status=502)
    except ValueError as exc:
        return _json_error(str(exc))
    except LedgerError as exc:
        return _ledger_error(exc)

    return JsonResponse({"success": True})
