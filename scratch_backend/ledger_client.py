import logging
from typing import Any, Dict, Optional

import requests
from django.conf import settings
from django.utils.translation import gettext_lazy as _
from requests import RequestException

from scratchcard.cards import Card, Page, ScratchResult, User

logger = logging.getLogger(__name__)

BROADCAST_MAX_LENGTH = 1000


class LedgerError(Exception):
    """Raised when the ledger backend rejects a request or cannot be reached."""

    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        self.message = message
        super().__init__(f"API request failed: [{status_code}] {message}")


class LedgerClient:
    """
    Thin HTTP client for the scratch card ledger backend.

    Every response is wrapped as ``{"data": ..., "message": ...}``; the helpers
    below unwrap ``data`` and turn it into card records. Non-success statuses
    raise :class:`LedgerError` carrying the backend's status and message as-is.
    """

    def __init__(self, base_url: str, token: Optional[str] = None, timeout: float = 10):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout

    @classmethod
    def from_settings(cls, token: Optional[str] = None) -> "LedgerClient":
        base_url = getattr(settings, "LEDGER_API_URL", None)
        if not base_url:
            raise LedgerError(503, "Ledger backend is not configured.")
        return cls(base_url, token=token, timeout=getattr(settings, "LEDGER_TIMEOUT", 10))

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json_payload: Optional[Dict[str, Any]] = None,
    ) -> Any:
        url = f"{self.base_url}{path if path.startswith('/') else '/' + path}"
        try:
            response = requests.request(
                method=method,
                url=url,
                headers=self._headers(),
                params=params,
                json=json_payload,
                timeout=self.timeout,
            )
        except RequestException as exc:
            logger.exception("HTTP error when reaching ledger backend: %s", exc)
            raise LedgerError(502, f"Failed to reach ledger backend ({exc}).") from exc

        if response.status_code == 204 or not response.content:
            body: Dict[str, Any] = {}
        else:
            try:
                body = response.json()
            except ValueError as exc:
                logger.exception("Ledger returned a non-JSON body for %s %s", method, path)
                if response.ok:
                    raise LedgerError(502, f"Invalid response from ledger backend ({exc}).") from exc
                body = {"message": response.text}

        if not response.ok:
            message = body.get("message") if isinstance(body, dict) else None
            logger.warning(
                "Ledger rejected %s %s with status %s: %s",
                method,
                path,
                response.status_code,
                message,
            )
            raise LedgerError(response.status_code, message or response.reason or "")

        if isinstance(body, dict) and "data" in body:
            return body["data"]
        return body

    # Identity -----------------------------------------------------------

    def get_me(self) -> User:
        return User.from_payload(self._request("GET", "/me"))

    # Cards --------------------------------------------------------------

    def get_card(self, card_id: str) -> Card:
        return Card.from_payload(self._request("GET", f"/scratch_cards/{card_id}"))

    def list_cards(self) -> list[Card]:
        return [Card.from_payload(item) for item in self._request("GET", "/scratch_cards") or []]

    def create_card(self, payload: Dict[str, Any]) -> Card:
        return Card.from_payload(self._request("POST", "/scratch_cards", json_payload=payload))

    def update_card(self, card_id: str, payload: Dict[str, Any]) -> Card:
        return Card.from_payload(
            self._request("PUT", f"/scratch_cards/{card_id}", json_payload=payload)
        )

    def delete_card(self, card_id: str) -> None:
        self._request("DELETE", f"/scratch_cards/{card_id}")

    # Results ------------------------------------------------------------

    def submit_result(self, card_id: str, prize_id: Optional[str]) -> ScratchResult:
        data = self._request(
            "POST",
            "/results/",
            json_payload={"scratch_card_id": card_id, "prize_id": prize_id},
        )
        return ScratchResult.from_payload(data)

    def list_results(self, **filters: Any) -> Page[ScratchResult]:
        params = {key: value for key, value in filters.items() if value not in (None, "")}
        return Page.from_payload(
            self._request("GET", "/results", params=params), ScratchResult.from_payload
        )

    def delete_result(self, result_id: str) -> None:
        self._request("DELETE", f"/results/{result_id}")

    # Users --------------------------------------------------------------

    def list_users(
        self,
        user_id: Optional[str] = None,
        display_name: Optional[str] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Page[User]:
        params: Dict[str, Any] = {"page": page, "page_size": page_size}
        if user_id:
            params["user_id"] = user_id
        if display_name:
            params["display_name"] = display_name
        return Page.from_payload(self._request("GET", "/users", params=params), User.from_payload)

    def update_user(self, user_id: str, payload: Dict[str, Any]) -> User:
        return User.from_payload(self._request("PUT", f"/users/{user_id}", json_payload=payload))

    def delete_user(self, user_id: str) -> None:
        self._request("DELETE", f"/users/{user_id}")

    # Broadcast ----------------------------------------------------------

    def send_broadcast(self, message: str) -> None:
        text = (message or "").strip()
        if not text:
            raise ValueError(_("Broadcast message must not be empty."))
        if len(text) > BROADCAST_MAX_LENGTH:
            raise ValueError(
                _("Broadcast message must be at most %(limit)d characters.")
                % {"limit": BROADCAST_MAX_LENGTH}
            )
        self._request("POST", "/broadcast", json_payload={"message": text})
