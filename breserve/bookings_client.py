"""Thin client for the remote bookings table (Supabase REST / PostgREST)."""

from typing import Any, Dict, List, Mapping, Optional

import requests

from breserve.errors import RemoteApiError
from breserve.retry import retry_with_backoff
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="bookings_client")


class BookingsApiClient:
    """CRUD over `{base_url}/rest/v1/bookings` with row filters in the query string."""

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        *,
        access_token: Optional[str] = None,
        timeout: float = 15.0,
        max_retries: int = 3,
        retry_initial_delay: float = 1.0,
    ) -> None:
        """Configure the REST endpoint; `access_token` overrides the anon key for auth."""
        self.url = f"{base_url.rstrip('/')}/rest/v1/bookings"
        self.api_key = api_key
        self.access_token = access_token
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_initial_delay = retry_initial_delay

    def _headers(self, *, prefer: Optional[str] = None) -> Dict[str, str]:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if self.api_key:
            headers["apikey"] = self.api_key
        token = self.access_token or self.api_key
        if token:
            headers["Authorization"] = f"Bearer {token}"
        if prefer:
            headers["Prefer"] = prefer
        return headers

    def _request(self, method: str, *, params: Mapping[str, str], json: Any = None, prefer: Optional[str] = None):
        """Send one request with retries on transport errors; raise RemoteApiError on failure."""
        def _send():
            return requests.request(
                method,
                self.url,
                params=dict(params),
                json=json,
                headers=self._headers(prefer=prefer),
                timeout=self.timeout,
            )

        try:
            resp = retry_with_backoff(
                _send,
                self.max_retries,
                self.retry_initial_delay,
                retry_on=(requests.exceptions.ConnectionError, requests.exceptions.Timeout),
            )
        except requests.exceptions.RequestException as exc:
            logger.error("Bookings API %s failed: %s", method, exc)
            raise RemoteApiError(f"Bookings API unreachable: {exc}") from exc

        if not 200 <= resp.status_code < 300:
            text = (resp.text or "")[:200]
            logger.error("Bookings API %s returned %s: %s", method, resp.status_code, text)
            raise RemoteApiError(
                f"Bookings API {method} failed with status {resp.status_code}: {text}",
                status_code=resp.status_code,
            )
        return resp

    def fetch_user_bookings(self, user_id: str) -> List[Dict[str, Any]]:
        """Return every booking owned by `user_id`, newest first."""
        resp = self._request(
            "GET",
            params={"select": "*", "user_id": f"eq.{user_id}", "order": "created_at.desc"},
        )
        try:
            data = resp.json()
        except ValueError as exc:
            raise RemoteApiError(f"Bookings API returned non-JSON response: {resp.text[:200]}") from exc
        if not isinstance(data, list):
            raise RemoteApiError(f"Bookings API returned {type(data).__name__}, expected a list")
        for record in data:
            if not isinstance(record, dict) or not record.get("id"):
                raise RemoteApiError(f"Bookings API returned a booking without an id: {str(record)[:200]}")
        logger.debug("Fetched %d booking(s) for user %s", len(data), user_id)
        return data

    def insert_booking(self, data: Mapping[str, Any]) -> None:
        self._request("POST", params={}, json=dict(data), prefer="return=minimal")

    def update_booking(self, booking_id: str, data: Mapping[str, Any]) -> None:
        self._request("PATCH", params={"id": f"eq.{booking_id}"}, json=dict(data), prefer="return=minimal")

    def delete_booking(self, booking_id: str) -> None:
        self._request("DELETE", params={"id": f"eq.{booking_id}"})
