"""Clients for the upstream currency-conversion APIs."""
from __future__ import annotations

from typing import Any, Optional, Protocol

import requests
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from breserve.errors import CurrencyConversionError
from breserve.retry import retry_with_backoff
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="currency_client")

EXCHANGERATE_API_URL = "https://api.exchangerate-api.com/v4/latest"


class ExchangeResult(BaseModel):
    """A single conversion as returned by the currency-exchange function."""
    model_config = ConfigDict(populate_by_name=True)

    from_currency: str = Field(alias="from")
    to_currency: str = Field(alias="to")
    amount: float
    converted: float
    rate: float


class CurrencyConverter(Protocol):
    """Anything that can convert an amount between two currencies."""

    def convert(self, from_currency: str, to_currency: str, amount: float) -> ExchangeResult:
        """Return the conversion or raise CurrencyConversionError."""
        ...


def _json_body(resp) -> Any:
    """Decode a JSON response body, raising CurrencyConversionError on garbage."""
    try:
        return resp.json()
    except ValueError as exc:
        text = (getattr(resp, "text", "") or "")[:200]
        raise CurrencyConversionError(f"Currency API returned non-JSON response: {text}") from exc


class EdgeFunctionCurrencyClient:
    """Calls the `currency-exchange` serverless function.

    Request body: {"from": "XOF", "to": "EUR", "amount": 1000}
    Response:     {"success": true, "data": {"from", "to", "amount", "converted", "rate"}}
                  {"success": false, "error": "..."} on failure (usually HTTP 500)
    """

    def __init__(
        self,
        function_url: str,
        *,
        api_key: Optional[str] = None,
        timeout: float = 15.0,
        max_retries: int = 3,
        retry_initial_delay: float = 1.0,
    ) -> None:
        self.function_url = function_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_initial_delay = retry_initial_delay

    def _headers(self) -> dict[str, str]:
        """Return request headers, including the anon key when configured."""
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["apikey"] = self.api_key
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def convert(self, from_currency: str, to_currency: str, amount: float) -> ExchangeResult:
        """Convert through the edge function, retrying transport failures."""
        payload = {"from": from_currency, "to": to_currency, "amount": amount}
        logger.info("Converting currency: %s", payload)

        def _post():
            return requests.post(
                self.function_url, json=payload, headers=self._headers(), timeout=self.timeout
            )

        try:
            resp = retry_with_backoff(
                _post,
                self.max_retries,
                self.retry_initial_delay,
                retry_on=(requests.exceptions.RequestException,),
            )
        except requests.exceptions.RequestException as exc:
            raise CurrencyConversionError(f"Currency function unreachable: {exc}") from exc

        body = _json_body(resp)
        if resp.status_code != 200 or not isinstance(body, dict) or not body.get("success"):
            error = body.get("error") if isinstance(body, dict) else None
            raise CurrencyConversionError(
                error or f"Currency function failed with status {resp.status_code}"
            )

        try:
            return ExchangeResult.model_validate(body.get("data"))
        except ValidationError as exc:
            raise CurrencyConversionError(f"Malformed conversion payload: {exc}") from exc


class ExchangeRateApiClient:
    """Direct ExchangeRate-API client (free tier, no key required)."""

    def __init__(
        self,
        base_url: str = EXCHANGERATE_API_URL,
        *,
        timeout: float = 15.0,
        max_retries: int = 3,
        retry_initial_delay: float = 1.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_initial_delay = retry_initial_delay

    def convert(self, from_currency: str, to_currency: str, amount: float) -> ExchangeResult:
        """Fetch the latest rates for `from_currency` and compute the conversion."""
        url = f"{self.base_url}/{from_currency}"

        def _get():
            return requests.get(url, timeout=self.timeout)

        try:
            resp = retry_with_backoff(
                _get,
                self.max_retries,
                self.retry_initial_delay,
                retry_on=(requests.exceptions.RequestException,),
            )
            resp.raise_for_status()
        except requests.exceptions.RequestException as exc:
            logger.error("Currency API error: %s", exc)
            raise CurrencyConversionError(f"Currency API error: {exc}") from exc

        data = _json_body(resp)
        rates = data.get("rates") if isinstance(data, dict) else None
        if not rates or rates.get(to_currency) is None:
            raise CurrencyConversionError(f"Currency {to_currency} not found in rates")

        rate = float(rates[to_currency])
        converted = amount * rate
        logger.info("Currency conversion successful (ExchangeRate-API): rate=%s converted=%s", rate, converted)
        return ExchangeResult(
            from_currency=from_currency,
            to_currency=to_currency,
            amount=amount,
            converted=round(converted, 2),
            rate=round(rate, 6),
        )
