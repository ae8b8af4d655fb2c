"""
delivery_api_client.py

Copy this file into any program that talks to the water delivery backend
(bots, spreadsheet importers, cron jobs).

What it provides:
- A tiny API client for this backend (login check + JSON requests)
- Helpers for every endpoint: deliveries, status, records, CSV export,
  initial balance, clear-all
- record_delivery_and_wait(): records a delivery, then polls /api/records
  until the new record is visible (the store is eventually consistent)

Environment variables expected:
- WATER_API_URL: e.g. "https://your-domain.com"

Optional:
- WATER_API_USERNAME / WATER_API_PASSWORD: checked once with /api/login

Dependencies:
- requests (pip install requests)
"""

from __future__ import annotations

import os
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

import requests

RETRY_ATTEMPTS = 5
RETRY_DELAY_SECONDS = 1.5


class ApiError(RuntimeError):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RecordNotVisible(ApiError):
    pass


@dataclass
class DeliveryApiClient:
    base_url: str
    timeout: float = 30
    retry_attempts: int = RETRY_ATTEMPTS
    retry_delay: float = RETRY_DELAY_SECONDS
    sleep: Callable[[float], None] = time.sleep

    def _url(self, path: str) -> str:
        return f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"

    def _request(self, method: str, path: str, *, json: Any = None, params: Dict[str, Any] | None = None) -> requests.Response:
        resp = requests.request(
            method,
            self._url(path),
            json=json,
            params=params,
            headers={"Accept": "application/json"},
            timeout=self.timeout,
        )
        if resp.status_code >= 400:
            raise ApiError(f"{method} {path} failed ({resp.status_code}): {_error_text(resp)}", resp.status_code)
        return resp

    def login(self, username: str, password: str) -> bool:
        """
        POST /api/login. The backend has no sessions; this only checks the pair.
        Returns False on 401, raises ApiError on anything else.
        """
        try:
            self._request("POST", "/api/login", json={"username": username, "password": password})
        except ApiError as e:
            if e.status_code == 401:
                return False
            raise
        return True

    # ----------------------------
    # Ledger helpers
    # ----------------------------

    def record_delivery(self, *, normal_water: int = 0, nongfu_water: int = 0, empty_buckets_taken: int = 0) -> Dict[str, Any]:
        """
        Calls: POST /api/delivery
        Returns {"success", "record", "currentEmptyBuckets"}.
        """
        payload = {
            "normalWater": normal_water,
            "nongfuWater": nongfu_water,
            "emptyBuckets": empty_buckets_taken,
        }
        return self._request("POST", "/api/delivery", json=payload).json()

    def get_status(self) -> Dict[str, Any]:
        return self._request("GET", "/api/status").json()

    def set_initial_buckets(self, empty_buckets: int) -> Dict[str, Any]:
        return self._request("POST", "/api/set-initial", json={"emptyBuckets": empty_buckets}).json()

    def clear_all(self) -> Dict[str, Any]:
        return self._request("DELETE", "/api/clear").json()

    # ----------------------------
    # Records
    # ----------------------------

    def list_records(
        self,
        *,
        limit: int = 50,
        start_date: Optional[str] = None,  # "YYYY-MM-DD"
        end_date: Optional[str] = None,  # "YYYY-MM-DD"
    ) -> List[Dict[str, Any]]:
        params: Dict[str, Any] = {"limit": limit, "_t": int(time.time() * 1000)}
        if start_date:
            params["startDate"] = start_date
        if end_date:
            params["endDate"] = end_date
        return self._request("GET", "/api/records", params=params).json()

    def export_csv(self, *, start_date: Optional[str] = None, end_date: Optional[str] = None) -> str:
        params: Dict[str, Any] = {}
        if start_date:
            params["startDate"] = start_date
        if end_date:
            params["endDate"] = end_date
        resp = self._request("GET", "/api/records/export", params=params)
        resp.encoding = "utf-8-sig"
        return resp.text

    def wait_for_record(self, timestamp: str, *, limit: int = 20) -> Dict[str, Any]:
        """
        Poll /api/records until the record with `timestamp` is listed.

        A record written a moment ago may not be listed yet. Tries
        `retry_attempts` extra times, `retry_delay` seconds apart, then raises
        RecordNotVisible. Transient request errors count as a failed attempt.
        """
        last_error: Optional[Exception] = None
        for attempt in range(self.retry_attempts + 1):
            if attempt:
                self.sleep(self.retry_delay)
            try:
                records = self.list_records(limit=limit)
            except (ApiError, requests.RequestException) as e:
                last_error = e
                continue
            for r in records:
                if r.get("timestamp") == timestamp:
                    return r
        msg = f"Record {timestamp} not listed after {self.retry_attempts + 1} attempts"
        if last_error:
            msg += f" (last error: {last_error})"
        raise RecordNotVisible(msg)

    def record_delivery_and_wait(self, **kwargs: int) -> Dict[str, Any]:
        result = self.record_delivery(**kwargs)
        self.wait_for_record(result["record"]["timestamp"])
        return result


def _error_text(resp: requests.Response) -> str:
    try:
        data = resp.json()
    except ValueError:
        return resp.text
    if isinstance(data, dict) and data.get("error"):
        return str(data["error"])
    return resp.text


def make_client_from_env() -> DeliveryApiClient:
    base_url = os.getenv("WATER_API_URL", "").strip()
    if not base_url:
        raise RuntimeError("Missing WATER_API_URL")
    client = DeliveryApiClient(base_url=base_url)

    username = os.getenv("WATER_API_USERNAME", "").strip()
    password = os.getenv("WATER_API_PASSWORD", "").strip()
    if username and not client.login(username, password):
        raise RuntimeError("WATER_API_USERNAME / WATER_API_PASSWORD rejected by /api/login")
    return client


# -----------------------------------------------------------------------------
# Minimal “manual test” usage
# -----------------------------------------------------------------------------

if __name__ == "__main__":
    client = make_client_from_env()
    print(client.get_status())

    # Example: record a delivery and wait until it is listed
    # print(client.record_delivery_and_wait(normal_water=3, nongfu_water=2, empty_buckets_taken=4))

    print("OK: client configured. Uncomment examples to run.")
