"""HTTP transport for the Freshdesk API: auth, JSON, timeouts, 429 back-off."""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Mapping, Optional

import requests

from freshdesk_sync.config import FreshdeskConfig
from freshdesk_sync.errors import DecodeError, TransportError, raise_if_cancelled

logger = logging.getLogger("freshdesk_sync.transport")

MAX_BACKOFF_SECONDS = 60.0


class HttpTransport:
    """Thin wrapper around a requests.Session.

    Freshdesk authenticates with HTTP basic auth using the API key as the
    username and a literal ``X`` as the password.
    """

    def __init__(
        self,
        api_token: str,
        connect_timeout: float = 10.0,
        read_timeout: float = 60.0,
        max_retries: int = 5,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._timeout = (connect_timeout, read_timeout)
        self._max_retries = max_retries
        self._session = session or requests.Session()
        self._session.auth = (api_token, "X")
        self._session.headers.update({
            "Accept": "application/json",
            "Content-Type": "application/json",
        })

    @classmethod
    def from_config(cls, config: FreshdeskConfig) -> "HttpTransport":
        return cls(
            api_token=config.api_token,
            connect_timeout=config.connect_timeout,
            read_timeout=config.read_timeout,
            max_retries=config.max_retries,
        )

    def close(self) -> None:
        self._session.close()

    def fetch_raw(
        self,
        method: str,
        url: str,
        body: Any = None,
        cancel: Optional[threading.Event] = None,
    ) -> tuple[Mapping[str, str], Any]:
        """Send one request and return ``(headers, decoded_json_body)``.

        Rate-limited responses are retried after ``Retry-After``; every other
        failure is raised as TransportError.
        """
        attempt = 0
        while True:
            raise_if_cancelled(cancel)
            try:
                resp = self._session.request(method, url, json=body, timeout=self._timeout)
            except requests.RequestException as exc:
                raise TransportError(
                    f"{method} {url} failed: {exc}", url=url
                ) from exc
            raise_if_cancelled(cancel)

            if resp.status_code == 429 and attempt < self._max_retries:
                delay = self._retry_delay(resp, attempt)
                logger.warning(
                    "Freshdesk rate limit hit, waiting %.1fs (attempt %d)", delay, attempt + 1
                )
                self._wait(delay, cancel)
                attempt += 1
                continue

            if not resp.ok:
                raise TransportError(
                    f"{method} {url} returned HTTP {resp.status_code}: {resp.text[:200]}",
                    status_code=resp.status_code,
                    url=url,
                )

            if not resp.content:
                return resp.headers, None
            try:
                return resp.headers, resp.json()
            except ValueError as exc:
                raise DecodeError(f"{method} {url} returned invalid JSON: {exc}") from exc

    @staticmethod
    def _retry_delay(resp: requests.Response, attempt: int) -> float:
        retry_after = resp.headers.get("Retry-After", "")
        try:
            delay = float(retry_after)
        except ValueError:
            delay = 2.0 ** attempt
        return min(max(delay, 1.0), MAX_BACKOFF_SECONDS)

    @staticmethod
    def _wait(delay: float, cancel: Optional[threading.Event]) -> None:
        if cancel is None:
            time.sleep(delay)
            return
        # Event.wait returns early once the caller cancels
        cancel.wait(delay)
        raise_if_cancelled(cancel)
