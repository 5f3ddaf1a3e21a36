# zendesk_export/client.py
import logging
import time
from typing import Any, Callable, Dict, Optional

import requests

from . import __version__
from .errors import (
    FatalHttpError,
    NetworkError,
    RateLimitExhaustedError,
    ResourceGoneError,
    TransientServerError,
)
from .settings import Settings

GONE_STATUS = {404, 410}


def _detail(resp: requests.Response) -> Any:
    try:
        return resp.json()
    except ValueError:
        return {"text": resp.text[:300]}


class RateLimitedHttpClient:
    """
    One HTTP request at a time against the Zendesk API.

    200 is returned to the caller. 429 is retried after the server's
    `retry-after` (+1s); without the header the wait doubles up to
    `backoff_cap`. Network errors and timeouts have their own bounded
    retry budget. Every other status raises right away.
    """

    def __init__(self, settings: Settings, session: Optional[requests.Session] = None,
                 sleep: Callable[[float], None] = time.sleep):
        self.settings = settings
        self.sleep = sleep
        self.session = session or requests.Session()
        self.session.auth = settings.credentials.auth
        self.session.headers.update({
            "Accept": "application/json",
            "User-Agent": f"zendesk-export/{__version__} (+python-requests)",
        })

    def backoff(self, attempt: int) -> float:
        return min(2.0 ** attempt, self.settings.backoff_cap)

    def send(self, method: str, url: str, params: Optional[Dict[str, Any]] = None,
             binary: bool = False) -> requests.Response:
        rate_limited = 0
        network_failures = 0
        while True:
            try:
                resp = self.session.request(method, url, params=params,
                                            timeout=self.settings.request_timeout, stream=binary)
            except (requests.ConnectionError, requests.Timeout) as e:
                network_failures += 1
                if network_failures > self.settings.max_network_retries:
                    raise NetworkError(f"{method} {url} failed: {e}", url=url) from e
                wait = self.backoff(network_failures - 1)
                logging.warning("Network error on %s (%s). Retry %d in %.1fs",
                                url, e, network_failures, wait)
                self.sleep(wait)
                continue

            if resp.status_code == 200:
                return resp

            if resp.status_code == 429:
                rate_limited += 1
                if rate_limited > self.settings.max_rate_limit_retries:
                    raise RateLimitExhaustedError(
                        f"{method} {url} still rate limited after {rate_limited - 1} retries",
                        status=429, url=url)
                retry_after = resp.headers.get("retry-after")
                try:
                    wait = float(retry_after) + 1
                except (TypeError, ValueError):
                    wait = self.backoff(rate_limited - 1)
                logging.warning("Rate limited on %s. Sleeping %.1fs", url, wait)
                resp.close()
                self.sleep(wait)
                continue

            status = resp.status_code
            detail = _detail(resp)
            resp.close()
            message = f"{method} {url} failed [{status}]: {detail}"
            if status in GONE_STATUS:
                raise ResourceGoneError(message, status=status, url=url)
            if 500 <= status < 600:
                raise TransientServerError(message, status=status, url=url)
            raise FatalHttpError(message, status=status, url=url)

    def get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        resp = self.send("GET", url, params=params)
        try:
            return resp.json()
        except ValueError as e:
            # proxy error pages or truncated bodies
            raise TransientServerError(f"GET {url} returned a non-JSON body: {e}",
                                       status=200, url=url) from e

    def close(self):
        self.session.close()
