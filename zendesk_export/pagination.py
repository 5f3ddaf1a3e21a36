# zendesk_export/pagination.py
"""
Generic paginated fetch.

Zendesk mixes two pagination conventions:

- cursor style (incremental exports): `after_cursor` + `end_of_stream`
- next-page style (list endpoints): `next_page` holds the full URL, or null

Both come out of `collect()` as a `Page`, one page at a time, in API order.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Union
from urllib.parse import parse_qs, urlparse

from .client import RateLimitedHttpClient
from .settings import ApiCredentials

CURSOR = "cursor"
LINK = "link"

TRANSIENT_FIELDS = ("url",)


@dataclass(frozen=True)
class Endpoint:
    name: str
    path: str
    response_key: str
    style: str = LINK
    params: Dict[str, Any] = field(default_factory=dict)

    def url(self, creds: ApiCredentials) -> str:
        return creds.endpoint(self.path)


@dataclass
class CursorPage:
    records: List[Dict[str, Any]]
    after_cursor: Optional[str]
    end_of_stream: bool

    @property
    def is_last(self) -> bool:
        return self.end_of_stream


@dataclass
class LinkPage:
    records: List[Dict[str, Any]]
    next_page: Optional[str]

    @property
    def is_last(self) -> bool:
        return not self.next_page


Page = Union[CursorPage, LinkPage]


TICKETS = Endpoint("tickets", "incremental/tickets/cursor.json", "tickets", CURSOR)
USERS = Endpoint("users", "incremental/users/cursor.json", "users", CURSOR)
VIEWS = Endpoint("views", "views.json", "views")
TRIGGERS = Endpoint("triggers", "triggers.json", "triggers")
MACROS = Endpoint("macros", "macros.json", "macros")
AUTOMATIONS = Endpoint("automations", "automations.json", "automations")
RECIPIENT_ADDRESSES = Endpoint("recipient_addresses", "recipient_addresses.json", "recipient_addresses")
SETTINGS = Endpoint("settings", "account/settings.json", "settings")


def ticket_comments(ticket_id: int) -> Endpoint:
    return Endpoint("comments", f"tickets/{ticket_id}/comments.json", "comments",
                    params={"include_inline_images": "true"})


def strip_transient(record: Dict[str, Any]) -> Dict[str, Any]:
    for key in TRANSIENT_FIELDS:
        record.pop(key, None)
    return record


def follow_up_params(endpoint: Endpoint, next_url: str) -> Dict[str, Any]:
    """Endpoint params the next-page URL does not already carry."""
    present = parse_qs(urlparse(next_url).query)
    return {k: v for k, v in endpoint.params.items() if k not in present}


def parse_page(endpoint: Endpoint, data: Dict[str, Any]) -> Page:
    records = data.get(endpoint.response_key) or []
    if endpoint.style == CURSOR:
        return CursorPage(records, data.get("after_cursor"), bool(data.get("end_of_stream")))
    return LinkPage(records, data.get("next_page"))


def collect(client: RateLimitedHttpClient, endpoint: Endpoint,
            cursor: Optional[str] = None) -> Iterator[Page]:
    """
    Yield pages of `endpoint` until the stream is exhausted.

    For cursor endpoints `cursor` resumes from a previously saved
    `after_cursor`; every request carries `start_time=0` as well.
    """
    url = endpoint.url(client.settings.credentials)
    if endpoint.style == CURSOR:
        while True:
            params = dict(endpoint.params, cursor=cursor or "", start_time=0)
            page = parse_page(endpoint, client.get_json(url, params=params))
            logging.debug("%s: page of %d (end_of_stream=%s)",
                          endpoint.name, len(page.records), page.end_of_stream)
            yield page
            if page.is_last:
                return
            if not page.after_cursor:
                logging.warning("%s: no after_cursor on a non-final page; stopping", endpoint.name)
                return
            cursor = page.after_cursor
    else:
        params = dict(endpoint.params)
        while True:
            page = parse_page(endpoint, client.get_json(url, params=params or None))
            logging.debug("%s: page of %d (next_page=%s)",
                          endpoint.name, len(page.records), page.next_page)
            yield page
            if page.is_last:
                return
            url, params = page.next_page, follow_up_params(endpoint, page.next_page)


def iter_records(client: RateLimitedHttpClient, endpoint: Endpoint) -> Iterator[Dict[str, Any]]:
    for page in collect(client, endpoint):
        for record in page.records:
            yield strip_transient(record)


def fetch_object(client: RateLimitedHttpClient, endpoint: Endpoint) -> Any:
    """Single-object endpoints such as account settings."""
    data = client.get_json(endpoint.url(client.settings.credentials), params=endpoint.params or None)
    return data.get(endpoint.response_key)
