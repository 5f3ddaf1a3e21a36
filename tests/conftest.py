from typing import Any, Dict, List, Optional
from unittest.mock import MagicMock

import pytest

from zendesk_export.client import RateLimitedHttpClient
from zendesk_export.settings import ApiCredentials, Settings
from zendesk_export.storage import ErrorLog, ExportFolder

BASE = "https://acme.zendesk.com/api/v2/"


def make_response(json_data: Optional[Dict[str, Any]] = None, status_code: int = 200,
                  headers: Optional[Dict[str, str]] = None, content: bytes = b"") -> MagicMock:
    """Build a mock requests.Response."""
    resp = MagicMock()
    resp.status_code = status_code
    resp.headers = headers or {}
    resp.json.return_value = json_data if json_data is not None else {}
    resp.text = str(json_data)
    resp.iter_content.return_value = [content[i:i + 4] for i in range(0, len(content), 4)]
    return resp


@pytest.fixture
def settings(tmp_path):
    return Settings(
        credentials=ApiCredentials(base_url=BASE, email="agent@acme.com", token="tok"),
        export_dir=tmp_path / "exported",
    )


@pytest.fixture
def sleeps() -> List[float]:
    return []


@pytest.fixture
def session():
    return MagicMock()


@pytest.fixture
def client(settings, session, sleeps):
    return RateLimitedHttpClient(settings, session=session, sleep=sleeps.append)


@pytest.fixture
def folder(settings):
    f = ExportFolder(settings.export_dir)
    f.prepare()
    return f


@pytest.fixture
def errors(folder):
    return ErrorLog(folder.errors)


def requested_urls(session) -> List[str]:
    return [c.args[1] for c in session.request.call_args_list]


def requested_params(session) -> List[Optional[dict]]:
    return [c.kwargs.get("params") for c in session.request.call_args_list]
