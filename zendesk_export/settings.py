# zendesk_export/settings.py
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Mapping, Optional
from urllib.parse import urlparse

from dotenv import load_dotenv, find_dotenv

from .errors import ConfigError

ERROR_POLICIES = ("fail-fast", "best-effort")


def load_env() -> Optional[str]:
    """
    Load .env robustly (works when called from the repo root or elsewhere).
    Values already present in the environment win.
    """
    env_path = find_dotenv(usecwd=True)
    if not env_path:
        p = Path(__file__).resolve().parent.parent / ".env"
        if p.exists():
            env_path = str(p)
    load_dotenv(dotenv_path=env_path or ".env", override=False)
    return env_path or None


@dataclass(frozen=True)
class ApiCredentials:
    base_url: str
    email: str
    token: str

    @property
    def auth(self):
        # Zendesk API token auth: "<email>/token" + token
        return (f"{self.email}/token", self.token)

    def endpoint(self, path: str) -> str:
        return self.base_url + path.lstrip("/")


@dataclass(frozen=True)
class Settings:
    credentials: ApiCredentials
    export_dir: Path = Path("./exported")
    request_timeout: float = 60.0
    max_rate_limit_retries: int = 20
    max_network_retries: int = 5
    max_ticket_errors: int = 10
    backoff_cap: float = 60.0
    error_policy: str = "fail-fast"
    download_attachments: bool = True
    log_level: str = "INFO"

    def with_overrides(self, **changes) -> "Settings":
        changes = {k: v for k, v in changes.items() if v is not None}
        if "export_dir" in changes:
            changes["export_dir"] = Path(changes["export_dir"])
        if changes.get("error_policy", self.error_policy) not in ERROR_POLICIES:
            raise ConfigError(f"ERROR_POLICY must be one of {', '.join(ERROR_POLICIES)}")
        return replace(self, **changes)


def _base_url(env: Mapping[str, str]) -> str:
    api = (env.get("ZENDESK_API") or "").strip()
    if not api:
        sub = (env.get("ZENDESK_SUBDOMAIN") or "").strip()
        if not sub:
            raise ConfigError("ZENDESK_API or ZENDESK_SUBDOMAIN must be set")
        host = sub if "." in sub else f"{sub}.zendesk.com"
        api = f"https://{host}/api/v2/"
    u = urlparse(api)
    if u.scheme not in ("http", "https") or not u.hostname:
        raise ConfigError(f"Malformed ZENDESK_API: {api!r}")
    return api if api.endswith("/") else api + "/"


def _int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw in (None, ""):
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from None
    if value < 0:
        raise ConfigError(f"{name} must not be negative")
    return value


def _float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw in (None, ""):
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from None
    if value <= 0:
        raise ConfigError(f"{name} must be positive")
    return value


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """Build Settings from the environment. Raises ConfigError on bad input."""
    env = os.environ if env is None else env

    email = (env.get("ZENDESK_EMAIL") or "").strip()
    token = (env.get("ZENDESK_TOKEN") or env.get("ZENDESK_API_TOKEN") or "").strip()
    if not email or not token:
        raise ConfigError("Zendesk credentials missing: set ZENDESK_EMAIL and ZENDESK_TOKEN")
    if "@" not in email:
        raise ConfigError(f"ZENDESK_EMAIL does not look like an email: {email!r}")

    policy = (env.get("ERROR_POLICY") or "fail-fast").strip().lower()
    if policy not in ERROR_POLICIES:
        raise ConfigError(f"ERROR_POLICY must be one of {', '.join(ERROR_POLICIES)}")

    return Settings(
        credentials=ApiCredentials(base_url=_base_url(env), email=email, token=token),
        export_dir=Path(env.get("EXPORT_DIR") or "./exported"),
        request_timeout=_float(env, "REQUEST_TIMEOUT", 60.0),
        max_rate_limit_retries=_int(env, "MAX_RATE_LIMIT_RETRIES", 20),
        max_network_retries=_int(env, "MAX_NETWORK_RETRIES", 5),
        max_ticket_errors=_int(env, "MAX_TICKET_ERRORS", 10),
        backoff_cap=_float(env, "BACKOFF_CAP_SECS", 60.0),
        error_policy=policy,
        download_attachments=(env.get("DOWNLOAD_ATTACHMENTS", "true").lower() == "true"),
        log_level=(env.get("LOG_LEVEL") or "INFO").upper(),
    )
