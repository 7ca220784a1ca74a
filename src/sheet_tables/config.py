"""Configuration: where a table lives and how to authenticate against it.

Credentials can come from a mapping, a JSON file or the environment:

    SHEET_TABLES_CREDENTIALS     path to a JSON credential bundle
    SHEET_TABLES_CLIENT_ID       OAuth client id
    SHEET_TABLES_CLIENT_SECRET   OAuth client secret
    SHEET_TABLES_REDIRECT_URI    OAuth redirect uri (optional)
    SHEET_TABLES_REFRESH_TOKEN   OAuth refresh token
    SHEET_TABLES_TIMEOUT         HTTP timeout in seconds
"""

from __future__ import annotations

import json
import logging
import os
import re
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Union

from sheet_tables.errors import ConfigError

logger = logging.getLogger(__name__)

ENV_PREFIX = "SHEET_TABLES_"
DEFAULT_TIMEOUT = 30.0

SHEETS_SCOPE = "https://www.googleapis.com/auth/spreadsheets"
GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"

_ID_PATTERN = re.compile(r"/d/([A-Za-z0-9_-]+)")
_GID_PATTERN = re.compile(r"[#?&]gid=(\d+)")


@dataclass(frozen=True)
class TableLocator:
    """Identifies one tab of one spreadsheet."""

    spreadsheet_id: str
    sheet_name: str
    gid: str | None = None

    @classmethod
    def from_link(cls, link: str, sheet_name: str) -> TableLocator:
        """Build a locator from a spreadsheet URL.

        Example:
            TableLocator.from_link(
                "https://docs.google.com/spreadsheets/d/<id>/edit#gid=0", "Sheet1")
        """
        id_match = _ID_PATTERN.search(link)
        if id_match is None:
            raise ConfigError(f"Not a spreadsheet link: {link}")
        gid_match = _GID_PATTERN.search(link)
        return cls(
            spreadsheet_id=id_match.group(1),
            sheet_name=sheet_name,
            gid=gid_match.group(1) if gid_match else None,
        )


@dataclass(frozen=True)
class ServiceAccountConfig:
    """Service-account credential bundle as downloaded from the console."""

    client_email: str
    private_key: str
    private_key_id: str | None = None
    token_uri: str = GOOGLE_TOKEN_URI
    scopes: tuple[str, ...] = (SHEETS_SCOPE,)

    @property
    def info(self) -> dict[str, Any]:
        """Key material in the form google-auth's signer expects."""
        info = {"client_email": self.client_email, "private_key": self.private_key}
        if self.private_key_id:
            info["private_key_id"] = self.private_key_id
        return info


@dataclass(frozen=True)
class OAuthConfig:
    """OAuth client with a long-lived refresh token."""

    client_id: str
    client_secret: str
    refresh_token: str
    redirect_uri: str | None = None
    token_uri: str = GOOGLE_TOKEN_URI


AuthConfig = Union[ServiceAccountConfig, OAuthConfig]


def _first(data: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = data.get(key)
        if value:
            return value
    return None


def _require(value: Any, name: str) -> Any:
    if not value:
        raise ConfigError(f"Missing credential value: {name}")
    return value


def load_auth_config(source: Mapping[str, Any] | str | Path) -> AuthConfig:
    """Load credentials from a mapping or a JSON file.

    A bundle carrying a refresh token is an OAuth client; anything else is
    treated as a service account. Both snake_case and the camelCase /
    upper-case keys used by older credential files are accepted.
    """
    if isinstance(source, (str, Path)):
        path = Path(source)
        try:
            data = json.loads(path.read_text())
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigError(f"Cannot read credentials from {path}: {e}") from e
    else:
        data = dict(source)

    refresh_token = _first(data, "refresh_token", "refreshToken")
    if refresh_token:
        token_uri = _first(data, "token_uri") or GOOGLE_TOKEN_URI
        return OAuthConfig(
            client_id=_require(_first(data, "client_id", "clientId", "CLIENT_ID"), "client_id"),
            client_secret=_require(
                _first(data, "client_secret", "clientSecret", "CLIENT_SECRET"), "client_secret"
            ),
            refresh_token=refresh_token,
            redirect_uri=_first(data, "redirect_uri", "redirectUri", "REDIRECT_URI"),
            token_uri=token_uri,
        )

    if data.get("type") not in (None, "service_account"):
        raise ConfigError(f"Unsupported credential type: {data.get('type')}")
    return ServiceAccountConfig(
        client_email=_require(data.get("client_email"), "client_email"),
        private_key=_require(data.get("private_key"), "private_key"),
        private_key_id=data.get("private_key_id"),
        token_uri=data.get("token_uri") or GOOGLE_TOKEN_URI,
    )


def auth_config_from_env(environ: Mapping[str, str] | None = None) -> AuthConfig:
    """Load credentials from SHEET_TABLES_* environment variables."""
    env = os.environ if environ is None else environ
    path = env.get(ENV_PREFIX + "CREDENTIALS")
    if path:
        logger.debug("Loading credentials from %s", path)
        return load_auth_config(path)
    values = {
        "client_id": env.get(ENV_PREFIX + "CLIENT_ID"),
        "client_secret": env.get(ENV_PREFIX + "CLIENT_SECRET"),
        "redirect_uri": env.get(ENV_PREFIX + "REDIRECT_URI"),
        "refresh_token": env.get(ENV_PREFIX + "REFRESH_TOKEN"),
    }
    if not values["refresh_token"]:
        raise ConfigError(
            f"Set {ENV_PREFIX}CREDENTIALS or {ENV_PREFIX}REFRESH_TOKEN with the OAuth client values"
        )
    return load_auth_config(values)


def timeout_from_env(environ: Mapping[str, str] | None = None) -> float:
    """HTTP timeout in seconds, falling back to the default on bad values."""
    env = os.environ if environ is None else environ
    raw = env.get(ENV_PREFIX + "TIMEOUT")
    if raw is None:
        return DEFAULT_TIMEOUT
    try:
        timeout = float(raw)
    except ValueError:
        logger.warning("Ignoring invalid %sTIMEOUT=%r", ENV_PREFIX, raw)
        return DEFAULT_TIMEOUT
    if timeout <= 0:
        logger.warning("Ignoring non-positive %sTIMEOUT=%r", ENV_PREFIX, raw)
        return DEFAULT_TIMEOUT
    return timeout
