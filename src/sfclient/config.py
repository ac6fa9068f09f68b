from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

from .api import DEFAULT_API_VERSION, Connection
from .auth import (
    DEFAULT_LOGIN_URL,
    AccessTokenAuth,
    Authentication,
    ClientCredentialsAuth,
    ConnectedApp,
    JwtAuth,
    RefreshTokenAuth,
    UsernamePasswordAuth,
)
from .env_loader import load_env_files
from .exceptions import MissingCredentialsError

__author__ = "Kevin Steptoe"
__copyright__ = "Kevin Steptoe"
__license__ = "MIT"

_logger = logging.getLogger(__name__)

AUTH_FLOWS = ("access_token", "refresh_token", "password", "jwt", "client_credentials")


# ----------------------------------------------------------------------
# Configuration dataclass
# ----------------------------------------------------------------------
@dataclass
class SFConfig:
    """Configuration for Salesforce API authentication."""

    # One of AUTH_FLOWS
    auth_flow: str = "client_credentials"

    # Base login URL (not the instance URL)
    login_url: str = DEFAULT_LOGIN_URL

    client_id: Optional[str] = None
    client_secret: Optional[str] = None

    # Pre-provided token / instance URL (access_token flow), or the instance
    # to refresh against (refresh_token flow)
    access_token: Optional[str] = None
    instance_url: Optional[str] = None
    refresh_token: Optional[str] = None

    username: Optional[str] = None
    password: Optional[str] = None
    security_token: Optional[str] = None

    # Path to the PEM private key used to sign JWT assertions
    jwt_key_file: Optional[str] = None

    api_version: str = DEFAULT_API_VERSION
    timeout: float = 30.0

    @classmethod
    def from_env(cls, *, load_env: bool = True) -> SFConfig:
        """Load configuration from environment variables (and .env, if present)."""
        if load_env:
            load_env_files(quiet=True)
        return cls(
            auth_flow=os.getenv("SF_AUTH_FLOW", "client_credentials"),
            login_url=os.getenv("SF_LOGIN_URL", DEFAULT_LOGIN_URL),
            client_id=os.getenv("SF_CLIENT_ID"),
            client_secret=os.getenv("SF_CLIENT_SECRET"),
            access_token=os.getenv("SF_ACCESS_TOKEN"),
            instance_url=os.getenv("SF_INSTANCE_URL"),
            refresh_token=os.getenv("SF_REFRESH_TOKEN"),
            username=os.getenv("SF_USERNAME"),
            password=os.getenv("SF_PASSWORD"),
            security_token=os.getenv("SF_SECURITY_TOKEN"),
            jwt_key_file=os.getenv("SF_JWT_KEY_FILE"),
            api_version=os.getenv("SF_API_VERSION") or DEFAULT_API_VERSION,
            timeout=float(os.getenv("SF_TIMEOUT") or 30.0),
        )

    def _require(self, values: Dict[str, Optional[str]]) -> None:
        missing = [k for k, v in values.items() if not v]
        if missing:
            raise MissingCredentialsError(missing)

    def build_auth(self) -> Authentication:
        """Build the Authentication for ``auth_flow``.

        Raises MissingCredentialsError naming the absent env vars before any
        network call is made.
        """
        flow = self.auth_flow
        _logger.debug("Building authentication for flow %s", flow)

        if flow == "access_token":
            self._require({"SF_ACCESS_TOKEN": self.access_token, "SF_INSTANCE_URL": self.instance_url})
            return AccessTokenAuth(self.access_token, self.instance_url)

        if flow == "refresh_token":
            self._require(
                {
                    "SF_CLIENT_ID": self.client_id,
                    "SF_REFRESH_TOKEN": self.refresh_token,
                    "SF_INSTANCE_URL": self.instance_url,
                }
            )
            return RefreshTokenAuth(
                self._app(), self.refresh_token, self.instance_url, access_token=self.access_token
            )

        if flow == "password":
            self._require(
                {
                    "SF_CLIENT_ID": self.client_id,
                    "SF_USERNAME": self.username,
                    "SF_PASSWORD": self.password,
                }
            )
            return UsernamePasswordAuth(
                self._app(),
                self.username,
                self.password,
                security_token=self.security_token,
                login_url=self.login_url,
            )

        if flow == "jwt":
            self._require(
                {
                    "SF_CLIENT_ID": self.client_id,
                    "SF_USERNAME": self.username,
                    "SF_JWT_KEY_FILE": self.jwt_key_file,
                }
            )
            private_key = Path(self.jwt_key_file).read_text()
            return JwtAuth(self._app(), self.username, private_key, login_url=self.login_url)

        if flow == "client_credentials":
            self._require(
                {
                    "SF_CLIENT_ID": self.client_id,
                    "SF_CLIENT_SECRET": self.client_secret,
                    "SF_LOGIN_URL": self.login_url,
                }
            )
            return ClientCredentialsAuth(self._app(), login_url=self.login_url)

        raise ValueError(f"Unsupported SF_AUTH_FLOW: {flow!r} (expected one of {', '.join(AUTH_FLOWS)})")

    def _app(self) -> ConnectedApp:
        return ConnectedApp(self.client_id, self.client_secret)


def connect(cfg: Optional[SFConfig] = None) -> Connection:
    """Create a Connection from ``cfg`` (or the environment).

    No request is made until the Connection is first used.
    """
    cfg = cfg or SFConfig.from_env()
    conn = Connection(cfg.build_auth(), api_version=cfg.api_version, timeout=cfg.timeout)
    _logger.info("Created Salesforce connection (flow=%s, api=%s)", cfg.auth_flow, cfg.api_version)
    return conn
