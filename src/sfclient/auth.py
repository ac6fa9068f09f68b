"""Credential strategies that obtain and refresh Salesforce access tokens.

Each strategy holds its own token state; ``Connection`` serializes access to
that state and guarantees that at most one refresh is in flight at a time.
"""

from __future__ import annotations

import abc
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

import jwt
import requests

from .exceptions import AuthenticationError, CannotRefreshError, NotAuthenticatedError

__author__ = "Kevin Steptoe"
__copyright__ = "Kevin Steptoe"
__license__ = "MIT"

_logger = logging.getLogger(__name__)

DEFAULT_LOGIN_URL = "https://login.salesforce.com"
TOKEN_PATH = "/services/oauth2/token"
JWT_BEARER_GRANT = "urn:ietf:params:oauth:grant-type:jwt-bearer"


@dataclass
class ConnectedApp:
    """OAuth client registered in the org (consumer key and secret)."""

    consumer_key: str
    client_secret: Optional[str] = None
    redirect_url: Optional[str] = None

    def client_fields(self) -> Dict[str, str]:
        data = {"client_id": self.consumer_key}
        if self.client_secret:
            data["client_secret"] = self.client_secret
        return data


class Authentication(abc.ABC):
    """Base for all credential strategies."""

    def __init__(self, access_token: Optional[str] = None, instance_url: Optional[str] = None):
        self.access_token = access_token
        self.instance_url = instance_url.rstrip("/") if instance_url else None

    def get_instance_url(self) -> str:
        if not self.instance_url:
            raise NotAuthenticatedError()
        return self.instance_url

    @abc.abstractmethod
    def refresh_access_token(self, session: requests.Session, timeout: float = 30.0) -> None:
        """Obtain a new access token, replacing ``access_token`` and ``instance_url``."""

    def _request_token(
        self,
        session: requests.Session,
        base_url: str,
        data: Dict[str, Any],
        timeout: float,
    ) -> Dict[str, Any]:
        """POST a form to the OAuth token endpoint and store the result."""
        token_url = f"{base_url.rstrip('/')}{TOKEN_PATH}"
        _logger.debug("Requesting access token from %s (grant_type=%s)", token_url, data.get("grant_type"))

        self.access_token = None
        r = session.request("POST", token_url, data=data, timeout=timeout)
        if r.status_code >= 400:
            try:
                payload = r.json()
                detail = payload.get("error_description") or payload.get("error") or r.text
            except ValueError:
                detail = r.text
            raise AuthenticationError(f"Token request failed (HTTP {r.status_code}): {detail}")

        try:
            payload = r.json()
            self.access_token = payload["access_token"]
            self.instance_url = payload["instance_url"].rstrip("/")
        except (ValueError, KeyError, AttributeError) as e:
            raise AuthenticationError(f"Invalid token response: {e}") from e
        return payload

    def __repr__(self) -> str:
        # Never include the token itself.
        state = "authenticated" if self.access_token else "unauthenticated"
        return f"{type(self).__name__}(instance_url={self.instance_url!r}, {state})"


class AccessTokenAuth(Authentication):
    """A pre-issued token; it cannot be refreshed once it expires."""

    def __init__(self, access_token: str, instance_url: str):
        super().__init__(access_token, instance_url)

    def refresh_access_token(self, session: requests.Session, timeout: float = 30.0) -> None:
        raise CannotRefreshError()


class RefreshTokenAuth(Authentication):
    def __init__(
        self,
        app: ConnectedApp,
        refresh_token: str,
        instance_url: str,
        access_token: Optional[str] = None,
    ):
        super().__init__(access_token, instance_url)
        self.app = app
        self.refresh_token = refresh_token

    def refresh_access_token(self, session: requests.Session, timeout: float = 30.0) -> None:
        data = {"grant_type": "refresh_token", "refresh_token": self.refresh_token}
        data.update(self.app.client_fields())
        self._request_token(session, self.instance_url or DEFAULT_LOGIN_URL, data, timeout)


class UsernamePasswordAuth(Authentication):
    """OAuth password flow; the security token is appended to the password."""

    def __init__(
        self,
        app: ConnectedApp,
        username: str,
        password: str,
        security_token: Optional[str] = None,
        login_url: str = DEFAULT_LOGIN_URL,
    ):
        super().__init__()
        self.app = app
        self.username = username
        self.password = password
        self.security_token = security_token
        self.login_url = login_url

    def refresh_access_token(self, session: requests.Session, timeout: float = 30.0) -> None:
        data = {
            "grant_type": "password",
            "username": self.username,
            "password": self.password + (self.security_token or ""),
        }
        data.update(self.app.client_fields())
        self._request_token(session, self.login_url, data, timeout)


class JwtAuth(Authentication):
    """OAuth JWT bearer flow signed with the connected app's private key."""

    def __init__(
        self,
        app: ConnectedApp,
        username: str,
        private_key: str,
        login_url: str = DEFAULT_LOGIN_URL,
        lifetime: int = 180,
    ):
        super().__init__()
        self.app = app
        self.username = username
        self.private_key = private_key
        self.login_url = login_url
        self.lifetime = lifetime

    def assertion(self) -> str:
        payload = {
            "iss": self.app.consumer_key,
            "sub": self.username,
            "aud": self.login_url,
            "exp": int(time.time()) + self.lifetime,
        }
        return jwt.encode(payload, self.private_key, algorithm="RS256")

    def refresh_access_token(self, session: requests.Session, timeout: float = 30.0) -> None:
        data = {"grant_type": JWT_BEARER_GRANT, "assertion": self.assertion()}
        self._request_token(session, self.login_url, data, timeout)


class ClientCredentialsAuth(Authentication):
    """OAuth client-credentials flow for an integration user."""

    def __init__(self, app: ConnectedApp, login_url: str = DEFAULT_LOGIN_URL):
        super().__init__()
        self.app = app
        self.login_url = login_url

    def refresh_access_token(self, session: requests.Session, timeout: float = 30.0) -> None:
        data = {"grant_type": "client_credentials"}
        data.update(self.app.client_fields())
        self._request_token(session, self.login_url, data, timeout)
