from __future__ import annotations

import abc
import logging
import threading
from typing import Any, Dict, List, Optional

import requests

from .auth import Authentication
from .exceptions import (
    ApiRequestError,
    AuthenticationError,
    CannotRefreshError,
    NotAuthenticatedError,
    ResponseBodyExpectedError,
    SchemaError,
)
from .rest.results import ApiError, is_error_list, parse_errors
from .sobjects import SObjectType

__author__ = "Kevin Steptoe"
__copyright__ = "Kevin Steptoe"
__license__ = "MIT"

_logger = logging.getLogger(__name__)

DEFAULT_API_VERSION = "v52.0"

# Methods for which a JSON body is sent.
BODY_METHODS = ("POST", "PUT", "PATCH")


# ----------------------------------------------------------------------
# Request contract
# ----------------------------------------------------------------------
class SalesforceRequest(abc.ABC):
    """A JSON request against the REST API.

    ``url`` is relative to ``/services/data/{version}/`` unless it starts with
    ``/`` (an absolute path on the instance, as in ``nextRecordsUrl``).
    ``composite_friendly`` requests may be bundled into a ``CompositeRequest``.
    """

    url: str = ""
    method: str = "GET"
    composite_friendly: bool = False

    def body(self) -> Optional[Any]:
        return None

    def query_parameters(self) -> Optional[Dict[str, Any]]:
        return None

    def require_body(self, body: Optional[Any]) -> Any:
        if body is None:
            raise ResponseBodyExpectedError()
        return body

    @abc.abstractmethod
    def get_result(self, conn: Connection, body: Optional[Any]) -> Any:
        """Interpret a successful response; ``body`` is None for HTTP 204."""

    def get_error_result(
        self, conn: Connection, errors: List[ApiError], status: Optional[int] = None
    ) -> Any:
        """Interpret a structured error response.

        The default raises; DML requests override this to return the errors
        as a failed result instead.
        """
        raise ApiRequestError(errors, status)


class SalesforceRawRequest(abc.ABC):
    """A request whose body or response is not JSON (CSV uploads, blobs)."""

    url: str = ""
    method: str = "GET"
    mime_type: Optional[str] = None
    stream: bool = False

    def body(self) -> Optional[Any]:
        return None

    def query_parameters(self) -> Optional[Dict[str, Any]]:
        return None

    @abc.abstractmethod
    def get_result(self, conn: Connection, response: requests.Response) -> Any:
        """Interpret the raw HTTP response."""

    def get_error_result(
        self, conn: Connection, errors: List[ApiError], status: Optional[int] = None
    ) -> Any:
        raise ApiRequestError(errors, status)


class JsonRequest(SalesforceRequest):
    """Ad-hoc request that returns the decoded body unchanged."""

    composite_friendly = True

    def __init__(
        self,
        url: str,
        method: str = "GET",
        body: Optional[Any] = None,
        params: Optional[Dict[str, Any]] = None,
    ):
        self.url = url
        self.method = method
        self._body = body
        self._params = params

    def body(self) -> Optional[Any]:
        return self._body

    def query_parameters(self) -> Optional[Dict[str, Any]]:
        return self._params

    def get_result(self, conn: Connection, body: Optional[Any]) -> Any:
        return body


# Default for refresh_access_token: refresh regardless of the current token.
_FORCE = object()


class _PendingRefresh:
    """Completion signal shared by every caller waiting on one refresh."""

    def __init__(self) -> None:
        self.done = threading.Event()
        self.error: Optional[BaseException] = None


# ----------------------------------------------------------------------
# Connection
# ----------------------------------------------------------------------
class Connection:
    """Shared handle for one org: auth state, API version and type cache.

    A Connection is safe to use from many threads at once. Its two pieces of
    shared state are the Authentication (guarded by ``_auth_lock``) and the
    sObject type cache (guarded by ``_types_lock``).
    """

    def __init__(
        self,
        auth: Authentication,
        api_version: str = DEFAULT_API_VERSION,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.auth = auth
        self.api_version = api_version
        self.timeout = timeout
        self.session = session or requests.Session()

        self._auth_lock = threading.Lock()
        self._decision_lock = threading.Lock()
        self._pending_refresh: Optional[_PendingRefresh] = None

        self._types_lock = threading.Lock()
        self._types: Dict[str, SObjectType] = {}

    # --------------------------- Auth --------------------------------

    def current_access_token(self) -> Optional[str]:
        with self._auth_lock:
            return self.auth.access_token

    def refresh_access_token(self, stale_token: Any = _FORCE) -> None:
        """Refresh the access token, coordinating with concurrent callers.

        The first caller becomes the refresher; anyone arriving while that
        refresh is in flight waits for it to finish and shares its outcome
        instead of issuing a second token request. If ``stale_token`` is given
        and a token other than it is now current, another caller has refreshed
        since it was read and nothing is done. ``stale_token=None`` means
        "refresh only if there is still no token".
        """
        with self._decision_lock:
            pending = self._pending_refresh
            leader = pending is None
            if leader:
                pending = self._pending_refresh = _PendingRefresh()

        if not leader:
            _logger.debug("Waiting for in-flight token refresh")
            pending.done.wait()
            if pending.error is not None:
                raise pending.error
            return

        try:
            with self._auth_lock:
                current = self.auth.access_token
                if stale_token is not _FORCE and current is not None and current != stale_token:
                    _logger.debug("Access token already refreshed by another caller")
                    return
                self.auth.refresh_access_token(self.session, timeout=self.timeout)
            _logger.info("Refreshed access token for %s", self.auth.instance_url)
        except BaseException as e:
            pending.error = e
            _logger.warning("Access token refresh failed: %s", e)
            raise
        finally:
            with self._decision_lock:
                self._pending_refresh = None
            pending.done.set()

    def get_access_token(self) -> str:
        """Return the current token, refreshing (and retrying once) if there is none."""
        for _ in range(2):
            token = self.current_access_token()
            if token is not None:
                return token
            self.refresh_access_token(stale_token=None)
        token = self.current_access_token()
        if token is None:
            raise CannotRefreshError("Unable to obtain an access token")
        return token

    def get_instance_url(self) -> str:
        with self._auth_lock:
            has_token = self.auth.access_token is not None
            url = self.auth.instance_url
        if url and has_token:
            return url

        self.get_access_token()
        with self._auth_lock:
            if not self.auth.instance_url:
                raise NotAuthenticatedError()
            return self.auth.instance_url

    @property
    def base_url_path(self) -> str:
        return f"/services/data/{self.api_version}/"

    def get_base_url(self) -> str:
        return self.get_instance_url() + self.base_url_path

    # --------------------------- Types -------------------------------

    def get_type(self, api_name: str) -> SObjectType:
        """Return the cached SObjectType for ``api_name``, describing it on first use.

        The describe runs while the cache lock is held so that concurrent
        lookups never issue duplicate describes. Names are matched
        case-insensitively.
        """
        from .rest.describe import SObjectDescribeRequest

        key = api_name.lower()
        with self._types_lock:
            cached = self._types.get(key)
            if cached is not None:
                return cached

            _logger.debug("Type cache miss for %s; describing", api_name)
            describe = self.execute(SObjectDescribeRequest(api_name))
            sobject_type = SObjectType(describe.name, describe)
            self._types[key] = sobject_type
            return sobject_type

    # --------------------------- Execution ---------------------------

    def execute(self, request: SalesforceRequest) -> Any:
        """Send a JSON request and return ``request.get_result(...)``."""
        method = request.method.upper()
        url = self._resolve_url(request.url)
        body = request.body() if method in BODY_METHODS else None

        r = self._send(method, url, params=request.query_parameters(), json=body)

        if r.status_code == 204:
            return request.get_result(self, None)
        if r.status_code < 400:
            if not r.content:
                return request.get_result(self, None)
            try:
                payload = r.json()
            except ValueError as e:
                raise SchemaError(f"Malformed JSON response from {url}: {e}") from e
            return request.get_result(self, payload)

        return self._handle_error(request, r, url)

    def execute_raw(self, request: SalesforceRawRequest) -> Any:
        """Send a raw request and hand the response to ``request.get_result``."""
        method = request.method.upper()
        url = self._resolve_url(request.url)
        headers = {"Content-Type": request.mime_type} if request.mime_type else None

        r = self._send(
            method,
            url,
            params=request.query_parameters(),
            data=request.body(),
            headers=headers,
            stream=request.stream,
        )
        if r.status_code < 400:
            return request.get_result(self, r)
        return self._handle_error(request, r, url)

    # --------------------------- Discovery ---------------------------

    def limits(self) -> Dict[str, Any]:
        """Return API usage limits."""
        return self.execute(JsonRequest("limits"))

    def describe_global(self) -> List[Dict[str, Any]]:
        """Return the sObjects available in the org (``GET sobjects``)."""
        from .rest.describe import DescribeGlobalRequest

        return self.execute(DescribeGlobalRequest())

    def versions(self) -> List[Dict[str, Any]]:
        """Return the API versions the instance supports, oldest first."""
        return self.execute(JsonRequest("/services/data/"))

    def latest_version(self) -> str:
        versions = self.versions()
        best = sorted(versions, key=lambda v: float(v.get("version", "0")), reverse=True)[0]
        return best.get("url", "").rstrip("/").split("/")[-1]

    # --------------------------- Internal helpers --------------------

    def _resolve_url(self, url: str) -> str:
        if url.startswith(("http://", "https://")):
            return url
        if url.startswith("/"):
            return self.get_instance_url() + url
        return self.get_base_url() + url

    def _send(
        self,
        method: str,
        url: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Any] = None,
        data: Optional[Any] = None,
        headers: Optional[Dict[str, str]] = None,
        stream: bool = False,
    ) -> requests.Response:
        """Send one request; on HTTP 401 refresh once and resend once."""
        token = self.get_access_token()
        r = self._send_once(method, url, token, params, json, data, headers, stream)
        if r.status_code != 401:
            return r

        _logger.warning("HTTP 401 for %s %s; refreshing token and retrying once", method, url)
        self.refresh_access_token(stale_token=token)
        token = self.get_access_token()
        r = self._send_once(method, url, token, params, json, data, headers, stream)
        if r.status_code == 401:
            raise AuthenticationError(f"Request to {url} was rejected after refreshing the access token")
        return r

    def _send_once(
        self,
        method: str,
        url: str,
        token: str,
        params: Optional[Dict[str, Any]],
        json: Optional[Any],
        data: Optional[Any],
        headers: Optional[Dict[str, str]],
        stream: bool,
    ) -> requests.Response:
        all_headers = {"Authorization": f"Bearer {token}"}
        if headers:
            all_headers.update(headers)

        _logger.debug("%s %s params=%s", method, url, params)
        return self.session.request(
            method,
            url,
            params=params,
            json=json,
            data=data,
            headers=all_headers,
            timeout=self.timeout,
            stream=stream,
        )

    def _handle_error(self, request: Any, r: requests.Response, url: str) -> Any:
        try:
            detail = r.json()
        except ValueError:
            detail = r.text

        if is_error_list(detail):
            return request.get_error_result(self, parse_errors(detail), r.status_code)

        _logger.error("HTTP %s error for %s: %s", r.status_code, url, detail)
        r.raise_for_status()
        raise requests.HTTPError(f"HTTP {r.status_code} error for {url}", response=r)
