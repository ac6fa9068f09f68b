from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Optional
from urllib.parse import urlencode

from ..api import BODY_METHODS, SalesforceRequest
from ..exceptions import SchemaError
from .results import is_error_list, parse_errors

if TYPE_CHECKING:
    from ..api import Connection

_logger = logging.getLogger(__name__)

# Backend limit on subrequests per composite call.
MAX_SUBREQUESTS = 25


class CompositeRequest(SalesforceRequest):
    """Bundle composite-friendly requests into one ``POST composite`` call.

    Each subrequest is keyed by a caller-chosen reference id. Later
    subrequests may refer to earlier results with ``@{key.field}``
    placeholders (e.g. as a ``FieldValue.composite_reference`` Id or field
    value); the server resolves them, the client sends them unchanged.
    """

    url = "composite"
    method = "POST"

    def __init__(
        self,
        base_url_path: str,
        all_or_none: Optional[bool] = None,
        collate_subrequests: Optional[bool] = None,
    ):
        self.base_url_path = base_url_path
        self.all_or_none = all_or_none
        self.collate_subrequests = collate_subrequests
        self._subrequests: Dict[str, Dict[str, Any]] = {}

    @classmethod
    def for_connection(cls, conn: "Connection", **kwargs: Any) -> CompositeRequest:
        return cls(conn.base_url_path, **kwargs)

    def add(self, key: str, request: SalesforceRequest) -> CompositeRequest:
        if not getattr(request, "composite_friendly", False):
            raise ValueError(f"{type(request).__name__} cannot be used in a composite request")
        if key in self._subrequests:
            raise ValueError(f"Duplicate composite reference id {key!r}")
        if len(self._subrequests) >= MAX_SUBREQUESTS:
            raise ValueError(f"A composite request holds at most {MAX_SUBREQUESTS} subrequests")

        url = request.url if request.url.startswith("/") else self.base_url_path + request.url
        params = request.query_parameters()
        if params:
            url += "?" + urlencode(params)

        method = request.method.upper()
        sub: Dict[str, Any] = {"method": method, "url": url, "referenceId": key}
        body = request.body() if method in BODY_METHODS else None
        if body is not None:
            sub["body"] = body
        self._subrequests[key] = sub
        return self

    def __len__(self) -> int:
        return len(self._subrequests)

    def body(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"compositeRequest": list(self._subrequests.values())}
        if self.all_or_none is not None:
            body["allOrNone"] = self.all_or_none
        if self.collate_subrequests is not None:
            body["collateSubrequests"] = self.collate_subrequests
        return body

    def get_result(self, conn: "Connection", body: Optional[Any]) -> CompositeResponse:
        return CompositeResponse.from_json(self.require_body(body))


@dataclass
class CompositeSubrequestResponse:
    reference_id: str
    http_status_code: int
    body: Optional[Any] = None
    http_headers: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_json(cls, value: Any) -> CompositeSubrequestResponse:
        try:
            return cls(
                reference_id=value["referenceId"],
                http_status_code=int(value["httpStatusCode"]),
                body=value.get("body"),
                http_headers=dict(value.get("httpHeaders") or {}),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise SchemaError(f"Invalid composite subresponse: {e}") from e

    @property
    def is_error(self) -> bool:
        return self.http_status_code >= 400 and is_error_list(self.body)


@dataclass
class CompositeResponse:
    composite_response: List[CompositeSubrequestResponse]

    @classmethod
    def from_json(cls, value: Any) -> CompositeResponse:
        if not isinstance(value, dict) or "compositeResponse" not in value:
            raise SchemaError("Invalid composite response payload")
        return cls([CompositeSubrequestResponse.from_json(v) for v in value["compositeResponse"]])

    def get_result_value(self, key: str) -> Optional[CompositeSubrequestResponse]:
        for sub in self.composite_response:
            if sub.reference_id == key:
                return sub
        return None

    def get_result(self, conn: "Connection", key: str, request: SalesforceRequest) -> Any:
        """Interpret subresponse ``key`` with the request that produced it."""
        sub = self.get_result_value(key)
        if sub is None:
            raise KeyError(f"Composite subrequest {key!r} does not exist")

        if sub.is_error:
            _logger.debug("Composite subrequest %s failed with HTTP %s", key, sub.http_status_code)
            return request.get_error_result(conn, parse_errors(sub.body), sub.http_status_code)
        return request.get_result(conn, sub.body)
