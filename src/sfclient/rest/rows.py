"""Single-record DML and retrieval through the sObject Rows resource.

Every request validates its record before any I/O. Backend rejections come
back as a failed ``DmlResult`` rather than an exception.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Dict, Iterator, List, Optional, Sequence, Type

import requests

from ..api import SalesforceRawRequest, SalesforceRequest
from ..exceptions import RecordDoesNotExistError, RecordExistsError, UpsertKeyError
from ..fields import FieldValue
from ..ids import SalesforceId
from ..sobjects import SObject, SObjectRepresentation, SObjectType
from .results import ApiError, DmlResult

if TYPE_CHECKING:
    from ..api import Connection

_logger = logging.getLogger(__name__)


class DmlRequest(SalesforceRequest):
    """Base for requests whose backend errors are reported as a failed result."""

    composite_friendly = True

    def get_error_result(
        self, conn: "Connection", errors: List[ApiError], status: Optional[int] = None
    ) -> DmlResult:
        return DmlResult.failure(errors)


def _require_id(sobject: SObjectRepresentation) -> str:
    id_value = sobject.get_id()
    if not (id_value.is_id or id_value.is_composite_reference):
        raise RecordDoesNotExistError()
    return id_value.as_string()


class SObjectCreateRequest(DmlRequest):
    method = "POST"

    def __init__(self, sobject: SObjectRepresentation):
        if not sobject.get_id().is_null:
            raise RecordExistsError()
        self.api_name = sobject.api_name
        self._body = sobject.to_value()

    @property
    def url(self) -> str:
        return f"sobjects/{self.api_name}/"

    def body(self) -> Dict[str, Any]:
        return self._body

    def get_result(self, conn: "Connection", body: Optional[Any]) -> DmlResult:
        return DmlResult.from_json(self.require_body(body))


class SObjectUpdateRequest(DmlRequest):
    method = "PATCH"

    def __init__(self, sobject: SObjectRepresentation):
        self.id = _require_id(sobject)
        self.api_name = sobject.api_name
        self._body = sobject.to_value()

    @property
    def url(self) -> str:
        return f"sobjects/{self.api_name}/{self.id}"

    def body(self) -> Dict[str, Any]:
        return self._body

    def get_result(self, conn: "Connection", body: Optional[Any]) -> DmlResult:
        # 204 No Content on success.
        return DmlResult(success=True, id=_maybe_id(self.id))


def _maybe_id(value: str) -> Optional[SalesforceId]:
    return SalesforceId(value) if SalesforceId.is_valid(value) else None


def external_id_value(
    sobject: SObjectRepresentation,
    external_id: str,
    sobject_type: Optional[SObjectType] = None,
) -> str:
    """Return the record's value for ``external_id`` as it appears in the URL.

    Raises UpsertKeyError if the field is not an external Id (or idLookup)
    field of the type, or if the record has no value for it.
    """
    sobject_type = sobject_type or getattr(sobject, "sobject_type", None)
    if sobject_type is not None:
        fd = sobject_type.get_field(external_id)
        if fd is None or not (fd.external_id or fd.id_lookup):
            raise UpsertKeyError(f"{external_id!r} is not an external Id field of {sobject_type.api_name}")

    if isinstance(sobject, SObject):
        value = sobject.get(external_id)
        text = None if value is None or value.is_null else value.as_string()
    else:
        wire = {k.lower(): v for k, v in sobject.to_value().items()}
        raw = wire.get(external_id.lower())
        text = None if raw is None else FieldValue.from_python(raw).as_string()

    if not text:
        raise UpsertKeyError(f"Record has no value for external Id field {external_id!r}")
    return text


def _without_field(body: Dict[str, Any], name: str) -> Dict[str, Any]:
    return {k: v for k, v in body.items() if k.lower() != name.lower()}


class SObjectUpsertRequest(DmlRequest):
    """Create or update by external Id (``PATCH sobjects/Type/Field/Value``)."""

    method = "PATCH"

    def __init__(
        self,
        sobject: SObjectRepresentation,
        external_id: str,
        sobject_type: Optional[SObjectType] = None,
    ):
        self.api_name = sobject.api_name
        self.external_id = external_id
        self.external_id_value = external_id_value(sobject, external_id, sobject_type)
        self._body = _without_field(sobject.to_value(), external_id)

    @property
    def url(self) -> str:
        return f"sobjects/{self.api_name}/{self.external_id}/{self.external_id_value}"

    def body(self) -> Dict[str, Any]:
        return self._body

    def get_result(self, conn: "Connection", body: Optional[Any]) -> DmlResult:
        if body is None:
            # Older API versions answer an update with 204 and no body.
            return DmlResult(success=True, created=False)
        return DmlResult.from_json(body)


class SObjectDeleteRequest(DmlRequest):
    method = "DELETE"

    def __init__(self, sobject: SObjectRepresentation):
        self.id = _require_id(sobject)
        self.api_name = sobject.api_name

    @property
    def url(self) -> str:
        return f"sobjects/{self.api_name}/{self.id}"

    def get_result(self, conn: "Connection", body: Optional[Any]) -> DmlResult:
        return DmlResult(success=True, id=_maybe_id(self.id))


class SObjectRetrieveRequest(SalesforceRequest):
    method = "GET"
    composite_friendly = True

    def __init__(
        self,
        sobject_type: SObjectType,
        id: Any,
        fields: Optional[Sequence[str]] = None,
        cls: Type[SObjectRepresentation] = SObject,
    ):
        self.sobject_type = sobject_type
        self.id = SalesforceId(id)
        self.fields = list(fields) if fields else None
        self.cls = cls

    @property
    def url(self) -> str:
        return f"sobjects/{self.sobject_type.api_name}/{self.id}/"

    def query_parameters(self) -> Optional[Dict[str, Any]]:
        if self.fields:
            return {"fields": ",".join(self.fields)}
        return None

    def get_result(self, conn: "Connection", body: Optional[Any]) -> SObjectRepresentation:
        return self.cls.from_value(self.require_body(body), self.sobject_type, resolver=conn.get_type)


class BlobRetrieveRequest(SalesforceRawRequest):
    """Stream a blob field's content (``/services/data/vXX.X/sobjects/.../Body``)."""

    method = "GET"
    stream = True

    def __init__(self, path: str, chunk_size: int = 1024 * 1024):
        self.url = path
        self.chunk_size = chunk_size

    def get_result(self, conn: "Connection", response: requests.Response) -> Iterator[bytes]:
        return response.iter_content(chunk_size=self.chunk_size)


# ----------------------------------------------------------------------
# Helpers
# ----------------------------------------------------------------------
def create(conn: "Connection", sobject: SObjectRepresentation) -> DmlResult:
    """Insert ``sobject``; on success its Id is set from the result."""
    result = conn.execute(SObjectCreateRequest(sobject))
    if result.success and result.id is not None:
        sobject.set_id(FieldValue.id(result.id))
        _logger.debug("Created %s %s", sobject.api_name, result.id)
    return result


def update(conn: "Connection", sobject: SObjectRepresentation) -> DmlResult:
    return conn.execute(SObjectUpdateRequest(sobject))


def upsert(
    conn: "Connection",
    sobject: SObjectRepresentation,
    external_id: str,
    sobject_type: Optional[SObjectType] = None,
) -> DmlResult:
    """Upsert on ``external_id``; a created record gets its new Id."""
    result = conn.execute(SObjectUpsertRequest(sobject, external_id, sobject_type))
    if result.success and result.id is not None:
        sobject.set_id(FieldValue.id(result.id))
    return result


def delete(conn: "Connection", sobject: SObjectRepresentation) -> DmlResult:
    """Delete ``sobject``; on success its Id is cleared."""
    result = conn.execute(SObjectDeleteRequest(sobject))
    if result.success:
        sobject.set_id(FieldValue.null())
    return result


def retrieve(
    conn: "Connection",
    sobject_type: SObjectType,
    id: Any,
    fields: Optional[Sequence[str]] = None,
    cls: Type[SObjectRepresentation] = SObject,
) -> SObjectRepresentation:
    return conn.execute(SObjectRetrieveRequest(sobject_type, id, fields, cls))
