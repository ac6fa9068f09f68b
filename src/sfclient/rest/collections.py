"""sObject Collections DML and the parallel batched DML runner.

Collection requests carry at most 200 records; that limit and the per-record
Id rules are checked before any I/O. Results are returned per record, in
submission order, as ``DmlResult``; a rejected request reports the same
failure for every record it carried.
"""

from __future__ import annotations

import enum
import logging
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from itertools import islice
from typing import (
    TYPE_CHECKING,
    Any,
    Dict,
    Iterable,
    Iterator,
    List,
    Optional,
    Sequence,
    Tuple,
    Type,
)

from tqdm import tqdm

from ..api import SalesforceRequest
from ..exceptions import RecordDoesNotExistError, RecordExistsError, SchemaError, SObjectCollectionError
from ..fields import FieldValue
from ..ids import SalesforceId
from ..sobjects import SObject, SObjectRepresentation, SObjectType
from .results import ApiError, DmlResult
from .rows import external_id_value

if TYPE_CHECKING:
    from ..api import Connection

_logger = logging.getLogger(__name__)

MAX_BATCH_SIZE = 200


def _check_size(records: Sequence[Any]) -> None:
    if not records:
        raise SObjectCollectionError("A collection request needs at least one record")
    if len(records) > MAX_BATCH_SIZE:
        raise SObjectCollectionError(
            f"A collection request holds at most {MAX_BATCH_SIZE} records, got {len(records)}"
        )


def _require_ids(records: Sequence[SObjectRepresentation]) -> List[str]:
    ids = []
    for r in records:
        id_value = r.get_id()
        if not id_value.is_id:
            raise RecordDoesNotExistError()
        ids.append(id_value.as_string())
    return ids


class CollectionDmlRequest(SalesforceRequest):
    composite_friendly = True

    def __init__(self, records: Sequence[SObjectRepresentation], all_or_none: bool = False):
        _check_size(records)
        self.records = list(records)
        self.all_or_none = all_or_none

    def get_result(self, conn: "Connection", body: Optional[Any]) -> List[DmlResult]:
        results = DmlResult.from_json_list(self.require_body(body))
        if len(results) != len(self.records):
            raise SchemaError(f"Expected {len(self.records)} results, got {len(results)}")
        return results

    def get_error_result(
        self, conn: "Connection", errors: List[ApiError], status: Optional[int] = None
    ) -> List[DmlResult]:
        return [DmlResult.failure(errors) for _ in self.records]


class SObjectCollectionCreateRequest(CollectionDmlRequest):
    url = "composite/sobjects"
    method = "POST"

    def __init__(self, records: Sequence[SObjectRepresentation], all_or_none: bool = False):
        super().__init__(records, all_or_none)
        if any(not r.get_id().is_null for r in self.records):
            raise RecordExistsError()

    def body(self) -> Dict[str, Any]:
        return {
            "allOrNone": self.all_or_none,
            "records": [r.to_value(include_type=True) for r in self.records],
        }


class SObjectCollectionUpdateRequest(CollectionDmlRequest):
    url = "composite/sobjects"
    method = "PATCH"

    def __init__(self, records: Sequence[SObjectRepresentation], all_or_none: bool = False):
        super().__init__(records, all_or_none)
        _require_ids(self.records)

    def body(self) -> Dict[str, Any]:
        return {
            "allOrNone": self.all_or_none,
            "records": [r.to_value(include_type=True, include_id=True) for r in self.records],
        }


class SObjectCollectionUpsertRequest(CollectionDmlRequest):
    """Upsert records of a single type on an external Id field."""

    method = "PATCH"

    def __init__(
        self,
        records: Sequence[SObjectRepresentation],
        external_id: str,
        all_or_none: bool = False,
        sobject_type: Optional[SObjectType] = None,
    ):
        super().__init__(records, all_or_none)
        api_names = {r.api_name.lower() for r in self.records}
        if len(api_names) != 1:
            raise SObjectCollectionError("An upsert collection must hold records of a single type")
        for r in self.records:
            external_id_value(r, external_id, sobject_type)
        self.api_name = self.records[0].api_name
        self.external_id = external_id

    @property
    def url(self) -> str:
        return f"composite/sobjects/{self.api_name}/{self.external_id}"

    def body(self) -> Dict[str, Any]:
        return {
            "allOrNone": self.all_or_none,
            "records": [r.to_value(include_type=True) for r in self.records],
        }


class SObjectCollectionDeleteRequest(CollectionDmlRequest):
    url = "composite/sobjects"
    method = "DELETE"

    def __init__(self, records: Sequence[SObjectRepresentation], all_or_none: bool = False):
        super().__init__(records, all_or_none)
        self.ids = _require_ids(self.records)

    def query_parameters(self) -> Dict[str, Any]:
        return {"ids": ",".join(self.ids), "allOrNone": "true" if self.all_or_none else "false"}


class SObjectCollectionRetrieveRequest(SalesforceRequest):
    """Fetch up to 2000 records of one type by Id; missing records come back as None."""

    method = "POST"
    composite_friendly = True
    max_ids = 2000

    def __init__(
        self,
        sobject_type: SObjectType,
        ids: Sequence[Any],
        fields: Sequence[str],
        cls: Type[SObjectRepresentation] = SObject,
    ):
        if not ids or len(ids) > self.max_ids:
            raise SObjectCollectionError(f"A retrieve request takes 1 to {self.max_ids} Ids")
        if not fields:
            raise SObjectCollectionError("A retrieve request needs at least one field")
        self.sobject_type = sobject_type
        self.ids = [SalesforceId(i) for i in ids]
        self.fields = list(fields)
        self.cls = cls

    @property
    def url(self) -> str:
        return f"composite/sobjects/{self.sobject_type.api_name}"

    def body(self) -> Dict[str, Any]:
        return {"ids": [str(i) for i in self.ids], "fields": self.fields}

    def get_result(self, conn: "Connection", body: Optional[Any]) -> List[Optional[SObjectRepresentation]]:
        body = self.require_body(body)
        if not isinstance(body, list):
            raise SchemaError("Expected a list of records")
        return [
            None if r is None else self.cls.from_value(r, self.sobject_type, resolver=conn.get_type)
            for r in body
        ]


# ----------------------------------------------------------------------
# Helpers
# ----------------------------------------------------------------------
class DmlOperation(enum.Enum):
    CREATE = "create"
    UPDATE = "update"
    UPSERT = "upsert"
    DELETE = "delete"


def build_request(
    operation: DmlOperation,
    records: Sequence[SObjectRepresentation],
    all_or_none: bool = False,
    external_id: Optional[str] = None,
) -> CollectionDmlRequest:
    if operation is DmlOperation.CREATE:
        return SObjectCollectionCreateRequest(records, all_or_none)
    if operation is DmlOperation.UPDATE:
        return SObjectCollectionUpdateRequest(records, all_or_none)
    if operation is DmlOperation.UPSERT:
        if not external_id:
            raise ValueError("upsert needs an external_id field name")
        return SObjectCollectionUpsertRequest(records, external_id, all_or_none)
    return SObjectCollectionDeleteRequest(records, all_or_none)


def apply_results(
    operation: DmlOperation,
    records: Sequence[SObjectRepresentation],
    results: Sequence[DmlResult],
) -> None:
    """Reflect DML results onto the in-memory records (new Ids, cleared Ids)."""
    for record, result in zip(records, results):
        if not result.success:
            continue
        if operation in (DmlOperation.CREATE, DmlOperation.UPSERT) and result.id is not None:
            record.set_id(FieldValue.id(result.id))
        elif operation is DmlOperation.DELETE:
            record.set_id(FieldValue.null())


def _run(
    conn: "Connection",
    operation: DmlOperation,
    records: Sequence[SObjectRepresentation],
    all_or_none: bool,
    external_id: Optional[str] = None,
) -> List[DmlResult]:
    results = conn.execute(build_request(operation, records, all_or_none, external_id))
    apply_results(operation, records, results)
    return results


def create_records(
    conn: "Connection", records: Sequence[SObjectRepresentation], all_or_none: bool = False
) -> List[DmlResult]:
    return _run(conn, DmlOperation.CREATE, records, all_or_none)


def update_records(
    conn: "Connection", records: Sequence[SObjectRepresentation], all_or_none: bool = False
) -> List[DmlResult]:
    return _run(conn, DmlOperation.UPDATE, records, all_or_none)


def upsert_records(
    conn: "Connection",
    records: Sequence[SObjectRepresentation],
    external_id: str,
    all_or_none: bool = False,
) -> List[DmlResult]:
    return _run(conn, DmlOperation.UPSERT, records, all_or_none, external_id)


def delete_records(
    conn: "Connection", records: Sequence[SObjectRepresentation], all_or_none: bool = False
) -> List[DmlResult]:
    return _run(conn, DmlOperation.DELETE, records, all_or_none)


def retrieve_records(
    conn: "Connection",
    sobject_type: SObjectType,
    ids: Sequence[Any],
    fields: Sequence[str],
    cls: Type[SObjectRepresentation] = SObject,
) -> List[Optional[SObjectRepresentation]]:
    return conn.execute(SObjectCollectionRetrieveRequest(sobject_type, ids, fields, cls))


# ----------------------------------------------------------------------
# Batched DML
# ----------------------------------------------------------------------
def _chunked(records: Iterable[Any], size: int) -> Iterator[List[Any]]:
    it = iter(records)
    while True:
        chunk = list(islice(it, size))
        if not chunk:
            return
        yield chunk


def batch_dml(
    conn: "Connection",
    records: Iterable[SObjectRepresentation],
    operation: Any,
    batch_size: int = MAX_BATCH_SIZE,
    parallel: int = 4,
    all_or_none: bool = False,
    external_id: Optional[str] = None,
    progress: bool = False,
) -> Iterator[DmlResult]:
    """Run ``operation`` over ``records`` in collection-sized chunks.

    ``records`` is consumed lazily, and at most ``parallel`` chunk requests
    are in flight at once. Results are yielded per record as their chunk
    completes: in submission order within a chunk, in completion order across
    chunks. Created and deleted records have their Ids updated.
    """
    op = DmlOperation(operation)
    if batch_size < 1 or batch_size > MAX_BATCH_SIZE:
        raise SObjectCollectionError(
            f"batch_size must be between 1 and {MAX_BATCH_SIZE}, got {batch_size}"
        )
    if parallel < 1:
        raise ValueError("parallel must be at least 1")
    if op is DmlOperation.UPSERT and not external_id:
        raise ValueError("upsert needs an external_id field name")

    return _batch_dml(conn, records, op, batch_size, parallel, all_or_none, external_id, progress)


def _batch_dml(
    conn: "Connection",
    records: Iterable[SObjectRepresentation],
    op: DmlOperation,
    batch_size: int,
    parallel: int,
    all_or_none: bool,
    external_id: Optional[str],
    progress: bool,
) -> Iterator[DmlResult]:
    chunks = _chunked(records, batch_size)
    in_flight: Dict[Future, Tuple[int, List[SObjectRepresentation]]] = {}
    submitted = 0

    with ThreadPoolExecutor(max_workers=parallel) as ex, tqdm(
        desc=f"Records ({op.value})", unit="rec", disable=not progress
    ) as bar:

        def submit_next() -> None:
            nonlocal submitted
            chunk = next(chunks, None)
            if chunk is None:
                return
            # Build before submitting so validation errors surface in the caller's thread.
            request = build_request(op, chunk, all_or_none, external_id)
            submitted += 1
            in_flight[ex.submit(conn.execute, request)] = (submitted, chunk)

        try:
            for _ in range(parallel):
                submit_next()

            while in_flight:
                done, _ = wait(in_flight, return_when=FIRST_COMPLETED)
                for fut in done:
                    number, chunk = in_flight.pop(fut)
                    results = fut.result()
                    apply_results(op, chunk, results)
                    failed = sum(1 for r in results if not r.success)
                    _logger.info(
                        "Batch %d (%s): %d records, %d failed", number, op.value, len(chunk), failed
                    )
                    bar.update(len(chunk))
                    submit_next()
                    yield from results
        except BaseException:
            _settle(op, in_flight)
            raise


def _settle(
    op: DmlOperation, in_flight: Dict[Future, Tuple[int, List[SObjectRepresentation]]]
) -> None:
    """Wait for chunks already sent and apply their results before bailing out."""
    for fut, (number, chunk) in in_flight.items():
        try:
            results = fut.result()
        except Exception as e:
            _logger.warning("Batch %d (%s) failed while stopping: %s", number, op.value, e)
            continue
        apply_results(op, chunk, results)
    in_flight.clear()
