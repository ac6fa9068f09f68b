from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Type

from ..api import SalesforceRequest
from ..exceptions import SchemaError
from ..sobjects import AggregateResult, SObject, SObjectRepresentation, SObjectType
from ..streams import ResultStream, ResultStreamManager, ResultStreamState

if TYPE_CHECKING:
    from ..api import Connection

_logger = logging.getLogger(__name__)


@dataclass
class QueryResult:
    total_size: int
    done: bool
    records: List[Dict[str, Any]] = field(default_factory=list)
    next_records_url: Optional[str] = None

    @classmethod
    def from_json(cls, value: Any) -> QueryResult:
        try:
            return cls(
                total_size=int(value["totalSize"]),
                done=bool(value["done"]),
                records=list(value.get("records") or []),
                next_records_url=value.get("nextRecordsUrl"),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise SchemaError(f"Invalid query result: {e}") from e

    def to_state(
        self,
        conn: "Connection",
        sobject_type: Optional[SObjectType],
        cls: Type[SObjectRepresentation],
    ) -> ResultStreamState:
        records = deque(cls.from_value(r, sobject_type, resolver=conn.get_type) for r in self.records)
        return ResultStreamState(
            buffer=records,
            locator=self.next_records_url,
            total_size=self.total_size,
            done=self.done or not self.next_records_url,
        )

    def to_result_stream(
        self,
        conn: "Connection",
        sobject_type: Optional[SObjectType],
        cls: Type[SObjectRepresentation] = SObject,
        cancel: Optional[threading.Event] = None,
    ) -> ResultStream:
        return ResultStream(
            self.to_state(conn, sobject_type, cls),
            QueryStreamManager(conn, sobject_type, cls),
            cancel=cancel,
        )


class QueryRequest(SalesforceRequest):
    """Run SOQL through ``query`` (or ``queryAll`` to include deleted rows)."""

    method = "GET"
    composite_friendly = True

    def __init__(self, soql: str, all: bool = False):
        self.soql = soql
        self.all = all

    @property
    def url(self) -> str:
        return "queryAll/" if self.all else "query/"

    def query_parameters(self) -> Dict[str, Any]:
        return {"q": self.soql}

    def get_result(self, conn: "Connection", body: Optional[Any]) -> QueryResult:
        return QueryResult.from_json(self.require_body(body))


class QueryMoreRequest(SalesforceRequest):
    """Fetch the page named by a previous result's ``nextRecordsUrl``."""

    method = "GET"

    def __init__(self, next_records_url: str):
        self.url = next_records_url

    def get_result(self, conn: "Connection", body: Optional[Any]) -> QueryResult:
        return QueryResult.from_json(self.require_body(body))


class QueryStreamManager(ResultStreamManager):
    def __init__(
        self,
        conn: "Connection",
        sobject_type: Optional[SObjectType],
        cls: Type[SObjectRepresentation] = SObject,
    ):
        self.conn = conn
        self.sobject_type = sobject_type
        self.cls = cls

    def get_next_state(self, state: ResultStreamState) -> ResultStreamState:
        if not state.locator:
            return ResultStreamState(total_size=state.total_size, done=True)
        result = self.conn.execute(QueryMoreRequest(state.locator))
        _logger.debug("Fetched %d more records (done=%s)", len(result.records), result.done)
        return result.to_state(self.conn, self.sobject_type, self.cls)


def _type_for(
    conn: "Connection", sobject_type: Optional[SObjectType], cls: Type[SObjectRepresentation]
) -> SObjectType:
    if sobject_type is not None:
        return sobject_type
    api_name = getattr(cls, "api_name", None)
    if not isinstance(api_name, str) or not api_name:
        raise ValueError(f"An sObject type is required to query into {cls.__name__}")
    return conn.get_type(api_name)


def query(
    conn: "Connection",
    sobject_type: Optional[SObjectType],
    soql: str,
    all: bool = False,
    cls: Type[SObjectRepresentation] = SObject,
    cancel: Optional[threading.Event] = None,
) -> ResultStream:
    """Run ``soql`` and stream the matching records.

    The first page is fetched immediately, so request errors surface here;
    further pages are fetched as the stream is consumed. ``sobject_type`` may
    be None when ``cls`` is a SingleTypedSObject subclass.
    """
    sobject_type = _type_for(conn, sobject_type, cls)
    result = conn.execute(QueryRequest(soql, all))
    _logger.debug("Query returned %d of %d records", len(result.records), result.total_size)
    return result.to_result_stream(conn, sobject_type, cls, cancel=cancel)


def query_list(
    conn: "Connection",
    sobject_type: Optional[SObjectType],
    soql: str,
    all: bool = False,
    cls: Type[SObjectRepresentation] = SObject,
) -> List[SObjectRepresentation]:
    return list(query(conn, sobject_type, soql, all, cls))


def count_query(conn: "Connection", soql: str, all: bool = False) -> int:
    """Return ``totalSize`` for ``soql`` (e.g. ``SELECT count() FROM Account``)."""
    return conn.execute(QueryRequest(soql, all)).total_size


def aggregate_query(
    conn: "Connection", soql: str, all: bool = False
) -> ResultStream:
    """Stream the rows of an aggregate (GROUP BY) query as AggregateResults."""
    result = conn.execute(QueryRequest(soql, all))
    return result.to_result_stream(conn, None, AggregateResult)
