"""Bulk API 2.0 query jobs.

A job is created, polled until it reaches a terminal state, and its CSV
results are read page by page through a ``ResultStream``. Abandoning the
stream or cancelling a poll never aborts the job; call ``abort`` for that.
"""

from __future__ import annotations

import csv
import enum
import io
import logging
import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, Optional, Type

import requests

from .api import SalesforceRawRequest, SalesforceRequest
from .datatypes import DateTime
from .exceptions import ApiRequestError, OperationCancelledError, SchemaError
from .ids import SalesforceId
from .rest.results import ApiError
from .sobjects import SObject, SObjectRepresentation, SObjectType
from .streams import ResultStream, ResultStreamManager, ResultStreamState, value_from_csv

if TYPE_CHECKING:
    from .api import Connection

_logger = logging.getLogger(__name__)

POLL_INTERVAL = 10
RESULTS_CHUNK_SIZE = 2000
LOCATOR_HEADER = "Sforce-Locator"

COLUMN_DELIMITERS = {
    "BACKQUOTE": "`",
    "CARET": "^",
    "COMMA": ",",
    "PIPE": "|",
    "SEMICOLON": ";",
    "TAB": "\t",
}


class BulkJobStatus(enum.Enum):
    UPLOAD_COMPLETE = "UploadComplete"
    IN_PROGRESS = "InProgress"
    ABORTED = "Aborted"
    JOB_COMPLETE = "JobComplete"
    FAILED = "Failed"

    @property
    def is_completed(self) -> bool:
        return self not in (BulkJobStatus.UPLOAD_COMPLETE, BulkJobStatus.IN_PROGRESS)


class BulkQueryOperation(enum.Enum):
    QUERY = "query"
    QUERY_ALL = "queryAll"


@dataclass
class BulkQueryJob:
    id: SalesforceId
    operation: BulkQueryOperation
    object: str
    state: BulkJobStatus
    created_by_id: Optional[SalesforceId] = None
    created_date: Optional[DateTime] = None
    system_modstamp: Optional[DateTime] = None
    concurrency_mode: Optional[str] = None
    content_type: str = "CSV"
    api_version: Optional[float] = None
    line_ending: str = "LF"
    column_delimiter: str = "COMMA"
    error_message: Optional[str] = None

    @classmethod
    def from_json(cls, value: Any) -> BulkQueryJob:
        if not isinstance(value, dict):
            raise SchemaError(f"Invalid bulk job payload: {value!r}")
        try:
            return cls(
                id=SalesforceId(value["id"]),
                operation=BulkQueryOperation(value["operation"]),
                object=value["object"],
                state=BulkJobStatus(value["state"]),
                created_by_id=_opt(value.get("createdById"), SalesforceId),
                created_date=_opt(value.get("createdDate"), DateTime.parse),
                system_modstamp=_opt(value.get("systemModstamp"), DateTime.parse),
                concurrency_mode=value.get("concurrencyMode"),
                content_type=value.get("contentType", "CSV"),
                api_version=_opt(value.get("apiVersion"), float),
                line_ending=value.get("lineEnding", "LF"),
                column_delimiter=value.get("columnDelimiter", "COMMA"),
                error_message=value.get("errorMessage"),
            )
        except (KeyError, ValueError) as e:
            raise SchemaError(f"Invalid bulk job payload: {e}") from e

    @property
    def delimiter(self) -> str:
        try:
            return COLUMN_DELIMITERS[self.column_delimiter.upper()]
        except KeyError:
            raise SchemaError(f"Unknown column delimiter {self.column_delimiter!r}") from None

    # --------------------------- Lifecycle ---------------------------

    @classmethod
    def create(cls, conn: "Connection", query: str, query_all: bool = False) -> BulkQueryJob:
        job = conn.execute(BulkQueryJobCreateRequest(query, query_all))
        _logger.info("Created bulk %s job %s on %s", job.operation.value, job.id, job.object)
        return job

    def check_status(self, conn: "Connection") -> BulkQueryJob:
        return conn.execute(BulkQueryJobStatusRequest(self.id))

    def complete(
        self,
        conn: "Connection",
        poll_interval: float = POLL_INTERVAL,
        cancel: Optional[threading.Event] = None,
    ) -> BulkQueryJob:
        """Poll until the job reaches a terminal state and return that detail.

        Setting ``cancel`` stops polling with OperationCancelledError; the job
        itself keeps running.
        """
        while True:
            status = self.check_status(conn)
            _logger.debug("Bulk job %s state: %s", self.id, status.state.value)
            if status.state.is_completed:
                _logger.info("Bulk job %s finished: %s", self.id, status.state.value)
                return status

            if cancel is not None:
                if cancel.wait(poll_interval):
                    raise OperationCancelledError(f"Stopped polling bulk job {self.id}")
            else:
                time.sleep(poll_interval)

    def abort(self, conn: "Connection") -> BulkQueryJob:
        job = conn.execute(BulkQueryJobAbortRequest(self.id))
        _logger.info("Aborted bulk job %s", self.id)
        return job

    def delete(self, conn: "Connection") -> None:
        conn.execute(BulkQueryJobDeleteRequest(self.id))

    def results_stream(
        self,
        conn: "Connection",
        sobject_type: SObjectType,
        cls: Type[SObjectRepresentation] = SObject,
        max_records: int = RESULTS_CHUNK_SIZE,
        cancel: Optional[threading.Event] = None,
    ) -> ResultStream:
        manager = BulkQueryLocatorManager(conn, self, sobject_type, cls, max_records)
        return ResultStream(ResultStreamState(), manager, cancel=cancel)


def _opt(value: Any, conv: Any) -> Any:
    return None if value is None else conv(value)


# ----------------------------------------------------------------------
# Requests
# ----------------------------------------------------------------------
class _BulkJobRequest(SalesforceRequest):
    def get_result(self, conn: "Connection", body: Optional[Any]) -> BulkQueryJob:
        return BulkQueryJob.from_json(self.require_body(body))


class BulkQueryJobCreateRequest(_BulkJobRequest):
    url = "jobs/query"
    method = "POST"

    def __init__(self, query: str, query_all: bool = False):
        self.query = query
        self.operation = BulkQueryOperation.QUERY_ALL if query_all else BulkQueryOperation.QUERY

    def body(self) -> Dict[str, Any]:
        return {"operation": self.operation.value, "query": self.query}


class BulkQueryJobStatusRequest(_BulkJobRequest):
    method = "GET"

    def __init__(self, job_id: SalesforceId):
        self.url = f"jobs/query/{job_id}"


class BulkQueryJobAbortRequest(_BulkJobRequest):
    method = "PATCH"

    def __init__(self, job_id: SalesforceId):
        self.url = f"jobs/query/{job_id}"

    def body(self) -> Dict[str, Any]:
        return {"state": BulkJobStatus.ABORTED.value}


class BulkQueryJobDeleteRequest(SalesforceRequest):
    method = "DELETE"

    def __init__(self, job_id: SalesforceId):
        self.url = f"jobs/query/{job_id}"

    def get_result(self, conn: "Connection", body: Optional[Any]) -> None:
        return None


@dataclass
class BulkQueryJobResults:
    locator: Optional[str]
    content: str


class BulkQueryJobResultsRequest(SalesforceRawRequest):
    method = "GET"

    def __init__(self, job_id: SalesforceId, locator: Optional[str], max_records: int):
        self.url = f"jobs/query/{job_id}/results"
        self.locator = locator
        self.max_records = max_records

    def query_parameters(self) -> Dict[str, Any]:
        params: Dict[str, Any] = {"maxRecords": str(self.max_records)}
        if self.locator:
            params["locator"] = self.locator
        return params

    def get_result(self, conn: "Connection", response: requests.Response) -> BulkQueryJobResults:
        locator = response.headers.get(LOCATOR_HEADER)
        if locator is None:
            raise SchemaError("No record set locator returned")
        response.encoding = response.encoding or "utf-8"
        return BulkQueryJobResults(
            locator=None if locator == "null" else locator,
            content=response.text,
        )


class BulkQueryLocatorManager(ResultStreamManager):
    def __init__(
        self,
        conn: "Connection",
        job: BulkQueryJob,
        sobject_type: SObjectType,
        cls: Type[SObjectRepresentation] = SObject,
        max_records: int = RESULTS_CHUNK_SIZE,
    ):
        self.conn = conn
        self.job = job
        self.sobject_type = sobject_type
        self.cls = cls
        self.max_records = max_records

    def get_next_state(self, state: ResultStreamState) -> ResultStreamState:
        results = self.conn.execute_raw(
            BulkQueryJobResultsRequest(self.job.id, state.locator, self.max_records)
        )
        reader = csv.DictReader(io.StringIO(results.content), delimiter=self.job.delimiter)
        buffer = deque(
            self.cls.from_value(value_from_csv(row, self.sobject_type), self.sobject_type)
            for row in reader
        )
        _logger.debug("Bulk job %s: read %d rows (locator=%s)", self.job.id, len(buffer), results.locator)
        return ResultStreamState(buffer=buffer, locator=results.locator, done=results.locator is None)


def bulk_query(
    conn: "Connection",
    sobject_type: SObjectType,
    soql: str,
    all: bool = False,
    cls: Type[SObjectRepresentation] = SObject,
    poll_interval: float = POLL_INTERVAL,
    cancel: Optional[threading.Event] = None,
) -> ResultStream:
    """Run ``soql`` as a bulk query job and stream its results.

    Blocks until the job finishes. A job that ends Failed or Aborted raises
    ApiRequestError carrying the job's error message.
    """
    job = BulkQueryJob.create(conn, soql, all)
    finished = job.complete(conn, poll_interval=poll_interval, cancel=cancel)
    if finished.state is not BulkJobStatus.JOB_COMPLETE:
        message = finished.error_message or f"Bulk job {job.id} ended in state {finished.state.value}"
        raise ApiRequestError([ApiError(message=message, error_code=finished.state.value)])
    return finished.results_stream(conn, sobject_type, cls, cancel=cancel)
