"""Forward-only record streams over paginated endpoints.

Ordinary queries (``nextRecordsUrl``) and bulk query results (the
``Sforce-Locator`` header) share one shape: a page of records, an opaque
continuation token and a done flag. A ``ResultStreamManager`` knows how to
fetch the next page for one of those protocols; ``ResultStream`` turns the
pages into a plain Python iterator.
"""

from __future__ import annotations

import abc
import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, Generic, Iterator, List, Mapping, Optional, TypeVar

from .exceptions import OperationCancelledError, SchemaError
from .fields import FieldValue
from .sobjects import SObjectType

_logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class ResultStreamState:
    buffer: Deque[Any] = field(default_factory=deque)
    locator: Optional[str] = None
    total_size: Optional[int] = None
    done: bool = False


class ResultStreamManager(abc.ABC):
    @abc.abstractmethod
    def get_next_state(self, state: ResultStreamState) -> ResultStreamState:
        """Fetch the page after ``state`` and return the state that replaces it."""


class ResultStream(Generic[T]):
    """Iterator yielding records page by page.

    Records already buffered are returned without I/O; when the buffer runs
    dry and the stream is not done, the manager fetches the next page. Only
    one fetch may be in flight, and a stream must not be consumed from more
    than one thread. Abandoning a stream has no server-side effect.
    """

    def __init__(
        self,
        state: Optional[ResultStreamState],
        manager: ResultStreamManager,
        cancel: Optional[threading.Event] = None,
    ):
        self._state = state or ResultStreamState()
        self._manager = manager
        self._cancel = cancel
        self._fetching = threading.Lock()
        self._yielded = 0
        self._closed = False

    def __iter__(self) -> Iterator[T]:
        return self

    def __next__(self) -> T:
        while True:
            if self._state.buffer:
                self._yielded += 1
                return self._state.buffer.popleft()
            if self._state.done or self._closed:
                raise StopIteration
            self._fetch()

    def _fetch(self) -> None:
        if not self._fetching.acquire(blocking=False):
            raise RuntimeError("ResultStream is already fetching; it cannot be consumed concurrently")
        try:
            if self._cancel is not None and self._cancel.is_set():
                self._closed = True
                raise OperationCancelledError("Result stream cancelled")
            _logger.debug(
                "Fetching next page (locator=%s, yielded=%d)", self._state.locator, self._yielded
            )
            self._state = self._manager.get_next_state(self._state)
        finally:
            self._fetching.release()

    def size_hint(self) -> Optional[int]:
        """Records remaining according to the server's total, if it reported one."""
        if self._state.total_size is None:
            return None
        return max(self._state.total_size - self._yielded, 0)

    def __length_hint__(self) -> int:
        hint = self.size_hint()
        return NotImplemented if hint is None else hint

    def close(self) -> None:
        """Stop fetching; records already buffered are dropped."""
        self._closed = True
        self._state.buffer.clear()

    def __enter__(self) -> ResultStream[T]:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    @property
    def done(self) -> bool:
        return (self._state.done or self._closed) and not self._state.buffer

    def to_list(self) -> List[T]:
        return list(self)


def value_from_csv(row: Mapping[str, str], sobject_type: SObjectType) -> Dict[str, Any]:
    """Convert one CSV row to wire JSON, using the describe's field-name case.

    Every column must name a field declared on ``sobject_type``; values are
    typed by the field's soap type, with empty cells read as null.
    """
    out: Dict[str, Any] = {}
    for column, text in row.items():
        if column is None:
            raise SchemaError("CSV row has more cells than the header")
        fd = sobject_type.get_field(column)
        if fd is None:
            raise SchemaError(f"CSV column {column!r} is not a field of {sobject_type.api_name}")
        out[fd.name] = FieldValue.from_str(text if text is not None else "", fd.soap_type).to_json()
    return out
