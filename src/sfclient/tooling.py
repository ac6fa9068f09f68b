from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, Optional

from .api import SalesforceRequest
from .exceptions import SchemaError

if TYPE_CHECKING:
    from .api import Connection

_logger = logging.getLogger(__name__)


@dataclass
class ExecuteAnonymousResult:
    line: int
    column: int
    compiled: bool
    success: bool
    compile_problem: Optional[str] = None
    exception_stack_trace: Optional[str] = None
    exception_message: Optional[str] = None

    @classmethod
    def from_json(cls, value: Any) -> ExecuteAnonymousResult:
        try:
            return cls(
                line=int(value["line"]),
                column=int(value["column"]),
                compiled=bool(value["compiled"]),
                success=bool(value["success"]),
                compile_problem=value.get("compileProblem"),
                exception_stack_trace=value.get("exceptionStackTrace"),
                exception_message=value.get("exceptionMessage"),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise SchemaError(f"Invalid executeAnonymous result: {e}") from e


class ExecuteAnonymousApexRequest(SalesforceRequest):
    url = "tooling/executeAnonymous"
    method = "GET"
    composite_friendly = True

    def __init__(self, anonymous_body: str):
        self.anonymous_body = anonymous_body

    def query_parameters(self) -> Dict[str, Any]:
        return {"anonymousBody": self.anonymous_body}

    def get_result(self, conn: "Connection", body: Optional[Any]) -> ExecuteAnonymousResult:
        return ExecuteAnonymousResult.from_json(self.require_body(body))


def execute_anonymous(conn: "Connection", anonymous_body: str) -> ExecuteAnonymousResult:
    """Run anonymous Apex; compile and runtime failures are reported in the result."""
    result = conn.execute(ExecuteAnonymousApexRequest(anonymous_body))
    if not result.success:
        _logger.warning(
            "Anonymous Apex failed at %d:%d: %s",
            result.line,
            result.column,
            result.compile_problem or result.exception_message,
        )
    return result
