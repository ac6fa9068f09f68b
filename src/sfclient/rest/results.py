"""Result structures for DML operations, shared across the rows, collections
and composite APIs."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Optional

from ..exceptions import ApiRequestError, SchemaError
from ..ids import SalesforceId


@dataclass
class ApiError:
    message: str
    # The sObject Rows endpoints use errorCode, the Collections endpoints use statusCode.
    error_code: Optional[str] = None
    status_code: Optional[str] = None
    fields: List[str] = field(default_factory=list)

    @property
    def code(self) -> Optional[str]:
        return self.error_code or self.status_code

    @classmethod
    def from_json(cls, value: Any) -> ApiError:
        if not isinstance(value, dict) or "message" not in value:
            raise SchemaError(f"Invalid API error payload: {value!r}")
        return cls(
            message=value["message"],
            error_code=value.get("errorCode"),
            status_code=value.get("statusCode"),
            fields=list(value.get("fields") or []),
        )

    def __str__(self) -> str:
        text = f"{self.code or 'ERROR'} ({self.message})"
        if self.fields:
            text += " on fields " + ", ".join(self.fields)
        return text


# Collections and rows report the same shape for per-record failures.
DmlError = ApiError


def is_error_list(body: Any) -> bool:
    return (
        isinstance(body, list)
        and len(body) > 0
        and all(isinstance(e, dict) and "message" in e for e in body)
    )


def parse_errors(body: Any) -> List[ApiError]:
    if not isinstance(body, list):
        raise SchemaError(f"Expected a list of errors, got {body!r}")
    return [ApiError.from_json(e) for e in body]


@dataclass
class DmlResult:
    """Outcome of one record's create, update, upsert or delete."""

    success: bool
    id: Optional[SalesforceId] = None
    errors: List[ApiError] = field(default_factory=list)
    created: Optional[bool] = None

    @classmethod
    def from_json(cls, value: Any) -> DmlResult:
        if not isinstance(value, dict) or "success" not in value:
            raise SchemaError(f"Invalid DML result payload: {value!r}")
        raw_id = value.get("id")
        return cls(
            success=bool(value["success"]),
            id=SalesforceId(raw_id) if raw_id else None,
            errors=[ApiError.from_json(e) for e in value.get("errors") or []],
            created=value.get("created"),
        )

    @classmethod
    def from_json_list(cls, value: Any) -> List[DmlResult]:
        if not isinstance(value, list):
            raise SchemaError(f"Expected a list of DML results, got {value!r}")
        return [cls.from_json(v) for v in value]

    @classmethod
    def failure(cls, errors: List[ApiError]) -> DmlResult:
        return cls(success=False, errors=list(errors))

    def raise_for_errors(self) -> DmlResult:
        """Raise ApiRequestError if this result is a failure; return self otherwise."""
        if not self.success:
            raise ApiRequestError(self.errors)
        return self
