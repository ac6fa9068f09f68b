from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional

if TYPE_CHECKING:
    from .rest.results import ApiError


class SalesforceError(RuntimeError):
    """Base class for every error raised by sfclient."""


class InvalidIdError(SalesforceError):
    """Raised when a value is not a valid 15- or 18-character Salesforce Id."""

    def __init__(self, value: object):
        self.value = value
        super().__init__(f"Invalid Salesforce Id: {value!r}")


class RecordExistsError(SalesforceError):
    def __init__(self) -> None:
        super().__init__("Cannot create record with an Id")


class RecordDoesNotExistError(SalesforceError):
    def __init__(self) -> None:
        super().__init__("Cannot perform this operation on a record without an Id")


class SObjectCollectionError(SalesforceError):
    """Raised when an sObject Collections API limitation would be breached."""


class UnsupportedIdError(SalesforceError):
    def __init__(self, value: object = None):
        super().__init__(
            f"An unsupported Id value (such as {value!r}) was provided; "
            "only Ids, null, or composite references are allowed"
        )


class UpsertKeyError(SalesforceError):
    """Raised when an upsert names an external Id field the record cannot supply."""


class DateTimeError(SalesforceError):
    """Raised when a date, time, or datetime value could not be created."""


class SchemaError(SalesforceError):
    """Raised when a value does not match the schema described for its field."""


class ResponseBodyExpectedError(SchemaError):
    def __init__(self) -> None:
        super().__init__("A response body was expected, but is not present")


class AuthenticationError(SalesforceError):
    """Raised when an access token cannot be obtained or is rejected."""


class CannotRefreshError(AuthenticationError):
    def __init__(self, message: str = "Cannot refresh access token auth") -> None:
        super().__init__(message)


class NotAuthenticatedError(AuthenticationError):
    def __init__(self) -> None:
        super().__init__("Data cannot be obtained until an authorization refresh is executed")


class MissingCredentialsError(AuthenticationError):
    """Raised when the required Salesforce env vars are not present."""

    def __init__(self, missing: list[str]):
        self.missing = missing
        super().__init__("Missing required environment variables: " + ", ".join(missing))


class OperationCancelledError(SalesforceError):
    """Raised when a blocking wait is interrupted by its cancel event."""


class ApiRequestError(SalesforceError):
    """The API rejected a request and returned a list of structured errors."""

    def __init__(self, errors: List["ApiError"], status: Optional[int] = None):
        self.errors = errors
        self.status = status
        if errors:
            detail = "; ".join(str(e) for e in errors)
        else:
            detail = "unknown error"
        prefix = f"HTTP {status}: " if status else ""
        super().__init__(prefix + detail)
