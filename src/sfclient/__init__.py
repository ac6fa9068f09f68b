"""Thread-safe client for the Salesforce REST, Bulk 2.0 and Tooling APIs."""

from .api import Connection, JsonRequest, SalesforceRawRequest, SalesforceRequest
from .auth import (
    AccessTokenAuth,
    Authentication,
    ClientCredentialsAuth,
    ConnectedApp,
    JwtAuth,
    RefreshTokenAuth,
    UsernamePasswordAuth,
)
from .bulk import BulkJobStatus, BulkQueryJob, BulkQueryOperation, bulk_query
from .config import SFConfig, connect
from .datatypes import Address, Blob, Date, DateTime, Geolocation, SoapType, Time
from .exceptions import (
    ApiRequestError,
    AuthenticationError,
    CannotRefreshError,
    DateTimeError,
    InvalidIdError,
    MissingCredentialsError,
    NotAuthenticatedError,
    OperationCancelledError,
    RecordDoesNotExistError,
    RecordExistsError,
    ResponseBodyExpectedError,
    SalesforceError,
    SchemaError,
    SObjectCollectionError,
    UnsupportedIdError,
    UpsertKeyError,
)
from .fields import FieldKind, FieldValue
from .ids import SalesforceId
from .rest.collections import (
    DmlOperation,
    batch_dml,
    create_records,
    delete_records,
    retrieve_records,
    update_records,
    upsert_records,
)
from .rest.composite import CompositeRequest, CompositeResponse
from .rest.query import aggregate_query, count_query, query, query_list
from .rest.results import ApiError, DmlError, DmlResult
from .sobjects import AggregateResult, SingleTypedSObject, SObject, SObjectRepresentation, SObjectType
from .streams import ResultStream
from .tooling import execute_anonymous

__version__ = "0.1.0"

__all__ = [
    "AccessTokenAuth",
    "Address",
    "AggregateResult",
    "ApiError",
    "ApiRequestError",
    "Authentication",
    "AuthenticationError",
    "Blob",
    "BulkJobStatus",
    "BulkQueryJob",
    "BulkQueryOperation",
    "CannotRefreshError",
    "ClientCredentialsAuth",
    "CompositeRequest",
    "CompositeResponse",
    "ConnectedApp",
    "Connection",
    "Date",
    "DateTime",
    "DateTimeError",
    "DmlError",
    "DmlOperation",
    "DmlResult",
    "FieldKind",
    "FieldValue",
    "Geolocation",
    "InvalidIdError",
    "JsonRequest",
    "JwtAuth",
    "MissingCredentialsError",
    "NotAuthenticatedError",
    "OperationCancelledError",
    "RecordDoesNotExistError",
    "RecordExistsError",
    "RefreshTokenAuth",
    "ResponseBodyExpectedError",
    "ResultStream",
    "SFConfig",
    "SObject",
    "SObjectCollectionError",
    "SObjectRepresentation",
    "SObjectType",
    "SalesforceError",
    "SalesforceId",
    "SalesforceRawRequest",
    "SalesforceRequest",
    "SchemaError",
    "SingleTypedSObject",
    "SoapType",
    "Time",
    "UnsupportedIdError",
    "UpsertKeyError",
    "UsernamePasswordAuth",
    "aggregate_query",
    "batch_dml",
    "bulk_query",
    "connect",
    "count_query",
    "create_records",
    "delete_records",
    "execute_anonymous",
    "query",
    "query_list",
    "retrieve_records",
    "update_records",
    "upsert_records",
]
