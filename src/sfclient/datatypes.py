"""Scalar and compound values that travel on the wire as strings or objects.

Salesforce's timestamps are RFC 3339 without the colon in the UTC offset
(``2021-11-19T01:51:47.323+0000``); times carry a literal ``Z`` and dates are
plain ISO dates. The wrappers here parse and format exactly those shapes.
"""

from __future__ import annotations

import datetime as _dt
import enum
from dataclasses import asdict, dataclass, fields
from typing import TYPE_CHECKING, Any, Dict, Iterator, Optional

from .exceptions import DateTimeError, SchemaError

if TYPE_CHECKING:
    from .api import Connection

DATETIME_FORMAT = "%Y-%m-%dT%H:%M:%S.%f%z"
TIME_FORMAT = "%H:%M:%S.%fZ"
DATE_FORMAT = "%Y-%m-%d"


class DateTime:
    """A UTC timestamp with millisecond precision."""

    __slots__ = ("value",)

    def __init__(
        self,
        year: int,
        month: int,
        day: int,
        hours: int = 0,
        minutes: int = 0,
        seconds: int = 0,
        milliseconds: int = 0,
    ):
        try:
            self.value = _dt.datetime(
                year,
                month,
                day,
                hours,
                minutes,
                seconds,
                milliseconds * 1000,
                tzinfo=_dt.timezone.utc,
            )
        except (ValueError, TypeError) as e:
            raise DateTimeError(f"Invalid datetime parts: {e}") from e

    @classmethod
    def from_datetime(cls, value: _dt.datetime) -> DateTime:
        if value.tzinfo is None:
            value = value.replace(tzinfo=_dt.timezone.utc)
        value = value.astimezone(_dt.timezone.utc)
        return cls(
            value.year,
            value.month,
            value.day,
            value.hour,
            value.minute,
            value.second,
            value.microsecond // 1000,
        )

    @classmethod
    def parse(cls, text: str) -> DateTime:
        if not isinstance(text, str):
            raise SchemaError(f"Expected a datetime string, got {text!r}")
        try:
            parsed = _dt.datetime.strptime(text, DATETIME_FORMAT)
        except ValueError as e:
            raise DateTimeError(f"Invalid datetime {text!r}: {e}") from e
        return cls.from_datetime(parsed)

    def format(self) -> str:
        # strftime does not pad years below 1000 on every platform.
        v = self.value
        return (
            f"{v.year:04d}-{v.month:02d}-{v.day:02d}"
            f"T{v.hour:02d}:{v.minute:02d}:{v.second:02d}.{v.microsecond // 1000:03d}+0000"
        )

    def __str__(self) -> str:
        return self.format()

    def __repr__(self) -> str:
        return f"DateTime({self.format()!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, DateTime):
            return self.value == other.value
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.value)


class Time:
    """A time of day with millisecond precision (``13:45:00.000Z``)."""

    __slots__ = ("value",)

    def __init__(self, hour: int, minute: int = 0, second: int = 0, millisecond: int = 0):
        try:
            self.value = _dt.time(hour, minute, second, millisecond * 1000)
        except (ValueError, TypeError) as e:
            raise DateTimeError(f"Invalid time parts: {e}") from e

    @classmethod
    def parse(cls, text: str) -> Time:
        if not isinstance(text, str):
            raise SchemaError(f"Expected a time string, got {text!r}")
        try:
            t = _dt.datetime.strptime(text, TIME_FORMAT).time()
        except ValueError as e:
            raise DateTimeError(f"Invalid time {text!r}: {e}") from e
        return cls(t.hour, t.minute, t.second, t.microsecond // 1000)

    def format(self) -> str:
        return self.value.strftime("%H:%M:%S") + f".{self.value.microsecond // 1000:03d}Z"

    def __str__(self) -> str:
        return self.format()

    def __repr__(self) -> str:
        return f"Time({self.format()!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Time):
            return self.value == other.value
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.value)


class Date:
    __slots__ = ("value",)

    def __init__(self, year: int, month: int, day: int):
        try:
            self.value = _dt.date(year, month, day)
        except (ValueError, TypeError) as e:
            raise DateTimeError(f"Invalid date parts: {e}") from e

    @classmethod
    def parse(cls, text: str) -> Date:
        if not isinstance(text, str):
            raise SchemaError(f"Expected a date string, got {text!r}")
        try:
            d = _dt.datetime.strptime(text, DATE_FORMAT).date()
        except ValueError as e:
            raise DateTimeError(f"Invalid date {text!r}: {e}") from e
        return cls(d.year, d.month, d.day)

    def format(self) -> str:
        v = self.value
        return f"{v.year:04d}-{v.month:02d}-{v.day:02d}"

    def __str__(self) -> str:
        return self.format()

    def __repr__(self) -> str:
        return f"Date({self.format()!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Date):
            return self.value == other.value
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.value)


class Blob:
    """Reference to binary content, held as the relative URL the API returned."""

    __slots__ = ("path",)

    def __init__(self, path: str):
        self.path = path

    def stream(self, conn: "Connection", chunk_size: int = 1024 * 1024) -> Iterator[bytes]:
        """Yield the blob's bytes in chunks."""
        from .rest.rows import BlobRetrieveRequest

        return conn.execute_raw(BlobRetrieveRequest(self.path, chunk_size=chunk_size))

    def __str__(self) -> str:
        return self.path

    def __repr__(self) -> str:
        return f"Blob({self.path!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Blob):
            return self.path == other.path
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.path)


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(p.title() for p in rest)


class _CompoundValue:
    """Dataclass mixin mapping snake_case attributes to camelCase wire keys."""

    @classmethod
    def from_json(cls, value: Any):
        if not isinstance(value, dict):
            raise SchemaError(f"Expected an object for {cls.__name__}, got {value!r}")
        known = {_camel(f.name): f.name for f in fields(cls)}  # type: ignore[arg-type]
        return cls(**{known[k]: v for k, v in value.items() if k in known})

    def to_json(self) -> Dict[str, Any]:
        return {_camel(k): v for k, v in asdict(self).items()}  # type: ignore[call-overload]


@dataclass
class Geolocation(_CompoundValue):
    latitude: float
    longitude: float


@dataclass
class Address(_CompoundValue):
    city: Optional[str] = None
    country: Optional[str] = None
    country_code: Optional[str] = None
    geocode_accuracy: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    postal_code: Optional[str] = None
    state: Optional[str] = None
    state_code: Optional[str] = None
    street: Optional[str] = None


class SoapType(enum.Enum):
    """Wire types reported in a field describe's ``soapType``."""

    ADDRESS = "urn:address"
    ANY = "xsd:anyType"
    BLOB = "xsd:base64Binary"
    BOOLEAN = "xsd:boolean"
    DATE = "xsd:date"
    DATETIME = "xsd:dateTime"
    DOUBLE = "xsd:double"
    ID = "tns:ID"
    INTEGER = "xsd:int"
    LONG = "xsd:long"
    GEOLOCATION = "urn:location"
    STRING = "xsd:string"
    TIME = "xsd:time"

    @classmethod
    def parse(cls, value: str) -> SoapType:
        try:
            return cls(value)
        except ValueError:
            raise SchemaError(f"Unknown soap type {value!r}") from None
