from __future__ import annotations

import enum
from typing import TYPE_CHECKING, Any, Optional

from .datatypes import Address, Blob, Date, DateTime, Geolocation, SoapType, Time
from .exceptions import DateTimeError, InvalidIdError, SchemaError
from .ids import SalesforceId

if TYPE_CHECKING:
    from .sobjects import SObject


class FieldKind(enum.Enum):
    ADDRESS = "address"
    INTEGER = "integer"
    DOUBLE = "double"
    BOOLEAN = "boolean"
    STRING = "string"
    DATETIME = "datetime"
    TIME = "time"
    DATE = "date"
    ID = "id"
    RELATIONSHIP = "relationship"
    BLOB = "blob"
    GEOLOCATION = "geolocation"
    NULL = "null"
    COMPOSITE_REFERENCE = "composite_reference"


class FieldValue:
    """A single typed field value.

    The JSON form of a value is ambiguous (a string may be an Id, a date, a
    time, a datetime or text), so conversion from the wire always takes the
    field's ``SoapType`` from the describe.
    """

    __slots__ = ("kind", "value")

    def __init__(self, kind: FieldKind, value: Any = None):
        self.kind = kind
        self.value = value

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @classmethod
    def null(cls) -> FieldValue:
        return cls(FieldKind.NULL)

    @classmethod
    def integer(cls, value: int) -> FieldValue:
        return cls(FieldKind.INTEGER, int(value))

    @classmethod
    def double(cls, value: float) -> FieldValue:
        return cls(FieldKind.DOUBLE, float(value))

    @classmethod
    def boolean(cls, value: bool) -> FieldValue:
        return cls(FieldKind.BOOLEAN, bool(value))

    @classmethod
    def string(cls, value: str) -> FieldValue:
        return cls(FieldKind.STRING, value)

    @classmethod
    def datetime(cls, value: DateTime) -> FieldValue:
        return cls(FieldKind.DATETIME, value)

    @classmethod
    def time(cls, value: Time) -> FieldValue:
        return cls(FieldKind.TIME, value)

    @classmethod
    def date(cls, value: Date) -> FieldValue:
        return cls(FieldKind.DATE, value)

    @classmethod
    def id(cls, value: Any) -> FieldValue:
        return cls(FieldKind.ID, SalesforceId(value))

    @classmethod
    def relationship(cls, value: "SObject") -> FieldValue:
        return cls(FieldKind.RELATIONSHIP, value)

    @classmethod
    def blob(cls, value: Blob) -> FieldValue:
        return cls(FieldKind.BLOB, value)

    @classmethod
    def address(cls, value: Address) -> FieldValue:
        return cls(FieldKind.ADDRESS, value)

    @classmethod
    def geolocation(cls, value: Geolocation) -> FieldValue:
        return cls(FieldKind.GEOLOCATION, value)

    @classmethod
    def composite_reference(cls, value: str) -> FieldValue:
        """A ``@{ref.field}`` placeholder resolved by the composite API."""
        return cls(FieldKind.COMPOSITE_REFERENCE, value)

    @classmethod
    def from_python(cls, value: Any) -> FieldValue:
        """Wrap a plain Python value, inferring the kind from its type."""
        if value is None:
            return cls.null()
        if isinstance(value, FieldValue):
            return value
        if isinstance(value, bool):
            return cls.boolean(value)
        if isinstance(value, int):
            return cls.integer(value)
        if isinstance(value, float):
            return cls.double(value)
        if isinstance(value, SalesforceId):
            return cls(FieldKind.ID, value)
        if isinstance(value, DateTime):
            return cls.datetime(value)
        if isinstance(value, Time):
            return cls.time(value)
        if isinstance(value, Date):
            return cls.date(value)
        if isinstance(value, Blob):
            return cls.blob(value)
        if isinstance(value, Address):
            return cls.address(value)
        if isinstance(value, Geolocation):
            return cls.geolocation(value)
        if isinstance(value, str):
            return cls.string(value)

        from .sobjects import SObject

        if isinstance(value, SObject):
            return cls.relationship(value)
        raise SchemaError(f"Cannot convert {type(value).__name__} to a field value")

    # ------------------------------------------------------------------
    # Predicates
    # ------------------------------------------------------------------

    @property
    def is_null(self) -> bool:
        return self.kind is FieldKind.NULL

    @property
    def is_id(self) -> bool:
        return self.kind is FieldKind.ID

    @property
    def is_composite_reference(self) -> bool:
        return self.kind is FieldKind.COMPOSITE_REFERENCE

    @property
    def is_relationship(self) -> bool:
        return self.kind is FieldKind.RELATIONSHIP

    # ------------------------------------------------------------------
    # Conversion
    # ------------------------------------------------------------------

    def to_json(self) -> Any:
        k = self.kind
        if k is FieldKind.NULL:
            return None
        if k in (FieldKind.INTEGER, FieldKind.DOUBLE, FieldKind.BOOLEAN, FieldKind.STRING):
            return self.value
        if k in (FieldKind.ADDRESS, FieldKind.GEOLOCATION):
            return self.value.to_json()
        if k is FieldKind.RELATIONSHIP:
            return self.value.to_value(include_type=True)
        return str(self.value)

    def as_string(self) -> str:
        """Render the value the way it appears in a CSV cell or URL segment."""
        k = self.kind
        if k is FieldKind.NULL:
            return ""
        if k is FieldKind.BOOLEAN:
            return "true" if self.value else "false"
        if k in (FieldKind.ADDRESS, FieldKind.GEOLOCATION, FieldKind.RELATIONSHIP):
            raise SchemaError(f"{k.value} fields cannot be rendered as strings")
        return str(self.value)

    @classmethod
    def from_json(cls, value: Any, soap_type: SoapType) -> FieldValue:
        if value is None:
            return cls.null()

        try:
            if soap_type is SoapType.ANY:
                raise SchemaError("Unable to convert value of type xsd:anyType from JSON")
            if soap_type is SoapType.ADDRESS:
                return cls.address(Address.from_json(value))
            if soap_type is SoapType.GEOLOCATION:
                return cls.geolocation(Geolocation.from_json(value))
            if soap_type is SoapType.BLOB:
                return cls.blob(Blob(_expect(value, str, soap_type)))
            if soap_type is SoapType.BOOLEAN:
                return cls.boolean(_expect(value, bool, soap_type))
            if soap_type is SoapType.DATE:
                return cls.date(Date.parse(_expect(value, str, soap_type)))
            if soap_type is SoapType.DATETIME:
                return cls.datetime(DateTime.parse(_expect(value, str, soap_type)))
            if soap_type is SoapType.TIME:
                return cls.time(Time.parse(_expect(value, str, soap_type)))
            if soap_type is SoapType.DOUBLE:
                if isinstance(value, bool) or not isinstance(value, (int, float)):
                    raise SchemaError(f"Expected a number for {soap_type.value}, got {value!r}")
                return cls.double(value)
            if soap_type in (SoapType.INTEGER, SoapType.LONG):
                if isinstance(value, float) and value.is_integer():
                    value = int(value)
                return cls.integer(_expect(value, int, soap_type))
            if soap_type is SoapType.ID:
                return cls.id(_expect(value, str, soap_type))
            if soap_type is SoapType.STRING:
                return cls.string(_expect(value, str, soap_type))
        except (InvalidIdError, DateTimeError) as e:
            raise SchemaError(str(e)) from e

        raise SchemaError(f"Unsupported soap type {soap_type!r}")

    @classmethod
    def from_str(cls, text: str, soap_type: SoapType) -> FieldValue:
        """Convert a CSV cell; an empty cell is null for every type but string."""
        if text == "" and soap_type is not SoapType.STRING:
            return cls.null()

        try:
            if soap_type in (SoapType.INTEGER, SoapType.LONG):
                return cls.integer(int(text))
            if soap_type is SoapType.DOUBLE:
                return cls.double(float(text))
            if soap_type is SoapType.BOOLEAN:
                lowered = text.lower()
                if lowered not in ("true", "false"):
                    raise SchemaError(f"Invalid boolean {text!r}")
                return cls.boolean(lowered == "true")
        except ValueError as e:
            raise SchemaError(f"Cannot convert {text!r} to {soap_type.value}: {e}") from e

        if soap_type is SoapType.STRING:
            return cls.string(text)
        try:
            if soap_type is SoapType.DATETIME:
                return cls.datetime(DateTime.parse(text))
            if soap_type is SoapType.TIME:
                return cls.time(Time.parse(text))
            if soap_type is SoapType.DATE:
                return cls.date(Date.parse(text))
            if soap_type is SoapType.ID:
                return cls.id(text)
        except (InvalidIdError, DateTimeError) as e:
            raise SchemaError(str(e)) from e
        raise SchemaError(f"Values of type {soap_type.value} cannot be read from text")

    # ------------------------------------------------------------------

    def __eq__(self, other: object) -> bool:
        if isinstance(other, FieldValue):
            return self.kind is other.kind and self.value == other.value
        return NotImplemented

    def __hash__(self) -> int:
        return hash((self.kind, str(self.value)))

    def __repr__(self) -> str:
        if self.kind is FieldKind.NULL:
            return "FieldValue.null()"
        return f"FieldValue.{self.kind.value}({self.value!r})"


def _expect(value: Any, typ: type, soap_type: SoapType) -> Any:
    if typ is int and isinstance(value, bool):
        raise SchemaError(f"Expected {soap_type.value}, got {value!r}")
    if not isinstance(value, typ):
        raise SchemaError(f"Expected {soap_type.value}, got {value!r}")
    return value


def field_value_or_none(value: Optional[FieldValue]) -> Any:
    """Unwrap a FieldValue into its Python value (None for null or missing)."""
    if value is None or value.is_null:
        return None
    return value.value
