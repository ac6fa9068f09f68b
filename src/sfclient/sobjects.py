"""sObject types and the record representations the engines operate on.

Every API in this package works against the ``SObjectRepresentation``
capability: a record can report and accept its Id, name its sObject type, and
convert itself to and from wire JSON given that type's describe. Two
implementations are provided: ``SObject``, a dynamic field map, and
``SingleTypedSObject``, a base for dataclasses with a fixed shape.
"""

from __future__ import annotations

import abc
import dataclasses
import logging
from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    ClassVar,
    Dict,
    Iterator,
    Mapping,
    Optional,
    Tuple,
    Type,
    TypeVar,
)

from .datatypes import Address, Date, DateTime, Geolocation, Time
from .exceptions import InvalidIdError, SchemaError, UnsupportedIdError
from .fields import FieldKind, FieldValue
from .ids import SalesforceId

if TYPE_CHECKING:
    from .rest.describe import FieldDescribe, SObjectDescribe

_logger = logging.getLogger(__name__)

ATTRIBUTES_KEY = "attributes"

T = TypeVar("T", bound="SObjectRepresentation")

TypeResolver = Callable[[str], "SObjectType"]


class SObjectType:
    """Immutable descriptor for one sObject, identified by its API name.

    Instances are created once per API name by ``Connection.get_type`` and
    shared between every record of that type.
    """

    __slots__ = ("_api_name", "_describe")

    def __init__(self, api_name: str, describe: "SObjectDescribe"):
        object.__setattr__(self, "_api_name", api_name)
        object.__setattr__(self, "_describe", describe)

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("SObjectType is immutable")

    @property
    def api_name(self) -> str:
        return self._api_name

    @property
    def describe(self) -> "SObjectDescribe":
        return self._describe

    def get_field(self, name: str) -> Optional["FieldDescribe"]:
        return self._describe.get_field(name)

    def require_field(self, name: str) -> "FieldDescribe":
        fd = self._describe.get_field(name)
        if fd is None:
            raise SchemaError(f"Field {name!r} is not declared on {self._api_name}")
        return fd

    def __eq__(self, other: object) -> bool:
        if isinstance(other, SObjectType):
            return self._api_name.lower() == other._api_name.lower()
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._api_name.lower())

    def __str__(self) -> str:
        return self._api_name

    def __repr__(self) -> str:
        return f"SObjectType({self._api_name!r})"


class SObjectRepresentation(abc.ABC):
    """Capability shared by dynamic and statically shaped records."""

    @property
    @abc.abstractmethod
    def api_name(self) -> str:
        """API name of this record's sObject type."""

    @abc.abstractmethod
    def get_id(self) -> FieldValue:
        """Return the Id as a FieldValue holding an Id, Null or composite reference."""

    @abc.abstractmethod
    def set_id(self, value: FieldValue) -> None:
        """Assign the Id; only Id, Null or composite reference values are accepted."""

    @abc.abstractmethod
    def to_value(self, include_type: bool = False, include_id: bool = False) -> Dict[str, Any]:
        """Serialize to wire JSON.

        ``include_type`` adds the ``attributes`` type tag needed when records of
        several types share one request. ``include_id`` adds ``id`` and requires
        one to be present; without it every Id key is omitted.
        """

    @classmethod
    @abc.abstractmethod
    def from_value(
        cls: Type[T],
        value: Any,
        sobject_type: SObjectType,
        *,
        resolver: Optional[TypeResolver] = None,
    ) -> T:
        """Build a record from wire JSON using ``sobject_type``'s describe."""

    def get_opt_id(self) -> Optional[SalesforceId]:
        fv = self.get_id()
        return fv.value if fv.is_id else None

    def set_opt_id(self, value: Optional[Any]) -> None:
        self.set_id(FieldValue.id(value) if value is not None else FieldValue.null())

    def _check_id_value(self, value: FieldValue) -> FieldValue:
        if not isinstance(value, FieldValue):
            value = FieldValue.from_python(value)
        if value.kind not in (FieldKind.ID, FieldKind.NULL, FieldKind.COMPOSITE_REFERENCE):
            raise UnsupportedIdError(value)
        return value


def _strip_ids(data: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in data.items() if k.lower() != "id"}


def _add_id(data: Dict[str, Any], id_value: FieldValue) -> Dict[str, Any]:
    if not (id_value.is_id or id_value.is_composite_reference):
        raise InvalidIdError(id_value.value)
    data = _strip_ids(data)
    data["id"] = id_value.as_string()
    return data


def _add_type(data: Dict[str, Any], api_name: str) -> Dict[str, Any]:
    data[ATTRIBUTES_KEY] = {"type": api_name}
    return data


class SObject(SObjectRepresentation):
    """A dynamically typed record: a case-insensitive map of field values."""

    def __init__(self, sobject_type: SObjectType, fields: Optional[Mapping[str, Any]] = None):
        self.sobject_type = sobject_type
        self._fields: Dict[str, FieldValue] = {}
        self._names: Dict[str, str] = {}
        self.put("Id", FieldValue.null())
        for k, v in (fields or {}).items():
            self.put(k, v)

    # ------------------------------------------------------------------
    # Field access
    # ------------------------------------------------------------------

    def get(self, key: str) -> Optional[FieldValue]:
        return self._fields.get(key.lower())

    def put(self, key: str, value: Any) -> None:
        lk = key.lower()
        if lk == "id":
            value = self._check_id_value(value)
        elif not isinstance(value, FieldValue):
            value = FieldValue.from_python(value)
        self._fields[lk] = value
        self._names.setdefault(lk, key)

    def __getitem__(self, key: str) -> Any:
        fv = self._fields.get(key.lower())
        if fv is None:
            raise KeyError(key)
        return None if fv.is_null else fv.value

    def __setitem__(self, key: str, value: Any) -> None:
        self.put(key, value)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key.lower() in self._fields

    def items(self) -> Iterator[Tuple[str, FieldValue]]:
        for lk, fv in self._fields.items():
            yield self._names[lk], fv

    @property
    def field_names(self) -> list[str]:
        return [self._names[lk] for lk in self._fields]

    # Fluent builders ---------------------------------------------------

    def with_value(self, key: str, value: Any) -> SObject:
        self.put(key, value)
        return self

    def with_str(self, key: str, value: str) -> SObject:
        return self.with_value(key, FieldValue.string(value))

    def with_int(self, key: str, value: int) -> SObject:
        return self.with_value(key, FieldValue.integer(value))

    def with_double(self, key: str, value: float) -> SObject:
        return self.with_value(key, FieldValue.double(value))

    def with_boolean(self, key: str, value: bool) -> SObject:
        return self.with_value(key, FieldValue.boolean(value))

    def with_datetime(self, key: str, value: DateTime) -> SObject:
        return self.with_value(key, FieldValue.datetime(value))

    def with_date(self, key: str, value: Date) -> SObject:
        return self.with_value(key, FieldValue.date(value))

    def with_time(self, key: str, value: Time) -> SObject:
        return self.with_value(key, FieldValue.time(value))

    def with_reference(self, key: str, value: Any) -> SObject:
        return self.with_value(key, FieldValue.id(value))

    def with_relationship(self, key: str, value: SObject) -> SObject:
        return self.with_value(key, FieldValue.relationship(value))

    def with_address(self, key: str, value: Address) -> SObject:
        return self.with_value(key, FieldValue.address(value))

    def with_geolocation(self, key: str, value: Geolocation) -> SObject:
        return self.with_value(key, FieldValue.geolocation(value))

    def with_composite_reference(self, key: str, value: str) -> SObject:
        return self.with_value(key, FieldValue.composite_reference(value))

    def with_null(self, key: str) -> SObject:
        return self.with_value(key, FieldValue.null())

    # ------------------------------------------------------------------
    # Capability
    # ------------------------------------------------------------------

    @property
    def api_name(self) -> str:
        return self.sobject_type.api_name

    def get_id(self) -> FieldValue:
        return self._fields.get("id") or FieldValue.null()

    def set_id(self, value: FieldValue) -> None:
        self.put("Id", value)

    def to_value(self, include_type: bool = False, include_id: bool = False) -> Dict[str, Any]:
        data = {self._names[lk]: fv.to_json() for lk, fv in self._fields.items() if lk != "id"}
        if include_type:
            _add_type(data, self.api_name)
        if include_id:
            data = _add_id(data, self.get_id())
        return data

    @classmethod
    def from_value(
        cls,
        value: Any,
        sobject_type: SObjectType,
        *,
        resolver: Optional[TypeResolver] = None,
    ) -> SObject:
        if not isinstance(value, dict):
            raise SchemaError(f"Invalid record JSON: {value!r}")

        ret = cls(sobject_type)
        for key, raw in value.items():
            if key == ATTRIBUTES_KEY:
                continue

            fd = sobject_type.get_field(key)
            if fd is not None:
                ret.put(fd.name, FieldValue.from_json(raw, fd.soap_type))
                continue

            rel = sobject_type.describe.get_relationship(key)
            if rel is None:
                raise SchemaError(f"Field {key!r} is not declared on {sobject_type.api_name}")
            ret.put(rel.relationship_name or key, _relationship_value(raw, rel, resolver))
        return ret

    def __eq__(self, other: object) -> bool:
        if isinstance(other, SObject):
            return self.sobject_type == other.sobject_type and self._fields == other._fields
        return NotImplemented

    def __repr__(self) -> str:
        return f"SObject({self.api_name}, id={self.get_id().as_string() or None})"


def _relationship_value(
    raw: Any, rel: "FieldDescribe", resolver: Optional[TypeResolver]
) -> FieldValue:
    if raw is None:
        return FieldValue.null()
    if not isinstance(raw, dict):
        raise SchemaError(f"Relationship {rel.relationship_name!r} must be an object")

    type_name = (raw.get(ATTRIBUTES_KEY) or {}).get("type")
    if type_name is None and len(rel.reference_to) == 1:
        type_name = rel.reference_to[0]
    if type_name is None or resolver is None:
        raise SchemaError(
            f"Cannot resolve the type of relationship {rel.relationship_name!r}; "
            "query through a Connection to traverse relationships"
        )
    return FieldValue.relationship(SObject.from_value(raw, resolver(type_name), resolver=resolver))


def _pascal(name: str) -> str:
    return "".join(part[:1].upper() + part[1:] for part in name.split("_"))


class SingleTypedSObject(SObjectRepresentation):
    """Base for statically shaped records declared as dataclasses.

    Subclasses set ``api_name`` and declare an ``id`` attribute plus one
    attribute per field. Attribute ``account_id`` maps to wire field
    ``AccountId``; use ``field(metadata={"sf_name": "Custom__c"})`` for names
    that do not follow that pattern::

        @dataclass
        class Account(SingleTypedSObject):
            api_name: ClassVar[str] = "Account"
            name: str = ""
            id: Optional[SalesforceId] = None
    """

    api_name: ClassVar[str] = ""  # type: ignore[misc]

    @classmethod
    def _wire_fields(cls) -> Dict[str, str]:
        """Map attribute name -> wire field name for every non-id field."""
        out = {}
        for f in dataclasses.fields(cls):  # type: ignore[arg-type]
            if f.name == "id":
                continue
            out[f.name] = f.metadata.get("sf_name") or _pascal(f.name)
        return out

    def get_id(self) -> FieldValue:
        value = getattr(self, "id", None)
        return FieldValue.null() if value is None else FieldValue.id(value)

    def set_id(self, value: FieldValue) -> None:
        value = self._check_id_value(value)
        if value.is_composite_reference:
            raise UnsupportedIdError(value.value)
        self.id = value.value if value.is_id else None  # type: ignore[attr-defined]

    def to_value(self, include_type: bool = False, include_id: bool = False) -> Dict[str, Any]:
        data = {
            wire: FieldValue.from_python(getattr(self, attr)).to_json()
            for attr, wire in self._wire_fields().items()
        }
        if include_type:
            _add_type(data, self.api_name)
        if include_id:
            data = _add_id(data, self.get_id())
        return data

    @classmethod
    def from_value(
        cls: Type[T],
        value: Any,
        sobject_type: SObjectType,
        *,
        resolver: Optional[TypeResolver] = None,
    ) -> T:
        if not isinstance(value, dict):
            raise SchemaError(f"Invalid record JSON: {value!r}")

        by_wire = {wire.lower(): attr for attr, wire in cls._wire_fields().items()}  # type: ignore[attr-defined]
        kwargs: Dict[str, Any] = {}
        for key, raw in value.items():
            if key == ATTRIBUTES_KEY:
                continue
            fd = sobject_type.require_field(key)
            fv = FieldValue.from_json(raw, fd.soap_type)
            python_value = None if fv.is_null else fv.value
            if key.lower() == "id":
                kwargs["id"] = python_value
            elif key.lower() in by_wire:
                kwargs[by_wire[key.lower()]] = python_value
            else:
                _logger.debug("%s: ignoring field %s not declared on %s", cls.__name__, key, cls.__name__)

        try:
            return cls(**kwargs)
        except TypeError as e:
            raise SchemaError(f"Cannot build {cls.__name__} from record: {e}") from e


class AggregateResult(SObjectRepresentation):
    """Row of an aggregate query; values are kept as returned, without a schema."""

    def __init__(self, values: Dict[str, Any], api_name: str = "AggregateResult"):
        self.values = values
        self._api_name = api_name

    @property
    def api_name(self) -> str:
        return self._api_name

    def get_id(self) -> FieldValue:
        return FieldValue.null()

    def set_id(self, value: FieldValue) -> None:
        raise UnsupportedIdError(value)

    def to_value(self, include_type: bool = False, include_id: bool = False) -> Dict[str, Any]:
        return dict(self.values)

    @classmethod
    def from_value(
        cls,
        value: Any,
        sobject_type: SObjectType,
        *,
        resolver: Optional[TypeResolver] = None,
    ) -> AggregateResult:
        if not isinstance(value, dict):
            raise SchemaError(f"Invalid aggregate JSON: {value!r}")
        api_name = (value.get(ATTRIBUTES_KEY) or {}).get("type", "AggregateResult")
        return cls({k: v for k, v in value.items() if k != ATTRIBUTES_KEY}, api_name)

    def __getitem__(self, key: str) -> Any:
        return self.values[key]
