from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from ..api import SalesforceRequest
from ..datatypes import SoapType
from ..exceptions import SchemaError

if TYPE_CHECKING:
    from ..api import Connection

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FieldDescribe:
    name: str
    soap_type: SoapType
    type: str = "string"
    label: str = ""
    nillable: bool = True
    createable: bool = True
    updateable: bool = True
    external_id: bool = False
    id_lookup: bool = False
    reference_to: List[str] = field(default_factory=list)
    relationship_name: Optional[str] = None

    @classmethod
    def from_json(cls, value: Dict[str, Any]) -> FieldDescribe:
        try:
            return cls(
                name=value["name"],
                soap_type=SoapType.parse(value["soapType"]),
                type=value.get("type", "string"),
                label=value.get("label", value["name"]),
                nillable=bool(value.get("nillable", True)),
                createable=bool(value.get("createable", True)),
                updateable=bool(value.get("updateable", True)),
                external_id=bool(value.get("externalId", False)),
                id_lookup=bool(value.get("idLookup", False)),
                reference_to=list(value.get("referenceTo") or []),
                relationship_name=value.get("relationshipName"),
            )
        except KeyError as e:
            raise SchemaError(f"Field describe is missing {e}") from e


class SObjectDescribe:
    """Schema description of one sObject: object flags plus its fields.

    Field lookups are case-insensitive.
    """

    def __init__(
        self,
        name: str,
        fields: List[FieldDescribe],
        *,
        label: str = "",
        key_prefix: Optional[str] = None,
        createable: bool = True,
        updateable: bool = True,
        deletable: bool = True,
        queryable: bool = True,
        custom: bool = False,
    ):
        self.name = name
        self.label = label or name
        self.key_prefix = key_prefix
        self.createable = createable
        self.updateable = updateable
        self.deletable = deletable
        self.queryable = queryable
        self.custom = custom
        self.fields = list(fields)
        self._by_lower = {f.name.lower(): f for f in self.fields}
        self._by_relationship = {
            f.relationship_name.lower(): f for f in self.fields if f.relationship_name
        }

    @classmethod
    def from_json(cls, value: Any) -> SObjectDescribe:
        if not isinstance(value, dict) or "name" not in value:
            raise SchemaError("Invalid sObject describe payload")
        return cls(
            value["name"],
            [FieldDescribe.from_json(f) for f in value.get("fields", [])],
            label=value.get("label", ""),
            key_prefix=value.get("keyPrefix"),
            createable=bool(value.get("createable", True)),
            updateable=bool(value.get("updateable", True)),
            deletable=bool(value.get("deletable", True)),
            queryable=bool(value.get("queryable", True)),
            custom=bool(value.get("custom", False)),
        )

    def get_field(self, api_name: str) -> Optional[FieldDescribe]:
        return self._by_lower.get(api_name.lower())

    def get_relationship(self, relationship_name: str) -> Optional[FieldDescribe]:
        """Return the reference field behind a relationship name (``Account`` -> ``AccountId``)."""
        return self._by_relationship.get(relationship_name.lower())

    @property
    def field_names(self) -> List[str]:
        return [f.name for f in self.fields]

    def __repr__(self) -> str:
        return f"SObjectDescribe({self.name!r}, {len(self.fields)} fields)"


class SObjectDescribeRequest(SalesforceRequest):
    method = "GET"
    composite_friendly = True

    def __init__(self, sobject: str):
        self.sobject = sobject

    @property
    def url(self) -> str:
        return f"sobjects/{self.sobject}/describe"

    def get_result(self, conn: "Connection", body: Optional[Any]) -> SObjectDescribe:
        describe = SObjectDescribe.from_json(self.require_body(body))
        _logger.debug("Described %s: %d fields", describe.name, len(describe.fields))
        return describe


class DescribeGlobalRequest(SalesforceRequest):
    """List the sObjects available in the org."""

    url = "sobjects"
    method = "GET"
    composite_friendly = True

    def get_result(self, conn: "Connection", body: Optional[Any]) -> List[Dict[str, Any]]:
        body = self.require_body(body)
        if not isinstance(body, dict) or "sobjects" not in body:
            raise SchemaError("Invalid global describe payload")
        return list(body["sobjects"])
