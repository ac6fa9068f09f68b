"""Tests for sfclient.sobjects module."""

from dataclasses import dataclass, field
from typing import ClassVar, Optional

import pytest

from sfclient.datatypes import Address, Date, DateTime, Geolocation, Time
from sfclient.exceptions import InvalidIdError, SchemaError, UnsupportedIdError
from sfclient.fields import FieldValue
from sfclient.ids import SalesforceId
from sfclient.sobjects import AggregateResult, SingleTypedSObject, SObject

ACCOUNT_ID = "0013600001ohPTpAAM"


@dataclass
class Account(SingleTypedSObject):
    api_name: ClassVar[str] = "Account"

    name: str = ""
    number_of_employees: Optional[int] = None
    external_id: Optional[str] = field(default=None, metadata={"sf_name": "External_Id__c"})
    id: Optional[SalesforceId] = None


class TestSObjectType:
    def test_equality_ignores_case(self, account_type):
        from sfclient.sobjects import SObjectType

        assert account_type == SObjectType("account", account_type.describe)
        assert str(account_type) == "Account"

    def test_immutable(self, account_type):
        with pytest.raises(AttributeError):
            account_type.foo = 1

    def test_require_field(self, account_type):
        assert account_type.require_field("name").name == "Name"
        with pytest.raises(SchemaError):
            account_type.require_field("Nope")


class TestSObject:
    """Tests for the dynamic record."""

    def test_new_record_has_null_id(self, account_type):
        """The Id is always present, as null when unset."""
        rec = SObject(account_type)
        assert rec.get_id().is_null
        assert rec.get_opt_id() is None

    def test_case_insensitive_access(self, account_type):
        rec = SObject(account_type).with_str("Name", "Acme")

        assert rec["name"] == "Acme"
        assert rec.get("NAME") == FieldValue.string("Acme")
        assert "nAmE" in rec

    def test_builders_to_value(self, account_type, user_type):
        """Each builder stores a value that serializes to its wire form."""
        owner = SObject(user_type).with_str("Username", "ada@example.com")
        rec = (
            SObject(account_type)
            .with_int("NumberOfEmployees", 12)
            .with_double("AnnualRevenue", 1.5e6)
            .with_boolean("IsActive__c", True)
            .with_datetime("CreatedDate", DateTime(2021, 6, 1, 12, 30))
            .with_date("LastActivityDate", Date(2021, 6, 1))
            .with_time("Opens__c", Time(9, 30))
            .with_reference("ParentId", "0013600001ohPTp")
            .with_relationship("Owner", owner)
            .with_geolocation("Location__c", Geolocation(51.5, -0.12))
            .with_address("BillingAddress", Address(city="London", country="UK"))
            .with_null("Name")
        )

        value = rec.to_value()

        assert value["NumberOfEmployees"] == 12
        assert value["AnnualRevenue"] == 1500000.0
        assert value["IsActive__c"] is True
        assert value["CreatedDate"] == "2021-06-01T12:30:00.000+0000"
        assert value["LastActivityDate"] == "2021-06-01"
        assert value["Opens__c"] == "09:30:00.000Z"
        assert value["ParentId"] == ACCOUNT_ID
        assert value["Owner"] == {"Username": "ada@example.com", "attributes": {"type": "User"}}
        assert value["Location__c"] == {"latitude": 51.5, "longitude": -0.12}
        assert value["BillingAddress"]["city"] == "London"
        assert value["Name"] is None
        assert rec["Name"] is None

    def test_setitem_wraps_python_values(self, account_type):
        rec = SObject(account_type)
        rec["NumberOfEmployees"] = 7

        assert rec.get("NumberOfEmployees") == FieldValue.integer(7)

    def test_to_value_for_create_omits_id(self, account_type):
        """A record serialized for creation has no id key."""
        rec = SObject(account_type, {"Name": "Acme", "NumberOfEmployees": 10})

        assert rec.to_value() == {"Name": "Acme", "NumberOfEmployees": 10}

    def test_to_value_for_update_includes_id(self, account_type):
        rec = SObject(account_type).with_str("Name", "Acme")
        rec.set_opt_id(ACCOUNT_ID)

        assert rec.to_value(include_type=True, include_id=True) == {
            "Name": "Acme",
            "attributes": {"type": "Account"},
            "id": ACCOUNT_ID,
        }

    def test_include_id_requires_id(self, account_type):
        with pytest.raises(InvalidIdError):
            SObject(account_type).to_value(include_id=True)

    def test_composite_reference_id(self, account_type):
        rec = SObject(account_type)
        rec.set_id(FieldValue.composite_reference("@{acct.id}"))

        assert rec.to_value(include_id=True)["id"] == "@{acct.id}"

    def test_set_id_rejects_other_values(self, account_type):
        with pytest.raises(UnsupportedIdError):
            SObject(account_type).set_id(FieldValue.string("x"))

    def test_from_value(self, account_type):
        """Converts each field by its describe type and skips attributes."""
        rec = SObject.from_value(
            {
                "attributes": {"type": "Account", "url": "/services/data/v52.0/sobjects/Account/x"},
                "Id": ACCOUNT_ID,
                "name": "Acme",
                "CreatedDate": "2021-11-19T01:51:47.323+0000",
                "BillingAddress": {"city": "Leeds"},
                "LastActivityDate": None,
            },
            account_type,
        )

        assert rec.get_opt_id() == SalesforceId(ACCOUNT_ID)
        assert rec["Name"] == "Acme"
        assert rec["CreatedDate"] == DateTime(2021, 11, 19, 1, 51, 47, 323)
        assert rec["BillingAddress"] == Address(city="Leeds")
        assert rec.get("LastActivityDate").is_null
        assert "attributes" not in rec

    def test_from_value_undeclared_field(self, account_type):
        with pytest.raises(SchemaError):
            SObject.from_value({"Bogus__c": 1}, account_type)

    def test_from_value_relationship(self, account_type, user_type):
        """Nested records are resolved through the resolver."""
        types = {"user": user_type}
        rec = SObject.from_value(
            {"Owner": {"attributes": {"type": "User"}, "Email": "a@b.c"}, "Parent": None},
            account_type,
            resolver=lambda name: types[name.lower()],
        )

        owner = rec.get("Owner")
        assert owner.is_relationship
        assert owner.value["Email"] == "a@b.c"
        assert rec.get("Parent").is_null

    def test_from_value_relationship_without_resolver(self, account_type):
        with pytest.raises(SchemaError):
            SObject.from_value({"Owner": {"attributes": {"type": "User"}}}, account_type)


class TestSingleTypedSObject:
    """Tests for dataclass-shaped records."""

    def test_to_value(self):
        acct = Account(name="Acme", number_of_employees=5, external_id="E-1")

        assert acct.to_value() == {"Name": "Acme", "NumberOfEmployees": 5, "External_Id__c": "E-1"}
        assert acct.to_value(include_type=True)["attributes"] == {"type": "Account"}

    def test_id_round_trip(self):
        acct = Account(name="Acme")
        acct.set_id(FieldValue.id(ACCOUNT_ID))

        assert acct.id == SalesforceId(ACCOUNT_ID)
        assert acct.to_value(include_id=True)["id"] == ACCOUNT_ID

        acct.set_id(FieldValue.null())
        assert acct.id is None

    def test_rejects_composite_reference(self):
        with pytest.raises(UnsupportedIdError):
            Account().set_id(FieldValue.composite_reference("@{a.id}"))

    def test_from_value(self, account_type):
        acct = Account.from_value(
            {"attributes": {"type": "Account"}, "Id": ACCOUNT_ID, "Name": "Acme", "External_Id__c": "E-9"},
            account_type,
        )

        assert acct == Account(name="Acme", external_id="E-9", id=SalesforceId(ACCOUNT_ID))

    def test_from_value_undeclared(self, account_type):
        with pytest.raises(SchemaError):
            Account.from_value({"Nope": 1}, account_type)


class TestAggregateResult:
    def test_from_value(self):
        row = AggregateResult.from_value({"attributes": {"type": "AggregateResult"}, "expr0": 3}, None)

        assert row["expr0"] == 3
        assert row.get_id().is_null
        assert row.to_value() == {"expr0": 3}
