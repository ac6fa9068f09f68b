from unittest.mock import MagicMock

import pytest
import requests

from sfclient.api import Connection
from sfclient.auth import AccessTokenAuth
from sfclient.rest.describe import SObjectDescribe
from sfclient.sobjects import SObjectType

INSTANCE_URL = "https://example.my.salesforce.com"
BASE_URL = INSTANCE_URL + "/services/data/v52.0/"


def _field(name, soap_type, **extra):
    payload = {
        "name": name,
        "soapType": soap_type,
        "type": extra.pop("type", "string"),
        "label": name,
        "nillable": True,
        "createable": True,
        "updateable": True,
    }
    payload.update(extra)
    return payload


ACCOUNT_DESCRIBE = {
    "name": "Account",
    "label": "Account",
    "keyPrefix": "001",
    "createable": True,
    "updateable": True,
    "deletable": True,
    "queryable": True,
    "custom": False,
    "fields": [
        _field("Id", "tns:ID", type="id", idLookup=True, createable=False, updateable=False),
        _field("Name", "xsd:string"),
        _field("NumberOfEmployees", "xsd:int", type="int"),
        _field("AnnualRevenue", "xsd:double", type="currency"),
        _field("IsActive__c", "xsd:boolean", type="boolean"),
        _field("CreatedDate", "xsd:dateTime", type="datetime", createable=False),
        _field("LastActivityDate", "xsd:date", type="date"),
        _field("External_Id__c", "xsd:string", externalId=True, idLookup=True),
        _field("BillingAddress", "urn:address", type="address"),
        _field(
            "ParentId",
            "tns:ID",
            type="reference",
            referenceTo=["Account"],
            relationshipName="Parent",
        ),
        _field(
            "OwnerId",
            "tns:ID",
            type="reference",
            referenceTo=["User"],
            relationshipName="Owner",
        ),
    ],
}

USER_DESCRIBE = {
    "name": "User",
    "keyPrefix": "005",
    "fields": [
        _field("Id", "tns:ID", type="id", idLookup=True),
        _field("Username", "xsd:string", idLookup=True),
        _field("Email", "xsd:string"),
    ],
}


@pytest.fixture
def account_describe_payload():
    return ACCOUNT_DESCRIBE


@pytest.fixture
def account_type():
    return SObjectType("Account", SObjectDescribe.from_json(ACCOUNT_DESCRIBE))


@pytest.fixture
def user_type():
    return SObjectType("User", SObjectDescribe.from_json(USER_DESCRIBE))


@pytest.fixture
def make_response():
    """Factory for mocked requests.Response objects."""

    def _make(status=200, json=None, headers=None, text=None):
        r = MagicMock(spec=requests.Response)
        r.status_code = status
        r.headers = headers or {}
        r.encoding = "utf-8"
        if json is not None:
            r.json.return_value = json
            r.content = b"{}"
        else:
            r.json.side_effect = ValueError("No JSON body")
            r.content = (text or "").encode()
        r.text = text if text is not None else ""
        if status >= 400:
            r.raise_for_status.side_effect = requests.HTTPError(f"HTTP {status}", response=r)
        return r

    return _make


@pytest.fixture
def conn(account_type, user_type):
    """Connection with a fixed token and the Account/User types already cached."""
    c = Connection(AccessTokenAuth("00DTOKEN", INSTANCE_URL))
    c._types["account"] = account_type
    c._types["user"] = user_type
    return c
