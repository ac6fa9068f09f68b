"""Tests for sfclient.rest.query module."""

from dataclasses import dataclass
from typing import ClassVar, Optional
from unittest.mock import patch

import pytest

from sfclient.exceptions import SchemaError
from sfclient.ids import SalesforceId
from sfclient.rest.query import QueryRequest, aggregate_query, count_query, query, query_list
from sfclient.sobjects import SingleTypedSObject, SObject

NEXT_URL = "/services/data/v52.0/query/01gD0000002HU6KIAW-2000"


def _record(n):
    return {"attributes": {"type": "Account"}, "Id": f"001000000000{n:03d}", "Name": f"Acme {n}"}


def _page(records, total=5, next_url=None):
    page = {"totalSize": total, "done": next_url is None, "records": records}
    if next_url:
        page["nextRecordsUrl"] = next_url
    return page


@dataclass
class Account(SingleTypedSObject):
    api_name: ClassVar[str] = "Account"
    name: str = ""
    id: Optional[SalesforceId] = None


class TestQueryRequest:
    def test_url_and_params(self):
        assert QueryRequest("SELECT Id FROM Account").url == "query/"
        assert QueryRequest("SELECT Id FROM Account", all=True).url == "queryAll/"
        assert QueryRequest("SELECT Id FROM Account").query_parameters() == {"q": "SELECT Id FROM Account"}


class TestQuery:
    def test_follows_next_records_url(self, conn, account_type, make_response):
        """Three pages of 2, 2 and 1 records stream as 5 records."""
        responses = [
            make_response(json=_page([_record(1), _record(2)], next_url=NEXT_URL)),
            make_response(json=_page([_record(3), _record(4)], next_url=NEXT_URL + "-2")),
            make_response(json=_page([_record(5)])),
        ]
        with patch.object(conn.session, "request", side_effect=responses) as req:
            stream = query(conn, account_type, "SELECT Id, Name FROM Account")
            assert req.call_count == 1
            records = list(stream)

        assert [r["Name"] for r in records] == ["Acme 1", "Acme 2", "Acme 3", "Acme 4", "Acme 5"]
        assert all(isinstance(r, SObject) for r in records)
        assert req.call_count == 3
        assert req.call_args_list[1].args[1] == "https://example.my.salesforce.com" + NEXT_URL

    def test_size_hint_from_total(self, conn, account_type, make_response):
        with patch.object(
            conn.session, "request", return_value=make_response(json=_page([_record(1)], total=1))
        ):
            stream = query(conn, account_type, "SELECT Id FROM Account")

        assert stream.size_hint() == 1

    def test_typed_records_resolve_their_type(self, conn, make_response):
        with patch.object(
            conn.session, "request", return_value=make_response(json=_page([_record(7)], total=1))
        ):
            records = query_list(conn, None, "SELECT Id, Name FROM Account", cls=Account)

        assert records == [Account(name="Acme 7", id=SalesforceId("001000000000007"))]

    def test_query_all(self, conn, account_type, make_response):
        with patch.object(conn.session, "request", return_value=make_response(json=_page([], total=0))) as req:
            assert query_list(conn, account_type, "SELECT Id FROM Account", all=True) == []

        assert req.call_args.args[1].endswith("/queryAll/")

    def test_undeclared_field(self, conn, account_type, make_response):
        bad = _page([{"attributes": {"type": "Account"}, "Mystery__c": 1}], total=1)
        with patch.object(conn.session, "request", return_value=make_response(json=bad)):
            with pytest.raises(SchemaError):
                query(conn, account_type, "SELECT Mystery__c FROM Account")

    def test_relationship_fields(self, conn, account_type, make_response):
        """Parent records are typed through the connection's type cache."""
        page = _page(
            [
                {
                    "attributes": {"type": "Account"},
                    "Name": "Acme",
                    "Owner": {"attributes": {"type": "User"}, "Email": "owner@example.com"},
                }
            ],
            total=1,
        )
        with patch.object(conn.session, "request", return_value=make_response(json=page)):
            (record,) = query_list(conn, account_type, "SELECT Name, Owner.Email FROM Account")

        assert record.get("Owner").value["Email"] == "owner@example.com"


class TestCountAndAggregate:
    def test_count_query(self, conn, make_response):
        with patch.object(conn.session, "request", return_value=make_response(json=_page([], total=42))):
            assert count_query(conn, "SELECT count() FROM Account") == 42

    def test_aggregate_query(self, conn, make_response):
        page = _page([{"attributes": {"type": "AggregateResult"}, "Industry": "Energy", "expr0": 3}], total=1)
        with patch.object(conn.session, "request", return_value=make_response(json=page)):
            rows = list(aggregate_query(conn, "SELECT Industry, COUNT(Id) FROM Account GROUP BY Industry"))

        assert rows[0]["Industry"] == "Energy"
        assert rows[0]["expr0"] == 3
