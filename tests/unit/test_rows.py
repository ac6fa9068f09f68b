"""Tests for sfclient.rest.rows module."""

from unittest.mock import patch

import pytest

from sfclient.exceptions import ApiRequestError, RecordDoesNotExistError, RecordExistsError, UpsertKeyError
from sfclient.fields import FieldValue
from sfclient.ids import SalesforceId
from sfclient.rest import rows
from sfclient.sobjects import SObject

ACCOUNT_ID = "0013600001ohPTpAAM"


class TestValidation:
    """Requests are validated before any I/O."""

    def test_create_with_id(self, account_type):
        rec = SObject(account_type).with_str("Name", "Acme")
        rec.set_opt_id(ACCOUNT_ID)

        with pytest.raises(RecordExistsError):
            rows.SObjectCreateRequest(rec)

    def test_update_without_id(self, account_type):
        with pytest.raises(RecordDoesNotExistError):
            rows.SObjectUpdateRequest(SObject(account_type))

    def test_delete_without_id(self, account_type):
        with pytest.raises(RecordDoesNotExistError):
            rows.SObjectDeleteRequest(SObject(account_type))

    def test_upsert_on_non_external_field(self, account_type):
        rec = SObject(account_type).with_str("Name", "Acme")
        with pytest.raises(UpsertKeyError):
            rows.SObjectUpsertRequest(rec, "Name")

    def test_upsert_without_value(self, account_type):
        with pytest.raises(UpsertKeyError):
            rows.SObjectUpsertRequest(SObject(account_type), "External_Id__c")


class TestRequests:
    def test_create_request(self, account_type):
        req = rows.SObjectCreateRequest(SObject(account_type).with_str("Name", "Acme"))

        assert req.method == "POST"
        assert req.url == "sobjects/Account/"
        assert req.body() == {"Name": "Acme"}

    def test_update_request_body_has_no_id(self, account_type):
        rec = SObject(account_type).with_str("Name", "Acme")
        rec.set_opt_id(ACCOUNT_ID)
        req = rows.SObjectUpdateRequest(rec)

        assert req.method == "PATCH"
        assert req.url == f"sobjects/Account/{ACCOUNT_ID}"
        assert req.body() == {"Name": "Acme"}

    def test_upsert_request(self, account_type):
        rec = SObject(account_type).with_str("External_Id__c", "EXT 1").with_str("Name", "Acme")
        req = rows.SObjectUpsertRequest(rec, "External_Id__c")

        assert req.url == "sobjects/Account/External_Id__c/EXT 1"
        assert req.body() == {"Name": "Acme"}

    def test_retrieve_request(self, account_type):
        req = rows.SObjectRetrieveRequest(account_type, "0013600001ohPTp", fields=["Id", "Name"])

        assert req.url == f"sobjects/Account/{ACCOUNT_ID}/"
        assert req.query_parameters() == {"fields": "Id,Name"}


class TestHelpers:
    def test_create_sets_id(self, conn, account_type, make_response):
        """A successful create stores the new Id on the record."""
        rec = SObject(account_type).with_str("Name", "Acme")
        body = {"id": ACCOUNT_ID, "success": True, "errors": []}

        with patch.object(conn.session, "request", return_value=make_response(status=201, json=body)):
            result = rows.create(conn, rec)

        assert result.success
        assert rec.get_opt_id() == SalesforceId(ACCOUNT_ID)

    def test_create_failure_is_data(self, conn, account_type, make_response):
        """Backend validation errors come back as a failed result."""
        rec = SObject(account_type).with_str("Name", "")
        errors = [{"message": "Required fields are missing: [Name]", "errorCode": "REQUIRED_FIELD_MISSING", "fields": ["Name"]}]

        with patch.object(conn.session, "request", return_value=make_response(status=400, json=errors)):
            result = rows.create(conn, rec)

        assert not result.success
        assert result.errors[0].error_code == "REQUIRED_FIELD_MISSING"
        assert rec.get_id().is_null
        with pytest.raises(ApiRequestError, match="REQUIRED_FIELD_MISSING"):
            result.raise_for_errors()

    def test_update_204(self, conn, account_type, make_response):
        rec = SObject(account_type).with_str("Name", "Acme")
        rec.set_opt_id(ACCOUNT_ID)

        with patch.object(conn.session, "request", return_value=make_response(status=204)) as req:
            result = rows.update(conn, rec)

        assert result.success
        assert req.call_args.kwargs["json"] == {"Name": "Acme"}

    def test_upsert_created(self, conn, account_type, make_response):
        rec = SObject(account_type).with_str("External_Id__c", "E-1")
        body = {"id": ACCOUNT_ID, "success": True, "errors": [], "created": True}

        with patch.object(conn.session, "request", return_value=make_response(status=201, json=body)):
            result = rows.upsert(conn, rec, "External_Id__c")

        assert result.created
        assert rec.get_opt_id() == SalesforceId(ACCOUNT_ID)

    def test_delete_clears_id(self, conn, account_type, make_response):
        rec = SObject(account_type)
        rec.set_id(FieldValue.id(ACCOUNT_ID))

        with patch.object(conn.session, "request", return_value=make_response(status=204)) as req:
            result = rows.delete(conn, rec)

        assert result.success
        assert req.call_args.args[0] == "DELETE"
        assert rec.get_id().is_null

    def test_retrieve(self, conn, account_type, make_response):
        body = {"attributes": {"type": "Account"}, "Id": ACCOUNT_ID, "Name": "Acme"}

        with patch.object(conn.session, "request", return_value=make_response(json=body)):
            rec = rows.retrieve(conn, account_type, ACCOUNT_ID)

        assert rec["Name"] == "Acme"

    def test_blob_retrieve_streams(self, conn, make_response):
        response = make_response(status=200, text="")
        response.iter_content.return_value = iter([b"%PDF", b"-1.4"])
        path = "/services/data/v52.0/sobjects/Attachment/00P000000000001/Body"

        with patch.object(conn.session, "request", return_value=response) as req:
            chunks = list(conn.execute_raw(rows.BlobRetrieveRequest(path, chunk_size=4)))

        assert chunks == [b"%PDF", b"-1.4"]
        assert req.call_args.kwargs["stream"] is True
        response.iter_content.assert_called_once_with(chunk_size=4)
