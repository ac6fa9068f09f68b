"""Tests for sfclient.ids module."""

import pytest

from sfclient.exceptions import InvalidIdError
from sfclient.ids import SalesforceId, canonicalize


class TestCanonicalize:
    """Tests for the 15 -> 18 character Id conversion."""

    @pytest.mark.parametrize(
        "short, full",
        [
            ("01Q36000000RXX5", "01Q36000000RXX5EAO"),
            ("0013600001ohPTp", "0013600001ohPTpAAM"),
        ],
    )
    def test_known_ids(self, short, full):
        """Derives the documented checksum suffix."""
        assert canonicalize(short) == full

    def test_idempotent(self):
        """Canonicalizing an 18-character Id returns it unchanged."""
        full = canonicalize("0013600001ohPTp")
        assert canonicalize(full) == full

    @pytest.mark.parametrize("bad", ["", "001", "0013600001ohPT", "0013600001ohPTpAAMX", "0013600001oh-Tp"])
    def test_rejects_invalid(self, bad):
        """Rejects wrong lengths and non-alphanumeric characters."""
        with pytest.raises(InvalidIdError):
            canonicalize(bad)

    def test_rejects_non_ascii(self):
        """Only ASCII letters and digits are allowed."""
        with pytest.raises(InvalidIdError):
            canonicalize("0013600001ohPTé")

    def test_rejects_non_string(self):
        with pytest.raises(InvalidIdError):
            canonicalize(1234567890123456)


class TestSalesforceId:
    """Tests for the SalesforceId value type."""

    def test_short_and_full_forms_are_equal(self):
        """Both forms of the same Id compare and hash equal."""
        a = SalesforceId("01Q36000000RXX5")
        b = SalesforceId("01Q36000000RXX5EAO")

        assert a == b
        assert hash(a) == hash(b)
        assert len({a, b}) == 1

    def test_str_is_canonical(self):
        assert str(SalesforceId("01Q36000000RXX5")) == "01Q36000000RXX5EAO"

    def test_equals_plain_string(self):
        """Compares equal to a str holding either form."""
        sid = SalesforceId("0013600001ohPTp")

        assert sid == "0013600001ohPTp"
        assert sid == "0013600001ohPTpAAM"
        assert sid != "not an id"

    def test_case_matters_in_short_form(self):
        """Ids differing only in case are different records."""
        assert SalesforceId("0013600001ohPTp") != SalesforceId("0013600001OHPTP")

    def test_key_prefix_and_short(self):
        sid = SalesforceId("0013600001ohPTpAAM")

        assert sid.key_prefix == "001"
        assert sid.short == "0013600001ohPTp"

    def test_copy_constructor(self):
        sid = SalesforceId("0013600001ohPTp")
        assert SalesforceId(sid) == sid

    def test_is_valid(self):
        assert SalesforceId.is_valid("0013600001ohPTp")
        assert not SalesforceId.is_valid("bogus")
