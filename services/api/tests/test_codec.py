"""
Tests for the row codec.

Run with: pytest tests/test_codec.py -v
"""
import pytest

from core import codec
from core.field_map import FieldMappingTable


class TestNormalizeHeader:
    def test_lowercase_and_underscores(self):
        assert codec.normalize_header("Booker Email") == "booker_email"

    def test_trims_and_collapses_whitespace(self):
        assert codec.normalize_header("  Payment 1 \t  Status ") == "payment_1_status"

    def test_empty(self):
        assert codec.normalize_header("   ") == ""
        assert codec.normalize_header(None) == ""


class TestDecodeCell:
    @pytest.mark.parametrize("raw,expected", [
        ("true", True),
        ("TRUE", True),
        (" False ", False),
        ("3", 3),
        ("-12", -12),
        ("2.5", 2.5),
        ("1e3", 1000.0),
        ("  hello ", "hello"),
        ("", ""),
        (None, ""),
        ("nan", "nan"),
        ("Infinity", "Infinity"),
        ("12abc", "12abc"),
        ("1_000", "1_000"),
        ("١٢", "١٢"),
        ("1e400", "1e400"),
        (".5", 0.5),
    ])
    def test_coercion(self, raw, expected):
        value = codec.decode_cell(raw)
        assert value == expected
        assert type(value) is type(expected)


class TestDecode:
    def test_users_scenario(self):
        """Numeric coercion applies to login_count; other fields stay strings."""
        grid = [["Email", "Password", "login_count"], ["a@b.com", "pw", "3"]]
        assert codec.decode(grid) == [{"email": "a@b.com", "password": "pw", "login_count": 3}]

    def test_empty_header_columns_are_skipped(self):
        grid = [["id", "", "name"], ["1", "ignored", "Ann"]]
        assert codec.decode(grid) == [{"id": 1, "name": "Ann"}]

    def test_short_rows_fill_empty_strings(self):
        grid = [["id", "name", "note"], ["1"]]
        assert codec.decode(grid) == [{"id": 1, "name": "", "note": ""}]

    def test_duplicate_normalized_headers_rightmost_wins(self):
        grid = [["Name", "name "], ["left", "right"]]
        assert codec.decode(grid) == [{"name": "right"}]

    def test_empty_grid(self):
        assert codec.decode([]) == []
        assert codec.decode([["id"]]) == []


class TestEncode:
    def test_aligned_to_live_header_order(self):
        fm = FieldMappingTable({"Bookings": {"booking_id": "Booking ID", "email": "Booker Email"}})
        headers = ["Booker Email", "Notes", "Booking ID"]
        row = codec.encode(fm, "Bookings", headers, {"booking_id": "B9", "email": "q@w.com"})
        assert row == ["q@w.com", "", "B9"]

    def test_empty_string_becomes_explicit_empty_marker(self):
        fm = FieldMappingTable()
        row = codec.encode(fm, "S", ["a", "b", "c"], {"a": "", "b": 1})
        # "a" was sent empty, "c" was not sent at all
        assert row == [None, 1, ""]

    def test_round_trip_through_sheet_strings(self):
        """Re-encoding and re-decoding keeps mapped fields; unmapped ones are dropped."""
        from adapters.memory import to_cell

        fm = FieldMappingTable({"S": {"count": "Login Count", "email": "Email"}})
        headers = ["Email", "Login Count", "flag"]
        record = {"email": "a@b.com", "count": 4, "flag": True, "nickname": "zz"}

        row = codec.encode(fm, "S", headers, record)
        decoded = codec.decode([headers, [to_cell(v) for v in row]])[0]

        assert decoded["email"] == "a@b.com"
        assert decoded["login_count"] == 4
        assert decoded["flag"] is True
        assert "nickname" not in decoded


class TestA1:
    @pytest.mark.parametrize("index,letter", [(0, "A"), (2, "C"), (25, "Z"), (26, "AA"), (27, "AB"), (701, "ZZ"), (702, "AAA")])
    def test_column_letter(self, index, letter):
        assert codec.column_letter(index) == letter

    def test_negative_index(self):
        with pytest.raises(ValueError):
            codec.column_letter(-1)

    def test_a1(self):
        assert codec.a1(2, 2) == "C2"
