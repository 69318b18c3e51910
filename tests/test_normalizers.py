"""Unit tests for value normalizers and pricing."""

import pytest

from railtrans.core.normalizers import (
    combine_phone,
    is_valid_email,
    normalize_coupon_code,
    normalize_email,
    normalize_role,
    plural_role,
    safe_field_name,
    split_phone,
)
from railtrans.core.pricing import apply_discount, gst_breakdown, resolve_category, round_rupees


class TestNormalizers:
    """Tests for email, role and field name normalization."""

    def test_normalize_email_trims_and_lowers(self):
        assert normalize_email("  Jane.Doe@Example.COM ") == "jane.doe@example.com"
        assert normalize_email(None) == ""

    def test_is_valid_email(self):
        assert is_valid_email("a@b.in")
        assert not is_valid_email("no-at-sign")
        assert not is_valid_email("")

    @pytest.mark.parametrize("raw,expected", [
        ("Visitors", "visitor"),
        (" exhibitor ", "exhibitor"),
        ("partners", "partner"),
        ("guest", None),
        ("", None),
    ])
    def test_normalize_role(self, raw, expected):
        assert normalize_role(raw) == expected

    def test_plural_role(self):
        assert plural_role("awardee") == "awardees"
        assert plural_role("visitors") == "visitors"

    def test_safe_field_name(self):
        assert safe_field_name("Company Name") == "company_name"
        assert safe_field_name("e-mail") == "e_mail"
        assert safe_field_name("Why? (optional)") == "why_optional"

    def test_coupon_code_is_upper_case(self):
        assert normalize_coupon_code(" save10 ") == "SAVE10"


class TestPhone:
    """Tests for phone splitting."""

    def test_split_with_country_code(self):
        assert split_phone("+91 98765-43210") == ("91", "9876543210")

    def test_split_without_plus_uses_default_dial(self):
        assert split_phone("98765 43210") == ("91", "9876543210")

    def test_national_part_is_capped(self):
        _, national = split_phone("98765432109999")
        assert national == "9876543210"

    def test_combine(self):
        assert combine_phone("91", "9876543210") == "+919876543210"
        assert combine_phone("91", "") == ""


class TestPricing:
    """Tests for GST and coupon arithmetic."""

    def test_gst_breakdown(self):
        breakdown = gst_breakdown(2500, 0.18)
        assert breakdown.gst_amount == 450
        assert breakdown.total == 2950

    def test_discount_on_gst_inclusive_total(self):
        assert apply_discount(2950, 10) == 2655

    def test_discount_is_clamped(self):
        assert apply_discount(1000, 150) == 0
        assert apply_discount(1000, -5) == 1000

    def test_round_half_up(self):
        assert round_rupees(2.5) == 3
        assert round_rupees(1.49) == 1

    def test_resolve_category(self):
        assert resolve_category("visitor", "premium").total == 2950
        assert resolve_category("visitor", "Free").total == 0
        assert resolve_category("visitor", "Combo Pass").price == 5000
        assert resolve_category("partner", "Premium").price == 15000
