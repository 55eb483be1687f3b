from datetime import date

import pytest

from invoicing.formatting import (
    attachment_filename,
    format_currency,
    format_date_for_filename,
    format_date_safe,
    format_invoice_number,
    format_phone_number,
    format_quantity,
    format_sales_tax,
    invoice_description,
    month_name,
    parse_date_safe,
    replace_date_variables,
    sanitize_filename,
)


def test_format_invoice_number():
    assert format_invoice_number(7) == "00007"
    assert format_invoice_number(123456) == "123456"


@pytest.mark.parametrize("value, expected", [
    ("2024-03-05", date(2024, 3, 5)),
    ("03/05/2024", date(2024, 3, 5)),
    ("2024-03-05T23:30:00Z", date(2024, 3, 5)),
    ("not a date", None),
    ("13/45/2024", None),
])
def test_parse_date_safe(value, expected):
    assert parse_date_safe(value) == expected


def test_parse_empty_date_is_today():
    assert parse_date_safe("") == date.today()


def test_format_date_safe():
    assert format_date_safe("2024-12-01") == "12/01/2024"
    assert format_date_safe("garbage") == "garbage"


def test_sanitize_filename():
    assert sanitize_filename("Acme, Inc. (US)") == "Acme_Inc_US"
    assert sanitize_filename("__Globex__") == "Globex"


def test_filename_parts():
    assert format_date_for_filename("2024-03-15") == "March_2024"
    assert attachment_filename("as", "Acme Inc", "", "2024-03-15", 3) == "as_Acme_Inc_Unknown_March_2024_00003.pdf"


@pytest.mark.parametrize("value, expected", [
    ("03/15/2024", "March"),
    ("15/03/2024", "March"),
    ("2024-07-01", "July"),
    ("00/10/2024", ""),
    ("", ""),
])
def test_month_name(value, expected):
    assert month_name(value) == expected


def test_replace_date_variables():
    template = "Invoice ${date}: ${englishMonth} / ${spanishMonth} ${year}"

    assert replace_date_variables(template, "2024-01-09") == "Invoice 01/09/2024: January / Enero 2024"
    assert replace_date_variables(template, "09/30/2024") == "Invoice 09/30/2024: September / Septiembre 2024"


def test_replace_date_variables_without_usable_date():
    assert replace_date_variables("${year}", "") == "${year}"
    assert replace_date_variables("${year}", "soon") == "${year}"
    assert replace_date_variables("", "2024-01-01") == ""


@pytest.mark.parametrize("value, expected", [
    ("1 (555) 123-4567", "+1 555 123 4567"),
    ("+56 9 8765 4321 99", "+5 698 765 4321"),
    ("12", "+1 2"),
    ("12345", "+1 234 5"),
    ("", ""),
    (None, ""),
])
def test_format_phone_number(value, expected):
    assert format_phone_number(value) == expected


def test_number_formats():
    assert format_currency(12345.6) == "12,346"
    assert format_sales_tax(0) == "0%"
    assert format_sales_tax(0.08) == "8%"
    assert format_quantity(2.0) == "2"
    assert format_quantity(2.5) == "2.5"


def test_invoice_description():
    assert invoice_description("03/15/2024", "STRD-0004") == (
        "Software development services for March 2024 for project STRD-0004"
    )
    assert invoice_description("nope") == "Software development services"
