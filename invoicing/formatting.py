"""
Formatting helpers for invoice documents, filenames and email templates
"""
import logging
import re
from datetime import date, datetime
from typing import Optional


logger = logging.getLogger(__name__)

ENGLISH_MONTHS = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)
SPANISH_MONTHS = (
    "enero", "febrero", "marzo", "abril", "mayo", "junio",
    "julio", "agosto", "septiembre", "octubre", "noviembre", "diciembre",
)

ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
US_DATE = re.compile(r"^\d{2}/\d{2}/\d{4}$")


def format_invoice_number(number: int) -> str:
    """Zero-pad an invoice number to five digits"""
    return str(number).zfill(5)


def parse_date_safe(value: str) -> Optional[date]:
    """
    Parse a date string as a calendar date, without timezone shifts

    Accepts YYYY-MM-DD, MM/DD/YYYY and ISO timestamps. Returns today for an
    empty string and None when the string cannot be parsed.
    """
    if not value:
        return date.today()
    try:
        if ISO_DATE.match(value):
            return datetime.strptime(value, "%Y-%m-%d").date()
        if US_DATE.match(value):
            return datetime.strptime(value, "%m/%d/%Y").date()
        return datetime.fromisoformat(value.replace("Z", "+00:00")).date()
    except ValueError:
        return None


def format_date_safe(value: str) -> str:
    """Format as MM/DD/YYYY; unparseable input is returned unchanged"""
    parsed = parse_date_safe(value)
    if parsed is None:
        return value
    return parsed.strftime("%m/%d/%Y")


def sanitize_filename(value: str) -> str:
    """Replace anything but ASCII letters and digits with single underscores"""
    value = re.sub(r"[^a-zA-Z0-9]", "_", value)
    value = re.sub(r"_+", "_", value)
    return value.strip("_")


def format_date_for_filename(value: str) -> str:
    """e.g. "2024-03-15" -> "March_2024" """
    parsed = parse_date_safe(value) or date.today()
    return f"{ENGLISH_MONTHS[parsed.month - 1]}_{parsed.year}"


def attachment_filename(kind: str, from_name: str, to_name: str, invoice_date: str, invoice_number: int) -> str:
    """Name of an emailed PDF, e.g. invoice_Acme_Globex_March_2024_00042.pdf"""
    return "_".join((
        kind,
        sanitize_filename(from_name or "Unknown"),
        sanitize_filename(to_name or "Unknown"),
        format_date_for_filename(invoice_date),
        format_invoice_number(invoice_number),
    )) + ".pdf"


def month_name(value: str) -> str:
    """
    English month name of a date string

    Slash dates whose first part is above 12 are read as DD/MM/YYYY,
    all others as MM/DD/YYYY. Returns "" when no month can be found.
    """
    if not value:
        return ""
    parts = value.split("/")
    if len(parts) != 3:
        parsed = parse_date_safe(value)
        return ENGLISH_MONTHS[parsed.month - 1] if parsed else ""
    try:
        first, second = int(parts[0]), int(parts[1])
    except ValueError:
        return ""
    month = second if first > 12 else first
    if not 1 <= month <= 12:
        return ""
    return ENGLISH_MONTHS[month - 1]


def replace_date_variables(template: str, value: str) -> str:
    """
    Fill ${date}, ${englishMonth}, ${spanishMonth} and ${year} in an email template

    The template is returned unchanged when no date is given or the date is
    invalid.
    """
    if not template:
        return ""
    if not value:
        return template

    parsed = parse_date_safe(value)
    if parsed is None:
        logger.warning("Cannot replace date variables, invalid date %r", value)
        return template

    replacements = {
        "${date}": parsed.strftime("%m/%d/%Y"),
        "${englishMonth}": ENGLISH_MONTHS[parsed.month - 1],
        "${spanishMonth}": SPANISH_MONTHS[parsed.month - 1].capitalize(),
        "${year}": str(parsed.year),
    }
    for variable, replacement in replacements.items():
        template = template.replace(variable, replacement)
    return template


def format_phone_number(phone: Optional[str]) -> str:
    """Format the first eleven digits as +x xxx xxx xxxx"""
    digits = re.sub(r"\D", "", phone or "")[:11]
    if not digits:
        return ""
    if len(digits) <= 1:
        return f"+{digits}"
    if len(digits) <= 4:
        return f"+{digits[0]} {digits[1:]}"
    if len(digits) <= 7:
        return f"+{digits[0]} {digits[1:4]} {digits[4:]}"
    return f"+{digits[0]} {digits[1:4]} {digits[4:7]} {digits[7:]}"


def format_currency(value: float) -> str:
    """Whole amount with thousands separators, e.g. 12345.6 -> "12,346" """
    return f"{value:,.0f}"


def format_sales_tax(rate: float) -> str:
    """Sales tax fraction as a percentage, e.g. 0.08 -> "8%" """
    if rate == 0:
        return "0%"
    return f"{rate * 100:.0f}%"


def format_quantity(value: float) -> str:
    """Drop the decimal part of whole numbers, e.g. 2.0 -> "2" """
    if float(value).is_integer():
        return str(int(value))
    return f"{value:g}"


def invoice_description(value: str, project_code: str = "") -> str:
    """Line describing the billed period, e.g. services for March 2024"""
    suffix = f" for project {project_code}" if project_code else ""
    parsed = parse_date_safe(value)
    if parsed is None:
        return f"Software development services{suffix}"
    return f"Software development services for {ENGLISH_MONTHS[parsed.month - 1]} {parsed.year}{suffix}"
