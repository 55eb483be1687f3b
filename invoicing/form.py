"""
Invoice form state: header fields, linked item lists, totals and payloads
"""
import base64
import binascii
import logging
from dataclasses import dataclass, field, fields
from datetime import date
from typing import Any, Dict, List, Optional, Sequence

from .formatting import attachment_filename, format_date_safe, format_invoice_number
from .models import (
    ActivityEntry,
    Company,
    Contact,
    InvoicePreview,
    LineItem,
    ReconciliationState,
    Totals,
)
from .reconciler import DualListReconciler


logger = logging.getLogger(__name__)

DATA_URL_PREFIX = "data:image/jpeg;base64,"


def encode_image(image: Optional[bytes]) -> Optional[str]:
    """JPEG bytes as a data URL, None stays None"""
    if image is None:
        return None
    return DATA_URL_PREFIX + base64.b64encode(image).decode("ascii")


def decode_image(value: Optional[str]) -> Optional[bytes]:
    """
    Decode a data URL or bare base64 string

    Empty strings and None both mean "no image".

    Raises:
        ValueError: if the payload is not valid base64
    """
    if not value:
        return None
    if value.startswith("data:"):
        value = value.split(",", 1)[-1]
    try:
        return base64.b64decode(value, validate=True)
    except binascii.Error as exc:
        raise ValueError(f"Invalid image payload: {exc}") from exc


def item_to_payload(item: LineItem) -> Dict[str, Any]:
    return {
        "quantity": item.quantity,
        "description": item.description,
        "unitPrice": item.unit_price,
        "total": item.total,
    }


def item_from_payload(data: Dict[str, Any]) -> LineItem:
    return LineItem(
        quantity=data.get("quantity") or 0,
        description=data.get("description") or "",
        unit_price=data.get("unitPrice") or 0,
    )


def entry_to_payload(entry: ActivityEntry, include_image: bool = True) -> Dict[str, Any]:
    payload = {"executedBy": entry.performed_by, "hours": entry.hours}
    if include_image and entry.image is not None:
        payload["image"] = encode_image(entry.image)
    return payload


def entry_from_payload(data: Dict[str, Any]) -> ActivityEntry:
    return ActivityEntry(
        performed_by=data.get("executedBy") or "",
        hours=data.get("hours") or 0,
        image=decode_image(data.get("image")),
    )


def next_invoice_number(latest: Optional[int]) -> int:
    """Number following the latest one issued to a company"""
    return latest + 1 if latest is not None else 1


def _ref_id(invoice: Dict[str, Any], key: str) -> Optional[int]:
    ref = invoice.get(key)
    return ref.get("id") if isinstance(ref, dict) else None


@dataclass
class InvoiceFormState:
    """State behind the invoice editor.

    Items and activity entries live in a ReconciliationState; every edit
    goes through the DualListReconciler and is followed by a totals
    recalculation, so the header totals always match the items.
    """
    invoice_number: int = 1
    date: str = field(default_factory=lambda: date.today().isoformat())
    tax_rate: float = 0
    subtotal: float = 0
    tax_amount: float = 0
    total: float = 0
    is_template: bool = False
    sent: bool = False
    name: str = ""
    description: str = ""
    from_company_id: Optional[int] = None
    from_contact_id: Optional[int] = None
    to_company_id: Optional[int] = None
    to_contact_id: Optional[int] = None
    currency_id: Optional[int] = None
    email_template_id: Optional[int] = None
    editing_invoice_id: Optional[int] = None
    lists: ReconciliationState = field(default_factory=ReconciliationState)

    def __post_init__(self):
        self.reconciler = DualListReconciler()
        self.recalculate()

    @property
    def items(self) -> List[LineItem]:
        return self.lists.items

    @property
    def entries(self) -> List[ActivityEntry]:
        return self.lists.entries

    @property
    def has_activity_document(self) -> bool:
        return self.lists.linked

    def recalculate(self) -> Totals:
        """Recompute subtotal, tax and total from the items and tax rate"""
        self.subtotal = sum(item.total for item in self.lists.items)
        self.tax_amount = self.subtotal * (self.tax_rate / 100)
        self.total = self.subtotal + self.tax_amount
        return Totals(subtotal=self.subtotal, tax_amount=self.tax_amount, total=self.total)

    def set_tax_rate(self, rate: float):
        if rate < 0:
            raise ValueError("tax_rate must be non-negative")
        self.tax_rate = rate
        self.recalculate()

    # ---- Item and entry edits ----
    def set_activity_document(self, enabled: bool):
        self.reconciler.set_linked(self.lists, enabled)

    def add_item(self, item: Optional[LineItem] = None):
        self.reconciler.add_item(self.lists, item)
        self.recalculate()

    def remove_item(self, index: int):
        self.reconciler.remove_item(self.lists, index)
        self.recalculate()

    def update_item(self, index: int, field_name: str, value: Any):
        self.reconciler.update_item(self.lists, index, field_name, value)
        self.recalculate()

    def add_entry(self, entry: Optional[ActivityEntry] = None):
        self.reconciler.add_entry(self.lists, entry)
        self.recalculate()

    def remove_entry(self, index: int):
        self.reconciler.remove_entry(self.lists, index)
        self.recalculate()

    def update_entry(self, index: int, field_name: str, value: Any):
        self.reconciler.update_entry(self.lists, index, field_name, value)
        self.recalculate()

    # ---- Loading ----
    def reset(self):
        """Return every field to a blank new invoice"""
        blank = InvoiceFormState()
        for attribute in fields(self):
            setattr(self, attribute.name, getattr(blank, attribute.name))
        self.reconciler = blank.reconciler

    def load_for_edit(self, invoice: Dict[str, Any]):
        """
        Fill the form from a stored invoice or template

        Templates keep who performed each activity but drop timesheet
        images. Linked hours follow the item quantities.
        """
        self.reset()
        self._load_header(invoice)
        self.editing_invoice_id = invoice.get("id")
        self.is_template = bool(invoice.get("isTemplate"))
        self.sent = bool(invoice.get("sent"))
        self.invoice_number = invoice.get("invoiceNumber") or 1
        self.date = (invoice.get("date") or date.today().isoformat())[:10]

        items = [item_from_payload(data) for data in invoice.get("items") or []]
        entries = [entry_from_payload(data) for data in invoice.get("ASDocument") or []]
        if self.is_template:
            entries = [ActivityEntry(performed_by=entry.performed_by) for entry in entries]

        self.lists = ReconciliationState(items=items, entries=entries)
        self.reconciler.set_linked(self.lists, bool(entries))
        self.recalculate()

    def apply_template(self, template: Dict[str, Any], latest_invoice_number: Optional[int] = None):
        """
        Start a new invoice from a template

        Entry hours come from the quantity of the item at the same index;
        images are never carried over from a template.
        """
        self.reset()
        self._load_header(template)
        self.invoice_number = next_invoice_number(latest_invoice_number)

        items = [item_from_payload(data) for data in template.get("items") or []]
        entries = [
            ActivityEntry(performed_by=data.get("executedBy") or "")
            for data in template.get("ASDocument") or []
        ]

        self.lists = ReconciliationState(items=items, entries=entries)
        self.reconciler.set_linked(self.lists, bool(entries))
        self.recalculate()
        logger.debug("Applied template with %d items, %d entries", len(items), len(self.lists.entries))

    def _load_header(self, invoice: Dict[str, Any]):
        self.tax_rate = invoice.get("taxRate") or 0
        self.name = invoice.get("name") or ""
        self.description = invoice.get("description") or ""
        self.from_company_id = _ref_id(invoice, "fromCompany")
        self.from_contact_id = _ref_id(invoice, "fromContact")
        self.to_company_id = _ref_id(invoice, "toCompany")
        self.to_contact_id = _ref_id(invoice, "toContact")
        self.currency_id = _ref_id(invoice, "currency")
        self.email_template_id = _ref_id(invoice, "emailTemplate")

    # ---- Output ----
    def to_payload(self) -> Dict[str, Any]:
        """
        Request body for creating or updating the invoice

        Entries without a performer are left out. Templates store no hours
        and no images. The invoice number is omitted when editing.
        """
        has_document = self.lists.linked and bool(self.lists.entries)
        payload = {
            "date": self.date,
            "subtotal": self.subtotal,
            "taxRate": self.tax_rate,
            "taxAmount": self.tax_amount,
            "total": self.total,
            "items": [item_to_payload(item) for item in self.lists.items],
            "hasASDocument": has_document,
            "ASDocument": None,
            "fromCompanyId": self.from_company_id,
            "fromContactId": self.from_contact_id,
            "toCompanyId": self.to_company_id,
            "toContactId": self.to_contact_id,
            "currencyId": self.currency_id,
            "emailTemplateId": self.email_template_id,
            "name": self.name or None,
            "description": self.description,
            "isTemplate": self.is_template,
            "sent": self.sent,
        }
        if has_document:
            entries = [entry for entry in self.lists.entries if entry.performed_by]
            if self.is_template:
                payload["ASDocument"] = [{"executedBy": entry.performed_by, "hours": 0} for entry in entries]
            else:
                payload["ASDocument"] = [entry_to_payload(entry) for entry in entries]
        if self.editing_invoice_id is None:
            payload["invoiceNumber"] = self.invoice_number
        return payload

    def preview_data(self, companies: Sequence[Company], contacts: Sequence[Contact]) -> InvoicePreview:
        """Resolve party ids and format the fields the invoice document prints"""
        companies_by_id = {company.id: company for company in companies}
        contacts_by_id = {contact.id: contact for contact in contacts}
        return InvoicePreview(
            date=format_date_safe(self.date) if self.date else "",
            invoice_number=format_invoice_number(self.invoice_number),
            items=list(self.lists.items),
            sales_tax=self.tax_rate / 100,
            from_company=companies_by_id.get(self.from_company_id),
            from_contact=contacts_by_id.get(self.from_contact_id),
            to_company=companies_by_id.get(self.to_company_id),
            to_contact=contacts_by_id.get(self.to_contact_id),
        )

    def attachment_filenames(self, companies: Sequence[Company]) -> Dict[str, str]:
        """Filenames for the invoice PDF and, when present, the activity sheet PDF"""
        companies_by_id = {company.id: company for company in companies}
        from_company = companies_by_id.get(self.from_company_id)
        to_company = companies_by_id.get(self.to_company_id)
        from_name = from_company.name if from_company else ""
        to_name = to_company.name if to_company else ""

        names = {"invoice": attachment_filename("invoice", from_name, to_name, self.date, self.invoice_number)}
        if self.lists.linked and self.lists.entries:
            names["as"] = attachment_filename("as", from_name, to_name, self.date, self.invoice_number)
        return names
