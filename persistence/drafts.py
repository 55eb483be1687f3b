"""
Persistence layer for saving and loading invoice drafts
"""
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional
from invoicing.form import InvoiceFormState, entry_from_payload, entry_to_payload, item_from_payload, item_to_payload
from invoicing.models import ReconciliationState


logger = logging.getLogger(__name__)

HEADER_FIELDS = (
    "invoice_number", "date", "tax_rate", "is_template", "sent", "name", "description",
    "from_company_id", "from_contact_id", "to_company_id", "to_contact_id",
    "currency_id", "email_template_id", "editing_invoice_id",
)


class DraftPersistence:
    """Handles saving and loading in-progress invoice forms"""

    @staticmethod
    def get_draft_path(base_path: str) -> Path:
        """Get sidecar JSON path for a draft, e.g. next to its exported PDF"""
        base = Path(base_path)
        return base.parent / f"{base.stem}_invoice_draft.json"

    @staticmethod
    def to_dict(form: InvoiceFormState) -> Dict[str, Any]:
        """Serialize a form; images become data URLs"""
        data = {name: getattr(form, name) for name in HEADER_FIELDS}
        data["items"] = [item_to_payload(item) for item in form.items]
        data["entries"] = [entry_to_payload(entry) for entry in form.entries]
        data["linked"] = form.lists.linked
        return data

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> InvoiceFormState:
        """
        Rebuild a form from its serialized dict

        Raises:
            ValueError: if an item, entry or image is malformed
        """
        form = InvoiceFormState(**{name: data[name] for name in HEADER_FIELDS if name in data})
        form.lists = ReconciliationState(
            items=[item_from_payload(item) for item in data.get("items", [])],
            entries=[entry_from_payload(entry) for entry in data.get("entries", [])],
        )
        form.set_activity_document(bool(data.get("linked")))
        form.recalculate()
        return form

    @staticmethod
    def save_draft(form: InvoiceFormState, base_path: str) -> bool:
        """
        Save an invoice form next to base_path

        Args:
            form: Form to save
            base_path: File the draft belongs to

        Returns:
            True if saved successfully
        """
        try:
            draft_path = DraftPersistence.get_draft_path(base_path)
            with open(draft_path, 'w') as f:
                json.dump(DraftPersistence.to_dict(form), f, indent=2)
            return True
        except (OSError, TypeError) as e:
            logger.warning("Failed to save draft for %s: %s", base_path, e)
            return False

    @staticmethod
    def load_draft(base_path: str) -> Optional[InvoiceFormState]:
        """
        Load the draft saved next to base_path

        Args:
            base_path: File the draft belongs to

        Returns:
            The restored form, or None if there is no readable draft
        """
        draft_path = DraftPersistence.get_draft_path(base_path)
        if not draft_path.exists():
            return None
        try:
            with open(draft_path, 'r') as f:
                return DraftPersistence.from_dict(json.load(f))
        except (OSError, ValueError, TypeError, KeyError) as e:
            logger.warning("Failed to load draft %s: %s", draft_path, e)
            return None
