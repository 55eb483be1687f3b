"""
Index-aligned synchronization of invoice items and activity entries
"""
import logging
from dataclasses import fields, replace
from typing import Any, Optional

from .errors import IndexOutOfRange
from .models import ActivityEntry, LineItem, ReconciliationState


logger = logging.getLogger(__name__)

ITEM_FIELDS = frozenset(f.name for f in fields(LineItem) if f.init)
ENTRY_FIELDS = frozenset(f.name for f in fields(ActivityEntry))


class DualListReconciler:
    """Keeps activity entries aligned with invoice items by position.

    While a state is linked, entry ``i`` always belongs to item ``i`` and
    ``entries[i].hours == items[i].quantity``. Every operation applies all
    of its effects before returning, mutating the given state in place and
    returning it. ``performed_by`` and ``image`` are never overwritten.
    """

    def set_linked(self, state: ReconciliationState, linked: bool) -> ReconciliationState:
        """
        Turn the link between the two lists on or off

        Linking back-fills or aligns entries from the items and re-syncs
        all hours. Unlinking leaves entries untouched.
        """
        if not linked:
            state.linked = False
            return state

        if not state.entries:
            state.entries = [ActivityEntry(hours=item.quantity) for item in state.items]
        state.linked = True
        return self.reconcile_lengths(state)

    def add_item(self, state: ReconciliationState, item: Optional[LineItem] = None) -> ReconciliationState:
        """Append an item, and a matching blank entry while linked"""
        item = item if item is not None else LineItem()
        state.items.append(item)
        if state.linked:
            state.entries.append(ActivityEntry(hours=item.quantity))
        return state

    def remove_item(self, state: ReconciliationState, index: int) -> ReconciliationState:
        """Remove the item at index, and the entry at the same index while linked"""
        self._check_index(state.items, index, "items")
        if state.linked:
            self._check_index(state.entries, index, "entries")
            del state.entries[index]
        del state.items[index]
        return state

    def update_item(self, state: ReconciliationState, index: int, field: str, value: Any) -> ReconciliationState:
        """
        Set one field of an item

        The item total is recomputed; a quantity change is pushed to the
        entry hours while linked.

        Raises:
            IndexOutOfRange: if index does not address an item
            ValueError: if field is not an editable item field
        """
        self._check_index(state.items, index, "items")
        if field not in ITEM_FIELDS:
            raise ValueError(f"Unknown item field: {field}")

        item = replace(state.items[index], **{field: value})
        if state.linked and field == "quantity":
            self._check_index(state.entries, index, "entries")
            state.entries[index] = replace(state.entries[index], hours=value)
        state.items[index] = item
        return state

    def update_entry(self, state: ReconciliationState, index: int, field: str, value: Any) -> ReconciliationState:
        """
        Set one field of an entry

        An hours change is pushed back to the item quantity while linked.

        Raises:
            IndexOutOfRange: if index does not address an entry
            ValueError: if field is not an entry field
        """
        self._check_index(state.entries, index, "entries")
        if field not in ENTRY_FIELDS:
            raise ValueError(f"Unknown entry field: {field}")

        entry = replace(state.entries[index], **{field: value})
        if state.linked and field == "hours":
            self._check_index(state.items, index, "items")
            state.items[index] = replace(state.items[index], quantity=value)
        state.entries[index] = entry
        return state

    def add_entry(self, state: ReconciliationState, entry: Optional[ActivityEntry] = None) -> ReconciliationState:
        """Append an entry; while linked, append an item with quantity = hours"""
        entry = entry if entry is not None else ActivityEntry()
        state.entries.append(entry)
        if state.linked:
            state.items.append(LineItem(quantity=entry.hours))
        return state

    def remove_entry(self, state: ReconciliationState, index: int) -> ReconciliationState:
        """Remove the entry at index, and the item at the same index while linked"""
        self._check_index(state.entries, index, "entries")
        if state.linked:
            self._check_index(state.items, index, "items")
            del state.items[index]
        del state.entries[index]
        return state

    def reconcile_lengths(self, state: ReconciliationState) -> ReconciliationState:
        """
        Bring entries to the same length as items and re-sync hours

        Appended entries take their hours from the matching item and carry
        forward the last existing performed_by. Entries past the end of the
        item list are dropped. No-op while unlinked.
        """
        if not state.linked:
            return state

        item_count = len(state.items)
        entry_count = len(state.entries)
        if entry_count < item_count:
            performed_by = state.entries[-1].performed_by if state.entries else ""
            for item in state.items[entry_count:]:
                state.entries.append(ActivityEntry(performed_by=performed_by, hours=item.quantity))
            logger.debug("Appended %d activity entries", item_count - entry_count)
        elif entry_count > item_count:
            del state.entries[item_count:]
            logger.debug("Dropped %d activity entries", entry_count - item_count)

        for index, item in enumerate(state.items):
            if state.entries[index].hours != item.quantity:
                state.entries[index] = replace(state.entries[index], hours=item.quantity)
        return state

    @staticmethod
    def _check_index(sequence: list, index: int, name: str):
        if not 0 <= index < len(sequence):
            raise IndexOutOfRange(name, index, len(sequence))
