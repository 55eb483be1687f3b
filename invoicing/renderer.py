"""
Rendering of invoices and activity sheets to PDF
"""
import logging
from typing import Callable, Dict, List, Optional, Sequence

import fitz
from PIL import Image

from .compressor import ImageCompressor
from .errors import DecodeError
from .form import InvoiceFormState
from .formatting import (
    format_currency,
    format_date_safe,
    format_phone_number,
    format_quantity,
    format_sales_tax,
    invoice_description,
    month_name,
)
from .layout import PageLayout
from .models import (
    ActivityDocumentHeader,
    ActivityEntry,
    Company,
    Contact,
    ExportProgress,
    InvoicePreview,
    PageConfig,
)
from .pdf_engine import ACCENT, PDFEngine
from .trimmer import ImageTrimmer


logger = logging.getLogger(__name__)

INVOICE_COLUMNS = (1, 3, 1.2, 1.2)
ACTIVITY_COLUMNS = (1, 1, 1)
ACTIVITY_HEADINGS = ("Activities Completed", "Executed By", "Hours Worked")
CELL_PADDING = 4
LINE_GAP = 14

APPROVAL_TEXT = (
    "Approval of this document assumes acceptance of deliverables and hours worked to "
    "achieve them. The same hours worked will also be contained in the invoice issued "
    "after the AS document approval."
)


class DocumentRenderer:
    """Draws invoice and activity sheet PDFs with PyMuPDF"""

    def __init__(self, page_config: PageConfig = None, header: ActivityDocumentHeader = None):
        """Initialize renderer with page configuration and activity sheet header"""
        self.page_config = page_config or PageConfig()
        self.header = header or ActivityDocumentHeader()
        self.engine = PDFEngine()
        self.layout = PageLayout(self.page_config)
        self.trimmer = ImageTrimmer()

    # ---- Invoice ----
    def render_invoice(self, preview: InvoicePreview) -> bytes:
        """
        Render a one-invoice PDF

        Args:
            preview: Formatted invoice data

        Returns:
            PDF bytes
        """
        doc = self.engine.create_document()
        page = self.engine.add_page(doc, self.page_config.page_size)
        content = self.layout.content_rect()
        size = self.page_config.font_size

        y = content.y0 + self.page_config.title_font_size
        self.engine.draw_text(page, (content.x0, y), "INVOICE", self.page_config.title_font_size, bold=True)
        y += 36

        date_col, number_col, _ = self.layout.column_rects(y, (1, 1, 1))
        self.engine.draw_text(page, (date_col.x0, y), "DATE", size + 1, bold=True)
        self.engine.draw_text(page, (date_col.x0, y + LINE_GAP), preview.date, size)
        self._draw_centered(page, number_col, y, "Invoice Number", size + 1, bold=True)
        self._draw_centered(page, number_col, y + LINE_GAP, preview.invoice_number, size)

        issuer_lines = self._issuer_lines(preview.from_company, preview.from_contact)
        for offset, line in enumerate(issuer_lines):
            self._draw_right(page, y + offset * LINE_GAP, line, size + 1 if offset == 0 else size, bold=offset == 0)
        y += max(2, len(issuer_lines)) * LINE_GAP + 20

        self.engine.draw_text(page, (content.x0, y), "Invoice to", size + 1, bold=True)
        for line in self._recipient_lines(preview.to_company, preview.to_contact):
            y += LINE_GAP
            self.engine.draw_text(page, (content.x0, y), line, size)
        y += 40

        description_rect = fitz.Rect(content.x0, y - size, content.x1, y + 2 * LINE_GAP)
        self.engine.draw_textbox(
            page, description_rect,
            invoice_description(preview.date, self.header.project_code),
            size, align=fitz.TEXT_ALIGN_CENTER
        )
        y += 2 * LINE_GAP + 20

        page, y = self._draw_invoice_table(doc, page, y, preview)
        self._draw_invoice_totals(doc, page, y, preview)

        data = self.engine.to_bytes(doc)
        logger.info("Rendered invoice %s (%d bytes)", preview.invoice_number, len(data))
        return data

    def _draw_invoice_table(self, doc: fitz.Document, page: fitz.Page, y: float, preview: InvoicePreview):
        size = self.page_config.font_size
        row_height = self.page_config.row_height
        headings = ("Quantity", "Description", "Unit Price", "Line Total")

        def draw_heading(page, y):
            for rect, heading in zip(self.layout.column_rects(y, INVOICE_COLUMNS), headings):
                self._draw_centered(page, rect, y + size, heading, size + 1, bold=True, color=ACCENT)
            y += row_height
            content = self.layout.content_rect()
            self.engine.draw_line(page, (content.x0, y - 4), (content.x1, y - 4))
            return y

        y = draw_heading(page, y)
        content = self.layout.content_rect()
        for item in preview.items:
            values = (
                format_quantity(item.quantity),
                item.description,
                format_quantity(item.unit_price),
                format_currency(item.total),
            )
            height = self._row_height(INVOICE_COLUMNS, values)
            if y + height > content.y1:
                page = self.engine.add_page(doc, self.page_config.page_size)
                y = draw_heading(page, content.y0)
            for rect, value in zip(self.layout.column_rects(y, INVOICE_COLUMNS, height), values):
                self.engine.draw_textbox(page, rect, value, size, align=fitz.TEXT_ALIGN_CENTER)
            y += height
        return page, y + 20

    def _draw_invoice_totals(self, doc: fitz.Document, page: fitz.Page, y: float, preview: InvoicePreview):
        size = self.page_config.font_size
        totals = preview.totals
        rows = (
            ("Subtotal:", format_currency(totals.subtotal), False),
            ("Sales Tax:", format_sales_tax(preview.sales_tax), False),
            ("Total", format_currency(totals.total), True),
        )
        if self.layout.rows_that_fit(y) < len(rows):
            page = self.engine.add_page(doc, self.page_config.page_size)
            y = self.layout.content_rect().y0

        content = self.layout.content_rect()
        label_x = content.x1 - content.width / 4
        for label, value, bold in rows:
            y += LINE_GAP + 4
            self.engine.draw_text(page, (label_x, y), label, size, bold=bold)
            self._draw_right(page, y, value, size, bold=bold)
            self.engine.draw_line(page, (label_x, y + 5), (content.x1, y + 5), width=0.5)

    @staticmethod
    def _issuer_lines(company: Optional[Company], contact: Optional[Contact]) -> List[str]:
        lines = []
        if company:
            lines.append(company.name)
            if company.address:
                lines.extend([company.address.address_line1, company.address.locality_line()])
        if contact:
            lines.extend([format_phone_number(contact.phone_number), contact.email])
        return [line for line in lines if line]

    @staticmethod
    def _recipient_lines(company: Optional[Company], contact: Optional[Contact]) -> List[str]:
        lines = []
        if company:
            lines.append(company.legal_name or company.display_name)
            if company.address:
                lines.extend([company.address.address_line1, company.address.locality_line()])
        if contact:
            lines.extend([contact.full_name, contact.email])
        return [line for line in lines if line]

    # ---- Activity sheet ----
    def render_activity_document(
        self,
        date: str,
        entries: Sequence[ActivityEntry],
        progress_callback: Callable[[ExportProgress], None] = None,
        cancel_check: Callable[[], bool] = None
    ) -> Optional[bytes]:
        """
        Render the activity sheet: a summary table, then one page per entry

        Args:
            date: Invoice date (ISO or MM/DD/YYYY)
            entries: Activity entries in invoice item order
            progress_callback: Optional callback for progress updates
            cancel_check: Optional callback to check for cancellation

        Returns:
            PDF bytes, or None if cancelled
        """
        doc = self.engine.create_document()
        formatted_date = format_date_safe(date) if date else ""

        self._draw_activity_summary(doc, formatted_date, entries)

        for idx, entry in enumerate(entries):
            if cancel_check and cancel_check():
                doc.close()
                logger.info("Activity sheet rendering cancelled at entry %d", idx)
                return None

            if progress_callback:
                progress_callback(ExportProgress(
                    current=idx + 1,
                    total=len(entries),
                    current_item=entry.performed_by
                ))

            self._draw_entry_page(doc, entry)

        data = self.engine.to_bytes(doc)
        logger.info("Rendered activity sheet with %d entries (%d bytes)", len(entries), len(data))
        return data

    def _draw_activity_summary(self, doc: fitz.Document, formatted_date: str, entries: Sequence[ActivityEntry]):
        page = self.engine.add_page(doc, self.page_config.page_size)
        content = self.layout.content_rect()
        size = self.page_config.font_size + 1
        header = self.header

        y = content.y0 + size
        left = [line for line in (header.recipient_name and f"For {header.recipient_name}", header.recipient_company) if line]
        right = [line for line in (header.location, formatted_date, header.issuer) if line]
        for offset, line in enumerate(left):
            self.engine.draw_text(page, (content.x0, y + offset * LINE_GAP), line, size)
        for offset, line in enumerate(right):
            self._draw_right(page, y + offset * LINE_GAP, line, size)
        y += max(len(left), len(right), 1) * LINE_GAP + 40

        sentence = f"We are informing you on the services completed during the month of {month_name(formatted_date)}"
        if header.project_code:
            sentence += f" for the project {header.project_code}"
        self.engine.draw_textbox(page, fitz.Rect(content.x0, y - size, content.x1, y + 3 * LINE_GAP), sentence, size)
        y += 3 * LINE_GAP + 30

        page, y = self._draw_activity_table(doc, page, y, entries)

        approval_height = 5 * LINE_GAP
        if content.y1 - y < approval_height + 40:
            page = self.engine.add_page(doc, self.page_config.page_size)
            y = content.y0
        else:
            y += 40
        self.engine.draw_textbox(page, fitz.Rect(content.x0, y, content.x1, y + approval_height), APPROVAL_TEXT, size)

    def _draw_activity_table(self, doc: fitz.Document, page: fitz.Page, y: float, entries: Sequence[ActivityEntry]):
        size = self.page_config.font_size
        row_height = self.page_config.row_height
        content = self.layout.content_rect()

        rows = [(self.header.activity_label, entry.performed_by, format_quantity(entry.hours)) for entry in entries]
        total_hours = format_quantity(sum(entry.hours for entry in entries))

        y = self._draw_table_row(page, y, ACTIVITY_HEADINGS, bold=True)
        for row in rows:
            height = self._row_height(ACTIVITY_COLUMNS, row, padding=CELL_PADDING)
            if y + height > content.y1:
                page = self.engine.add_page(doc, self.page_config.page_size)
                y = self._draw_table_row(page, content.y0, ACTIVITY_HEADINGS, bold=True)
            y = self._draw_table_row(page, y, row, height=height)

        if self.layout.rows_that_fit(y) < 1:
            page = self.engine.add_page(doc, self.page_config.page_size)
            y = content.y0
        total_cells = self.layout.column_rects(y, (2, 1))
        for rect, text in zip(total_cells, ("TOTAL", total_hours)):
            self.engine.draw_rect(page, rect)
            self.engine.draw_textbox(page, self._padded(rect), text, size)
        return page, y + row_height

    def _draw_table_row(
        self, page: fitz.Page, y: float, values: Sequence[str], bold: bool = False, height: float = None
    ) -> float:
        size = self.page_config.font_size
        height = height if height is not None else self.page_config.row_height
        for rect, value in zip(self.layout.column_rects(y, ACTIVITY_COLUMNS, height), values):
            self.engine.draw_rect(page, rect)
            self.engine.draw_textbox(page, self._padded(rect), value, size, bold=bold)
        return y + height

    def _row_height(self, columns: Sequence[float], values: Sequence[str], padding: float = 0) -> float:
        """Row height that fits the longest wrapped cell, at most one page of content"""
        size = self.page_config.font_size
        row_height = self.page_config.row_height
        needed = max(
            self.engine.text_height(value, rect.width - 2 * padding, size) + padding
            for rect, value in zip(self.layout.column_rects(0, columns), values)
        )
        return max(row_height, min(needed, self.layout.content_rect().height - row_height))

    def _draw_entry_page(self, doc: fitz.Document, entry: ActivityEntry):
        page = self.engine.add_page(doc, self.page_config.page_size)
        content = self.layout.content_rect()
        size = self.page_config.font_size

        y = content.y0 + size
        self.engine.draw_text(page, (content.x0, y), f"{entry.performed_by} Timesheets".strip(), size)
        if entry.image is None:
            return

        try:
            data = entry.image
            if self.page_config.trim_image_margins:
                data = self.trimmer.trim(data)
            width, height = ImageCompressor.decode(data).size
            rect = self.layout.image_rect(width, height, y + 10)
            self.engine.insert_image(page, rect, data)
        except (DecodeError, ValueError, RuntimeError) as e:
            logger.warning("Skipping unreadable timesheet image of %r: %s", entry.performed_by, e)

    # ---- Helpers ----
    def _draw_right(self, page: fitz.Page, baseline: float, text: str, font_size: float, bold: bool = False):
        width = self.engine.text_width(text, font_size, bold=bold)
        self.engine.draw_text(page, self.layout.right_aligned_point(width, baseline), text, font_size, bold=bold)

    def _draw_centered(self, page, rect: fitz.Rect, baseline: float, text: str, font_size: float, bold=False, color=(0, 0, 0)):
        width = self.engine.text_width(text, font_size, bold=bold)
        x = rect.x0 + (rect.width - width) / 2
        self.engine.draw_text(page, (x, baseline), text, font_size, bold=bold, color=color)

    @staticmethod
    def _padded(rect: fitz.Rect, padding: float = CELL_PADDING) -> fitz.Rect:
        return fitz.Rect(rect.x0 + padding, rect.y0 + padding, rect.x1 - padding, rect.y1)

    # ---- Output ----
    def render_preview(self, pdf: bytes, page_index: int = 0, max_width: int = 600, max_height: int = 850) -> Image.Image:
        """Rasterize one page of a rendered PDF for on-screen preview"""
        doc = self.engine.open_bytes(pdf)
        try:
            page = self.engine.get_page(doc, page_index)
            return self.engine.render_thumbnail(page, max_width, max_height)
        finally:
            doc.close()

    def render_attachments(
        self,
        form: InvoiceFormState,
        companies: Sequence[Company],
        contacts: Sequence[Contact]
    ) -> Dict[str, bytes]:
        """
        Render the PDFs attached to an invoice email

        Returns:
            Mapping of filename to PDF bytes; the activity sheet is included
            only when the form has one with entries
        """
        names = form.attachment_filenames(companies)
        attachments = {names["invoice"]: self.render_invoice(form.preview_data(companies, contacts))}
        if "as" in names:
            attachments[names["as"]] = self.render_activity_document(form.date, form.entries)
        return attachments

