"""
PDF engine wrapper using PyMuPDF (fitz)
"""
import logging

import fitz
from PIL import Image
from typing import List, Tuple


logger = logging.getLogger(__name__)


BLACK = (0, 0, 0)
ACCENT = (0.18, 0.45, 0.35)

REGULAR_FONT = "helv"
BOLD_FONT = "hebo"
MIN_FONT_SIZE = 6
# Helvetica ascender minus descender, with headroom
LINE_SPACING = 1.45


class PDFEngine:
    """Wrapper for PDF operations using PyMuPDF"""

    @staticmethod
    def create_document() -> fitz.Document:
        """Create a new empty PDF document"""
        return fitz.open()

    @staticmethod
    def open_bytes(data: bytes) -> fitz.Document:
        """
        Open a PDF held in memory

        Raises:
            ValueError: if the bytes are not a readable PDF
        """
        try:
            return fitz.open(stream=data, filetype="pdf")
        except Exception as e:
            raise ValueError(f"Failed to open PDF: {str(e)}")

    @staticmethod
    def add_page(doc: fitz.Document, size: Tuple[float, float]) -> fitz.Page:
        """Add a new page to document"""
        width, height = size
        return doc.new_page(width=width, height=height)

    @staticmethod
    def text_width(text: str, font_size: float, bold: bool = False) -> float:
        """Width of a single line of text in points"""
        return fitz.get_text_length(text, fontname=BOLD_FONT if bold else REGULAR_FONT, fontsize=font_size)

    @staticmethod
    def wrap_text(text: str, width: float, font_size: float, bold: bool = False) -> List[str]:
        """Break text into lines no wider than width; words longer than a line are split"""
        lines = []
        current = ""
        for word in text.split():
            candidate = f"{current} {word}" if current else word
            if PDFEngine.text_width(candidate, font_size, bold) <= width:
                current = candidate
                continue
            if current:
                lines.append(current)
            current = ""
            for char in word:
                if current and PDFEngine.text_width(current + char, font_size, bold) > width:
                    lines.append(current)
                    current = ""
                current += char
        if current:
            lines.append(current)
        return lines

    @staticmethod
    def text_height(text: str, width: float, font_size: float, bold: bool = False) -> float:
        """Height a textbox of the given width needs to hold text"""
        line_count = max(1, len(PDFEngine.wrap_text(text, width, font_size, bold)))
        return line_count * font_size * LINE_SPACING

    @staticmethod
    def draw_text(
        page: fitz.Page,
        point: Tuple[float, float],
        text: str,
        font_size: float,
        bold: bool = False,
        color: Tuple[float, float, float] = BLACK
    ):
        """Write a single line of text with its baseline at point"""
        page.insert_text(
            fitz.Point(*point),
            text,
            fontsize=font_size,
            fontname=BOLD_FONT if bold else REGULAR_FONT,
            color=color
        )

    @staticmethod
    def draw_textbox(
        page: fitz.Page,
        rect: fitz.Rect,
        text: str,
        font_size: float,
        bold: bool = False,
        align: int = fitz.TEXT_ALIGN_LEFT,
        color: Tuple[float, float, float] = BLACK
    ) -> float:
        """
        Write wrapped text inside a rectangle, shrinking the font until it fits

        Returns:
            Unused height; negative when the text did not fit even at the
            minimum font size (nothing is written then)
        """
        while True:
            remaining = page.insert_textbox(
                rect,
                text,
                fontsize=font_size,
                fontname=BOLD_FONT if bold else REGULAR_FONT,
                color=color,
                align=align
            )
            if remaining >= 0:
                return remaining
            if font_size <= MIN_FONT_SIZE:
                logger.warning("Text does not fit a %.0fx%.0f box: %.40s", rect.width, rect.height, text)
                return remaining
            font_size = max(MIN_FONT_SIZE, font_size - 1)

    @staticmethod
    def draw_line(page: fitz.Page, start: Tuple[float, float], end: Tuple[float, float], width: float = 0.75):
        page.draw_line(fitz.Point(*start), fitz.Point(*end), color=BLACK, width=width)

    @staticmethod
    def draw_rect(page: fitz.Page, rect: fitz.Rect, width: float = 0.75):
        page.draw_rect(rect, color=BLACK, width=width)

    @staticmethod
    def insert_image(page: fitz.Page, rect: fitz.Rect, data: bytes):
        """Place encoded image bytes into rect, keeping proportions"""
        page.insert_image(rect, stream=data, keep_proportion=True)

    @staticmethod
    def to_bytes(doc: fitz.Document) -> bytes:
        """Serialize and close a document"""
        try:
            return doc.tobytes(garbage=3, deflate=True)
        finally:
            doc.close()

    @staticmethod
    def render_thumbnail(page: fitz.Page, max_width: int, max_height: int) -> Image.Image:
        """
        Render page as thumbnail image

        Args:
            page: PDF page
            max_width: Maximum width in pixels
            max_height: Maximum height in pixels

        Returns:
            PIL Image
        """
        page_rect = page.rect
        scale_x = max_width / page_rect.width
        scale_y = max_height / page_rect.height
        scale = min(scale_x, scale_y)

        mat = fitz.Matrix(scale, scale)
        pix = page.get_pixmap(matrix=mat, alpha=False)
        img = Image.frombytes("RGB", [pix.width, pix.height], pix.samples)
        return img

    @staticmethod
    def get_page(doc: fitz.Document, page_index: int) -> fitz.Page:
        """Get a specific page from document"""
        if page_index < 0 or page_index >= len(doc):
            raise ValueError(f"Invalid page index: {page_index}")
        return doc[page_index]

