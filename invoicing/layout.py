"""
Page geometry for rendered invoices and activity sheets
"""
import fitz
from typing import List, Sequence, Tuple
from .models import PageConfig


# CSS pixels to PDF points
PX_TO_PT = 0.75


class PageLayout:
    """Calculates content areas, table columns and image placement"""

    def __init__(self, config: PageConfig):
        """Initialize with page configuration"""
        self.config = config

    def content_rect(self) -> fitz.Rect:
        """Page area inside the margins"""
        page_w, page_h = self.config.page_size
        margin = self.config.margin
        return fitz.Rect(margin, margin, page_w - margin, page_h - margin)

    def column_rects(self, top: float, fractions: Sequence[float], height: float = None) -> List[fitz.Rect]:
        """
        Split one table row across the content width

        Args:
            top: Y coordinate of the row
            fractions: Relative column widths
            height: Row height (default: configured row height)

        Returns:
            One rectangle per column, left to right
        """
        content = self.content_rect()
        height = height if height is not None else self.config.row_height
        total = sum(fractions)
        rects = []
        x0 = content.x0
        for fraction in fractions:
            x1 = x0 + content.width * fraction / total
            rects.append(fitz.Rect(x0, top, x1, top + height))
            x0 = x1
        return rects

    def rows_that_fit(self, top: float, reserved: float = 0) -> int:
        """Number of table rows between top and the bottom margin, minus reserved space"""
        available = self.content_rect().y1 - top - reserved
        return max(0, int(available // self.config.row_height))

    def image_rect(self, width_px: int, height_px: int, top: float) -> fitz.Rect:
        """
        Place an image below top, scaled down to fit

        The image keeps its natural size unless it is wider than the
        content area or taller than the configured share of the page.

        Returns:
            Destination rectangle, left aligned in the content area
        """
        content = self.content_rect()
        _, page_h = self.config.page_size
        max_w = content.width
        max_h = min(page_h * self.config.image_max_height_ratio, content.y1 - top)

        natural_w = width_px * PX_TO_PT
        natural_h = height_px * PX_TO_PT
        if natural_w <= 0 or natural_h <= 0:
            return fitz.Rect(content.x0, top, content.x0, top)

        scale = min(1.0, max_w / natural_w, max_h / natural_h)
        return fitz.Rect(content.x0, top, content.x0 + natural_w * scale, top + natural_h * scale)

    def right_aligned_point(self, text_width: float, baseline: float) -> Tuple[float, float]:
        """Insertion point that ends the text at the right margin"""
        return (self.content_rect().x1 - text_width, baseline)
