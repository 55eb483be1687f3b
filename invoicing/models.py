"""
Data models for invoices and activity sheets
"""
import base64
from dataclasses import dataclass, field
from typing import List, Literal, Optional, Tuple


MIB = 1024 * 1024
MM_TO_PT = 72 / 25.4


@dataclass
class CompressionConfig:
    """Configuration for adaptive JPEG compression"""
    max_dimension_px: int = 1200
    initial_quality: float = 0.7
    target_max_size_bytes: int = 2 * MIB
    measure_base64: bool = False

    def __post_init__(self):
        """Validate compression configuration"""
        if self.max_dimension_px <= 0:
            raise ValueError("max_dimension_px must be positive")
        if not 0 < self.initial_quality <= 1:
            raise ValueError("initial_quality must be in (0, 1]")
        if self.target_max_size_bytes <= 0:
            raise ValueError("target_max_size_bytes must be positive")


@dataclass
class CompressionAttempt:
    """One encode pass of the compressor"""
    dimension_cap: int
    quality: float
    width: int
    height: int
    size_bytes: int


@dataclass
class CompressionResult:
    """Final JPEG encoding and the passes that led to it"""
    data: bytes
    width: int
    height: int
    quality: float
    dimension_cap: int
    original_size_bytes: int
    target_size_bytes: int
    measured_size_bytes: int
    attempts: List[CompressionAttempt] = field(default_factory=list)

    @property
    def size_bytes(self) -> int:
        """Size of the raw JPEG bytes"""
        return len(self.data)

    @property
    def within_budget(self) -> bool:
        """True if the measured size fits the target"""
        return self.measured_size_bytes <= self.target_size_bytes

    @property
    def original_size_mb(self) -> float:
        return self.original_size_bytes / MIB

    def to_base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")

    def to_data_url(self) -> str:
        return f"data:image/jpeg;base64,{self.to_base64()}"


@dataclass
class LineItem:
    """A single invoice line; total is derived from quantity and unit price"""
    quantity: float = 1
    description: str = ""
    unit_price: float = 0
    total: float = field(init=False, default=0)

    def __post_init__(self):
        """Validate the line item and recompute its total"""
        if self.quantity < 0:
            raise ValueError("quantity must be non-negative")
        if self.unit_price < 0:
            raise ValueError("unit_price must be non-negative")
        self.total = self.quantity * self.unit_price


@dataclass
class ActivityEntry:
    """A row of the activity sheet: who worked, how long, optional timesheet image"""
    performed_by: str = ""
    hours: float = 0
    image: Optional[bytes] = None

    def __post_init__(self):
        if self.hours < 0:
            raise ValueError("hours must be non-negative")


@dataclass
class ReconciliationState:
    """Invoice items and activity entries kept index-aligned while linked"""
    items: List[LineItem] = field(default_factory=list)
    entries: List[ActivityEntry] = field(default_factory=list)
    linked: bool = False


@dataclass
class Address:
    address_line1: str = ""
    city: str = ""
    state: str = ""
    zip_code: str = ""
    country: str = ""

    def locality_line(self) -> str:
        """City, state and zip on one line, e.g. "Dallas, TX 75201" """
        separator = ", " if self.city and self.state else ""
        return f"{self.city}{separator}{self.state} {self.zip_code}".strip()


@dataclass
class Company:
    id: int
    display_name: str = ""
    legal_name: str = ""
    tax_id: str = ""
    address: Optional[Address] = None

    @property
    def name(self) -> str:
        """Display name, falling back to the legal name"""
        return self.display_name or self.legal_name


@dataclass
class Contact:
    id: int
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone_number: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass
class Totals:
    subtotal: float = 0
    tax_amount: float = 0
    total: float = 0


@dataclass
class InvoicePreview:
    """Everything the invoice document prints"""
    date: str
    invoice_number: str
    items: List[LineItem]
    sales_tax: float = 0
    from_company: Optional[Company] = None
    from_contact: Optional[Contact] = None
    to_company: Optional[Company] = None
    to_contact: Optional[Contact] = None

    @property
    def totals(self) -> Totals:
        subtotal = sum(item.total for item in self.items)
        tax_amount = subtotal * self.sales_tax
        return Totals(subtotal=subtotal, tax_amount=tax_amount, total=subtotal + tax_amount)


@dataclass
class PageConfig:
    """Configuration for rendered document pages"""
    orientation: Literal["portrait", "landscape"] = "portrait"
    margin_mm: float = 15.0
    row_height: float = 22.0
    font_size: float = 11.0
    title_font_size: float = 24.0
    image_max_height_ratio: float = 0.5
    trim_image_margins: bool = False

    def __post_init__(self):
        """Validate page configuration"""
        if self.margin_mm < 0:
            raise ValueError("margin_mm must be non-negative")
        if self.row_height <= 0 or self.font_size <= 0 or self.title_font_size <= 0:
            raise ValueError("row_height and font sizes must be positive")
        if not 0 < self.image_max_height_ratio <= 1:
            raise ValueError("image_max_height_ratio must be in (0, 1]")

    @property
    def margin(self) -> float:
        """Margin in points"""
        return self.margin_mm * MM_TO_PT

    @property
    def page_size(self) -> Tuple[float, float]:
        """Get page size in points (A4: 595.27 x 841.89 pt)"""
        a4_width, a4_height = 595.27, 841.89
        if self.orientation == "portrait":
            return (a4_width, a4_height)
        else:
            return (a4_height, a4_width)


@dataclass
class ActivityDocumentHeader:
    """Fixed text printed at the top of the activity sheet"""
    recipient_name: str = ""
    recipient_company: str = ""
    location: str = ""
    issuer: str = ""
    project_code: str = ""
    activity_label: str = "Software development"


@dataclass
class ExportProgress:
    """Progress information for a rendering task"""
    current: int = 0
    total: int = 0
    current_item: str = ""

    @property
    def percentage(self) -> float:
        """Get progress percentage"""
        if self.total == 0:
            return 0.0
        return (self.current / self.total) * 100.0
