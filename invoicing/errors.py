"""
Error types raised by the invoicing toolkit
"""


class DecodeError(ValueError):
    """Raised when uploaded image bytes cannot be decoded"""


class IndexOutOfRange(IndexError):
    """Raised when an item or entry index does not exist"""

    def __init__(self, list_name: str, index: int, length: int):
        self.list_name = list_name
        self.index = index
        self.length = length
        super().__init__(f"{list_name} index {index} out of range (length {length})")
