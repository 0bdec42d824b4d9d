"""Error types raised by the performance engine."""

from typing import Any, Optional


class InvalidInput(ValueError):
    """Raised when an input record cannot be processed as given.

    Undefined results (no matching grade band, no attendance events, an absent
    student) are returned as ``None`` and never raise this.
    """

    def __init__(self, message: str, field: Optional[str] = None, value: Any = None):
        super().__init__(message)
        self.message = message
        self.field = field
        self.value = value

    def to_dict(self) -> dict:
        detail = {'message': self.message}
        if self.field is not None:
            detail['field'] = self.field
            detail['value'] = self.value
        return detail
