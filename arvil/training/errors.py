"""Errors raised at the training core boundary."""


class ArvilError(Exception):
    """Base class for training core errors."""
    pass


class InvalidQualityError(ArvilError, ValueError):
    """Raised when a review grade is not an integer between 0 and 5."""

    def __init__(self, value: object):
        self.value = value
        super().__init__(f"Quality must be an integer between 0 and 5, got {value!r}")


class ItemNotFoundError(ArvilError, KeyError):
    """Raised when a review targets an item the store does not hold."""

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(item_id)

    def __str__(self) -> str:
        return f"No spaced item with id {self.item_id!r}"


class StoreImportError(ArvilError, ValueError):
    """Raised when an export document cannot be restored."""
    pass
