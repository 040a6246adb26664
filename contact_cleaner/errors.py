"""
Exception types raised by the pipeline.

Normalizers never raise; everything here surfaces as a user-facing message.
"""


class ContactCleanerError(RuntimeError):
    """Base error for the contact cleaning pipeline."""


class InputRejectedError(ContactCleanerError):
    """Wrong file type, oversize or empty file, or wrong number of files."""


class ParseFailureError(ContactCleanerError):
    """A single file or image could not be parsed or recognized."""


class OcrTimeoutError(ParseFailureError):
    """OCR recognition exceeded its time limit."""


class NoDataError(ContactCleanerError):
    """No rows or no columns left to merge or export."""


class MergeRefusedError(ContactCleanerError):
    """Column merge refused because a source column is numeric or currency."""
