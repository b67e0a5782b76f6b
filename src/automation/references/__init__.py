"""Task reference extraction from commit and pull request text."""

from .extractor import CLOSING_KEYWORDS, extract_references
from .models import TASK_KEY_PATTERN, Reference

__all__ = [
    "CLOSING_KEYWORDS",
    "Reference",
    "TASK_KEY_PATTERN",
    "extract_references",
]
