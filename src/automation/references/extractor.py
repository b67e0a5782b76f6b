"""Extraction of task references from commit and pull request text.

Text is scanned in two phases. The first phase finds closing references
(``fixes PROJ-9``) and records the span of each key. The second phase finds
bare keys and drops any whose span was already claimed by a closing match,
so every key occurrence yields exactly one Reference.

Keys are matched wherever they occur, including inside branch names such as
``feature_PROJ-12``. A closing keyword must start at a word boundary and be
separated from its key by whitespace only.

Closing keywords are matched case-insensitively; task keys are not, since the
board always renders them upper-case.
"""

import re
from typing import List, Set, Tuple

from .models import TASK_KEY_PATTERN, Reference


CLOSING_KEYWORDS = (
    "closes",
    "close",
    "closed",
    "fix",
    "fixes",
    "fixed",
    "resolve",
    "resolves",
    "resolved",
)

_KEY = TASK_KEY_PATTERN

_CLOSING_RE = re.compile(
    r"\b(?i:" + "|".join(CLOSING_KEYWORDS) + r")\s+(" + _KEY + r")"
)

_BARE_RE = re.compile(_KEY)


def extract_references(text: str) -> List[Reference]:
    """Extract task references from free text.

    Args:
        text: A commit message, or a pull request title and body.

    Returns:
        References in order of appearance. Repeated keys produce repeated
        references.

    Example:
        >>> extract_references("fix PROJ-9 and mention PROJ-10")
        [Reference(task_key='PROJ-9', is_closing=True),
         Reference(task_key='PROJ-10', is_closing=False)]
    """
    if not text:
        return []

    found: List[Tuple[int, Reference]] = []
    closing_spans: Set[Tuple[int, int]] = set()

    for match in _CLOSING_RE.finditer(text):
        span = match.span(1)
        closing_spans.add(span)
        found.append((span[0], Reference(task_key=match.group(1), is_closing=True)))

    for match in _BARE_RE.finditer(text):
        if match.span() in closing_spans:
            continue
        found.append((match.start(), Reference(task_key=match.group(0), is_closing=False)))

    found.sort(key=lambda item: item[0])
    return [reference for _, reference in found]
