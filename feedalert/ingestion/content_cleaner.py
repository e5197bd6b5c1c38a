"""
Content Cleaner
===============

Best-effort markup stripping for feed titles and bodies shown in alerts.

The result is plain text: everything after the configured "continue
reading" marker is dropped, tag spans and ``&nbsp;`` become spaces and the
remaining entities are optionally decoded.
"""

import re
import warnings
from typing import Optional

from bs4 import BeautifulSoup, MarkupResemblesLocatorWarning

DEFAULT_CONTINUE_MARKER = "weiterlesen"

_TAG_SPAN = re.compile(r"<.*?>")
# tag opened but never closed on its line
_OPEN_TAG_TO_EOL = re.compile(r"<[^>\n]*\n")
# tag cut off at the end of the text
_OPEN_TAG_AT_END = re.compile(r"<[^>]*$")
# closing half of a tag at the start of the text
_DANGLING_TAIL = re.compile(r"^[^<>\n]*>")

warnings.filterwarnings("ignore", category=MarkupResemblesLocatorWarning)


def remove_html(
    html: Optional[str],
    continue_marker: Optional[str] = DEFAULT_CONTINUE_MARKER,
    decode_entities: bool = True,
) -> str:
    """Strip markup from ``html`` and return trimmed plain text.

    Args:
        html: Text that may contain markup
        continue_marker: Text is truncated before the first occurrence of
            this marker, unless it is at position 0
        decode_entities: Decode remaining HTML entities

    Returns:
        Plain text, "" for None input
    """
    if html is None:
        return ""

    text = html
    if continue_marker:
        tail = text.find(continue_marker)
        if tail > 0:
            text = text[:tail]

    text = _TAG_SPAN.sub(" ", text)
    text = _OPEN_TAG_TO_EOL.sub(" ", text)
    text = _OPEN_TAG_AT_END.sub(" ", text)
    text = _DANGLING_TAIL.sub(" ", text, count=1)
    text = text.replace("&nbsp;", " ")

    if decode_entities and "&" in text:
        text = BeautifulSoup(text, "html.parser").get_text()

    return text.strip()


class ContentCleaner:
    """remove_html bound to configured filtering options."""

    def __init__(self, continue_marker: Optional[str] = DEFAULT_CONTINUE_MARKER,
                 decode_entities: bool = True):
        self.continue_marker = continue_marker
        self.decode_entities = decode_entities

    @classmethod
    def from_settings(cls, filtering) -> "ContentCleaner":
        return cls(filtering.continue_marker, filtering.decode_entities)

    def clean(self, html: Optional[str]) -> str:
        return remove_html(html, self.continue_marker, self.decode_entities)
