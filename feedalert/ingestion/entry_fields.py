"""
Named-field lookup on parsed feed entries.

Callers ask for fields by their RSS tag name (``pubDate``,
``content:encoded``, ``media:thumbnail``...). feedparser normalises those
into its own entry keys; this module maps one onto the other so the rest
of the pipeline never depends on feedparser's key names.
"""

from typing import Any, Callable, Dict, Optional


def _text(key: str) -> Callable[[Any], Optional[str]]:
    def lookup(entry: Any) -> Optional[str]:
        return entry.get(key)
    return lookup


def _published(entry: Any) -> Optional[str]:
    return entry.get("published") or entry.get("updated")


def _content_encoded(entry: Any) -> Optional[str]:
    content = entry.get("content")
    if not content:
        return None
    return content[0].get("value")


def _url_attribute(key: str, attribute: str) -> Callable[[Any], Optional[str]]:
    def lookup(entry: Any) -> Optional[str]:
        elements = entry.get(key)
        if not elements:
            return None
        return elements[0].get(attribute)
    return lookup


TAG_LOOKUPS: Dict[str, Callable[[Any], Optional[str]]] = {
    "title": _text("title"),
    "description": _text("summary"),
    "pubDate": _published,
    "link": _text("link"),
    "content:encoded": _content_encoded,
    "media:thumbnail": _url_attribute("media_thumbnail", "url"),
    "enclosure": _url_attribute("enclosures", "href"),
}


def extract(entry: Any, tag: str) -> Optional[str]:
    """Text of the named field, or the URL attribute for URL-bearing tags.

    Never raises for a missing or empty field; returns None instead.
    """
    lookup = TAG_LOOKUPS.get(tag)
    if lookup is None:
        value = entry.get(tag.replace(":", "_"))
    else:
        value = lookup(entry)

    if value is None or value == "":
        return None
    return value
