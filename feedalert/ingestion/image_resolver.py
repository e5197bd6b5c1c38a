"""
Image Resolver
==============

Best-effort image discovery for feed entries.

Candidates are tried in a fixed order and the first one found wins:

1. inline ``<img src="....jpg">`` in the description
2. the same inside ``content:encoded``
3. the ``media:thumbnail`` URL
4. the ``enclosure`` URL

The image is downloaded on the cycle's aiohttp session, scaled down to the
configured width and given rounded corners. Any failure means "no image";
nothing raised here reaches the ingestion engine.
"""

import asyncio
import io
import re
from typing import Any, Callable, List, Optional

import aiohttp
from PIL import Image, ImageDraw, UnidentifiedImageError

from .entry_fields import extract
from ..utils.exceptions import ImageResolutionError
from ..utils.logging import get_logger_for_component

_INLINE_JPEG = re.compile(r'<img\s[^>]*?src="([^"]+?\.(?:jpg|JPG|jpeg))"')

CandidateMatcher = Callable[[Any], Optional[str]]


def _inline_image(tag: str) -> CandidateMatcher:
    def match(entry: Any) -> Optional[str]:
        markup = extract(entry, tag)
        if not markup or "<img " not in markup:
            return None
        found = _INLINE_JPEG.search(markup)
        return found.group(1) if found else None
    return match


def _url_field(tag: str) -> CandidateMatcher:
    def match(entry: Any) -> Optional[str]:
        return extract(entry, tag)
    return match


IMAGE_CANDIDATES: List[CandidateMatcher] = [
    _inline_image("description"),
    _inline_image("content:encoded"),
    _url_field("media:thumbnail"),
    _url_field("enclosure"),
]


def find_image_url(entry: Any) -> Optional[str]:
    """First image URL found by the ordered candidate matchers."""
    for matcher in IMAGE_CANDIDATES:
        url = matcher(entry)
        if url:
            return url
    return None


def render_image(data: bytes, max_width: int, corner_radius: int) -> bytes:
    """Scale image bytes to at most ``max_width`` and round the corners.

    Aspect ratio is kept and images narrower than ``max_width`` are not
    enlarged. Returns PNG bytes.

    Raises:
        ImageResolutionError: If the bytes are not a decodable image
    """
    try:
        with Image.open(io.BytesIO(data)) as source:
            image = source.convert("RGBA")
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        raise ImageResolutionError(f"Cannot decode image: {e}") from e

    if image.width > max_width:
        height = max(1, round(image.height * max_width / image.width))
        image = image.resize((max_width, height), Image.Resampling.LANCZOS)

    if corner_radius > 0:
        mask = Image.new("L", image.size, 0)
        ImageDraw.Draw(mask).rounded_rectangle(
            (0, 0, image.width - 1, image.height - 1), radius=corner_radius, fill=255
        )
        image.putalpha(mask)

    output = io.BytesIO()
    image.save(output, format="PNG")
    return output.getvalue()


class ImageResolver:
    """Finds, downloads and rescales the image of a feed entry."""

    def __init__(self, max_width: int = 128, corner_radius: int = 10, timeout: int = 15):
        """Initialize image resolver.

        Args:
            max_width: Maximum width of the stored image in pixels
            corner_radius: Radius of the rounded corners, 0 disables them
            timeout: Download timeout in seconds
        """
        self.max_width = max_width
        self.corner_radius = corner_radius
        self.timeout = timeout
        self.logger = get_logger_for_component("image_resolver")

    @classmethod
    def from_settings(cls, settings) -> "ImageResolver":
        return cls(
            max_width=settings.images.max_width,
            corner_radius=settings.images.corner_radius,
            timeout=settings.limits.image_timeout,
        )

    async def resolve(self, entry: Any, session: aiohttp.ClientSession) -> Optional[bytes]:
        """Image bytes for ``entry``, or None when nothing usable is found."""
        url = find_image_url(entry)
        if url is None:
            return None

        try:
            data = await self._download(url, session)
            return render_image(data, self.max_width, self.corner_radius)
        except ImageResolutionError as e:
            e.context.setdefault("image_url", url)
            self.logger.warning(f"Image resolution failed for {url}: {e}", extra=e.to_dict())
            return None

    async def _download(self, url: str, session: aiohttp.ClientSession) -> bytes:
        try:
            async with session.get(url, timeout=aiohttp.ClientTimeout(total=self.timeout)) as response:
                if response.status != 200:
                    response.release()
                    raise ImageResolutionError(f"HTTP {response.status}", image_url=url)
                return await response.read()
        except asyncio.TimeoutError as e:
            raise ImageResolutionError(f"Timeout after {self.timeout}s", image_url=url) from e
        except (aiohttp.ClientError, ValueError) as e:
            raise ImageResolutionError(f"Download error: {e}", image_url=url) from e
