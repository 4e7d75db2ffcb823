"""Image URL helpers.

Thumbnails are pre-generated 480px WebP files served from ``/thumbnails/``;
full-size originals are served from ``/images/``.
"""

import re
from urllib.parse import quote

# Characters that JavaScript's encodeURIComponent leaves untouched on top of
# the ones urllib.parse.quote always keeps.
_URI_COMPONENT_SAFE = "!*'()"

_ORIGINAL_EXT_RE = re.compile(r"\.(png|jpe?g)$", re.IGNORECASE)


def encode_uri_component(value: str) -> str:
    return quote(value, safe=_URI_COMPONENT_SAFE)


def thumbnail_key(image_path: str) -> str:
    """Storage key of the WebP thumbnail for an original still."""
    return _ORIGINAL_EXT_RE.sub(".webp", image_path)


def thumbnail_url(image_path: str) -> str:
    """URL of the thumbnail used in the results grid."""
    return f"/thumbnails/{encode_uri_component(thumbnail_key(image_path))}"


def full_image_url(image_path: str) -> str:
    """URL of the full-size original used in the preview."""
    return f"/images/{encode_uri_component(image_path)}"
