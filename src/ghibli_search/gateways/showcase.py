"""Showcase gateway: random stills for the landing view."""

import logging
import random

from ghibli_search.catalog.filenames import parse_filename
from ghibli_search.catalog.image_urls import encode_uri_component
from ghibli_search.catalog.storage import LocalObjectStore
from ghibli_search.config import IMAGE_EXTENSIONS, RANDOM_IMAGE_COUNT, RANDOM_LIST_LIMIT
from ghibli_search.errors import StorageUnavailableError
from ghibli_search.models import GhibliImage

logger = logging.getLogger(__name__)


def _placeholder(filename: str, description: str) -> GhibliImage:
    url = f"/placeholders/{encode_uri_component(filename)}"
    return GhibliImage(
        filename=filename,
        year=1993,
        movie_name="Ocean Waves",
        description=description,
        movie_slug="ocean-waves",
        image_url=url,
        thumbnail_url=url,
        score=1,
    )


# Served from PLACEHOLDERS_DIR when object storage is not configured (local development)
PLACEHOLDER_IMAGES: list[GhibliImage] = [
    _placeholder("A Request.png", "A Request"),
    _placeholder("aiRikako.png", "Rikako"),
    _placeholder("airporTaku.png", "Taku at Airport"),
    _placeholder("Akiko Shimizu.png", "Akiko Shimizu"),
    _placeholder("Anxiously Waiting.png", "Anxiously Waiting"),
    _placeholder("Awkward.png", "Awkward"),
    _placeholder("Back Home.png", "Back Home"),
    _placeholder("Being Nosy.png", "Being Nosy"),
    _placeholder("Better Late Than Never.png", "Better Late Than Never"),
    _placeholder("Candid Rikako.png", "Candid Rikako"),
    _placeholder("Catching Up.png", "Catching Up"),
]


def pick_random_images(
    store: LocalObjectStore,
    count: int = RANDOM_IMAGE_COUNT,
    rng: random.Random | None = None,
) -> list[GhibliImage]:
    """Pick ``count`` random stills from object storage.

    Falls back to the placeholder set when storage is unavailable.
    """
    rng = rng or random.Random()
    try:
        keys = store.list(limit=RANDOM_LIST_LIMIT)
    except (StorageUnavailableError, OSError) as exc:
        logger.warning("Failed to list random images, using fallback: %s", exc)
        return rng.sample(PLACEHOLDER_IMAGES, min(count, len(PLACEHOLDER_IMAGES)))

    image_keys = [key for key in keys if key.lower().endswith(IMAGE_EXTENSIONS)]
    selected = rng.sample(image_keys, min(count, len(image_keys)))
    return [parse_filename(key, 1) for key in selected]
