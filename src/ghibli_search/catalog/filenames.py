"""Parse corpus filenames into GhibliImage records.

Corpus keys follow the convention ``"(YEAR) Movie Name/Description.ext"``,
e.g. ``"(1986) Laputa - Castle in the Sky/Holding Tight.png"``.
"""

import re
from collections.abc import Iterable, Mapping

from ghibli_search.catalog.image_urls import full_image_url, thumbnail_url
from ghibli_search.catalog.movie_slugs import get_movie_slug
from ghibli_search.models import GhibliImage
_FILENAME_RE = re.compile(r"^\(([0-9]{4})\)\s+(.+?)/(.+)\.\w+\Z")
_FILENAME_RE = re.compile(r"^\((\d{4})\)\s+(.+?)/(.+)\.\w+$")


def parse_filename(filename: str, score: float) -> GhibliImage:
    """Build a GhibliImage from a corpus key and a relevance score.

    Keys that do not follow the naming convention fall back to year 0 and an
    "Unknown" movie with the raw filename as description.
    """
    match = _FILENAME_RE.match(filename)
    if match is None:
        return GhibliImage(
            filename=filename,
            year=0,
            movie_name="Unknown",
            description=filename,
            movie_slug="unknown",
            image_url=full_image_url(filename),
            thumbnail_url=thumbnail_url(filename),
            score=score,
        )

    year_str, movie_name, description = match.groups()
    movie_name = movie_name.strip()
    return GhibliImage(
        filename=filename,
        year=int(year_str),
        movie_name=movie_name,
        description=description.strip(),
        movie_slug=get_movie_slug(movie_name),
        image_url=full_image_url(filename),
        thumbnail_url=thumbnail_url(filename),
        score=score,
    )


def parse_search_results(records: Iterable[Mapping]) -> list[GhibliImage]:
    """Map raw search backend records (``{filename, score, ...}``) to GhibliImage."""
    return [
        parse_filename(str(record.get("filename", "")), float(record.get("score") or 0))
        for record in records
    ]
