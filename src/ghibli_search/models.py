"""Data models for Ghibli stills, uploads and image-search state."""

import mimetypes
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from ghibli_search.config import ALLOWED_IMAGE_TYPES, MAX_UPLOAD_BYTES
from ghibli_search.errors import ValidationError


@dataclass(frozen=True)
class GhibliImage:
    """A single still from the corpus, as returned by search."""

    filename: str
    year: int
    movie_name: str
    description: str
    movie_slug: str
    image_url: str
    thumbnail_url: str
    score: float

    def to_dict(self) -> dict:
        """Serialize using the camelCase field names of the HTTP API."""
        return {
            "filename": self.filename,
            "year": self.year,
            "movieName": self.movie_name,
            "description": self.description,
            "movieSlug": self.movie_slug,
            "imageUrl": self.image_url,
            "thumbnailUrl": self.thumbnail_url,
            "score": self.score,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "GhibliImage":
        return cls(
            filename=data["filename"],
            year=int(data.get("year", 0)),
            movie_name=data.get("movieName", "Unknown"),
            description=data.get("description", ""),
            movie_slug=data.get("movieSlug", "unknown"),
            image_url=data.get("imageUrl", ""),
            thumbnail_url=data.get("thumbnailUrl", ""),
            score=float(data.get("score", 0)),
        )


@dataclass
class SearchResponse:
    """Results of one text search plus the query that produced them."""

    query: str
    results: list[GhibliImage] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"results": [image.to_dict() for image in self.results], "query": self.query}


@dataclass(frozen=True)
class UploadedImage:
    """An image supplied by the user for image search."""

    name: str
    content_type: str
    data: bytes = field(repr=False)

    @property
    def size(self) -> int:
        return len(self.data)

    def validate(self) -> None:
        """Raise ValidationError unless the type is allowed and the size is within limits."""
        if self.content_type not in ALLOWED_IMAGE_TYPES:
            raise ValidationError("Please upload a JPEG, PNG, or WebP image")
        if self.size > MAX_UPLOAD_BYTES:
            raise ValidationError("Image must be smaller than 10MB")

    @classmethod
    def from_path(cls, path: str | Path) -> "UploadedImage":
        """Read an image from disk, guessing its MIME type from the extension."""
        path = Path(path)
        content_type, _ = mimetypes.guess_type(path.name)
        return cls(
            name=path.name,
            content_type=content_type or "application/octet-stream",
            data=path.read_bytes(),
        )


class ImageSearchStep(str, Enum):
    """Steps of the image-search state machine."""

    IDLE = "idle"
    ANALYZING = "analyzing"
    REWRITING = "rewriting"
    SEARCHING = "searching"
    DONE = "done"
    ERROR = "error"


IN_PROGRESS_STEPS = frozenset(
    {ImageSearchStep.ANALYZING, ImageSearchStep.REWRITING, ImageSearchStep.SEARCHING}
)


@dataclass(frozen=True)
class ImageSearchState:
    """Snapshot of the orchestrator's current image-search attempt."""

    step: ImageSearchStep = ImageSearchStep.IDLE
    filename: str | None = None
    description: str | None = None
    search_query: str | None = None
    error: str | None = None

    @property
    def is_busy(self) -> bool:
        return self.step in IN_PROGRESS_STEPS

    def to_dict(self) -> dict:
        return {
            "step": self.step.value,
            "filename": self.filename,
            "description": self.description,
            "searchQuery": self.search_query,
            "error": self.error,
        }
