"""Generate WebP thumbnails for the results grid from the original stills."""

from io import BytesIO

from PIL import Image, UnidentifiedImageError
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn

from ghibli_search.catalog.image_urls import thumbnail_key
from ghibli_search.catalog.storage import LocalObjectStore
from ghibli_search.config import IMAGE_EXTENSIONS, THUMBNAIL_WIDTH


def make_thumbnail(data: bytes, width: int = THUMBNAIL_WIDTH, quality: int = 80) -> bytes:
    """Downscale an image to ``width`` pixels wide (keeping aspect) and encode as WebP.

    Images narrower than ``width`` are re-encoded without upscaling.
    """
    with Image.open(BytesIO(data)) as img:
        img = img.convert("RGBA" if img.mode in ("RGBA", "LA", "P") else "RGB")
        if img.width > width:
            height = max(1, round(img.height * width / img.width))
            img = img.resize((width, height), Image.Resampling.LANCZOS)
        out = BytesIO()
        img.save(out, format="WEBP", quality=quality)
    return out.getvalue()


def generate_thumbnails(
    images: LocalObjectStore,
    thumbnails: LocalObjectStore,
    width: int = THUMBNAIL_WIDTH,
    force: bool = False,
    limit: int = 100_000,
) -> tuple[int, int]:
    """Create a thumbnail for every original still that lacks one.

    Args:
        images: Store holding the original stills.
        thumbnails: Store receiving ``<key>.webp`` thumbnails.
        width: Target thumbnail width in pixels.
        force: Regenerate thumbnails that already exist.
        limit: Max number of originals to scan.

    Returns:
        ``(created, failed)`` counts.
    """
    keys = [k for k in images.list(limit=limit) if k.lower().endswith(IMAGE_EXTENSIONS)]
    pending = [k for k in keys if force or not thumbnails.exists(thumbnail_key(k))]

    created = 0
    failed = 0
    if not pending:
        return created, failed

    with Progress(
        SpinnerColumn(),
        TextColumn("[bold blue]{task.description}"),
        BarColumn(),
        TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
        TextColumn("{task.completed}/{task.total}"),
    ) as progress:
        task = progress.add_task("Generating thumbnails", total=len(pending))
        for key in pending:
            stored = images.get(key)
            try:
                if stored is None:
                    raise FileNotFoundError(key)
                thumbnails.put(thumbnail_key(key), make_thumbnail(stored.body, width))
                created += 1
            except (OSError, UnidentifiedImageError) as exc:
                progress.console.print(f"[red]Skipped {key}: {exc}")
                failed += 1
            progress.advance(task)

    return created, failed
