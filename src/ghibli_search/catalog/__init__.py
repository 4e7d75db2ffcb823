"""Catalog CLI: inspect the stills corpus and generate thumbnails."""

import argparse


def main() -> None:
    """CLI entry point for catalog operations."""
    parser = argparse.ArgumentParser(description="Studio Ghibli stills catalog")
    subparsers = parser.add_subparsers(dest="command")

    # thumbnails
    thumb_parser = subparsers.add_parser(
        "thumbnails", help="Generate WebP thumbnails for stills that lack one"
    )
    thumb_parser.add_argument(
        "--width", type=int, default=None, help="Thumbnail width in pixels (default: 480)"
    )
    thumb_parser.add_argument(
        "--force", action="store_true", help="Regenerate existing thumbnails"
    )

    # list
    list_parser = subparsers.add_parser("list", help="List stills in object storage")
    list_parser.add_argument("--limit", type=int, default=50, help="Max keys to list (default: 50)")

    # parse
    parse_parser = subparsers.add_parser("parse", help="Show how a filename is parsed")
    parse_parser.add_argument("filename", help='e.g. "(2001) Spirited Away/Chihiro at the Bathhouse.png"')

    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        return

    if args.command == "thumbnails":
        _cmd_thumbnails(args)
    elif args.command == "list":
        _cmd_list(args)
    elif args.command == "parse":
        _cmd_parse(args)


def _cmd_thumbnails(args: argparse.Namespace) -> None:
    """Generate missing thumbnails."""
    from ghibli_search.catalog.storage import LocalObjectStore
    from ghibli_search.catalog.thumbnails import generate_thumbnails
    from ghibli_search.config import IMAGES_DIR, THUMBNAIL_WIDTH, THUMBNAILS_DIR

    images = LocalObjectStore(IMAGES_DIR)
    if not images.available:
        print(f"Error: images directory not found: {IMAGES_DIR}")
        return

    created, failed = generate_thumbnails(
        images,
        LocalObjectStore(THUMBNAILS_DIR),
        width=args.width or THUMBNAIL_WIDTH,
        force=args.force,
    )
    print(f"Created {created} thumbnails in {THUMBNAILS_DIR}.")
    if failed:
        print(f"  Errors: {failed}")


def _cmd_list(args: argparse.Namespace) -> None:
    """List stored stills with their parsed movie and year."""
    from ghibli_search.catalog.filenames import parse_filename
    from ghibli_search.catalog.storage import LocalObjectStore
    from ghibli_search.config import IMAGES_DIR

    images = LocalObjectStore(IMAGES_DIR)
    if not images.available:
        print(f"Error: images directory not found: {IMAGES_DIR}")
        return

    for key in images.list(limit=args.limit):
        image = parse_filename(key, 1)
        print(f"[{image.movie_name} {image.year}] {image.description}")


def _cmd_parse(args: argparse.Namespace) -> None:
    """Print the parsed record for one filename."""
    from ghibli_search.catalog.filenames import parse_filename

    image = parse_filename(args.filename, 1)
    for name, value in image.to_dict().items():
        print(f"  {name:<13} {value}")
