"""Command-line interface for building caches and matching crops."""

import sys
import json
import argparse
import logging
from typing import List, Optional

from . import __version__
from .cache_builder import build_category_artifact
from .cache_loader import CacheLoader
from .categories import configured_categories
from .category_cache import CategoryCache
from .features import DEFAULT_N_FEATURES, extract_descriptors, load_image
from .knn import get_backend
from .matcher import DEFAULT_THRESHOLD, DEFAULT_TOP_N, Matcher

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False):
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="equipment-search",
        description="Identify game equipment crops against per-category descriptor caches"
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    build = subparsers.add_parser("build", help="Build a category cache from template images")
    build.add_argument("image_dir", help="Directory of template images")
    build.add_argument("--category", "-c", required=True, help="Category identifier, e.g. weapon/main")
    build.add_argument("--cache-dir", help="Cache directory (default: $CACHE_DIR)")
    build.add_argument("--features", type=int, default=DEFAULT_N_FEATURES,
                       help=f"ORB keypoint budget (default: {DEFAULT_N_FEATURES})")

    match = subparsers.add_parser("match", help="Match an image crop against a category")
    match.add_argument("image", help="Path to the crop to identify")
    match.add_argument("--category", "-c", required=True, help="Category identifier")
    match.add_argument("--cache-dir", help="Cache directory (default: $CACHE_DIR)")
    match.add_argument("--threshold", type=int, default=DEFAULT_THRESHOLD,
                       help=f"Minimum good matches (default: {DEFAULT_THRESHOLD})")
    match.add_argument("--top-n", type=int, default=DEFAULT_TOP_N,
                       help=f"Maximum results (default: {DEFAULT_TOP_N})")
    match.add_argument("--early-exit", action="store_true",
                       help="Stop at the first template reaching the threshold")
    match.add_argument("--backend", choices=["opencv", "faiss"], help="kNN backend")
    match.add_argument("--features", type=int, default=DEFAULT_N_FEATURES,
                       help=f"ORB keypoint budget (default: {DEFAULT_N_FEATURES})")

    subparsers.add_parser("categories", help="List configured categories")
    return parser


def _resolve_cache_dir(value: Optional[str]) -> str:
    return CacheLoader(value).cache_dir


def cmd_build(args) -> int:
    summary = build_category_artifact(
        args.image_dir, _resolve_cache_dir(args.cache_dir), args.category, args.features
    )
    print(json.dumps(summary, indent=2))
    return 0 if summary["success"] else 1


def cmd_match(args) -> int:
    cache = CategoryCache(CacheLoader(args.cache_dir), categories=configured_categories())
    matcher = Matcher(cache, backend=get_backend(args.backend))

    query = extract_descriptors(load_image(args.image), args.features)
    results = matcher.match(
        query, args.category,
        threshold=args.threshold,
        top_n=args.top_n,
        early_exit=args.early_exit,
    )
    print(json.dumps([r.to_dict() for r in results], indent=2))
    return 0


def cmd_categories(args) -> int:
    for category in configured_categories():
        print(category)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    commands = {
        "build": cmd_build,
        "match": cmd_match,
        "categories": cmd_categories,
    }
    try:
        return commands[args.command](args)
    except (ValueError, FileNotFoundError) as e:
        logger.error(str(e))
        return 2


if __name__ == "__main__":
    sys.exit(main())
