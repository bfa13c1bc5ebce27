"""CLI script for previewing personalized home page sections.

Useful for testing and evaluation. Loads a catalog, optionally records some
views, assembles the sections and prints them to the console.
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from src.personalization.catalog import load_catalog, load_order_history
from src.personalization.models import Section
from src.personalization.service import PersonalizationService
from src.personalization.storage import BlobStore, FileBlobStore, InMemoryBlobStore

# Setup logging
logging.basicConfig(
    level=logging.WARNING,
    format="%(levelname)s: %(message)s"
)
logger = logging.getLogger(__name__)


def print_sections(sections: List[Section], explain: bool = False) -> None:
    if not sections:
        print("\nNo sections to show.")
        return

    for section in sections:
        marker = "personalized" if section.is_personalized else "fallback"
        print(f"\n{section.title} [{section.id}, {marker}]")
        if section.description:
            print(f"  {section.description}")
        for result in section.products:
            line = f"  - #{result.product.id} {result.product.name or result.product.category}"
            if explain:
                s = result.signals
                line += (
                    f"  score={result.relevance_score:.3f}"
                    f" (category={s.category:.2f}, view={s.view:.2f}, feedback={s.feedback:.2f})"
                )
            print(line)


def main() -> None:
    """Main CLI function."""
    parser = argparse.ArgumentParser(
        description="Preview personalized home page sections",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/sections_cli.py data/catalog.csv
  python scripts/sections_cli.py data/catalog.csv --view 3 --view 3 --view 7
  python scripts/sections_cli.py data/catalog.csv --category-view Spices --explain
  python scripts/sections_cli.py data/catalog.csv --storage-dir .shoprec --json
        """
    )

    parser.add_argument("catalog", type=str, help="Catalog CSV file")
    parser.add_argument("--orders", type=str, default=None, help="Order history CSV file")
    parser.add_argument(
        "--storage-dir",
        type=str,
        default=None,
        help="Directory for persisted events and settings (default: in-memory)"
    )
    parser.add_argument(
        "--view",
        type=int,
        action="append",
        default=[],
        help="Record a product view before assembling (repeatable)"
    )
    parser.add_argument(
        "--category-view",
        type=str,
        action="append",
        default=[],
        help="Record a category page view before assembling (repeatable)"
    )
    parser.add_argument(
        "--search",
        type=str,
        action="append",
        default=[],
        help="Record a storefront search before assembling (repeatable)"
    )
    parser.add_argument("--max-sections", type=int, default=None, help="Override max sections")
    parser.add_argument("--max-items", type=int, default=None, help="Override max items per section")
    parser.add_argument("--name", type=str, default=None, help="Shopper first name for the greeting")
    parser.add_argument("--explain", action="store_true", help="Show score breakdown per product")
    parser.add_argument("--json", action="store_true", help="Print sections as JSON")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.INFO)

    try:
        catalog = load_catalog(args.catalog)
        orders = load_order_history(args.orders) if args.orders else []
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    store: BlobStore = FileBlobStore(args.storage_dir) if args.storage_dir else InMemoryBlobStore()
    service = PersonalizationService(store, catalog=catalog, purchase_history=orders)

    overrides = {}
    if args.max_sections is not None:
        overrides["max_sections"] = args.max_sections
    if args.max_items is not None:
        overrides["max_items_per_section"] = args.max_items
    if overrides:
        service.update_personalization_settings(overrides)

    for product_id in args.view:
        service.track_product_view(product_id)
    for category in args.category_view:
        service.track_category_view(category)
    for term in args.search:
        service.track_search(term)

    sections = service.get_sections()

    if args.json:
        print(json.dumps([s.model_dump(mode="json") for s in sections], indent=2))
        return

    print(f"\n{service.get_welcome_message(args.name)}")
    print_sections(sections, explain=args.explain)
    print()


if __name__ == "__main__":
    main()
