"""Generate a fake storefront catalog and order history for development.

Writes two CSV files the personalization service can load through
``SHOPREC_CATALOG_PATH`` and ``SHOPREC_ORDERS_PATH``.

Example:
    Run the script directly to generate default data:
        $ python scripts/generate_fake_data.py

    Or import and use programmatically:
        from scripts.generate_fake_data import generate_fake_catalog
        catalog = generate_fake_catalog(num_products=40)
"""

import random
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

import pandas as pd

# Default configuration constants
DEFAULT_NUM_PRODUCTS = 60
DEFAULT_NUM_ORDER_ITEMS = 25
DEFAULT_DAYS_BACK = 90
DEFAULT_FEATURED_SHARE = 0.15
SECONDS_PER_DAY = 86400

CATEGORIES = ["Dry Fruits", "Spices", "Nuts", "Superfoods", "Gift Boxes", "Organic"]
ADJECTIVES = ["Premium", "Organic", "Roasted", "Classic", "Royal", "Wild"]
TAGS = ["vegan", "gluten-free", "bestseller", "new", "gift", "bulk"]


def generate_fake_catalog(
    num_products: int = DEFAULT_NUM_PRODUCTS,
    featured_share: float = DEFAULT_FEATURED_SHARE,
    seed: Optional[int] = None,
) -> pd.DataFrame:
    """Generate a synthetic product catalog.

    Args:
        num_products: Number of products. Must be positive.
        featured_share: Fraction of products flagged as featured.
        seed: Random seed for reproducible output.

    Returns:
        DataFrame with id, name, category, price, rating, featured and tags
        columns, ordered by id.

    Raises:
        ValueError: If num_products is not positive or featured_share is
            outside [0, 1].
    """
    if num_products <= 0:
        raise ValueError("num_products must be positive")
    if not 0 <= featured_share <= 1:
        raise ValueError("featured_share must be between 0 and 1")

    rng = random.Random(seed)
    rows = []
    for product_id in range(1, num_products + 1):
        category = rng.choice(CATEGORIES)
        rows.append({
            "id": product_id,
            "name": f"{rng.choice(ADJECTIVES)} {category} #{product_id}",
            "category": category,
            "price": round(rng.uniform(3, 60), 2),
            "rating": round(rng.uniform(3.0, 5.0), 1),
            "featured": rng.random() < featured_share,
            "tags": "|".join(rng.sample(TAGS, k=rng.randint(0, 2))),
        })

    return pd.DataFrame(rows)


def generate_fake_orders(
    catalog: pd.DataFrame,
    num_items: int = DEFAULT_NUM_ORDER_ITEMS,
    end_date: Optional[datetime] = None,
    seed: Optional[int] = None,
) -> pd.DataFrame:
    """Generate past order line items drawn from ``catalog``.

    Returns:
        DataFrame with product_id, category and ordered_at columns, sorted by
        ordered_at ascending.
    """
    if num_items <= 0:
        raise ValueError("num_items must be positive")

    rng = random.Random(seed)
    end_date = end_date or datetime.now(timezone.utc)
    records = catalog.sample(n=num_items, replace=True, random_state=seed)

    items = []
    for row in records.itertuples(index=False):
        offset = timedelta(
            days=rng.randrange(DEFAULT_DAYS_BACK),
            seconds=rng.randrange(SECONDS_PER_DAY),
        )
        items.append({
            "product_id": int(row.id),
            "category": row.category,
            "ordered_at": (end_date - offset).isoformat(),
        })

    df = pd.DataFrame(items)
    return df.sort_values("ordered_at").reset_index(drop=True)


def main() -> None:
    """Generate default catalog and order files under data/."""
    print(f"Generating {DEFAULT_NUM_PRODUCTS} products and {DEFAULT_NUM_ORDER_ITEMS} order items...")

    try:
        catalog = generate_fake_catalog(seed=42)
        orders = generate_fake_orders(catalog, seed=42)
    except ValueError as e:
        print(f"Error generating data: {e}")
        return

    data_dir = Path(__file__).parent.parent / "data"
    data_dir.mkdir(exist_ok=True)

    catalog_path = data_dir / "catalog.csv"
    orders_path = data_dir / "orders.csv"
    catalog.to_csv(catalog_path, index=False)
    orders.to_csv(orders_path, index=False)

    print(f"\nSaved catalog to: {catalog_path}")
    print(f"Saved orders to: {orders_path}")
    print(f"\nCatalog summary:")
    print(f"  Products: {len(catalog)}")
    print(f"  Featured: {int(catalog['featured'].sum())}")
    print(f"  Products per category:")
    print(catalog["category"].value_counts().to_string())


if __name__ == "__main__":
    main()
