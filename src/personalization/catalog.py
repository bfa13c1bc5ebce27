"""Loaders for the catalog and order-history collaborators.

The engine only consumes already-resolved, in-memory records. These helpers
read them from CSV files for the API server and the CLI scripts.
"""

import logging
from pathlib import Path
from typing import List, Optional

import pandas as pd

from src.personalization.models import OrderLineItem, Product

# Configure module logger
logger = logging.getLogger(__name__)

CATALOG_REQUIRED_COLUMNS = {"id", "category"}
ORDERS_REQUIRED_COLUMNS = {"product_id", "category"}


def _read_csv(csv_path: str, required_columns: set) -> pd.DataFrame:
    path = Path(csv_path)
    if not path.exists():
        raise FileNotFoundError(f"CSV file not found: {csv_path}")

    logger.info(f"Loading data from {csv_path}")
    df = pd.read_csv(path)

    if not required_columns.issubset(df.columns):
        missing = required_columns - set(df.columns)
        raise ValueError(f"CSV missing required columns: {missing}")
    return df


def load_catalog(csv_path: str) -> List[Product]:
    """Load catalog products from a CSV file.

    Args:
        csv_path: CSV with at least ``id`` and ``category`` columns; optional
            ``name``, ``price``, ``rating``, ``featured`` and ``tags``
            (``|``-separated) columns.

    Returns:
        Products in file order.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If required columns are missing or ids are duplicated.
    """
    df = _read_csv(csv_path, CATALOG_REQUIRED_COLUMNS)

    if df["id"].duplicated().any():
        duplicates = df.loc[df["id"].duplicated(), "id"].tolist()
        raise ValueError(f"Catalog has duplicate product ids: {duplicates}")

    df = df.assign(
        name=df["name"].fillna("") if "name" in df else "",
        price=df["price"].fillna(0.0) if "price" in df else 0.0,
        rating=df["rating"].fillna(0.0) if "rating" in df else 0.0,
        featured=df["featured"].fillna(False).astype(bool) if "featured" in df else False,
        tags=df["tags"].fillna("") if "tags" in df else "",
    )

    products = [
        Product(
            id=int(row.id),
            name=str(row.name),
            category=str(row.category),
            price=float(row.price),
            rating=float(row.rating),
            featured=bool(row.featured),
            tags=[t for t in str(row.tags).split("|") if t],
        )
        for row in df.itertuples(index=False)
    ]
    logger.info(f"Loaded {len(products)} catalog products")
    return products


def load_order_history(csv_path: str) -> List[OrderLineItem]:
    """Load past order line items from a CSV file.

    Args:
        csv_path: CSV with ``product_id`` and ``category`` columns and an
            optional ``ordered_at`` timestamp column.
    """
    df = _read_csv(csv_path, ORDERS_REQUIRED_COLUMNS)

    ordered_at: List[Optional[pd.Timestamp]]
    if "ordered_at" in df:
        parsed = pd.to_datetime(df["ordered_at"], utc=True, errors="coerce")
        ordered_at = [None if pd.isna(ts) else ts.to_pydatetime() for ts in parsed]
    else:
        ordered_at = [None] * len(df)

    items = [
        OrderLineItem(
            product_id=int(product_id),
            category=str(category),
            ordered_at=when,
        )
        for product_id, category, when in zip(df["product_id"], df["category"], ordered_at)
    ]
    logger.info(f"Loaded {len(items)} order line items")
    return items
