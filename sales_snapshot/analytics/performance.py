"""
Entity Performance

Product, category, collection, color, size and store rankings with a
per-store (or, for stores, per-product) revenue split, plus the matching
zero-filled trend series.

Ranking is two-tier: entities are ranked by revenue and only the top N are
kept; the rest are dropped, never folded into an "other" bucket.
"""

from typing import Dict, List, Optional

import polars as pl

from .primitives import (
    AMOUNT,
    BRAND_CODE,
    COLOR,
    DATE,
    MEMBER_ID,
    PRODUCT_ID,
    PRODUCT_NAME,
    QUANTITY,
    SIZE,
    STORE_NAME,
    TX_KEY,
    Granularity,
    bucket_expr,
    label_or,
    product_label,
    qualifying,
)
from .schemas import (
    PerformanceWithStoreBreakdown,
    StorePerformance,
    StoreShare,
    TopProduct,
    TrendRow,
)

FALLBACK_LABEL = "その他"
TOP_PRODUCTS_FOR_STORES = 20


def category_key() -> pl.Expr:
    return label_or(PRODUCT_NAME, FALLBACK_LABEL)


def collection_key() -> pl.Expr:
    return label_or(BRAND_CODE, FALLBACK_LABEL)


def color_key() -> pl.Expr:
    return label_or(COLOR, FALLBACK_LABEL)


def size_key() -> pl.Expr:
    return label_or(SIZE, FALLBACK_LABEL)


def _has_store() -> pl.Expr:
    return pl.col(STORE_NAME).str.strip_chars() != ""


def rank_entities(sales: pl.DataFrame, key: pl.Expr, top_n: int) -> List[str]:
    """Top ``top_n`` entity keys by revenue; ties keep first-seen order"""
    ranked = (
        sales.with_columns(key.alias("entity"))
        .group_by("entity", maintain_order=True)
        .agg(pl.col(AMOUNT).sum().alias("revenue"))
        .sort("revenue", descending=True, maintain_order=True)
        .head(top_n)
    )
    return ranked["entity"].to_list()


def _breakdown(
    sales: pl.DataFrame,
    key: pl.Expr,
    names: List[str],
    split: pl.Expr,
    split_filter: Optional[pl.Expr] = None,
) -> List[PerformanceWithStoreBreakdown]:
    if not names:
        return []
    rows = sales.with_columns(key.alias("entity"), split.alias("split")).filter(
        pl.col("entity").is_in(names) & (pl.col("split") != "")
    )
    if split_filter is not None:
        rows = rows.filter(split_filter)
    if rows.is_empty():
        return []

    totals = (
        rows.group_by("entity", maintain_order=True)
        .agg(pl.col(AMOUNT).sum().alias("total"))
        .sort("total", descending=True, maintain_order=True)
    )
    splits = (
        rows.group_by(["entity", "split"], maintain_order=True)
        .agg(pl.col(AMOUNT).sum().alias("revenue"))
        .sort("revenue", descending=True, maintain_order=True)
    )

    shares: Dict[str, List[StoreShare]] = {}
    for row in splits.iter_rows(named=True):
        shares.setdefault(row["entity"], []).append(StoreShare(store_name=row["split"], revenue=row["revenue"]))

    return [
        PerformanceWithStoreBreakdown(name=row["entity"], total_revenue=row["total"], stores=shares[row["entity"]])
        for row in totals.iter_rows(named=True)
    ]


def _entity_trends(
    sales: pl.DataFrame,
    key: pl.Expr,
    names: List[str],
    granularity: Granularity,
    value: str = AMOUNT,
) -> List[TrendRow]:
    """One row per bucket with every tracked entity present, zero-filled"""
    if not names:
        return []
    sums = (
        sales.filter(pl.col(DATE).is_not_null())
        .with_columns(key.alias("entity"), bucket_expr(granularity).alias("bucket"))
        .filter(pl.col("entity").is_in(names))
        .group_by(["bucket", "entity"], maintain_order=True)
        .agg(pl.col(value).sum().alias("value"))
    )

    by_bucket: Dict[str, Dict[str, float]] = {}
    for row in sums.iter_rows(named=True):
        by_bucket.setdefault(row["bucket"], {})[row["entity"]] = row["value"]

    trends = []
    for bucket in sorted(by_bucket):
        values = by_bucket[bucket]
        entry: TrendRow = {"date": bucket}
        for name in names:
            entry[name] = values.get(name, 0)
        trends.append(entry)
    return trends


# Products

def get_top_products(df: pl.DataFrame, limit: int = 20) -> List[TopProduct]:
    """Products keyed by id, labelled by their first-seen name"""
    sales = qualifying(df).filter(pl.col(PRODUCT_ID).str.strip_chars() != "")
    if sales.is_empty():
        return []

    products = (
        sales.with_columns(pl.col(PRODUCT_ID).str.strip_chars().alias("key"), product_label().alias("label"))
        .group_by("key", maintain_order=True)
        .agg(
            pl.col(PRODUCT_ID).first().alias("code"),
            pl.col("label").first().alias("label"),
            pl.col(AMOUNT).sum().alias("revenue"),
            pl.col(QUANTITY).sum().alias("quantity"),
            pl.col(TX_KEY).n_unique().alias("transactions"),
        )
        .sort("revenue", descending=True, maintain_order=True)
        .head(limit)
    )
    return [
        TopProduct(
            product_name=row["label"],
            product_code=row["code"],
            revenue=row["revenue"],
            quantity=row["quantity"],
            transactions=row["transactions"],
            average_price=row["revenue"] / row["quantity"] if row["quantity"] > 0 else 0,
        )
        for row in products.iter_rows(named=True)
    ]


def _top_product_labels(df: pl.DataFrame, top_n: int) -> List[str]:
    labels = []
    for product in get_top_products(df, top_n):
        if product.product_name not in labels:
            labels.append(product.product_name)
    return labels


def get_product_performance_with_stores(df: pl.DataFrame, top_n: int = 25) -> List[PerformanceWithStoreBreakdown]:
    names = _top_product_labels(df, top_n)
    return _breakdown(qualifying(df), product_label(), names, pl.col(STORE_NAME).str.strip_chars())


def get_product_trends(
    df: pl.DataFrame,
    top_n: int = 25,
    granularity: Granularity = Granularity.MONTHLY,
) -> List[TrendRow]:
    names = _top_product_labels(df, top_n)
    return _entity_trends(qualifying(df), product_label(), names, granularity)


# Categories and collections

def get_category_performance_with_stores(df: pl.DataFrame, top_n: int = 25) -> List[PerformanceWithStoreBreakdown]:
    sales = qualifying(df)
    names = rank_entities(sales, category_key(), top_n)
    return _breakdown(sales, category_key(), names, pl.col(STORE_NAME).str.strip_chars())


def get_category_trends(
    df: pl.DataFrame,
    top_n: int = 25,
    granularity: Granularity = Granularity.MONTHLY,
) -> List[TrendRow]:
    sales = qualifying(df)
    names = rank_entities(sales, category_key(), top_n)
    return _entity_trends(sales, category_key(), names, granularity)


def get_collection_performance_with_stores(df: pl.DataFrame, top_n: int = 25) -> List[PerformanceWithStoreBreakdown]:
    sales = qualifying(df)
    names = rank_entities(sales, collection_key(), top_n)
    return _breakdown(sales, collection_key(), names, pl.col(STORE_NAME).str.strip_chars())


def get_collection_trends(
    df: pl.DataFrame,
    top_n: int = 25,
    granularity: Granularity = Granularity.MONTHLY,
) -> List[TrendRow]:
    sales = qualifying(df)
    names = rank_entities(sales, collection_key(), top_n)
    return _entity_trends(sales, collection_key(), names, granularity)


# Colors and sizes

def _attribute_performance(df: pl.DataFrame, key: pl.Expr, top_n: int) -> List[PerformanceWithStoreBreakdown]:
    # Attributes are ranked over store-attributed sales only
    sales = qualifying(df).filter(_has_store())
    names = rank_entities(sales, key, top_n)
    return _breakdown(sales, key, names, pl.col(STORE_NAME).str.strip_chars())


def get_color_performance_with_stores(df: pl.DataFrame, top_n: int = 25) -> List[PerformanceWithStoreBreakdown]:
    return _attribute_performance(df, color_key(), top_n)


def get_size_performance_with_stores(df: pl.DataFrame, top_n: int = 25) -> List[PerformanceWithStoreBreakdown]:
    return _attribute_performance(df, size_key(), top_n)


def get_attribute_trends(
    df: pl.DataFrame,
    attribute: str,
    granularity: Granularity = Granularity.MONTHLY,
) -> List[TrendRow]:
    """Quantity sold per bucket for every color or size value"""
    if attribute not in (COLOR, SIZE):
        raise ValueError(f"Unsupported attribute: {attribute}")
    key = color_key() if attribute == COLOR else size_key()
    sales = qualifying(df).filter(pl.col(DATE).is_not_null())
    names = sales.select(key.alias("entity"))["entity"].unique(maintain_order=True).to_list()
    return _entity_trends(sales, key, names, granularity, value=QUANTITY)


# Stores

def get_store_performance(df: pl.DataFrame) -> List[StorePerformance]:
    sales = qualifying(df).filter(_has_store())
    if sales.is_empty():
        return []

    stores = (
        sales.with_columns(pl.col(STORE_NAME).str.strip_chars().alias("store"))
        .group_by("store", maintain_order=True)
        .agg(
            pl.col(AMOUNT).sum().alias("revenue"),
            pl.col(TX_KEY).n_unique().alias("transactions"),
            pl.col(MEMBER_ID).n_unique().alias("customers"),
        )
        .sort("revenue", descending=True, maintain_order=True)
    )
    return [
        StorePerformance(
            store_name=row["store"],
            revenue=row["revenue"],
            transactions=row["transactions"],
            customers=row["customers"],
            average_order_value=row["revenue"] / row["transactions"] if row["transactions"] > 0 else 0,
        )
        for row in stores.iter_rows(named=True)
    ]


def _top_store_names(df: pl.DataFrame, top_n: int) -> List[str]:
    return [s.store_name for s in get_store_performance(df)[:top_n]]


def get_store_performance_with_products(df: pl.DataFrame, top_n: int = 25) -> List[PerformanceWithStoreBreakdown]:
    """Top stores split across the chain's top products; the split entries reuse ``storeName`` for the product"""
    stores = _top_store_names(df, top_n)
    products = _top_product_labels(df, TOP_PRODUCTS_FOR_STORES)
    return _breakdown(
        qualifying(df),
        pl.col(STORE_NAME).str.strip_chars(),
        stores,
        product_label(),
        split_filter=pl.col("split").is_in(products),
    )


def get_store_trends(
    df: pl.DataFrame,
    top_n: int = 25,
    granularity: Granularity = Granularity.MONTHLY,
) -> List[TrendRow]:
    stores = _top_store_names(df, top_n)
    return _entity_trends(qualifying(df), pl.col(STORE_NAME).str.strip_chars(), stores, granularity)
