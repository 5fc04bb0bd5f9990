"""
Customer Aggregates

Per-member folds of qualifying sales, the S/A/B/C internal rank, and the
customer master list published with the snapshot.
"""

import math
from datetime import datetime
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set

import polars as pl

from sales_snapshot.ingestion import SalesRecord
from sales_snapshot.transformation.demographics import DemographicsLookup
from sales_snapshot.transformation.mappings import is_online_store
from .primitives import (
    AMOUNT,
    ASSOCIATE,
    BRAND_CODE,
    MEMBER_ID,
    PRODUCT_NAME,
    PURCHASE_DATE,
    STORE_NAME,
    TX_KEY,
    parse_date_key,
    qualifying,
)
from .schemas import CustomerDetail, CustomerListItem, Purchase

# Rank -> revenue percentile the rank starts at; C is everything below B
RANK_PERCENTILES = (("S", 0.95), ("A", 0.80), ("B", 0.50))
DEFAULT_RANK = "C"

GENDER_LABELS = {"1": "女性", "2": "男性"}


def preferred_values(
    sales: pl.DataFrame,
    value: pl.Expr,
    weight: Optional[pl.Expr] = None,
) -> Dict[str, str]:
    """
    Highest-weighted non-empty value per member.

    Weight defaults to revenue; ties go to the value seen first.
    """
    weight = pl.col(AMOUNT).sum() if weight is None else weight
    ranked = (
        sales.with_columns(value.alias("value"))
        .filter(pl.col("value") != "")
        .group_by([MEMBER_ID, "value"], maintain_order=True)
        .agg(weight.alias("weight"))
        .sort("weight", descending=True, maintain_order=True)
        .group_by(MEMBER_ID, maintain_order=True)
        .agg(pl.col("value").first())
    )
    return dict(zip(ranked[MEMBER_ID].to_list(), ranked["value"].to_list()))


def get_customer_details(df: pl.DataFrame, reference: datetime) -> List[CustomerDetail]:
    """
    Fold qualifying sales into one aggregate per member, in first-seen order.

    Recency is counted in whole days from ``reference``; an unparseable last
    purchase date gives 0.
    """
    sales = qualifying(df)
    if sales.is_empty():
        return []

    online_stores = [s for s in sales[STORE_NAME].unique().to_list() if is_online_store(s)]
    online_flag = pl.col(STORE_NAME).is_in(online_stores).any() if online_stores else pl.lit(False)

    folded = sales.group_by(MEMBER_ID, maintain_order=True).agg(
        pl.col(AMOUNT).sum().alias("revenue"),
        pl.col(TX_KEY).n_unique().alias("transactions"),
        pl.col(PURCHASE_DATE).min().alias("first"),
        pl.col(PURCHASE_DATE).max().alias("last"),
        online_flag.alias("online"),
    )

    preferred_store = preferred_values(sales, pl.col(STORE_NAME))
    preferred_category = preferred_values(sales, pl.col(PRODUCT_NAME))
    today = reference.date()

    details = []
    for row in folded.iter_rows(named=True):
        last = parse_date_key(row["last"])
        member_id = row[MEMBER_ID]
        transactions = row["transactions"]
        details.append(
            CustomerDetail(
                member_id=member_id,
                total_revenue=row["revenue"],
                transaction_count=transactions,
                average_order_value=row["revenue"] / transactions if transactions > 0 else 0,
                first_purchase_date=row["first"],
                last_purchase_date=row["last"],
                days_since_last_purchase=(today - last).days if last else 0,
                preferred_store=preferred_store.get(member_id, ""),
                preferred_category=preferred_category.get(member_id, ""),
                is_online_customer=bool(row["online"]),
            )
        )
    return details


def rank_cutoff(n: int, percentile: float) -> int:
    """Last 0-based position inside the top ``1 - percentile`` share of ``n``"""
    # round() strips float noise so ceil(100 * 0.05) is 5, not 6
    return max(0, math.ceil(round(n * (1 - percentile), 6)) - 1)


def assign_internal_ranks(revenue_by_member: Mapping[str, float]) -> Dict[str, str]:
    """
    Positional S/A/B/C ranks by revenue, highest first.

    Cutoffs are by position, so equal revenues either side of a cutoff can
    receive different ranks.
    """
    entries = sorted(revenue_by_member.items(), key=lambda kv: kv[1], reverse=True)
    n = len(entries)
    if n == 0:
        return {}

    cutoffs = [(rank, rank_cutoff(n, p)) for rank, p in RANK_PERCENTILES]
    ranks = {}
    for i, (member_id, _) in enumerate(entries):
        ranks[member_id] = next((rank for rank, idx in cutoffs if i <= idx), DEFAULT_RANK)
    return ranks


def build_customer_list(
    df: pl.DataFrame,
    demographics: Optional[DemographicsLookup],
    reference: datetime,
    limit: int = 0,
) -> List[CustomerListItem]:
    """
    Customer master sorted by revenue, capped at ``limit`` (0 keeps all).

    Internal ranks are derived from the kept customers only, so the shown
    list always carries a full S/A/B/C spread.
    """
    details = sorted(get_customer_details(df, reference), key=lambda d: d.total_revenue, reverse=True)
    if limit > 0:
        details = details[:limit]
    if not details:
        return []

    kept = [d.member_id for d in details]
    ranks = assign_internal_ranks({d.member_id: d.total_revenue for d in details})

    sales = qualifying(df).filter(pl.col(MEMBER_ID).is_in(kept))
    brand = preferred_values(sales, pl.col(BRAND_CODE).str.strip_chars())
    store_in_brand = _preferred_store_within_brand(sales, brand)
    associate = preferred_values(sales, pl.col(ASSOCIATE).str.strip_chars(), weight=pl.len())

    demographics = demographics or {}
    today = reference.date()

    customers = []
    for d in details:
        demo = demographics.get(d.member_id)
        customers.append(
            CustomerListItem(
                member_id=d.member_id,
                display_name=f"会員 {d.member_id[-6:]}",
                gender=GENDER_LABELS.get(demo.gender_code, "") if demo else "",
                age=demo.age_on(today) if demo else None,
                total_revenue=d.total_revenue,
                transaction_count=d.transaction_count,
                first_purchase_date=d.first_purchase_date,
                last_purchase_date=d.last_purchase_date,
                preferred_store=store_in_brand.get(d.member_id) or d.preferred_store,
                preferred_brand=brand.get(d.member_id, ""),
                sales_associate=associate.get(d.member_id, ""),
                internal_rank=ranks.get(d.member_id, DEFAULT_RANK),
            )
        )
    return customers


def _preferred_store_within_brand(sales: pl.DataFrame, brand: Mapping[str, str]) -> Dict[str, str]:
    """Highest-revenue store among each member's sales in their preferred brand"""
    ranked = (
        sales.with_columns(
            pl.col(BRAND_CODE).str.strip_chars().alias("brand"),
            pl.col(STORE_NAME).str.strip_chars().alias("store"),
        )
        .filter((pl.col("brand") != "") & (pl.col("store") != ""))
        .group_by([MEMBER_ID, "brand", "store"], maintain_order=True)
        .agg(pl.col(AMOUNT).sum().alias("revenue"))
        .sort("revenue", descending=True, maintain_order=True)
    )
    stores: Dict[str, str] = {}
    for row in ranked.iter_rows(named=True):
        member_id = row[MEMBER_ID]
        if member_id not in stores and brand.get(member_id) == row["brand"]:
            stores[member_id] = row["store"]
    return stores


def get_customer_purchases(
    records: Iterable[SalesRecord],
    member_ids: Optional[Set[str]] = None,
) -> Dict[str, List[Purchase]]:
    """Qualifying purchase rows per member, optionally restricted to ``member_ids``"""
    purchases: Dict[str, List[Purchase]] = {}
    for record in records:
        if not record.is_qualifying:
            continue
        if member_ids is not None and record.member_id not in member_ids:
            continue
        purchases.setdefault(record.member_id, []).append(Purchase.model_validate(record.to_purchase()))
    return purchases


def revenue_by_member(customers: Sequence[CustomerDetail]) -> Dict[str, float]:
    return {c.member_id: c.total_revenue for c in customers}
