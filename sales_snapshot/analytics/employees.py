"""
Employee and brand performance.
"""

from typing import Dict, List

import pandas as pd
import polars as pl

from .customers import DEFAULT_RANK, assign_internal_ranks
from .primitives import (
    AMOUNT,
    ASSOCIATE,
    BRAND_CODE,
    BRAND_NAME,
    MEMBER_ID,
    OTHER_BRAND_CODE,
    PURCHASE_DATE,
    QUANTITY,
    STORE_NAME,
    TX_KEY,
    parse_date_key,
    product_label,
    qualifying,
)
from .schemas import BrandPerformance, EmployeePerformance, ProductRevenue

EARLIEST_DATE = "2000-01-01"


def latest_month_start(df: pl.DataFrame) -> str:
    """
    One calendar month before the latest purchase date, as ``YYYY-MM-DD``.

    Month arithmetic clamps to the end of shorter months (03-31 -> 02-29).
    """
    dates = df.filter(pl.col(PURCHASE_DATE) > EARLIEST_DATE)[PURCHASE_DATE]
    latest = parse_date_key(dates.max()) if dates.len() > 0 else None
    if latest is None:
        latest = parse_date_key(EARLIEST_DATE)
    start = pd.Timestamp(latest) - pd.DateOffset(months=1)
    return start.strftime("%Y-%m-%d")


def _associate_sales(df: pl.DataFrame) -> pl.DataFrame:
    return qualifying(df).with_columns(pl.col(ASSOCIATE).str.strip_chars().alias("staff")).filter(pl.col("staff") != "")


def get_employee_performance(df: pl.DataFrame) -> List[EmployeePerformance]:
    """Associate revenue totals with their stores and product split"""
    sales = _associate_sales(df)
    if sales.is_empty():
        return []

    totals = (
        sales.group_by("staff", maintain_order=True)
        .agg(
            pl.col(AMOUNT).sum().alias("revenue"),
            pl.col(STORE_NAME).str.strip_chars().unique().alias("stores"),
        )
        .sort("revenue", descending=True, maintain_order=True)
    )
    products = (
        sales.with_columns(product_label().alias("product"))
        .filter(pl.col("product") != "")
        .group_by(["staff", "product"], maintain_order=True)
        .agg(pl.col(AMOUNT).sum().alias("revenue"))
        .sort("revenue", descending=True, maintain_order=True)
    )

    by_staff: Dict[str, List[ProductRevenue]] = {}
    for row in products.iter_rows(named=True):
        by_staff.setdefault(row["staff"], []).append(
            ProductRevenue(product_name=row["product"], revenue=row["revenue"])
        )

    return [
        EmployeePerformance(
            staff_name=row["staff"],
            staff_code=row["staff"],
            total_revenue=row["revenue"],
            stores=sorted(s for s in row["stores"] if s),
            products=by_staff.get(row["staff"], []),
        )
        for row in totals.iter_rows(named=True)
    ]


def get_employee_performance_with_ranks(df: pl.DataFrame) -> List[EmployeePerformance]:
    """
    Associate totals plus activity since ``latest_month_start``: revenue,
    items, distinct customers and how many S/A/B customers they served.

    Customer ranks here are computed over associate-attributed sales only.
    """
    base = get_employee_performance(df)
    if not base:
        return []

    sales = _associate_sales(df)
    month_start = latest_month_start(qualifying(df))
    recent = sales.filter(pl.col(PURCHASE_DATE) >= month_start)

    revenue = sales.group_by(MEMBER_ID, maintain_order=True).agg(pl.col(AMOUNT).sum())
    ranks = assign_internal_ranks(dict(zip(revenue[MEMBER_ID].to_list(), revenue[AMOUNT].to_list())))

    served: Dict[str, Dict[str, int]] = {}
    pairs = recent.select(MEMBER_ID, "staff").unique(maintain_order=True)
    for member_id, staff in pairs.iter_rows():
        rank = ranks.get(member_id, DEFAULT_RANK)
        counts = served.setdefault(staff, {"S": 0, "A": 0, "B": 0, "C": 0})
        counts[rank] += 1

    monthly = (
        recent.group_by("staff", maintain_order=True)
        .agg(
            pl.col(AMOUNT).sum().alias("revenue"),
            # a zero or missing quantity still counts as one item
            pl.when(pl.col(QUANTITY) > 0).then(pl.col(QUANTITY)).otherwise(1.0).sum().alias("items"),
            pl.col(MEMBER_ID).n_unique().alias("customers"),
        )
    )
    monthly_by_staff = {row["staff"]: row for row in monthly.iter_rows(named=True)}

    enriched = []
    for emp in base:
        month = monthly_by_staff.get(emp.staff_name)
        counts = served.get(emp.staff_name, {})
        enriched.append(
            emp.model_copy(
                update={
                    "monthly_revenue": month["revenue"] if month else 0,
                    "monthly_items": month["items"] if month else 0,
                    "customer_count": month["customers"] if month else 0,
                    "rank_s": counts.get("S", 0),
                    "rank_a": counts.get("A", 0),
                    "rank_b": counts.get("B", 0),
                }
            )
        )
    return enriched


def get_brand_performance(df: pl.DataFrame) -> List[BrandPerformance]:
    """Per brand code (blank as OTHER), sorted by revenue"""
    sales = qualifying(df)
    if sales.is_empty():
        return []

    code = pl.col(BRAND_CODE).str.strip_chars()
    brands = (
        sales.with_columns(
            pl.when(code == "").then(pl.lit(OTHER_BRAND_CODE)).otherwise(code).alias("code"),
            pl.col(BRAND_NAME).str.strip_chars().alias("name"),
        )
        .with_columns(pl.when(pl.col("name") == "").then(pl.col("code")).otherwise(pl.col("name")).alias("name"))
        .group_by("code", maintain_order=True)
        .agg(
            pl.col("name").first(),
            pl.col(AMOUNT).sum().alias("revenue"),
            pl.col(TX_KEY).n_unique().alias("transactions"),
            pl.col(MEMBER_ID).n_unique().alias("customers"),
            pl.col(STORE_NAME).str.strip_chars().n_unique().alias("stores"),
        )
        .sort("revenue", descending=True, maintain_order=True)
    )
    return [
        BrandPerformance(
            brand_code=row["code"],
            brand_name=row["name"],
            total_revenue=row["revenue"],
            transactions=row["transactions"],
            customers=row["customers"],
            average_order_value=row["revenue"] / row["transactions"] if row["transactions"] > 0 else 0,
            store_count=row["stores"],
        )
        for row in brands.iter_rows(named=True)
    ]
