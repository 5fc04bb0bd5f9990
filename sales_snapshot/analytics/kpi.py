"""
KPI, trend and day-of-week calculations.
"""

from typing import List

import polars as pl

from .primitives import AMOUNT, DATE, MEMBER_ID, TX_KEY, Granularity, bucket_expr, qualifying
from .schemas import DayOfWeekPoint, KPIMetrics, TimeSeriesPoint

DAY_NAMES = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]


def calculate_kpis(df: pl.DataFrame) -> KPIMetrics:
    sales = qualifying(df)
    if sales.is_empty():
        return KPIMetrics()

    row = sales.select(
        pl.col(AMOUNT).sum().alias("revenue"),
        pl.col(TX_KEY).n_unique().alias("transactions"),
        pl.col(MEMBER_ID).n_unique().alias("customers"),
    ).row(0, named=True)

    transactions = row["transactions"]
    return KPIMetrics(
        total_revenue=row["revenue"],
        total_transactions=transactions,
        average_order_value=row["revenue"] / transactions if transactions > 0 else 0,
        active_customers=row["customers"],
    )


def _bucket_metrics(df: pl.DataFrame, key: pl.Expr) -> pl.DataFrame:
    """Revenue, distinct transactions and distinct customers per ``key``"""
    return (
        qualifying(df)
        .filter(pl.col(DATE).is_not_null())
        .with_columns(key.alias("bucket"))
        .group_by("bucket", maintain_order=True)
        .agg(
            pl.col(AMOUNT).sum().alias("revenue"),
            pl.col(TX_KEY).n_unique().alias("transactions"),
            pl.col(MEMBER_ID).n_unique().alias("customers"),
        )
    )


def get_trends(df: pl.DataFrame, granularity: Granularity) -> List[TimeSeriesPoint]:
    """Per-bucket totals sorted ascending by bucket key; unparseable dates are skipped"""
    buckets = _bucket_metrics(df, bucket_expr(granularity)).sort("bucket")
    return [
        TimeSeriesPoint(
            date=row["bucket"],
            revenue=row["revenue"],
            transactions=row["transactions"],
            customers=row["customers"],
        )
        for row in buckets.iter_rows(named=True)
    ]


def get_day_of_week_analysis(df: pl.DataFrame) -> List[DayOfWeekPoint]:
    """Weekday totals ordered Sun..Sat, only days with sales"""
    # polars weekday is 1 (Mon) .. 7 (Sun)
    days = _bucket_metrics(df, pl.col(DATE).dt.weekday() % 7).sort("bucket")
    return [
        DayOfWeekPoint(
            day=DAY_NAMES[row["bucket"]],
            revenue=row["revenue"],
            transactions=row["transactions"],
            customers=row["customers"],
        )
        for row in days.iter_rows(named=True)
    ]
