"""
Customer Segmentation

Fixed-threshold value, frequency and AOV buckets, channel (store) segments,
and age/gender segments from the demographic lookup.
"""

from datetime import date
from typing import Callable, List, Optional, Sequence, Tuple

import polars as pl

from sales_snapshot.transformation.demographics import DemographicsLookup
from .primitives import AMOUNT, MEMBER_ID, STORE_NAME, label_or, qualifying
from .schemas import CustomerDetail, CustomerSegment

# (label, lower bound) pairs, checked top-down
VALUE_SEGMENTS = [
    ("VIP (>¥100,000)", 100_000),
    ("High Value (¥50,000-100,000)", 50_000),
    ("Regular (¥20,000-50,000)", 20_000),
    ("Occasional (<¥20,000)", None),
]

FREQUENCY_SEGMENTS = [
    ("Very Frequent (10+ purchases)", 10),
    ("Frequent (5-9 purchases)", 5),
    ("Regular (2-4 purchases)", 2),
    ("One-Time (1 purchase)", None),
]

AOV_SEGMENTS = [
    ("High AOV (¥10,000+)", 10_000),
    ("Medium AOV (¥5,000-10,000)", 5_000),
    ("Standard AOV (¥2,000-5,000)", 2_000),
    ("Low AOV (<¥2,000)", None),
]

CHANNEL_LIMIT = 10
CHANNEL_FALLBACK = "Other"

AGE_BUCKETS = [
    "10s (10–19)",
    "20s (20–29)",
    "30s (30–39)",
    "40s (40–49)",
    "50s (50–59)",
    "60+",
]

GENDER_VALUES = ["Male", "Female", "Unknown"]


def member_hash(member_id: str) -> int:
    """Stable 32-bit string hash for placeholder demographic buckets"""
    h = 0
    for ch in member_id:
        h = (h * 31 + ord(ch)) % 2**32
    return h


def _bucket_index(thresholds: Sequence[Tuple[str, Optional[float]]], value: float) -> int:
    for i, (_, lower) in enumerate(thresholds):
        if lower is None or value >= lower:
            return i
    return len(thresholds) - 1


def _fixed_segments(
    customers: Sequence[CustomerDetail],
    thresholds: Sequence[Tuple[str, Optional[float]]],
    measure: Callable[[CustomerDetail], float],
    per_transaction: bool = False,
) -> List[CustomerSegment]:
    """
    Always all buckets, in threshold order.

    ``per_transaction`` averages revenue over the bucket's transactions
    instead of its customers.
    """
    counts = [0] * len(thresholds)
    revenue = [0.0] * len(thresholds)
    transactions = [0] * len(thresholds)
    for c in customers:
        i = _bucket_index(thresholds, measure(c))
        counts[i] += 1
        revenue[i] += c.total_revenue
        transactions[i] += c.transaction_count

    total = len(customers)
    segments = []
    for i, (label, _) in enumerate(thresholds):
        divisor = transactions[i] if per_transaction else counts[i]
        segments.append(
            CustomerSegment(
                segment=label,
                count=counts[i],
                total_revenue=revenue[i],
                average_revenue=revenue[i] / divisor if divisor > 0 else 0,
                percentage=counts[i] / total * 100 if total > 0 else 0,
            )
        )
    return segments


def get_customer_segments(customers: Sequence[CustomerDetail]) -> List[CustomerSegment]:
    """Lifetime value buckets"""
    return _fixed_segments(customers, VALUE_SEGMENTS, lambda c: c.total_revenue)


def get_frequency_segments(customers: Sequence[CustomerDetail]) -> List[CustomerSegment]:
    return _fixed_segments(customers, FREQUENCY_SEGMENTS, lambda c: c.transaction_count, per_transaction=True)


def get_aov_segments(customers: Sequence[CustomerDetail]) -> List[CustomerSegment]:
    return _fixed_segments(customers, AOV_SEGMENTS, lambda c: c.average_order_value)


def get_channel_segments(df: pl.DataFrame, limit: int = CHANNEL_LIMIT) -> List[CustomerSegment]:
    """Top stores by revenue with their distinct customers; share is of all customers"""
    sales = qualifying(df)
    if sales.is_empty():
        return []

    total_customers = sales[MEMBER_ID].n_unique()
    channels = (
        sales.with_columns(label_or(STORE_NAME, CHANNEL_FALLBACK).str.strip_chars().alias("channel"))
        .group_by("channel", maintain_order=True)
        .agg(
            pl.col(AMOUNT).sum().alias("revenue"),
            pl.col(MEMBER_ID).n_unique().alias("customers"),
        )
        .sort("revenue", descending=True, maintain_order=True)
        .head(limit)
    )
    return [
        CustomerSegment(
            segment=row["channel"],
            count=row["customers"],
            total_revenue=row["revenue"],
            average_revenue=row["revenue"] / row["customers"] if row["customers"] > 0 else 0,
            percentage=row["customers"] / total_customers * 100 if total_customers > 0 else 0,
        )
        for row in channels.iter_rows(named=True)
    ]


def age_bucket(age: int) -> str:
    for upper, bucket in zip((20, 30, 40, 50, 60), AGE_BUCKETS):
        if age < upper:
            return bucket
    return AGE_BUCKETS[-1]


def _demographic_segments(
    customers: Sequence[CustomerDetail],
    buckets: Sequence[str],
    assign: Callable[[CustomerDetail], str],
) -> List[CustomerSegment]:
    """Non-empty buckets only, sorted by revenue"""
    total = len(customers)
    if total == 0:
        return []

    counts = {b: 0 for b in buckets}
    revenue = {b: 0.0 for b in buckets}
    for c in customers:
        bucket = assign(c)
        counts[bucket] += 1
        revenue[bucket] += c.total_revenue

    segments = [
        CustomerSegment(
            segment=b,
            count=counts[b],
            total_revenue=revenue[b],
            average_revenue=revenue[b] / counts[b],
            percentage=counts[b] / total * 100,
        )
        for b in buckets
        if counts[b] > 0
    ]
    return sorted(segments, key=lambda s: s.total_revenue, reverse=True)


def get_age_segments(
    customers: Sequence[CustomerDetail],
    demographics: Optional[DemographicsLookup],
    reference: date,
) -> List[CustomerSegment]:
    """
    Age buckets at ``reference``. Members without a usable birthdate fall
    back to a hashed bucket so the shape is never empty.
    """
    demographics = demographics or {}

    def assign(c: CustomerDetail) -> str:
        demo = demographics.get(c.member_id)
        age = demo.age_on(reference) if demo else None
        if age is None:
            return AGE_BUCKETS[member_hash(c.member_id) % len(AGE_BUCKETS)]
        return age_bucket(age)

    return _demographic_segments(customers, AGE_BUCKETS, assign)


def get_gender_segments(
    customers: Sequence[CustomerDetail],
    demographics: Optional[DemographicsLookup],
) -> List[CustomerSegment]:
    demographics = demographics or {}

    def assign(c: CustomerDetail) -> str:
        demo = demographics.get(c.member_id)
        if demo is None:
            return GENDER_VALUES[member_hash(c.member_id) % len(GENDER_VALUES)]
        return demo.gender

    return _demographic_segments(customers, GENDER_VALUES, assign)
