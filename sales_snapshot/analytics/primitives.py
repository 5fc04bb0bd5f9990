"""
Aggregation Primitives

Transaction keys, date buckets and the columnar sales frame every analytics
function works on.

The source exports carry no transaction id: line items sharing purchase
date, member and store form one transaction. Every distinct-transaction
count goes through ``transaction_key`` / ``TX_KEY``.
"""

import re
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence

import polars as pl

from sales_snapshot.ingestion import SalesRecord

OTHER_BRAND_CODE = "OTHER"

DATE_PREFIX = re.compile(r"^(\d{4})-(\d{2})-(\d{2})")

# Frame columns
MEMBER_ID = "member_id"
PURCHASE_DATE = "purchase_date"
PRODUCT_ID = "product_id"
PRODUCT_NAME = "product_name"
COLOR = "color"
SIZE = "size"
BRAND_CODE = "brand_code"
BRAND_NAME = "brand_name"
QUANTITY = "quantity"
AMOUNT = "amount"
STORE_NAME = "store_name"
ASSOCIATE = "associate"
TX_KEY = "tx_key"
DATE = "date"

SALES_SCHEMA = {
    MEMBER_ID: pl.Utf8,
    PURCHASE_DATE: pl.Utf8,
    PRODUCT_ID: pl.Utf8,
    PRODUCT_NAME: pl.Utf8,
    COLOR: pl.Utf8,
    SIZE: pl.Utf8,
    BRAND_CODE: pl.Utf8,
    BRAND_NAME: pl.Utf8,
    QUANTITY: pl.Float64,
    AMOUNT: pl.Float64,
    STORE_NAME: pl.Utf8,
    ASSOCIATE: pl.Utf8,
}


class Granularity(str, Enum):
    """Trend bucket sizes"""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


def transaction_key(record: SalesRecord) -> str:
    return f"{record.purchase_date}|{record.member_id}|{record.store_name}"


def parse_date_key(value: str) -> Optional[date]:
    """Calendar date from a ``YYYY-MM-DD...`` string, None when it does not parse"""
    match = DATE_PREFIX.match(value or "")
    if not match:
        return None
    try:
        return date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
    except ValueError:
        return None


def week_of_year(day: date) -> int:
    """Offset week: days since Jan 1 floor-divided by 7, plus one. Not ISO-8601."""
    return (day.timetuple().tm_yday - 1) // 7 + 1


def date_bucket(day: date, granularity: Granularity) -> str:
    if granularity == Granularity.WEEKLY:
        return f"{day.year:04d}-W{week_of_year(day):02d}"
    if granularity == Granularity.MONTHLY:
        return f"{day.year:04d}-{day.month:02d}"
    return f"{day.year:04d}-{day.month:02d}-{day.day:02d}"


def bucket_expr(granularity: Granularity, column: str = DATE) -> pl.Expr:
    """Polars counterpart of ``date_bucket`` over a Date column"""
    col = pl.col(column)
    if granularity == Granularity.WEEKLY:
        week = ((col.dt.ordinal_day() - 1) // 7 + 1).cast(pl.Utf8).str.pad_start(2, "0")
        return pl.format("{}-W{}", col.dt.year().cast(pl.Utf8).str.pad_start(4, "0"), week)
    if granularity == Granularity.MONTHLY:
        return col.dt.strftime("%Y-%m")
    return col.dt.strftime("%Y-%m-%d")


def build_sales_frame(records: Sequence[SalesRecord]) -> pl.DataFrame:
    """
    Columnar view of the records, in record order.

    Adds the transaction key and a parsed ``date`` column (null when the
    purchase date does not start with ``YYYY-MM-DD``).
    """
    columns: Dict[str, list] = {name: [] for name in SALES_SCHEMA}
    for r in records:
        columns[MEMBER_ID].append(r.member_id)
        columns[PURCHASE_DATE].append(r.purchase_date)
        columns[PRODUCT_ID].append(r.product_id)
        columns[PRODUCT_NAME].append(r.product_name)
        columns[COLOR].append(r.color)
        columns[SIZE].append(r.size)
        columns[BRAND_CODE].append(r.brand_code)
        columns[BRAND_NAME].append(r.brand_name)
        columns[QUANTITY].append(float(r.quantity))
        columns[AMOUNT].append(float(r.amount))
        columns[STORE_NAME].append(r.store_name)
        columns[ASSOCIATE].append(r.associate)

    df = pl.DataFrame(columns, schema=SALES_SCHEMA)
    return df.with_columns(
        pl.concat_str([pl.col(PURCHASE_DATE), pl.col(MEMBER_ID), pl.col(STORE_NAME)], separator="|").alias(TX_KEY),
        pl.col(PURCHASE_DATE)
        .str.extract(r"^(\d{4}-\d{2}-\d{2})", 1)
        .str.to_date("%Y-%m-%d", strict=False)
        .alias(DATE),
    )


def qualifying(df: pl.DataFrame) -> pl.DataFrame:
    """Rows that count toward revenue-bearing aggregates"""
    return df.filter(pl.col(AMOUNT) > 0)


def label_or(column: str, fallback: str) -> pl.Expr:
    """Column value with blanks replaced by ``fallback``"""
    return pl.when(pl.col(column).str.strip_chars() == "").then(pl.lit(fallback)).otherwise(pl.col(column))


def product_label() -> pl.Expr:
    """Display key of a product: its name, else its id"""
    return pl.when(pl.col(PRODUCT_NAME) == "").then(pl.col(PRODUCT_ID)).otherwise(pl.col(PRODUCT_NAME))


def effective_brand_code(record: SalesRecord) -> str:
    return record.brand_code.strip() or OTHER_BRAND_CODE


def has_brand_prefix(store_name: str, brand_name: str) -> bool:
    """True for stores named ``"<brand_name> ..."``; brand names may contain spaces"""
    brand_name = (brand_name or "").strip()
    return bool(brand_name) and (store_name or "").strip().startswith(brand_name + " ")


@dataclass
class RecordGroups:
    """Record indexes grouped along every dimension the orchestrator needs"""
    by_brand: Dict[str, List[int]] = field(default_factory=dict)
    # only store names with a space can carry a brand prefix
    by_spaced_store: Dict[str, List[int]] = field(default_factory=dict)
    qualifying: List[int] = field(default_factory=list)

    def brand_subset(self, brand_code: str, brand_name: str) -> List[int]:
        """
        Indexes of a brand's records: its own code plus every store named
        ``"<brand_name> ..."``, deduplicated and in record order.
        """
        indexes = set(self.by_brand.get(brand_code, []))
        for store, store_indexes in self.by_spaced_store.items():
            if has_brand_prefix(store, brand_name):
                indexes.update(store_indexes)
        return sorted(indexes)


def group_records(records: Sequence[SalesRecord]) -> RecordGroups:
    """Single pass over qualifying records building every grouping at once"""
    groups = RecordGroups()
    for i, record in enumerate(records):
        if not record.is_qualifying:
            continue
        groups.qualifying.append(i)
        groups.by_brand.setdefault(effective_brand_code(record), []).append(i)
        store = record.store_name.strip()
        if " " in store:
            groups.by_spaced_store.setdefault(store, []).append(i)
    return groups


def select_records(records: Sequence[SalesRecord], indexes: Iterable[int]) -> List[SalesRecord]:
    return [records[i] for i in indexes]
