"""
Unit Tests - Aggregation Primitives
"""
from datetime import date

import polars as pl
import pytest

from sales_snapshot.analytics import (
    Granularity,
    build_sales_frame,
    date_bucket,
    group_records,
    transaction_key,
)
from sales_snapshot.analytics.primitives import (
    DATE,
    TX_KEY,
    bucket_expr,
    has_brand_prefix,
    parse_date_key,
    select_records,
    week_of_year,
)


class TestDateBuckets:
    """Tests for date bucketing"""

    @pytest.mark.parametrize("day,week", [
        (date(2024, 1, 1), 1),
        (date(2024, 1, 7), 1),
        (date(2024, 1, 8), 2),
        (date(2024, 6, 1), 22),
        (date(2024, 12, 31), 53),
    ])
    def test_offset_week_numbers(self, day, week):
        """Test weeks count from Jan 1, not ISO-8601"""
        assert week_of_year(day) == week

    def test_bucket_formats(self):
        """Test daily, weekly and monthly keys"""
        day = date(2024, 3, 5)

        assert date_bucket(day, Granularity.DAILY) == "2024-03-05"
        assert date_bucket(day, Granularity.WEEKLY) == "2024-W10"
        assert date_bucket(day, Granularity.MONTHLY) == "2024-03"

    def test_week_differs_from_iso(self):
        """Test 2021-01-01 is week 1 here although ISO puts it in 2020-W53"""
        assert date_bucket(date(2021, 1, 1), Granularity.WEEKLY) == "2021-W01"

    @pytest.mark.parametrize("granularity", list(Granularity))
    def test_frame_buckets_match_python_buckets(self, granularity):
        """Test the columnar bucket expression agrees with date_bucket"""
        days = [date(2024, 1, 1), date(2024, 2, 29), date(2024, 6, 8), date(2023, 12, 31)]
        df = pl.DataFrame({DATE: days})

        buckets = df.select(bucket_expr(granularity).alias("bucket"))["bucket"].to_list()

        assert buckets == [date_bucket(d, granularity) for d in days]

    def test_parse_date_key(self):
        """Test ISO prefixes parse and impossible dates do not"""
        assert parse_date_key("2024-06-01") == date(2024, 6, 1)
        assert parse_date_key("2024-06-01 10:00:00") == date(2024, 6, 1)
        assert parse_date_key("2024-02-30") is None
        assert parse_date_key("2024/06/01") is None
        assert parse_date_key("") is None


class TestSalesFrame:
    """Tests for the columnar sales frame"""

    def test_transaction_key(self, make_record):
        """Test date, member and store make the key"""
        record = make_record("AB1234", "2024-06-08", store_name="新宿店")
        assert transaction_key(record) == "2024-06-08|AB1234|新宿店"

    def test_frame_columns(self, sample_records):
        """Test the frame keeps record order and derives key and date"""
        df = build_sales_frame(sample_records)

        assert df.height == len(sample_records)
        assert df[TX_KEY].to_list() == [transaction_key(r) for r in sample_records]
        assert df[DATE][0] == date(2024, 6, 1)

    def test_unparseable_dates_become_null(self, make_record):
        """Test invalid dates are null in the date column"""
        df = build_sales_frame([make_record(purchase_date="2024-02-30"), make_record(purchase_date="不明")])

        assert df[DATE].null_count() == 2

    def test_empty_frame(self):
        """Test an empty record list still has the full schema"""
        df = build_sales_frame([])

        assert df.height == 0
        assert TX_KEY in df.columns and DATE in df.columns


class TestGrouping:
    """Tests for single-pass record grouping"""

    def test_group_by_brand_and_spaced_store(self, sample_records):
        """Test qualifying records are grouped by brand and store prefix"""
        groups = group_records(sample_records)

        assert groups.qualifying == [0, 1, 2, 3, 4, 5, 7]
        assert groups.by_brand == {"SA": [0, 1, 2, 3], "KA": [4, 5], "OTHER": [7]}
        assert groups.by_spaced_store == {"KAEDE 横浜店": [7]}

    def test_brand_subset_unions_prefixed_stores(self, sample_records):
        """Test prefixed store rows join the brand, deduplicated and ordered"""
        groups = group_records(sample_records)

        assert groups.brand_subset("KA", "KAEDE") == [4, 5, 7]
        assert groups.brand_subset("SA", "SAKURA") == [0, 1, 2, 3]
        assert groups.brand_subset("ZZ", "") == []

    def test_subset_never_duplicates(self, make_record):
        """Test a record matching both code and prefix appears once"""
        records = [make_record(brand_code="KA", brand_name="KAEDE", store_name="KAEDE 横浜店")]
        groups = group_records(records)

        indexes = groups.brand_subset("KA", "KAEDE")

        assert indexes == [0]
        assert select_records(records, indexes) == records

    def test_brand_name_with_space_claims_its_stores(self, make_record):
        """Test a multi-word brand name matches its whole prefix, not just the first word"""
        records = [
            make_record(brand_code="", brand_name="", store_name="KAEDE HOME 横浜店"),
            make_record(brand_code="", brand_name="", store_name="KAEDE 梅田店"),
            make_record(brand_code="KH", brand_name="KAEDE HOME", store_name="新宿店"),
        ]
        groups = group_records(records)

        assert groups.brand_subset("KH", "KAEDE HOME") == [0, 2]
        assert groups.brand_subset("KA", "KAEDE") == [0, 1]
        assert groups.brand_subset("KX", "KAEDE HOMES") == []

    @pytest.mark.parametrize("store,brand,expected", [
        ("KAEDE 横浜店", "KAEDE", True),
        ("KAEDE HOME 横浜店", "KAEDE HOME", True),
        ("  KAEDE HOME 横浜店 ", "KAEDE HOME", True),
        ("KAEDE HOME", "KAEDE HOME", False),
        ("KAEDEHOME 横浜店", "KAEDE", False),
        ("新宿店", "新宿店", False),
        ("KAEDE 横浜店", "", False),
    ])
    def test_has_brand_prefix(self, store, brand, expected):
        """Test the brand name must be followed by a space in the store name"""
        assert has_brand_prefix(store, brand) is expected
