"""
Test Suite Configuration
"""
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, List, Sequence

import polars as pl
import pytest

from sales_snapshot.config import Settings
from sales_snapshot.ingestion import SALES_HEADERS, SalesColumns, SalesRecord


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """Create test settings"""
    return Settings(app_env="testing")


@pytest.fixture
def reference() -> datetime:
    """Fixed run reference time"""
    return datetime(2024, 7, 1, 9, 30, 0)


@pytest.fixture
def make_record() -> Callable[..., SalesRecord]:
    """Factory for sales records with sensible defaults"""
    def _make(member_id="A1000001", purchase_date="2024-06-01", **fields) -> SalesRecord:
        defaults = dict(
            product_id="P001",
            product_name="スカート",
            color="ブラック",
            size="M",
            brand_code="SA",
            brand_name="SAKURA",
            quantity=1.0,
            amount=1000.0,
            store_name="新宿店",
            associate="佐藤 陽子",
        )
        defaults.update(fields)
        return SalesRecord(member_id=member_id, purchase_date=purchase_date, **defaults)

    return _make


@pytest.fixture
def sample_records(make_record) -> List[SalesRecord]:
    """Two brands, five members, one return and one brand-less prefixed store row"""
    return [
        make_record("A1000001", "2024-06-01", amount=12000, product_name="スカート"),
        make_record("A1000001", "2024-06-08", amount=8000, product_name="ニット", store_name="渋谷店"),
        make_record("A1000002", "2024-06-02", amount=3000, product_name="コート", associate="鈴木 美咲"),
        make_record("B2000003", "2024-06-15", amount=55000, product_name="コート", color="ネイビー", size="L"),
        make_record(
            "B2000004", "2024-05-20", amount=4000,
            brand_code="KA", brand_name="KAEDE", store_name="オンライン", associate="",
        ),
        make_record(
            "B2000004", "2024-06-20", amount=6000,
            brand_code="KA", brand_name="KAEDE", store_name="梅田店", associate="高橋 翔太",
        ),
        make_record("C3000005", "2024-06-25", amount=-2000, product_name="スカート"),
        make_record(
            "C3000005", "2024-06-26", amount=9000,
            brand_code="", brand_name="", store_name="KAEDE 横浜店", associate="高橋 翔太",
        ),
    ]


def raw_row(**fields) -> Dict[str, str]:
    """A raw export row with every header present"""
    row = {header: "" for header in SALES_HEADERS}
    row.update(fields)
    return row


@pytest.fixture
def write_sales_csv(tmp_path) -> Callable[[str, Sequence[Dict[str, str]]], Path]:
    """Write raw export rows to a CSV under tmp_path"""
    def _write(name: str, rows: Sequence[Dict[str, str]]) -> Path:
        path = tmp_path / name
        columns = {header: [row.get(header, "") for row in rows] for header in SALES_HEADERS}
        pl.DataFrame(columns, schema={h: pl.Utf8 for h in SALES_HEADERS}).write_csv(path)
        return path

    return _write


@pytest.fixture
def raw_sales_rows() -> List[Dict[str, str]]:
    """Raw export rows in the source vocabulary (unmapped codes and names)"""
    C = SalesColumns
    return [
        raw_row(**{
            C.MEMBER_ID: "10000001", C.PURCHASE_DATE: "2024-06-01", C.PRODUCT_ID: "MD001",
            C.PRODUCT_NAME: "フレアスカート", C.COLOR_NAME: "ブラック", C.SIZE_NAME: "M",
            C.STORE_BRAND_CODE: "00", C.STORE_BRAND_NAME: "MD", C.PRODUCT_BRAND_CODE: "00",
            C.PRODUCT_BRAND_NAME: "MD", C.QUANTITY: "1", C.AMOUNT: "12,000",
            C.STORE_NAME: "MD 新宿店", C.ASSOCIATE_NAME: "山田 花子",
        }),
        raw_row(**{
            C.MEMBER_ID: "20000002", C.PURCHASE_DATE: "2024-06-03", C.PRODUCT_ID: "EL002",
            C.PRODUCT_NAME: "KNIT VEST", C.COLOR_NAME: "ホワイト", C.SIZE_NAME: "S",
            C.STORE_BRAND_CODE: "51", C.STORE_BRAND_NAME: "EL", C.PRODUCT_BRAND_CODE: "51",
            C.PRODUCT_BRAND_NAME: "EL", C.QUANTITY: "x", C.AMOUNT: "4900",
            C.STORE_NAME: "EL WEB通販", C.ASSOCIATE_NAME: "",
        }),
        raw_row(**{
            C.MEMBER_ID: "", C.PURCHASE_DATE: "2024-06-04", C.AMOUNT: "1000",
        }),
        raw_row(**{
            C.MEMBER_ID: "10000003", C.PURCHASE_DATE: "", C.AMOUNT: "1000",
        }),
        raw_row(**{
            C.MEMBER_ID: "10000001", C.PURCHASE_DATE: "2024-06-10", C.PRODUCT_ID: "MD009",
            C.PRODUCT_NAME: "謎のアイテム", C.STORE_BRAND_CODE: "", C.STORE_BRAND_NAME: "",
            C.PRODUCT_BRAND_CODE: "", C.PRODUCT_BRAND_NAME: "LM", C.QUANTITY: "2",
            C.AMOUNT: "abc", C.STORE_NAME: "LM 梅田店", C.ASSOCIATE_NAME: "田中 一郎",
        }),
    ]
