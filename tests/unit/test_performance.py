"""
Unit Tests - Entity, Employee and Brand Performance
"""
import pytest

from sales_snapshot.analytics import (
    Granularity,
    build_sales_frame,
    get_brand_performance,
    get_employee_performance_with_ranks,
)
from sales_snapshot.analytics.employees import latest_month_start
from sales_snapshot.analytics.performance import (
    get_attribute_trends,
    get_category_performance_with_stores,
    get_collection_performance_with_stores,
    get_color_performance_with_stores,
    get_product_performance_with_stores,
    get_product_trends,
    get_store_performance,
    get_store_performance_with_products,
    get_store_trends,
    get_top_products,
)
from sales_snapshot.analytics.primitives import COLOR, SIZE


@pytest.fixture
def frame(sample_records):
    return build_sales_frame(sample_records)


class TestEntityPerformance:
    """Tests for ranked breakdowns"""

    def test_category_breakdown(self, frame):
        """Test categories ranked by revenue with a sorted store split"""
        categories = get_category_performance_with_stores(frame)

        assert [c.name for c in categories] == ["コート", "スカート", "ニット"]
        assert categories[0].total_revenue == 58_000
        skirt = categories[1]
        assert skirt.total_revenue == 31_000
        assert [(s.store_name, s.revenue) for s in skirt.stores] == [
            ("新宿店", 12_000),
            ("KAEDE 横浜店", 9_000),
            ("梅田店", 6_000),
            ("オンライン", 4_000),
        ]

    def test_top_n_drops_the_rest(self, frame):
        """Test entities outside the top N are dropped, not merged"""
        categories = get_category_performance_with_stores(frame, top_n=1)

        assert [c.name for c in categories] == ["コート"]

    def test_collection_uses_brand_code(self, frame):
        """Test collections are brand codes, blank ones under the fallback label"""
        collections = {c.name: c.total_revenue for c in get_collection_performance_with_stores(frame)}

        assert collections == {"SA": 78_000, "KA": 10_000, "その他": 9_000}

    def test_products(self, frame):
        """Test products are keyed by id and labelled by name"""
        top = get_top_products(frame)
        assert top[0].product_code == "P001"
        assert top[0].revenue == 97_000

        products = get_product_performance_with_stores(frame)
        assert [p.name for p in products] == ["スカート"]

    def test_color_ranks_store_rows_only(self, make_record):
        """Test color ranking ignores rows without a store"""
        df = build_sales_frame([
            make_record(color="レッド", amount=50_000, store_name=""),
            make_record(color="ブラック", amount=1_000),
        ])

        assert [c.name for c in get_color_performance_with_stores(df)] == ["ブラック"]

    def test_store_performance(self, frame):
        """Test per-store revenue, transactions, customers and AOV"""
        stores = get_store_performance(frame)

        assert stores[0].store_name == "新宿店"
        assert stores[0].revenue == 70_000
        assert stores[0].transactions == 3
        assert stores[0].customers == 3

    def test_store_with_products(self, make_record):
        """Test store splits are across the top products"""
        df = build_sales_frame([
            make_record(product_id="P1", product_name="スカート", amount=1_000),
            make_record(product_id="P2", product_name="コート", amount=5_000),
            make_record(product_id="P2", product_name="コート", amount=2_000, store_name="渋谷店"),
        ])

        stores = get_store_performance_with_products(df)

        assert [s.name for s in stores] == ["新宿店", "渋谷店"]
        assert [(s.store_name, s.revenue) for s in stores[0].stores] == [("コート", 5_000), ("スカート", 1_000)]


class TestEntityTrends:
    """Tests for zero-filled entity trend series"""

    def test_store_trends_are_zero_filled(self, frame):
        """Test every tracked store appears in every bucket"""
        trends = get_store_trends(frame, top_n=2, granularity=Granularity.MONTHLY)

        assert trends == [
            {"date": "2024-06", "新宿店": 70_000, "KAEDE 横浜店": 9_000},
        ]

    def test_product_trends_weekly(self, make_record):
        """Test weekly buckets with missing entities filled with zero"""
        df = build_sales_frame([
            make_record(purchase_date="2024-06-01", product_id="P1", product_name="スカート", amount=100),
            make_record(purchase_date="2024-06-08", product_id="P2", product_name="コート", amount=300),
        ])

        trends = get_product_trends(df, granularity=Granularity.WEEKLY)

        assert trends == [
            {"date": "2024-W22", "コート": 0, "スカート": 100},
            {"date": "2024-W23", "コート": 300, "スカート": 0},
        ]

    def test_attribute_trends_sum_quantity(self, make_record):
        """Test color and size trends count items, not revenue"""
        df = build_sales_frame([
            make_record(purchase_date="2024-05-01", size="S", quantity=2),
            make_record(purchase_date="2024-06-01", size="M", quantity=3),
        ])

        trends = get_attribute_trends(df, SIZE)

        assert trends == [
            {"date": "2024-05", "S": 2, "M": 0},
            {"date": "2024-06", "S": 0, "M": 3},
        ]
        assert get_attribute_trends(df, COLOR)[0]["ブラック"] == 2

    def test_attribute_trends_reject_other_columns(self, frame):
        """Test only color and size are supported"""
        with pytest.raises(ValueError):
            get_attribute_trends(frame, "store_name")

    def test_empty_frame(self):
        """Test empty input gives empty views"""
        df = build_sales_frame([])

        assert get_store_trends(df) == []
        assert get_category_performance_with_stores(df) == []
        assert get_attribute_trends(df, COLOR) == []


class TestEmployeePerformance:
    """Tests for associate performance with ranks"""

    def test_month_start(self, make_record):
        """Test one calendar month back, clamped to month end"""
        df = build_sales_frame([make_record(purchase_date="2024-03-31"), make_record(purchase_date="2024-01-10")])

        assert latest_month_start(df) == "2024-02-29"
        assert latest_month_start(build_sales_frame([])) == "1999-12-01"

    @pytest.mark.parametrize("latest,expected", [
        ("2024-03-31", "2024-02-29"),
        ("2023-03-31", "2023-02-28"),
        ("2024-05-31", "2024-04-30"),
        ("2024-07-31", "2024-06-30"),
        ("2024-03-30", "2024-02-29"),
        ("2024-01-15", "2023-12-15"),
        ("2024-06-30", "2024-05-30"),
    ])
    def test_month_start_clamps_to_shorter_months(self, make_record, latest, expected):
        """Test month-end dates land on the last day of the previous month, other days keep their day"""
        df = build_sales_frame([make_record(purchase_date=latest), make_record(purchase_date="2023-01-01")])

        assert latest_month_start(df) == expected

    def test_totals_and_monthly_activity(self, frame):
        """Test totals, stores, products and last-month activity"""
        employees = {e.staff_name: e for e in get_employee_performance_with_ranks(frame)}

        assert list(employees) == ["佐藤 陽子", "高橋 翔太", "鈴木 美咲"]
        sato = employees["佐藤 陽子"]
        assert sato.total_revenue == 75_000
        assert sato.staff_code == "佐藤 陽子"
        assert sato.stores == ["新宿店", "渋谷店"]
        assert [p.product_name for p in sato.products] == ["コート", "スカート", "ニット"]
        assert sato.monthly_revenue == 75_000
        assert sato.monthly_items == 3
        assert sato.customer_count == 2

    def test_rank_counts(self, frame):
        """Test S/A/B customers served are counted per associate"""
        employees = {e.staff_name: e for e in get_employee_performance_with_ranks(frame)}

        assert (employees["佐藤 陽子"].rank_s, employees["佐藤 陽子"].rank_a, employees["佐藤 陽子"].rank_b) == (1, 0, 1)
        assert (employees["高橋 翔太"].rank_s, employees["高橋 翔太"].rank_b) == (0, 1)

    def test_zero_quantity_counts_as_one_item(self, make_record):
        """Test monthly items treat a zero quantity as one"""
        df = build_sales_frame([make_record(quantity=0), make_record(purchase_date="2024-06-02", quantity=2)])

        assert get_employee_performance_with_ranks(df)[0].monthly_items == 3

    def test_no_associates(self, make_record):
        """Test rows without an associate give no employees"""
        df = build_sales_frame([make_record(associate="")])

        assert get_employee_performance_with_ranks(df) == []


class TestBrandPerformance:
    """Tests for per-brand summary"""

    def test_brand_summary(self, frame):
        """Test brands sorted by revenue with blank codes as OTHER"""
        brands = get_brand_performance(frame)

        assert [b.brand_code for b in brands] == ["SA", "KA", "OTHER"]
        sakura = brands[0]
        assert sakura.brand_name == "SAKURA"
        assert sakura.total_revenue == 78_000
        assert sakura.transactions == 4
        assert sakura.customers == 3
        assert sakura.average_order_value == 19_500
        assert sakura.store_count == 2
        assert brands[2].brand_name == "OTHER"
