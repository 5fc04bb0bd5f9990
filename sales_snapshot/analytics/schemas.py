"""
Snapshot Schemas

Pydantic models for every analytics output. Field names are snake_case in
Python and camelCase in the published JSON, which the reporting front end
reads as-is.
"""

from datetime import datetime
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

TrendRow = Dict[str, Union[str, float]]


class SnapshotModel(BaseModel):
    """Base model serialized with camelCase keys"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class KPIMetrics(SnapshotModel):
    """Headline metrics"""
    total_revenue: float = 0
    total_transactions: int = 0
    average_order_value: float = 0
    active_customers: int = 0


class TimeSeriesPoint(SnapshotModel):
    """Trend data point"""
    date: str
    revenue: float
    transactions: int
    customers: int


class DayOfWeekPoint(SnapshotModel):
    day: str
    revenue: float
    transactions: int
    customers: int


class StoreShare(SnapshotModel):
    """Revenue share of one store (or product, in the store view)"""
    store_name: str
    revenue: float


class PerformanceWithStoreBreakdown(SnapshotModel):
    name: str
    total_revenue: float
    stores: List[StoreShare] = Field(default_factory=list)


class StorePerformance(SnapshotModel):
    store_name: str
    store_code: str = ""
    revenue: float
    transactions: int
    customers: int
    average_order_value: float


class TopProduct(SnapshotModel):
    product_name: str
    product_code: str
    revenue: float
    quantity: float
    transactions: int
    average_price: float


class CustomerSegment(SnapshotModel):
    """Customer segment summary"""
    segment: str
    count: int = 0
    total_revenue: float = 0
    average_revenue: float = 0
    percentage: float = 0


class RFMSegment(SnapshotModel):
    segment: str
    description: str
    count: int
    total_revenue: float
    average_revenue: float
    percentage: float
    r_score: float
    f_score: float
    m_score: float


class RFMMatrixCell(SnapshotModel):
    """One (recency, frequency) cell of the 4x4 RFM grid"""
    r_score: int
    f_score: int
    count: int
    total_revenue: float
    average_revenue: float
    average_m_score: float
    percentage: float
    segments: List[RFMSegment] = Field(default_factory=list)


class ProductRevenue(SnapshotModel):
    product_name: str
    revenue: float


class EmployeePerformance(SnapshotModel):
    """Associate totals plus last-month activity"""
    staff_name: str
    staff_code: str
    total_revenue: float
    stores: List[str] = Field(default_factory=list)
    products: List[ProductRevenue] = Field(default_factory=list)
    monthly_revenue: float = 0
    monthly_items: float = 0
    customer_count: int = 0
    rank_s: int = 0
    rank_a: int = 0
    rank_b: int = 0


class BrandPerformance(SnapshotModel):
    brand_code: str
    brand_name: str
    total_revenue: float
    transactions: int
    customers: int
    average_order_value: float
    store_count: int


class CustomerDetail(SnapshotModel):
    """Per-member fold of qualifying sales"""
    member_id: str
    total_revenue: float
    transaction_count: int
    average_order_value: float
    first_purchase_date: str
    last_purchase_date: str
    days_since_last_purchase: int
    preferred_store: str
    preferred_category: str
    is_online_customer: bool


class CustomerListItem(SnapshotModel):
    member_id: str
    display_name: str
    gender: str
    age: Optional[int] = None
    total_revenue: float
    transaction_count: int
    first_purchase_date: str
    last_purchase_date: str
    preferred_store: str
    preferred_brand: str
    sales_associate: str
    internal_rank: str


class Purchase(SnapshotModel):
    """Sales row without the member id"""
    purchase_date: str
    product_id: str
    product_name: str
    color: str
    size: str
    brand_code: str
    brand_name: str
    quantity: float
    total_cost: float
    store_name: str
    sales_associate: str


class BrandAnalytics(SnapshotModel):
    """Full analytics battery over one record set"""
    kpis: KPIMetrics = Field(default_factory=KPIMetrics)
    trend_data_daily: List[TimeSeriesPoint] = Field(default_factory=list)
    trend_data_weekly: List[TimeSeriesPoint] = Field(default_factory=list)
    trend_data_monthly: List[TimeSeriesPoint] = Field(default_factory=list)
    day_of_week_data: List[DayOfWeekPoint] = Field(default_factory=list)

    customer_segments: List[CustomerSegment] = Field(default_factory=list)
    rfm_segments: List[RFMSegment] = Field(default_factory=list)
    rfm_matrix: List[RFMMatrixCell] = Field(default_factory=list)
    frequency_segments: List[CustomerSegment] = Field(default_factory=list)
    channel_segments: List[CustomerSegment] = Field(default_factory=list)
    aov_segments: List[CustomerSegment] = Field(default_factory=list)
    age_segments: List[CustomerSegment] = Field(default_factory=list)
    gender_segments: List[CustomerSegment] = Field(default_factory=list)

    employee_performance: List[EmployeePerformance] = Field(default_factory=list)

    store_performance_with_products: List[PerformanceWithStoreBreakdown] = Field(default_factory=list)
    store_trends_weekly: List[TrendRow] = Field(default_factory=list)
    store_trends_monthly: List[TrendRow] = Field(default_factory=list)
    product_performance_with_stores: List[PerformanceWithStoreBreakdown] = Field(default_factory=list)
    product_trends_weekly: List[TrendRow] = Field(default_factory=list)
    product_trends_monthly: List[TrendRow] = Field(default_factory=list)
    collection_performance_with_stores: List[PerformanceWithStoreBreakdown] = Field(default_factory=list)
    collection_trends_weekly: List[TrendRow] = Field(default_factory=list)
    collection_trends_monthly: List[TrendRow] = Field(default_factory=list)
    category_performance_with_stores: List[PerformanceWithStoreBreakdown] = Field(default_factory=list)
    category_trends_weekly: List[TrendRow] = Field(default_factory=list)
    category_trends_monthly: List[TrendRow] = Field(default_factory=list)
    color_performance_with_stores: List[PerformanceWithStoreBreakdown] = Field(default_factory=list)
    size_performance_with_stores: List[PerformanceWithStoreBreakdown] = Field(default_factory=list)
    color_trends: List[TrendRow] = Field(default_factory=list)
    size_trends: List[TrendRow] = Field(default_factory=list)


class GlobalSnapshot(BrandAnalytics):
    """Chain-wide analytics plus per-brand results and the customer master"""
    generated_at: datetime
    brand_performance: List[BrandPerformance] = Field(default_factory=list)
    by_brand: Dict[str, BrandAnalytics] = Field(default_factory=dict)
    customer_list: List[CustomerListItem] = Field(default_factory=list)
    customer_purchases: Dict[str, List[Purchase]] = Field(default_factory=dict)
