"""
Analytics Module
"""
from .customers import (
    assign_internal_ranks,
    build_customer_list,
    get_customer_details,
    get_customer_purchases,
)
from .employees import get_brand_performance, get_employee_performance_with_ranks
from .engine import compute_analytics
from .kpi import calculate_kpis, get_day_of_week_analysis, get_trends
from .primitives import (
    Granularity,
    RecordGroups,
    build_sales_frame,
    date_bucket,
    group_records,
    transaction_key,
)
from .rfm import get_rfm_matrix, get_rfm_segments, score_customers
from .schemas import BrandAnalytics, GlobalSnapshot

__all__ = [
    "assign_internal_ranks",
    "build_customer_list",
    "get_customer_details",
    "get_customer_purchases",
    "get_brand_performance",
    "get_employee_performance_with_ranks",
    "compute_analytics",
    "calculate_kpis",
    "get_day_of_week_analysis",
    "get_trends",
    "Granularity",
    "RecordGroups",
    "build_sales_frame",
    "date_bucket",
    "group_records",
    "transaction_key",
    "get_rfm_matrix",
    "get_rfm_segments",
    "score_customers",
    "BrandAnalytics",
    "GlobalSnapshot",
]
