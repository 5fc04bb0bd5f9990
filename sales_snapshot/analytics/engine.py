"""
Analytics Engine

Runs the full analytics battery over one record set, either a single
brand's subset or the whole chain.
"""

from datetime import datetime
from typing import Optional, Sequence, Union

import polars as pl

from sales_snapshot.ingestion import SalesRecord
from sales_snapshot.transformation.demographics import DemographicsLookup
from . import customers, employees, kpi, performance, rfm, segments
from .primitives import COLOR, SIZE, Granularity, build_sales_frame
from .schemas import BrandAnalytics

DEFAULT_TOP_N = 25

SalesInput = Union[pl.DataFrame, Sequence[SalesRecord]]


def as_frame(sales: SalesInput) -> pl.DataFrame:
    if isinstance(sales, pl.DataFrame):
        return sales
    return build_sales_frame(sales)


def compute_analytics(
    sales: SalesInput,
    demographics: Optional[DemographicsLookup],
    reference: datetime,
    top_n: int = DEFAULT_TOP_N,
) -> BrandAnalytics:
    """
    Every analytics output for ``sales``.

    Customer aggregates are folded once and shared by the segment and RFM
    builders. ``reference`` anchors recency and age.
    """
    df = as_frame(sales)
    details = customers.get_customer_details(df, reference)
    rfm_segments = rfm.get_rfm_segments(details)

    return BrandAnalytics(
        kpis=kpi.calculate_kpis(df),
        trend_data_daily=kpi.get_trends(df, Granularity.DAILY),
        trend_data_weekly=kpi.get_trends(df, Granularity.WEEKLY),
        trend_data_monthly=kpi.get_trends(df, Granularity.MONTHLY),
        day_of_week_data=kpi.get_day_of_week_analysis(df),
        customer_segments=segments.get_customer_segments(details),
        rfm_segments=rfm_segments,
        rfm_matrix=rfm.get_rfm_matrix(details, rfm_segments),
        frequency_segments=segments.get_frequency_segments(details),
        channel_segments=segments.get_channel_segments(df),
        aov_segments=segments.get_aov_segments(details),
        age_segments=segments.get_age_segments(details, demographics, reference.date()),
        gender_segments=segments.get_gender_segments(details, demographics),
        employee_performance=employees.get_employee_performance_with_ranks(df),
        store_performance_with_products=performance.get_store_performance_with_products(df, top_n),
        store_trends_weekly=performance.get_store_trends(df, top_n, Granularity.WEEKLY),
        store_trends_monthly=performance.get_store_trends(df, top_n, Granularity.MONTHLY),
        product_performance_with_stores=performance.get_product_performance_with_stores(df, top_n),
        product_trends_weekly=performance.get_product_trends(df, top_n, Granularity.WEEKLY),
        product_trends_monthly=performance.get_product_trends(df, top_n, Granularity.MONTHLY),
        collection_performance_with_stores=performance.get_collection_performance_with_stores(df, top_n),
        collection_trends_weekly=performance.get_collection_trends(df, top_n, Granularity.WEEKLY),
        collection_trends_monthly=performance.get_collection_trends(df, top_n, Granularity.MONTHLY),
        category_performance_with_stores=performance.get_category_performance_with_stores(df, top_n),
        category_trends_weekly=performance.get_category_trends(df, top_n, Granularity.WEEKLY),
        category_trends_monthly=performance.get_category_trends(df, top_n, Granularity.MONTHLY),
        color_performance_with_stores=performance.get_color_performance_with_stores(df, top_n),
        size_performance_with_stores=performance.get_size_performance_with_stores(df, top_n),
        color_trends=performance.get_attribute_trends(df, COLOR, Granularity.MONTHLY),
        size_trends=performance.get_attribute_trends(df, SIZE, Granularity.MONTHLY),
    )
