"""
Data Ingestion Module
"""
from .records import SALES_HEADERS, SalesColumns, SalesRecord, parse_sales_row
from .sales_reader import iter_raw_rows, load_sales, read_sales_csv, stream_sales_csv

__all__ = [
    "SALES_HEADERS",
    "SalesColumns",
    "SalesRecord",
    "parse_sales_row",
    "iter_raw_rows",
    "load_sales",
    "read_sales_csv",
    "stream_sales_csv",
]
