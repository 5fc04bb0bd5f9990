"""
Transformation module for pseudonymization and the demographic join
"""

from .anonymizer import (
    AnonymizeResult,
    PseudonymizationTables,
    SalesAnonymizer,
    anonymize_sales,
    collect_distinct_values,
    load_prefix_map,
    pseudonymize_member_id,
)
from .demographics import (
    DemographicsLookup,
    MemberDemographics,
    build_member_demographics,
    load_demographics,
)
from .mappings import generalize_product_name, is_online_store, resolve_brand

__all__ = [
    "AnonymizeResult",
    "PseudonymizationTables",
    "SalesAnonymizer",
    "anonymize_sales",
    "collect_distinct_values",
    "load_prefix_map",
    "pseudonymize_member_id",
    "DemographicsLookup",
    "MemberDemographics",
    "build_member_demographics",
    "load_demographics",
    "generalize_product_name",
    "is_online_store",
    "resolve_brand",
]
