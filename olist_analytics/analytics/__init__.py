"""
Customer Analytics Module
"""
from .kpis import (
    CoreKpis,
    category_performance,
    compute_core_kpis,
    delivery_performance,
    monthly_revenue,
    payment_type_breakdown,
    state_performance,
)
from .rfm import RfmEngine, SEGMENT_RULES, classify, segment_summary

__all__ = [
    "CoreKpis",
    "RfmEngine",
    "SEGMENT_RULES",
    "category_performance",
    "classify",
    "compute_core_kpis",
    "delivery_performance",
    "monthly_revenue",
    "payment_type_breakdown",
    "segment_summary",
    "state_performance",
]
