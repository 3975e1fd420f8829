"""
Data Transformation Module
"""
from .customers import CustomerCanonicalizer
from .geo import GeoResolver
from .items import OrderItemAggregator
from .orders import OrderFactBuilder, UnresolvedCustomerError
from .payments import PaymentAggregator
from .pipeline import AnalyticsPipeline, PipelineResult, run_pipeline, write_tables
from .products import ProductNormalizer
from .reviews import ReviewDeduplicator
from .sellers import SellerResolver
from .text import TextNormalizer

__all__ = [
    "AnalyticsPipeline",
    "CustomerCanonicalizer",
    "GeoResolver",
    "OrderFactBuilder",
    "OrderItemAggregator",
    "PaymentAggregator",
    "PipelineResult",
    "ProductNormalizer",
    "ReviewDeduplicator",
    "SellerResolver",
    "TextNormalizer",
    "UnresolvedCustomerError",
    "run_pipeline",
    "write_tables",
]
