"""
Analytics Pipeline

Orchestrates the canonicalization stages in strict topological order:

    raw tables -> dimensions (geo, customers, products, sellers)
               -> row aggregates (reviews, items, payments)
               -> order fact -> customer RFM

Every stage is a pure function of upstream outputs, so a rerun on the same
snapshot reproduces identical tables. Outputs are written as whole files and
swapped into place; readers never observe a partial table.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

import polars as pl
import structlog

from olist_analytics.analytics.rfm import RfmEngine
from olist_analytics.ingestion.raw_loader import RawTables
from olist_analytics.quality.validators import (
    DataQualityError,
    ValidationResult,
    ValidationStatus,
    create_customers_validator,
    create_geolocation_validator,
    create_orders_validator,
    create_products_validator,
    create_reviews_validator,
    create_rfm_validator,
    create_unique_key_validator,
)
from .customers import CustomerCanonicalizer
from .geo import GeoResolver
from .items import OrderItemAggregator
from .orders import OrderFactBuilder
from .payments import PaymentAggregator
from .products import DENSITY_OUTLIER_THRESHOLD, ProductNormalizer
from .reviews import LOW_QUALITY_LENGTH, ReviewDeduplicator
from .sellers import SellerResolver

logger = structlog.get_logger(__name__)

OUTPUT_TABLES = [
    "dim_geolocation",
    "dim_customers",
    "dim_products",
    "dim_sellers",
    "order_reviews_dedup",
    "order_items_flags",
    "order_items_agg",
    "order_payments_summary",
    "orders_clean",
    "customer_rfm",
]


@dataclass
class StageResult:
    """Timing and row counts of one stage"""
    table: str
    input_rows: int
    output_rows: int
    started_at: datetime
    completed_at: datetime
    duration_seconds: float


@dataclass
class PipelineResult:
    """Derived tables plus per-stage statistics and contract results"""
    snapshot_date: date
    tables: Dict[str, pl.DataFrame]
    stages: List[StageResult] = field(default_factory=list)
    validation: Dict[str, ValidationResult] = field(default_factory=dict)

    @property
    def passed_validation(self) -> bool:
        return all(r.status != ValidationStatus.FAILED for r in self.validation.values())


class AnalyticsPipeline:
    """
    Full batch recompute of the analytics layer.

    Example:
        pipeline = AnalyticsPipeline(snapshot_date=date(2018, 10, 17))
        result = pipeline.run(raw_tables)
        pipeline.write_outputs(result, "data/curated")
    """

    def __init__(
        self,
        snapshot_date: date,
        density_outlier_threshold: float = DENSITY_OUTLIER_THRESHOLD,
        low_quality_review_length: int = LOW_QUALITY_LENGTH,
        enable_validation: bool = True,
        strict_validation: bool = False,
    ):
        if snapshot_date is None:
            raise ValueError("snapshot_date must be supplied for every pipeline run")
        self.snapshot_date = snapshot_date
        self.enable_validation = enable_validation
        self.strict_validation = strict_validation

        self.geo_resolver = GeoResolver()
        self.customer_canonicalizer = CustomerCanonicalizer()
        self.product_normalizer = ProductNormalizer(density_threshold=density_outlier_threshold)
        self.seller_resolver = SellerResolver()
        self.review_deduplicator = ReviewDeduplicator(low_quality_length=low_quality_review_length)
        self.item_aggregator = OrderItemAggregator()
        self.payment_aggregator = PaymentAggregator()
        self.order_fact_builder = OrderFactBuilder()
        self.rfm_engine = RfmEngine(snapshot_date)

    def _stage(
        self,
        stages: List[StageResult],
        table: str,
        input_rows: int,
        func: Callable[[], pl.DataFrame],
    ) -> pl.DataFrame:
        """Run one stage to completion and record its statistics"""
        started_at = datetime.utcnow()
        output = func()
        completed_at = datetime.utcnow()
        stages.append(StageResult(
            table=table,
            input_rows=input_rows,
            output_rows=output.height,
            started_at=started_at,
            completed_at=completed_at,
            duration_seconds=(completed_at - started_at).total_seconds(),
        ))
        return output

    def run(self, raw: RawTables) -> PipelineResult:
        """
        Recompute every derived table from the raw snapshot.

        Raises:
            UnresolvedCustomerError: an order has no canonical customer
            DataQualityError: strict validation is on and a contract failed
        """
        logger.info("Starting analytics pipeline", snapshot_date=self.snapshot_date.isoformat())
        stages: List[StageResult] = []
        t: Dict[str, pl.DataFrame] = {}

        t["dim_geolocation"] = self._stage(
            stages, "dim_geolocation", raw.geolocation.height,
            lambda: self.geo_resolver.resolve(raw.geolocation),
        )
        t["dim_customers"] = self._stage(
            stages, "dim_customers", raw.customers.height,
            lambda: self.customer_canonicalizer.canonicalize(raw.customers, t["dim_geolocation"]),
        )
        t["dim_products"] = self._stage(
            stages, "dim_products", raw.products.height,
            lambda: self.product_normalizer.normalize(raw.products, raw.category_translation),
        )
        t["dim_sellers"] = self._stage(
            stages, "dim_sellers", raw.sellers.height,
            lambda: self.seller_resolver.resolve(raw.sellers, t["dim_geolocation"]),
        )
        t["order_reviews_dedup"] = self._stage(
            stages, "order_reviews_dedup", raw.order_reviews.height,
            lambda: self.review_deduplicator.deduplicate(raw.order_reviews),
        )
        t["order_items_flags"] = self._stage(
            stages, "order_items_flags", raw.order_items.height,
            lambda: self.item_aggregator.flag(raw.order_items),
        )
        t["order_items_agg"] = self._stage(
            stages, "order_items_agg", t["order_items_flags"].height,
            lambda: self.item_aggregator.aggregate(t["order_items_flags"], t["dim_products"]),
        )
        t["order_payments_summary"] = self._stage(
            stages, "order_payments_summary", raw.order_payments.height,
            lambda: self.payment_aggregator.aggregate(raw.order_payments),
        )

        identity = self.customer_canonicalizer.identity_map(raw.customers)
        t["orders_clean"] = self._stage(
            stages, "orders_clean", raw.orders.height,
            lambda: self.order_fact_builder.build(
                raw.orders, identity, t["order_items_agg"], t["order_payments_summary"]
            ),
        )
        t["customer_rfm"] = self._stage(
            stages, "customer_rfm", t["orders_clean"].height,
            lambda: self.rfm_engine.compute(t["orders_clean"]),
        )

        result = PipelineResult(
            snapshot_date=self.snapshot_date,
            tables={name: t[name] for name in OUTPUT_TABLES},
            stages=stages,
        )

        if self.enable_validation:
            result.validation = self.validate(result.tables)
            if self.strict_validation and not result.passed_validation:
                failed = [name for name, r in result.validation.items() if r.status == ValidationStatus.FAILED]
                raise DataQualityError(f"Output contracts failed for: {failed}")

        total_duration = sum(s.duration_seconds for s in stages)
        logger.info(
            "Analytics pipeline complete",
            tables=len(result.tables),
            duration_seconds=round(total_duration, 3),
        )
        return result

    def validate(self, tables: Dict[str, pl.DataFrame]) -> Dict[str, ValidationResult]:
        """Run the output contracts against every derived table"""
        validators = {
            "dim_geolocation": create_geolocation_validator(),
            "dim_customers": create_customers_validator(),
            "dim_products": create_products_validator(),
            "dim_sellers": create_unique_key_validator("dim_sellers", "seller_id"),
            "order_reviews_dedup": create_reviews_validator(),
            "order_items_agg": create_unique_key_validator("order_items_agg", "order_id"),
            "order_payments_summary": create_unique_key_validator("order_payments_summary", "order_id"),
            "orders_clean": create_orders_validator(tables["dim_customers"]),
            "customer_rfm": create_rfm_validator(),
        }
        return {name: validator.validate(tables[name]) for name, validator in validators.items()}

    def write_outputs(self, result: PipelineResult, output_path: Union[str, Path]) -> Dict[str, str]:
        """Persist the run; see write_tables"""
        return write_tables(result.tables, output_path)


def write_tables(tables: Dict[str, pl.DataFrame], output_path: Union[str, Path]) -> Dict[str, str]:
    """
    Write each derived table as <name>.parquet, fully replacing the previous run.

    Files are written next to their target and renamed into place.
    """
    output_dir = Path(output_path)
    output_dir.mkdir(parents=True, exist_ok=True)

    written = {}
    for name, df in tables.items():
        target = output_dir / f"{name}.parquet"
        staging = output_dir / f".{name}.parquet.tmp"
        df.write_parquet(staging)
        staging.replace(target)
        written[name] = str(target)
        logger.info(f"Written {len(df)} rows to {target}", table=name)

    return written


def run_pipeline(
    raw: RawTables,
    snapshot_date: Optional[date],
    output_path: Optional[Union[str, Path]] = None,
    **kwargs,
) -> PipelineResult:
    """
    Convenience function: run the pipeline and optionally persist it.

    Args:
        raw: Raw snapshot
        snapshot_date: Reference date for recency; required
        output_path: Directory for the parquet outputs, if persisting
        **kwargs: Passed to AnalyticsPipeline
    """
    pipeline = AnalyticsPipeline(snapshot_date=snapshot_date, **kwargs)
    result = pipeline.run(raw)
    if output_path is not None:
        pipeline.write_outputs(result, output_path)
    return result
