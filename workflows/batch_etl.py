"""
Prefect Workflow Orchestration - Batch Analytics Rebuild

Full recompute of the analytics layer from a raw Olist snapshot:
- load the raw extracts
- run the canonicalization pipeline and RFM scoring
- check output contracts
- replace the curated parquet tables
"""

import argparse
from datetime import date
from typing import Optional

from prefect import flow, task, get_run_logger

from olist_analytics.analytics.kpis import (
    category_performance,
    compute_core_kpis,
    payment_type_breakdown,
    state_performance,
)
from olist_analytics.analytics.rfm import segment_summary
from olist_analytics.config import get_settings
from olist_analytics.config.logging import configure_logging
from olist_analytics.ingestion.raw_loader import FileFormat, RawTableLoader, RawTables
from olist_analytics.transformation.pipeline import AnalyticsPipeline, PipelineResult, write_tables


# =============================================================================
# TASKS
# =============================================================================

@task(
    name="load_raw_tables",
    description="Load the raw snapshot extracts",
    retries=2,
    retry_delay_seconds=30,
)
def load_raw_tables(raw_dir: str, file_format: str = "csv") -> RawTables:
    """Load every raw table"""
    logger = get_run_logger()

    loader = RawTableLoader(raw_dir, FileFormat(file_format))
    raw = loader.load_all()

    logger.info(
        "Loaded raw snapshot: "
        + ", ".join(f"{name}={df.height}" for name, df in raw.as_dict().items())
    )
    return raw


@task(
    name="build_analytics_layer",
    description="Run canonicalization, fact assembly and RFM scoring",
)
def build_analytics_layer(raw: RawTables, snapshot_date: date) -> PipelineResult:
    """Run the pipeline against the loaded snapshot"""
    logger = get_run_logger()
    settings = get_settings()

    pipeline = AnalyticsPipeline(
        snapshot_date=snapshot_date,
        density_outlier_threshold=settings.pipeline.density_outlier_threshold,
        low_quality_review_length=settings.pipeline.low_quality_review_length,
        strict_validation=settings.pipeline.strict_validation,
    )
    result = pipeline.run(raw)

    for stage in result.stages:
        logger.info(
            f"{stage.table}: {stage.input_rows} -> {stage.output_rows} rows "
            f"in {stage.duration_seconds:.2f}s"
        )
    for table, validation in result.validation.items():
        if validation.status.value != "passed":
            logger.warning(
                f"Validation {validation.status.value} for {table}: "
                f"{validation.passed_checks}/{validation.total_checks} checks passed"
            )
    return result


@task(
    name="write_curated_tables",
    description="Replace the curated parquet tables",
)
def write_curated_tables(result: PipelineResult, curated_dir: str) -> dict:
    """Persist every derived table"""
    logger = get_run_logger()

    written = write_tables(result.tables, curated_dir)

    logger.info(f"Wrote {len(written)} tables to {curated_dir}")
    return written


@task(
    name="report_kpis",
    description="Log headline KPIs and the segment summary",
)
def report_kpis(result: PipelineResult) -> dict:
    """Headline KPIs for the run log"""
    logger = get_run_logger()

    orders = result.tables["orders_clean"]
    kpis = compute_core_kpis(orders)
    summary = segment_summary(result.tables["customer_rfm"])

    logger.info(f"Core KPIs: {kpis.to_dict()}")
    for row in summary.iter_rows(named=True):
        logger.info(
            f"Segment {row['segment']}: {row['customer_count']} customers, "
            f"revenue {row['total_revenue']:.2f}"
        )

    states = state_performance(orders, result.tables["dim_customers"])
    categories = category_performance(orders, result.tables["order_reviews_dedup"])
    payments = payment_type_breakdown(orders)

    for row in states.head(5).iter_rows(named=True):
        logger.info(
            f"State {row['state']}: net revenue {row['net_revenue']:.2f}, "
            f"cancel rate {row['cancel_rate_pct']}%, avg delivery {row['avg_delivery_days']} days"
        )
    for row in categories.head(5).iter_rows(named=True):
        logger.info(
            f"Category {row['primary_category']}: net revenue {row['net_revenue']:.2f}, "
            f"cancel rate {row['cancel_rate_pct']}%"
        )
    for row in payments.iter_rows(named=True):
        logger.info(
            f"Payment {row['primary_payment_type']}: {row['num_orders']} orders "
            f"({row['pct_orders']}%), {row['pct_of_total_revenue']}% of revenue"
        )
    return kpis.to_dict()


# =============================================================================
# FLOWS
# =============================================================================

@flow(
    name="olist_batch_etl",
    description="Full rebuild of the Olist analytics layer",
)
def olist_batch_etl(
    raw_dir: Optional[str] = None,
    curated_dir: Optional[str] = None,
    snapshot_date: Optional[date] = None,
) -> dict:
    """
    Batch rebuild.

    Steps:
    1. Load raw extracts
    2. Build dimensions, aggregates, order fact and RFM
    3. Write curated tables (full replace)
    4. Report KPIs
    """
    logger = get_run_logger()
    settings = get_settings()

    raw_dir = raw_dir or settings.data_lake.raw_path
    curated_dir = curated_dir or settings.data_lake.curated_path
    snapshot_date = snapshot_date or settings.pipeline.snapshot_date
    if snapshot_date is None:
        raise ValueError("snapshot_date must be supplied (argument or SNAPSHOT_DATE)")

    logger.info(f"Starting analytics rebuild from {raw_dir} as of {snapshot_date}")

    raw = load_raw_tables(raw_dir, settings.data_lake.default_format)
    result = build_analytics_layer(raw, snapshot_date)
    written = write_curated_tables(result, curated_dir)
    kpis = report_kpis(result)

    return {
        "snapshot_date": snapshot_date.isoformat(),
        "tables": written,
        "kpis": kpis,
        "validation_passed": result.passed_validation,
    }


# =============================================================================
# ENTRY POINT
# =============================================================================

def main() -> None:
    parser = argparse.ArgumentParser(description="Rebuild the Olist analytics layer")
    parser.add_argument("--raw-dir", default=None)
    parser.add_argument("--curated-dir", default=None)
    parser.add_argument("--snapshot-date", type=date.fromisoformat, default=None)
    args = parser.parse_args()

    configure_logging()
    olist_batch_etl(
        raw_dir=args.raw_dir,
        curated_dir=args.curated_dir,
        snapshot_date=args.snapshot_date,
    )


if __name__ == "__main__":
    main()
