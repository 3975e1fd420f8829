"""
Payment Aggregation Module

Summarizes payment rows per order. Payment types are lower-cased first so that
case variants of the same type do not fragment the primary type pick.
"""

import polars as pl
import structlog

from .expressions import invalid_amount

logger = structlog.get_logger(__name__)

PAYMENT_COLUMNS = [
    "order_id",
    "sum_valid_payments",
    "primary_payment_type",
    "max_installments",
    "payment_row_count",
    "invalid_payment_row_count",
]


class PaymentAggregator:
    """
    One row per order_id.

    primary_payment_type is the lexicographically smallest normalized type seen
    on the order, a simplification rather than a value-weighted choice.
    """

    def aggregate(self, payments: pl.DataFrame) -> pl.DataFrame:
        flagged = payments.with_columns(
            pl.col("payment_value").cast(pl.Float64),
            pl.col("payment_type").cast(pl.Utf8).str.strip_chars().str.to_lowercase(),
        ).with_columns(
            invalid_amount(pl.col("payment_value")).alias("invalid_payment"),
        )

        summary = (
            flagged.group_by("order_id")
            .agg([
                pl.when(~pl.col("invalid_payment"))
                .then(pl.col("payment_value"))
                .otherwise(0.0)
                .sum()
                .alias("sum_valid_payments"),
                pl.col("payment_type").min().alias("primary_payment_type"),
                pl.col("payment_installments").max().alias("max_installments"),
                pl.len().cast(pl.Int64).alias("payment_row_count"),
                pl.col("invalid_payment").sum().cast(pl.Int64).alias("invalid_payment_row_count"),
            ])
            .select(PAYMENT_COLUMNS)
            .sort("order_id")
        )

        logger.info(
            "Aggregated payments",
            payment_rows=flagged.height,
            orders=summary.height,
            invalid_rows=int(flagged["invalid_payment"].sum()),
        )
        return summary
