"""
RFM Scoring and Segmentation Module

Recency / frequency / monetary scores per customer over non-canceled orders,
and a rule-based segment label.

Scores use fixed, non-equal-width bins instead of quantiles: the order
distributions are heavily right-skewed (most customers buy once, for little),
so quantile bins would collapse. Segments come from an ordered rule list where
the first matching rule wins; the categories overlap, so the order of
SEGMENT_RULES is part of the definition.
"""

from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, List, Sequence, Tuple

import polars as pl
import structlog

logger = structlog.get_logger(__name__)

# (inclusive upper bound, score); values above every bound get the fallback
RECENCY_BINS: Sequence[Tuple[float, int]] = ((30, 5), (90, 4), (180, 3), (365, 2))
RECENCY_FALLBACK = 1
FREQUENCY_BINS: Sequence[Tuple[float, int]] = ((1, 1), (2, 2), (4, 3), (8, 4))
FREQUENCY_FALLBACK = 5
MONETARY_BINS: Sequence[Tuple[float, int]] = ((50, 1), (200, 2), (500, 3), (1000, 4))
MONETARY_FALLBACK = 5

DEFAULT_SEGMENT = "others"

RFM_COLUMNS = [
    "customer_unique_id",
    "last_order_date",
    "recency_days",
    "frequency",
    "monetary",
    "recency_score",
    "frequency_score",
    "monetary_score",
    "segment",
]


@dataclass(frozen=True)
class SegmentRule:
    """
    A labelled predicate over (recency_score, frequency_score, monetary_score).

    The predicate only uses comparisons combined with & so it evaluates on
    plain ints as well as polars expressions.
    """
    label: str
    predicate: Callable[[Any, Any, Any], Any]
    description: str = ""


SEGMENT_RULES: List[SegmentRule] = [
    SegmentRule(
        "loyal",
        lambda r, f, m: (r >= 4) & (f >= 3) & (m >= 3),
        "recent, frequent and at least mid-value",
    ),
    SegmentRule(
        "one_time_big_spenders",
        lambda r, f, m: (f == 1) & (m >= 3),
        "bought once, spent a lot",
    ),
    SegmentRule(
        "low_value_one_timers",
        lambda r, f, m: (f == 1) & (m < 3),
        "bought once, spent little",
    ),
    SegmentRule(
        "at_risk",
        lambda r, f, m: (f >= 3) & (r <= 3),
        "used to buy often, not seen recently",
    ),
    SegmentRule(
        "rising_star",
        lambda r, f, m: (f == 2) & (r >= 4) & (m >= 3),
        "second purchase, recent, decent spend",
    ),
    SegmentRule(
        "lost",
        lambda r, f, m: (f == 2) & (r < 3) & (m >= 3),
        "two purchases, long ago",
    ),
]


def classify(recency_score: int, frequency_score: int, monetary_score: int) -> str:
    """Label for a single score triple; first matching rule wins"""
    for rule in SEGMENT_RULES:
        if rule.predicate(recency_score, frequency_score, monetary_score):
            return rule.label
    return DEFAULT_SEGMENT


def segment_expr(
    recency: str = "recency_score",
    frequency: str = "frequency_score",
    monetary: str = "monetary_score",
) -> pl.Expr:
    """Vectorized equivalent of classify(), built from the same rule list"""
    r, f, m = pl.col(recency), pl.col(frequency), pl.col(monetary)
    first, *rest = SEGMENT_RULES
    expr = pl.when(first.predicate(r, f, m)).then(pl.lit(first.label))
    for rule in rest:
        expr = expr.when(rule.predicate(r, f, m)).then(pl.lit(rule.label))
    return expr.otherwise(pl.lit(DEFAULT_SEGMENT))


def score_expr(column: str, bins: Sequence[Tuple[float, int]], fallback: int) -> pl.Expr:
    """Map a metric onto 1..5 using ordered inclusive upper bounds"""
    (bound, score), *rest = bins
    expr = pl.when(pl.col(column) <= bound).then(pl.lit(score))
    for bound, score in rest:
        expr = expr.when(pl.col(column) <= bound).then(pl.lit(score))
    return expr.otherwise(pl.lit(fallback)).cast(pl.Int64)


class RfmEngine:
    """
    Customer RFM scoring against a fixed snapshot date.

    The snapshot date stands for "now" in a historical dataset; it is always
    supplied by the caller and never read from the system clock.

    Example:
        engine = RfmEngine(snapshot_date=date(2018, 10, 17))
        customer_rfm = engine.compute(orders_clean)
    """

    def __init__(self, snapshot_date: date):
        if snapshot_date is None:
            raise ValueError("snapshot_date is required for RFM scoring")
        self.snapshot_date = snapshot_date

    def _base(self, orders: pl.DataFrame) -> pl.DataFrame:
        """Non-canceled orders with a resolved customer"""
        return orders.filter(
            ~pl.col("is_canceled_or_unavailable") & pl.col("customer_unique_id").is_not_null()
        )

    def compute(self, orders: pl.DataFrame) -> pl.DataFrame:
        """
        Args:
            orders: Canonical order fact

        Returns:
            DataFrame with RFM_COLUMNS, sorted by customer_unique_id
        """
        base = self._base(orders)

        future = base.filter(pl.col("order_date") > self.snapshot_date).height
        if future:
            logger.warning(
                "Orders dated after the snapshot date",
                orders=future,
                snapshot_date=self.snapshot_date.isoformat(),
            )

        rfm = (
            base.group_by("customer_unique_id")
            .agg([
                pl.col("order_date").max().alias("last_order_date"),
                pl.col("order_id").n_unique().cast(pl.Int64).alias("frequency"),
                pl.col("order_total").sum().alias("monetary"),
            ])
            .with_columns(
                (pl.lit(self.snapshot_date, dtype=pl.Date) - pl.col("last_order_date"))
                .dt.total_days()
                .cast(pl.Int64)
                .alias("recency_days"),
            )
            .with_columns([
                score_expr("recency_days", RECENCY_BINS, RECENCY_FALLBACK).alias("recency_score"),
                score_expr("frequency", FREQUENCY_BINS, FREQUENCY_FALLBACK).alias("frequency_score"),
                score_expr("monetary", MONETARY_BINS, MONETARY_FALLBACK).alias("monetary_score"),
            ])
            .with_columns(segment_expr().alias("segment"))
            .select(RFM_COLUMNS)
            .sort("customer_unique_id")
        )

        logger.info(
            "Scored customers",
            customers=rfm.height,
            snapshot_date=self.snapshot_date.isoformat(),
        )
        return rfm


def segment_summary(rfm: pl.DataFrame) -> pl.DataFrame:
    """Customer count, revenue and average RFM metrics per segment, by revenue"""
    return (
        rfm.group_by("segment")
        .agg([
            pl.len().cast(pl.Int64).alias("customer_count"),
            pl.col("monetary").sum().alias("total_revenue"),
            pl.col("monetary").mean().round(2).alias("avg_monetary"),
            pl.col("recency_days").mean().round(2).alias("avg_recency_days"),
            pl.col("frequency").mean().round(2).alias("avg_frequency"),
        ])
        .sort(["total_revenue", "segment"], descending=[True, False])
    )
