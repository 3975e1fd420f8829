"""
KPI Reports

Headline business metrics over the canonical order fact:
- gross GMV (every order, canceled included) vs net revenue
- average order value, repeat rate, cancellation rate, delayed share
- monthly revenue breakdown
- delivery performance, split weekday/weekend
- revenue, cancellation and delivery by customer state
- revenue, cancellation and review score by primary category
- payment type distribution and revenue share
"""

from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional

import polars as pl
import structlog

from olist_analytics.transformation.expressions import safe_divide

logger = structlog.get_logger(__name__)

CANCELED = pl.col("is_canceled_or_unavailable")


@dataclass
class CoreKpis:
    """Headline metrics; None where the denominator is empty"""
    gross_gmv: float
    net_revenue: float
    total_orders: int
    avg_order_value: Optional[float]
    repeat_rate_pct: Optional[float]
    cancel_rate_pct: Optional[float]
    avg_delivery_days: Optional[float]
    delayed_pct: Optional[float]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _ratio_pct(numerator: float, denominator: float) -> Optional[float]:
    if not denominator:
        return None
    return round(100.0 * numerator / denominator, 2)


def _pct(numerator: pl.Expr, denominator: pl.Expr) -> pl.Expr:
    """100 * numerator / denominator, null on an empty denominator"""
    return safe_divide(100.0 * numerator, denominator, decimals=2)


def _revenue_split() -> List[pl.Expr]:
    """Gross, net and canceled value plus cancel rate for one group"""
    return [
        pl.col("order_total").sum().alias("gross_gmv"),
        pl.col("order_total").filter(~CANCELED).sum().alias("net_revenue"),
        pl.col("order_total").filter(CANCELED).sum().alias("canceled_value"),
        _pct(
            pl.col("order_total").filter(CANCELED).sum(),
            pl.col("order_total").sum(),
        ).alias("cancel_rate_pct"),
    ]


def compute_core_kpis(orders: pl.DataFrame) -> CoreKpis:
    """
    Args:
        orders: Canonical order fact

    Returns:
        CoreKpis
    """
    valid = orders.filter(~CANCELED)

    gross_gmv = float(orders["order_total"].sum() or 0.0)
    net_revenue = float(valid["order_total"].sum() or 0.0)
    canceled_value = gross_gmv - net_revenue
    total_orders = valid["order_id"].n_unique()

    per_customer = valid.group_by("customer_unique_id").agg(
        pl.col("order_id").n_unique().alias("order_count")
    )
    repeaters = per_customer.filter(pl.col("order_count") >= 2).height

    delivery_days = valid["days_to_delivery"].drop_nulls()
    delayed = int(valid["is_delayed"].sum())

    kpis = CoreKpis(
        gross_gmv=round(gross_gmv, 2),
        net_revenue=round(net_revenue, 2),
        total_orders=total_orders,
        avg_order_value=round(net_revenue / total_orders, 2) if total_orders else None,
        repeat_rate_pct=_ratio_pct(repeaters, per_customer.height),
        cancel_rate_pct=_ratio_pct(canceled_value, gross_gmv),
        avg_delivery_days=round(delivery_days.mean(), 2) if delivery_days.len() else None,
        # every valid order counts, delivered or not
        delayed_pct=_ratio_pct(delayed, valid.height),
    )
    logger.info("Computed core KPIs", **kpis.to_dict())
    return kpis


def monthly_revenue(orders: pl.DataFrame) -> pl.DataFrame:
    """GMV, net revenue, canceled value and cancel rate per purchase month"""
    return (
        orders.filter(pl.col("order_date").is_not_null())
        .with_columns(pl.col("order_date").dt.truncate("1mo").alias("month"))
        .group_by("month")
        .agg(_revenue_split())
        .sort("month")
    )


def delivery_performance(orders: pl.DataFrame) -> pl.DataFrame:
    """Average delivery days and delayed share, weekday vs weekend purchases"""
    delivered = orders.filter(~CANCELED & pl.col("days_to_delivery").is_not_null())
    return (
        delivered.with_columns(
            pl.when(pl.col("order_date").dt.weekday() >= 6)
            .then(pl.lit("weekend"))
            .otherwise(pl.lit("weekday"))
            .alias("day_type")
        )
        .group_by("day_type")
        .agg([
            pl.col("order_id").n_unique().cast(pl.Int64).alias("total_orders"),
            pl.col("days_to_delivery").mean().round(2).alias("avg_delivery_days"),
            (100.0 * pl.col("is_delayed").cast(pl.Float64).mean()).round(2).alias("delayed_pct"),
        ])
        .sort("day_type")
    )


def state_performance(orders: pl.DataFrame, customers: pl.DataFrame) -> pl.DataFrame:
    """
    Revenue, cancellation and delivery time per customer state.

    Orders are placed by their customer's canonical state. Delivery days
    average over delivered, non-canceled orders only.
    """
    delivered = ~CANCELED & pl.col("days_to_delivery").is_not_null()
    return (
        orders.join(
            customers.select("customer_unique_id", "state"),
            on="customer_unique_id",
            how="inner",
        )
        .group_by("state")
        .agg(
            [pl.col("order_id").n_unique().cast(pl.Int64).alias("total_orders")]
            + _revenue_split()
            + [pl.col("days_to_delivery").filter(delivered).mean().round(2).alias("avg_delivery_days")]
        )
        .sort(["net_revenue", "state"], descending=[True, False], nulls_last=True)
    )


def category_performance(
    orders: pl.DataFrame,
    reviews: Optional[pl.DataFrame] = None,
) -> pl.DataFrame:
    """
    Revenue and cancellation per primary category.

    Orders without items have no category and are left out. When the
    deduplicated reviews are given, avg_review_score is the mean score over
    the category's non-canceled orders.
    """
    with_items = orders.filter(pl.col("items_count").is_not_null())
    result = with_items.group_by("primary_category").agg(_revenue_split())

    if reviews is not None:
        scores = (
            with_items.filter(~CANCELED)
            .select("order_id", "primary_category")
            .join(reviews.select("order_id", "review_score"), on="order_id", how="inner")
            .group_by("primary_category")
            .agg(pl.col("review_score").mean().round(2).alias("avg_review_score"))
        )
        result = result.join(scores, on="primary_category", how="left")

    return result.sort(["net_revenue", "primary_category"], descending=[True, False], nulls_last=True)


def payment_type_breakdown(orders: pl.DataFrame) -> pl.DataFrame:
    """Order count, revenue and their shares per primary payment type, valid orders only"""
    return (
        orders.filter(~CANCELED)
        .group_by("primary_payment_type")
        .agg([
            pl.len().cast(pl.Int64).alias("num_orders"),
            pl.col("order_total").sum().round(2).alias("total_revenue"),
            safe_divide(
                pl.col("order_total").sum(), pl.col("order_id").n_unique(), decimals=2
            ).alias("avg_order_value"),
        ])
        .with_columns([
            _pct(pl.col("num_orders"), pl.col("num_orders").sum()).alias("pct_orders"),
            _pct(pl.col("total_revenue"), pl.col("total_revenue").sum()).alias("pct_of_total_revenue"),
        ])
        .sort(["total_revenue", "primary_payment_type"], descending=[True, False], nulls_last=True)
    )
