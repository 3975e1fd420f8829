"""
Order Fact Module

Assembles the canonical one-row-per-order fact from the raw orders, the
customer identity map and the item/payment aggregates, and derives delivery,
chronology and payment coverage metrics.
"""

from typing import List

import polars as pl
import structlog

from .expressions import days_between, null_safe_gt, safe_divide

logger = structlog.get_logger(__name__)

CANCELED_STATUSES = ["canceled", "unavailable"]

LIFECYCLE_TIMESTAMPS = [
    "order_purchase_timestamp",
    "order_approved_at",
    "order_delivered_carrier_date",
    "order_delivered_customer_date",
]

ORDER_FACT_COLUMNS = [
    "order_id",
    "customer_id",
    "customer_unique_id",
    "order_status",
    "order_purchase_timestamp",
    "order_approved_at",
    "order_delivered_carrier_date",
    "order_delivered_customer_date",
    "order_estimated_delivery_date",
    "order_date",
    "items_count",
    "sum_valid_price",
    "sum_valid_freight",
    "order_total",
    "primary_category",
    "earliest_shipping_limit",
    "days_to_delivery",
    "carrier_to_customer_days",
    "is_delayed",
    "chronology_flag",
    "is_canceled_or_unavailable",
    "sum_valid_payments",
    "primary_payment_type",
    "max_installments",
    "payment_row_count",
    "invalid_payment_row_count",
    "payment_coverage",
]


class UnresolvedCustomerError(ValueError):
    """Orders reference customer ids that have no canonical identity"""

    def __init__(self, order_ids: List[str]):
        self.order_ids = order_ids
        sample = ", ".join(order_ids[:5])
        super().__init__(
            f"{len(order_ids)} orders have no resolvable customer identity (e.g. {sample})"
        )


def chronology_violation() -> pl.Expr:
    """
    True if any consecutive lifecycle timestamps run backwards.

    A missing timestamp never raises the flag by itself.
    """
    pairs = zip(LIFECYCLE_TIMESTAMPS, LIFECYCLE_TIMESTAMPS[1:])
    checks = [null_safe_gt(pl.col(earlier), pl.col(later)) for earlier, later in pairs]
    return pl.any_horizontal(checks)


class OrderFactBuilder:
    """
    Join order:
        orders -> identity map (inner; a miss is fatal)
               -> item aggregate (left)
               -> payment aggregate (left)

    Missing aggregates leave null metrics; no order row is ever dropped.
    """

    def _resolve_customers(self, orders: pl.DataFrame, identity: pl.DataFrame) -> pl.DataFrame:
        joined = orders.with_columns(pl.col("customer_id").cast(pl.Utf8)).join(
            identity, on="customer_id", how="left"
        )
        unresolved = joined.filter(pl.col("customer_unique_id").is_null())
        if unresolved.height:
            order_ids = sorted(unresolved["order_id"].cast(pl.Utf8).to_list())
            logger.error("Orders without canonical customer", orders=len(order_ids))
            raise UnresolvedCustomerError(order_ids)
        return joined

    def build(
        self,
        orders: pl.DataFrame,
        identity: pl.DataFrame,
        items_agg: pl.DataFrame,
        payments_agg: pl.DataFrame,
    ) -> pl.DataFrame:
        """
        Args:
            orders: Raw orders
            identity: customer_id -> customer_unique_id map
            items_agg: Order item aggregate
            payments_agg: Payment summary

        Returns:
            DataFrame with ORDER_FACT_COLUMNS, sorted by order_id

        Raises:
            UnresolvedCustomerError: an order's customer_id is not in the map
        """
        df = self._resolve_customers(orders, identity)
        df = df.join(items_agg, on="order_id", how="left").join(payments_agg, on="order_id", how="left")

        status = pl.col("order_status").cast(pl.Utf8).str.strip_chars().str.to_lowercase()

        df = df.with_columns(
            status.alias("order_status"),
            pl.col("order_purchase_timestamp").dt.date().alias("order_date"),
            (pl.col("sum_valid_price") + pl.col("sum_valid_freight")).alias("order_total"),
            days_between(
                pl.col("order_purchase_timestamp"), pl.col("order_delivered_customer_date")
            ).alias("days_to_delivery"),
            days_between(
                pl.col("order_delivered_carrier_date"), pl.col("order_delivered_customer_date")
            ).alias("carrier_to_customer_days"),
            null_safe_gt(
                pl.col("order_delivered_customer_date"), pl.col("order_estimated_delivery_date")
            ).alias("is_delayed"),
            chronology_violation().alias("chronology_flag"),
            status.is_in(CANCELED_STATUSES).fill_null(False).alias("is_canceled_or_unavailable"),
        ).with_columns(
            safe_divide(
                pl.col("sum_valid_payments").fill_null(0.0), pl.col("order_total"), decimals=4
            ).alias("payment_coverage"),
        )

        fact = df.select(ORDER_FACT_COLUMNS).sort("order_id")

        logger.info(
            "Built order fact",
            orders=fact.height,
            without_items=fact.filter(pl.col("items_count").is_null()).height,
            without_payments=fact.filter(pl.col("payment_row_count").is_null()).height,
            delayed=int(fact["is_delayed"].sum()),
            chronology_violations=int(fact["chronology_flag"].sum()),
            canceled=int(fact["is_canceled_or_unavailable"].sum()),
        )
        return fact
