"""
Order Item Aggregation Module

Flags invalid monetary line items, then rolls items up to one row per order.
Invalid amounts are excluded from sums but still counted, so data loss stays
visible without corrupting order totals.
"""

import polars as pl
import structlog

from .expressions import invalid_amount

logger = structlog.get_logger(__name__)

ITEM_AGG_COLUMNS = [
    "order_id",
    "items_count",
    "sum_valid_price",
    "sum_valid_freight",
    "earliest_shipping_limit",
    "primary_category",
    "invalid_price_count",
    "invalid_freight_count",
    "seller_count",
]


def _valid_sum(value: str, flag: str) -> pl.Expr:
    return pl.when(~pl.col(flag)).then(pl.col(value)).otherwise(0.0).sum()


class OrderItemAggregator:
    """
    Example:
        aggregator = OrderItemAggregator()
        flags = aggregator.flag(raw_items)
        items_agg = aggregator.aggregate(flags, dim_products)
    """

    def flag(self, items: pl.DataFrame) -> pl.DataFrame:
        """Row-level invalid_price / invalid_freight flags"""
        flagged = items.with_columns(
            pl.col("price").cast(pl.Float64),
            pl.col("freight_value").cast(pl.Float64),
        ).with_columns(
            invalid_amount(pl.col("price")).alias("invalid_price"),
            invalid_amount(pl.col("freight_value")).alias("invalid_freight"),
        )
        sort_keys = [c for c in ("order_id", "order_item_id") if c in flagged.columns]
        return flagged.sort(sort_keys, maintain_order=True)

    def aggregate(self, flagged: pl.DataFrame, products: pl.DataFrame) -> pl.DataFrame:
        """
        One row per order_id.

        primary_category is the alphabetically first category among the
        order's products; items whose product is unknown contribute no
        category but still count.

        Args:
            flagged: Output of flag()
            products: Product dimension

        Returns:
            DataFrame with ITEM_AGG_COLUMNS, sorted by order_id
        """
        categories = products.select("product_id", "category")

        agg = (
            flagged.join(categories, on="product_id", how="left")
            .group_by("order_id")
            .agg([
                pl.len().cast(pl.Int64).alias("items_count"),
                _valid_sum("price", "invalid_price").alias("sum_valid_price"),
                _valid_sum("freight_value", "invalid_freight").alias("sum_valid_freight"),
                pl.col("shipping_limit_date").min().alias("earliest_shipping_limit"),
                pl.col("category").min().alias("primary_category"),
                pl.col("invalid_price").sum().cast(pl.Int64).alias("invalid_price_count"),
                pl.col("invalid_freight").sum().cast(pl.Int64).alias("invalid_freight_count"),
                pl.col("seller_id").drop_nulls().n_unique().cast(pl.Int64).alias("seller_count"),
            ])
            .select(ITEM_AGG_COLUMNS)
            .sort("order_id")
        )

        logger.info(
            "Aggregated order items",
            items=flagged.height,
            orders=agg.height,
            invalid_price=int(flagged["invalid_price"].sum()),
            invalid_freight=int(flagged["invalid_freight"].sum()),
        )
        return agg
