"""
Customer Canonicalization Module

The raw customer table issues a new customer_id per order, so one person can
appear under many ids. customer_unique_id is the real identity; this module
collapses every raw record onto it.
"""

from typing import Optional

import polars as pl
import structlog

from .geo import attach_coordinates
from .text import TextNormalizer

logger = structlog.get_logger(__name__)

CUSTOMER_COLUMNS = [
    "customer_unique_id",
    "representative_raw_id",
    "zip_prefix",
    "city",
    "state",
    "raw_id_variant_count",
]


class CustomerCanonicalizer:
    """
    Builds one canonical record per customer_unique_id.

    The representative raw id is the smallest customer_id of the group. Location
    fields take the first non-null value in customer_id order; when a person's
    stored location differs across raw records the other values are discarded,
    not averaged. raw_id_variant_count keeps the size of the collapse visible.

    This is not the same as taking the smallest distinct value of each field
    (e.g. the alphabetically first city): when the records disagree, the two
    rules can pick different values. Both are deterministic; ordering by raw id
    keeps zip, city and state from the same record whenever it has all three.

    Example:
        canonicalizer = CustomerCanonicalizer()
        dim_customers = canonicalizer.canonicalize(raw_customers, dim_geolocation)
        identity = canonicalizer.identity_map(raw_customers)
    """

    def __init__(self, text_normalizer: Optional[TextNormalizer] = None):
        self.text = text_normalizer or TextNormalizer()

    def _normalized(self, df: pl.DataFrame) -> pl.DataFrame:
        located = df.select(
            pl.col("customer_id").cast(pl.Utf8),
            pl.col("customer_unique_id").cast(pl.Utf8),
            pl.col("customer_zip_code_prefix").alias("zip_prefix"),
            pl.col("customer_city").alias("city"),
            pl.col("customer_state").alias("state"),
        )
        return self.text.normalize_location(located)

    def identity_map(self, df: pl.DataFrame) -> pl.DataFrame:
        """
        Raw customer_id -> customer_unique_id lookup, one row per raw id.

        Raw ids without an identity are left out; orders pointing at them are
        reported by the order fact builder.
        """
        return (
            df.select(
                pl.col("customer_id").cast(pl.Utf8),
                pl.col("customer_unique_id").cast(pl.Utf8),
            )
            .filter(pl.col("customer_id").is_not_null() & pl.col("customer_unique_id").is_not_null())
            .sort(["customer_id", "customer_unique_id"])
            .unique(subset=["customer_id"], keep="first", maintain_order=True)
        )

    def canonicalize(
        self,
        df: pl.DataFrame,
        geo: Optional[pl.DataFrame] = None,
    ) -> pl.DataFrame:
        """
        Collapse raw customers onto their unique identity.

        Args:
            df: Raw customers
            geo: Optional geolocation dimension; when given, median coordinates
                for the canonical zip prefix are attached

        Returns:
            DataFrame sorted by customer_unique_id
        """
        customers = self._normalized(df)

        orphaned = customers.filter(pl.col("customer_unique_id").is_null()).height
        if orphaned:
            logger.warning("Raw customers without customer_unique_id excluded", rows=orphaned)
        customers = customers.filter(pl.col("customer_unique_id").is_not_null())

        canonical = customers.group_by("customer_unique_id").agg([
            pl.col("customer_id").min().alias("representative_raw_id"),
            pl.col("zip_prefix").sort_by("customer_id").drop_nulls().first().alias("zip_prefix"),
            pl.col("city").sort_by("customer_id").drop_nulls().first().alias("city"),
            pl.col("state").sort_by("customer_id").drop_nulls().first().alias("state"),
            pl.col("customer_id").n_unique().cast(pl.Int64).alias("raw_id_variant_count"),
        ]).select(CUSTOMER_COLUMNS)

        if geo is not None:
            canonical = attach_coordinates(canonical, geo)

        canonical = canonical.sort("customer_unique_id")

        logger.info(
            "Canonicalized customers",
            raw_records=customers.height,
            unique_customers=canonical.height,
            multi_id_customers=canonical.filter(pl.col("raw_id_variant_count") > 1).height,
        )
        return canonical
