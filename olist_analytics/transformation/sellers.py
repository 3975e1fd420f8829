"""
Seller Resolution Module

Normalizes seller location fields to the same standard as customers and places
each seller on the geolocation dimension.
"""

from typing import Optional

import polars as pl
import structlog

from .geo import attach_coordinates
from .text import TextNormalizer

logger = structlog.get_logger(__name__)

SELLER_COLUMNS = [
    "seller_id",
    "zip_prefix",
    "city",
    "state",
    "lat",
    "lng",
    "zip_prefix_ambiguous",
    "geo_matched",
]


class SellerResolver:
    """Joins seller locations onto the geolocation dimension"""

    def __init__(self, text_normalizer: Optional[TextNormalizer] = None):
        self.text = text_normalizer or TextNormalizer()

    def resolve(self, sellers: pl.DataFrame, geo: pl.DataFrame) -> pl.DataFrame:
        df = sellers.select(
            pl.col("seller_id").cast(pl.Utf8),
            pl.col("seller_zip_code_prefix").alias("zip_prefix"),
            pl.col("seller_city").alias("city"),
            pl.col("seller_state").alias("state"),
        )
        df = attach_coordinates(self.text.normalize_location(df), geo).select(SELLER_COLUMNS).sort("seller_id")

        unmatched = df.filter(~pl.col("geo_matched")).height
        if unmatched:
            logger.warning("Sellers without geolocation match", sellers=unmatched)
        logger.info("Resolved sellers", sellers=df.height)
        return df
