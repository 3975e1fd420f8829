"""
Product Normalization Module

Cleans physical attributes and derives volume/density with validity flags.
Zero was historically used as a placeholder measurement, so it is turned into
null; rows are flagged, never removed.
"""

from typing import Dict

import polars as pl
import structlog

from .expressions import safe_divide

logger = structlog.get_logger(__name__)

DENSITY_OUTLIER_THRESHOLD = 10.0  # g/cm3
DEFAULT_CATEGORY = "other"

# raw column -> cleaned column
MEASUREMENT_COLUMNS: Dict[str, str] = {
    "product_weight_g": "weight_g",
    "product_length_cm": "length_cm",
    "product_height_cm": "height_cm",
    "product_width_cm": "width_cm",
}

# upstream spelling kept on the raw side
DESCRIPTIVE_COLUMNS: Dict[str, str] = {
    "product_name_lenght": "product_name_length",
    "product_description_lenght": "product_description_length",
    "product_photos_qty": "product_photos_qty",
}

DIMENSIONS = ["length_cm", "height_cm", "width_cm"]


def _zero_to_null(column: str) -> pl.Expr:
    return pl.when(pl.col(column) == 0).then(None).otherwise(pl.col(column))


class ProductNormalizer:
    """
    Per-row product cleaning; no grouping.

    Steps, in order:
    1. default a missing category translation to "other"
    2. coerce zero measurements to null
    3. volume only when length, height and width are all positive
    4. density only when weight and volume are both valid
    5. independent flags: weight_invalid, dim_invalid,
       category_missing_translation, density_outlier
    """

    def __init__(self, density_threshold: float = DENSITY_OUTLIER_THRESHOLD):
        self.density_threshold = density_threshold

    def _translations(self, translation: pl.DataFrame) -> pl.DataFrame:
        """One English name per Portuguese category"""
        return (
            translation.select(
                pl.col("product_category_name").cast(pl.Utf8),
                pl.col("product_category_name_english").cast(pl.Utf8),
            )
            .filter(pl.col("product_category_name").is_not_null())
            .sort(["product_category_name", "product_category_name_english"], nulls_last=True)
            .unique(subset=["product_category_name"], keep="first", maintain_order=True)
            .with_columns(pl.lit(True).alias("_translated"))
        )

    def normalize(self, products: pl.DataFrame, translation: pl.DataFrame) -> pl.DataFrame:
        """
        Build the product dimension.

        Args:
            products: Raw products
            translation: Category translation table

        Returns:
            DataFrame sorted by product_id
        """
        descriptive = [
            pl.col(raw).alias(clean)
            for raw, clean in DESCRIPTIVE_COLUMNS.items()
            if raw in products.columns
        ]

        df = products.with_columns(pl.col("product_category_name").cast(pl.Utf8)).join(
            self._translations(translation), on="product_category_name", how="left"
        )

        df = df.select(
            [
                pl.col("product_id").cast(pl.Utf8),
                pl.col("product_category_name_english").fill_null(DEFAULT_CATEGORY).alias("category"),
                pl.col("_translated").is_null().alias("category_missing_translation"),
            ]
            + descriptive
            + [
                pl.col(raw).cast(pl.Float64).alias(clean)
                for raw, clean in MEASUREMENT_COLUMNS.items()
            ]
        )

        df = df.with_columns([_zero_to_null(c).alias(c) for c in MEASUREMENT_COLUMNS.values()])

        all_dims_positive = (
            (pl.col("length_cm") > 0) & (pl.col("height_cm") > 0) & (pl.col("width_cm") > 0)
        ).fill_null(False)
        weight_positive = (pl.col("weight_g") > 0).fill_null(False)

        df = df.with_columns(
            pl.when(all_dims_positive)
            .then(pl.col("length_cm") * pl.col("height_cm") * pl.col("width_cm"))
            .otherwise(None)
            .alias("volume_cm3"),
        )
        df = df.with_columns(
            pl.when(weight_positive & pl.col("volume_cm3").is_not_null())
            .then(safe_divide(pl.col("weight_g"), pl.col("volume_cm3")))
            .otherwise(None)
            .alias("density"),
        )
        df = df.with_columns([
            (~weight_positive).alias("weight_invalid"),
            (~all_dims_positive).alias("dim_invalid"),
            (pl.col("density") > self.density_threshold).fill_null(False).alias("density_outlier"),
        ])

        flags = ["weight_invalid", "dim_invalid", "category_missing_translation", "density_outlier"]
        ordered = (
            ["product_id", "category"]
            + [clean for raw, clean in DESCRIPTIVE_COLUMNS.items() if raw in products.columns]
            + list(MEASUREMENT_COLUMNS.values())
            + ["volume_cm3", "density"]
            + flags
        )
        df = df.select(ordered).sort("product_id")

        logger.info(
            "Normalized products",
            products=df.height,
            **{flag: int(df[flag].sum()) for flag in flags},
        )
        return df
