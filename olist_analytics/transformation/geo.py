"""
Geolocation Resolution Module

Collapses raw geolocation samples into one record per zip prefix:
- median coordinates per (zip prefix, normalized city) group
- the most sampled city group represents the prefix
- every state seen for the prefix is kept, and prefixes spanning more than one
  state are flagged as ambiguous
"""

import polars as pl
import structlog

from .text import normalize_state, normalize_text

logger = structlog.get_logger(__name__)

GEO_COLUMNS = [
    "zip_prefix",
    "city",
    "lat",
    "lng",
    "states",
    "sample_count",
    "ambiguous",
    "dominant_state",
]


class GeoResolver:
    """
    Builds the geolocation dimension.

    Medians are used instead of means because raw GPS samples carry a long
    tail of points placed far outside their zip prefix.

    Tie-breaks:
        representative city: highest sample count, then smallest city name
        dominant state: highest sample count, then smallest state code

    Example:
        dim_geolocation = GeoResolver().resolve(raw_geolocation)
    """

    def _valid_samples(self, df: pl.DataFrame) -> pl.DataFrame:
        """Project raw samples to normalized columns and drop unusable rows"""
        samples = df.select(
            pl.col("geolocation_zip_code_prefix").cast(pl.Int64, strict=False).alias("zip_prefix"),
            normalize_text(pl.col("geolocation_city")).alias("city"),
            normalize_state(pl.col("geolocation_state")).alias("state"),
            pl.col("geolocation_lat").cast(pl.Float64).alias("lat"),
            pl.col("geolocation_lng").cast(pl.Float64).alias("lng"),
        )
        valid = samples.filter(
            pl.col("zip_prefix").is_not_null()
            & pl.col("lat").is_not_null()
            & pl.col("lng").is_not_null()
        )
        dropped = samples.height - valid.height
        if dropped:
            logger.info("Discarded geolocation samples without zip or coordinates", dropped=dropped)
        return valid

    def _city_groups(self, samples: pl.DataFrame) -> pl.DataFrame:
        """Median coordinates and sample count per (zip prefix, city)"""
        return samples.group_by(["zip_prefix", "city"]).agg([
            pl.col("lat").median().alias("lat"),
            pl.col("lng").median().alias("lng"),
            pl.len().cast(pl.Int64).alias("sample_count"),
        ])

    def _prefix_states(self, samples: pl.DataFrame) -> pl.DataFrame:
        """Sorted distinct states per prefix"""
        return samples.group_by("zip_prefix").agg(
            pl.col("state").drop_nulls().unique().sort().alias("states")
        )

    def _dominant_states(self, samples: pl.DataFrame) -> pl.DataFrame:
        """State with the most samples across the whole prefix"""
        return (
            samples.filter(pl.col("state").is_not_null())
            .group_by(["zip_prefix", "state"])
            .agg(pl.len().alias("state_samples"))
            .sort(["zip_prefix", "state_samples", "state"], descending=[False, True, False])
            .unique(subset=["zip_prefix"], keep="first", maintain_order=True)
            .select("zip_prefix", pl.col("state").alias("dominant_state"))
        )

    def resolve(self, df: pl.DataFrame) -> pl.DataFrame:
        """
        Build one GeoRecord per zip prefix.

        Args:
            df: Raw geolocation samples

        Returns:
            DataFrame with the GEO_COLUMNS schema, sorted by zip_prefix
        """
        samples = self._valid_samples(df)

        representative = (
            self._city_groups(samples)
            .sort(
                ["zip_prefix", "sample_count", "city"],
                descending=[False, True, False],
                nulls_last=True,
            )
            .unique(subset=["zip_prefix"], keep="first", maintain_order=True)
        )

        result = (
            representative
            .join(self._prefix_states(samples), on="zip_prefix", how="left")
            .join(self._dominant_states(samples), on="zip_prefix", how="left")
            .with_columns(
                (pl.col("states").list.len() > 1).fill_null(False).alias("ambiguous")
            )
            .select(GEO_COLUMNS)
            .sort("zip_prefix")
        )

        logger.info(
            "Resolved geolocation dimension",
            samples=samples.height,
            zip_prefixes=result.height,
            ambiguous=int(result["ambiguous"].sum()),
        )
        return result


def attach_coordinates(
    df: pl.DataFrame,
    geo: pl.DataFrame,
    zip_column: str = "zip_prefix",
) -> pl.DataFrame:
    """
    Left-join median coordinates onto a table keyed by a padded zip prefix.

    The text prefix is compared by integer value, so "01001" matches 1001.
    Adds lat, lng, zip_prefix_ambiguous and geo_matched.
    """
    lookup = geo.select(
        pl.col("zip_prefix").alias("_zip_key"),
        "lat",
        "lng",
        pl.col("ambiguous").alias("zip_prefix_ambiguous"),
    )
    return (
        df.with_columns(pl.col(zip_column).cast(pl.Int64, strict=False).alias("_zip_key"))
        .join(lookup, on="_zip_key", how="left")
        .with_columns(pl.col("lat").is_not_null().alias("geo_matched"))
        .drop("_zip_key")
    )
