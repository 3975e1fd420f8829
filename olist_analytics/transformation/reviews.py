"""
Review Deduplication Module

The raw review table repeats some review_id values. Each review_id is resolved
to a single authoritative row and text-quality flags are stored alongside it
for later filtering.
"""

import polars as pl
import structlog

logger = structlog.get_logger(__name__)

LOW_QUALITY_LENGTH = 5

DERIVED_COLUMNS = ["text_length", "has_text", "low_quality", "duplicate_row_count"]


class ReviewDeduplicator:
    """
    Keeps one row per review_id.

    Ranking within a review_id:
        1. coalesce(review_answer_timestamp, review_creation_date), latest first
        2. review_score, highest first
    Rows with no timestamp at all rank last. Remaining ties go to the smallest
    order_id, then to input order. Losing rows are discarded, not merged.
    """

    def __init__(self, low_quality_length: int = LOW_QUALITY_LENGTH):
        self.low_quality_length = low_quality_length

    def deduplicate(self, reviews: pl.DataFrame) -> pl.DataFrame:
        """
        Args:
            reviews: Raw review rows, possibly several per review_id

        Returns:
            One row per review_id with the raw columns plus DERIVED_COLUMNS,
            sorted by review_id
        """
        raw_columns = reviews.columns

        ranked = (
            reviews.with_columns(
                pl.coalesce(pl.col("review_answer_timestamp"), pl.col("review_creation_date")).alias("_ranked_at"),
                pl.col("review_id").len().over("review_id").cast(pl.Int64).alias("duplicate_row_count"),
            )
            .sort(
                ["review_id", "_ranked_at", "review_score", "order_id"],
                descending=[False, True, True, False],
                nulls_last=True,
                maintain_order=True,
            )
            .unique(subset=["review_id"], keep="first", maintain_order=True)
        )

        text = pl.col("review_comment_message").cast(pl.Utf8).fill_null("")
        deduped = ranked.with_columns(
            text.str.len_chars().cast(pl.Int64).alias("text_length"),
            text.str.contains(r"\S").alias("has_text"),
        ).with_columns(
            ((pl.col("text_length") < self.low_quality_length) | (text == "")).alias("low_quality"),
        )

        deduped = deduped.select(raw_columns + DERIVED_COLUMNS).sort("review_id")

        logger.info(
            "Deduplicated reviews",
            raw_rows=reviews.height,
            reviews=deduped.height,
            discarded=reviews.height - deduped.height,
            low_quality=int(deduped["low_quality"].sum()),
        )
        return deduped
