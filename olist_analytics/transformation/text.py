"""
Text Normalization Module

Accent, case and whitespace normalization for free-text location and category
fields. Without it "São Paulo", "sao paulo " and "SAO  PAULO" would group as
three different cities.
"""

from typing import List

import polars as pl

ZIP_PREFIX_WIDTH = 5


def normalize_text(expr: pl.Expr) -> pl.Expr:
    """
    Strip accents, lower-case, trim and collapse inner whitespace.

    Empty results become null so that blank placeholders never form their
    own group.
    """
    cleaned = (
        expr.cast(pl.Utf8)
        .str.normalize("NFKD")
        .str.replace_all(r"\p{M}", "")
        .str.to_lowercase()
        .str.replace_all(r"\s+", " ")
        .str.strip_chars()
    )
    return pl.when(cleaned == "").then(None).otherwise(cleaned)


def normalize_state(expr: pl.Expr) -> pl.Expr:
    """Two-letter state codes: accent-free, trimmed, upper-case"""
    return normalize_text(expr).str.to_uppercase()


def pad_zip_prefix(expr: pl.Expr, width: int = ZIP_PREFIX_WIDTH) -> pl.Expr:
    """Render a zip prefix as zero-padded text (1001 -> "01001")"""
    return expr.cast(pl.Utf8).str.strip_chars().str.zfill(width)


class TextNormalizer:
    """
    Column-level wrapper around the normalization expressions.

    Example:
        normalizer = TextNormalizer()
        df = normalizer.normalize_columns(df, ["customer_city"])
    """

    def __init__(self, zip_width: int = ZIP_PREFIX_WIDTH):
        self.zip_width = zip_width

    def normalize_columns(self, df: pl.DataFrame, columns: List[str]) -> pl.DataFrame:
        """Normalize free-text columns in place"""
        present = [c for c in columns if c in df.columns]
        return df.with_columns([normalize_text(pl.col(c)).alias(c) for c in present])

    def normalize_states(self, df: pl.DataFrame, columns: List[str]) -> pl.DataFrame:
        """Normalize state code columns in place"""
        present = [c for c in columns if c in df.columns]
        return df.with_columns([normalize_state(pl.col(c)).alias(c) for c in present])

    def pad_zip_columns(self, df: pl.DataFrame, columns: List[str]) -> pl.DataFrame:
        """Zero-pad zip prefix columns in place"""
        present = [c for c in columns if c in df.columns]
        return df.with_columns([pad_zip_prefix(pl.col(c), self.zip_width).alias(c) for c in present])

    def normalize_location(
        self,
        df: pl.DataFrame,
        zip_column: str = "zip_prefix",
        city_column: str = "city",
        state_column: str = "state",
    ) -> pl.DataFrame:
        """Zip prefix, city and state standardization shared by customers and sellers"""
        df = self.pad_zip_columns(df, [zip_column])
        df = self.normalize_columns(df, [city_column])
        return self.normalize_states(df, [state_column])
