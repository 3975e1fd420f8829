"""
Null-aware expression helpers.

Polars propagates nulls through arithmetic and comparisons the same way SQL
does, but a null comparison inside a boolean flag must read as False and a
zero denominator must yield null instead of inf/NaN. These helpers make both
rules explicit.
"""

from typing import Optional

import polars as pl

SECONDS_PER_DAY = 86_400


def null_safe_gt(left: pl.Expr, right: pl.Expr) -> pl.Expr:
    """left > right, with any null operand evaluating to False"""
    return (left > right).fill_null(False)


def safe_divide(numerator: pl.Expr, denominator: pl.Expr, decimals: Optional[int] = None) -> pl.Expr:
    """numerator / denominator, null when the denominator is null or zero"""
    ratio = pl.when(denominator.is_null() | (denominator == 0)).then(None).otherwise(numerator / denominator)
    if decimals is not None:
        ratio = ratio.round(decimals)
    return ratio


def invalid_amount(expr: pl.Expr) -> pl.Expr:
    """True when a monetary value is null or not strictly positive"""
    return (expr.is_null() | (expr <= 0)).fill_null(True)


def days_between(start: pl.Expr, end: pl.Expr) -> pl.Expr:
    """Fractional days from start to end; null if either side is missing"""
    return (end - start).dt.total_seconds() / SECONDS_PER_DAY
