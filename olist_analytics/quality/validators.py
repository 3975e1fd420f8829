"""
Data Validation Module

Rule-based quality contracts for the derived tables.

Features:
- Null and uniqueness checks on table keys
- Range and allowed-value checks
- Row-level rules expressed as polars predicates
- Referential integrity between derived tables
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Union

import polars as pl
import structlog

from olist_analytics.analytics.rfm import DEFAULT_SEGMENT, SEGMENT_RULES

logger = structlog.get_logger(__name__)


class ValidationSeverity(str, Enum):
    """Severity levels for validation failures"""
    ERROR = "error"  # Critical - contract broken
    WARNING = "warning"  # Non-critical - logged but continues
    INFO = "info"  # Informational only


class ValidationStatus(str, Enum):
    """Overall validation status"""
    PASSED = "passed"
    FAILED = "failed"
    PARTIAL = "partial"


class DataQualityError(ValueError):
    """A derived table broke an ERROR-level contract under strict validation"""


@dataclass
class ValidationCheck:
    """Single validation check result"""
    name: str
    passed: bool
    severity: ValidationSeverity
    message: str
    details: Optional[Dict[str, Any]] = None
    failed_rows: int = 0
    total_rows: int = 0


@dataclass
class ValidationResult:
    """Complete validation suite result"""
    table: str
    status: ValidationStatus
    total_checks: int
    passed_checks: int
    failed_checks: int
    warning_count: int
    checks: List[ValidationCheck] = field(default_factory=list)
    started_at: datetime = field(default_factory=datetime.utcnow)
    completed_at: Optional[datetime] = None

    @property
    def success_rate(self) -> float:
        """Percentage of passed checks"""
        if self.total_checks == 0:
            return 100.0
        return (self.passed_checks / self.total_checks) * 100

    @property
    def failures(self) -> List[ValidationCheck]:
        return [c for c in self.checks if not c.passed]


def _missing_column(name: str, column: str, severity: ValidationSeverity) -> ValidationCheck:
    return ValidationCheck(
        name=name,
        passed=False,
        severity=severity,
        message=f"Column '{column}' not found",
    )


class DataValidator:
    """
    Chainable validator for one derived table.

    Example:
        validator = DataValidator("orders_clean")
        validator.add_not_null_check("order_id").add_unique_check("order_id")
        result = validator.validate(df)
    """

    def __init__(self, table: str = "table", strict_mode: bool = False):
        self.table = table
        self.strict_mode = strict_mode  # Fail on any warning
        self._checks: List = []

    def reset(self) -> None:
        """Reset validator state"""
        self._checks = []

    def add_not_null_check(
        self,
        column: str,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add check for null values in column"""
        def check(df: pl.DataFrame) -> ValidationCheck:
            name = f"not_null_{column}"
            if column not in df.columns:
                return _missing_column(name, column, severity)

            null_count = df[column].null_count()
            total = len(df)
            passed = null_count == 0

            return ValidationCheck(
                name=name,
                passed=passed,
                severity=severity,
                message=f"Column '{column}' has {null_count} null values" if not passed else f"Column '{column}' has no null values",
                details={"null_count": null_count, "null_percentage": (null_count / total) * 100 if total > 0 else 0},
                failed_rows=null_count,
                total_rows=total,
            )

        self._checks.append(check)
        return self

    def add_unique_check(
        self,
        columns: Union[str, Sequence[str]],
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add check that a column, or a column combination, is a key"""
        key = [columns] if isinstance(columns, str) else list(columns)

        def check(df: pl.DataFrame) -> ValidationCheck:
            name = f"unique_{'_'.join(key)}"
            for column in key:
                if column not in df.columns:
                    return _missing_column(name, column, severity)

            total = len(df)
            unique_count = df.select(key).n_unique() if total else 0
            duplicate_count = total - unique_count
            passed = duplicate_count == 0

            return ValidationCheck(
                name=name,
                passed=passed,
                severity=severity,
                message=f"Key {key} has {duplicate_count} duplicate rows" if not passed else f"Key {key} is unique",
                details={"unique_count": unique_count, "duplicate_count": duplicate_count},
                failed_rows=duplicate_count,
                total_rows=total,
            )

        self._checks.append(check)
        return self

    def add_range_check(
        self,
        column: str,
        min_value: Optional[float] = None,
        max_value: Optional[float] = None,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add check for values within specified range (nulls ignored)"""
        def check(df: pl.DataFrame) -> ValidationCheck:
            name = f"range_{column}"
            if column not in df.columns:
                return _missing_column(name, column, severity)

            conditions = []
            if min_value is not None:
                conditions.append(pl.col(column) < min_value)
            if max_value is not None:
                conditions.append(pl.col(column) > max_value)

            if not conditions:
                return ValidationCheck(
                    name=name,
                    passed=True,
                    severity=severity,
                    message="No range specified",
                )

            out_of_range = df.filter(pl.any_horizontal(conditions)).height
            total = len(df)
            passed = out_of_range == 0

            return ValidationCheck(
                name=name,
                passed=passed,
                severity=severity,
                message=f"Column '{column}' has {out_of_range} values outside range [{min_value}, {max_value}]" if not passed else "All values in range",
                details={"min": min_value, "max": max_value, "out_of_range_count": out_of_range},
                failed_rows=out_of_range,
                total_rows=total,
            )

        self._checks.append(check)
        return self

    def add_enum_check(
        self,
        column: str,
        allowed_values: List[Any],
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add check for values in allowed set"""
        def check(df: pl.DataFrame) -> ValidationCheck:
            name = f"enum_{column}"
            if column not in df.columns:
                return _missing_column(name, column, severity)

            invalid = df.filter(
                ~pl.col(column).is_in(allowed_values) & pl.col(column).is_not_null()
            ).height
            total = len(df)
            passed = invalid == 0

            return ValidationCheck(
                name=name,
                passed=passed,
                severity=severity,
                message=f"Column '{column}' has {invalid} invalid values" if not passed else "All values are valid",
                details={"allowed_values": allowed_values, "invalid_count": invalid},
                failed_rows=invalid,
                total_rows=total,
            )

        self._checks.append(check)
        return self

    def add_row_rule_check(
        self,
        name: str,
        rule: pl.Expr,
        message_on_fail: str,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """
        Add a rule every row must satisfy.

        A row whose rule evaluates to null counts as a failure.
        """
        def check(df: pl.DataFrame) -> ValidationCheck:
            try:
                failing = df.filter(~rule.fill_null(False)).height
            except pl.exceptions.PolarsError as e:
                return ValidationCheck(
                    name=name,
                    passed=False,
                    severity=severity,
                    message=f"Check failed with error: {str(e)}",
                )
            passed = failing == 0
            return ValidationCheck(
                name=name,
                passed=passed,
                severity=severity,
                message="Check passed" if passed else f"{message_on_fail} ({failing} rows)",
                failed_rows=failing,
                total_rows=len(df),
            )

        self._checks.append(check)
        return self

    def add_referential_integrity_check(
        self,
        column: str,
        reference_df: pl.DataFrame,
        reference_column: str,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add referential integrity check"""
        def check(df: pl.DataFrame) -> ValidationCheck:
            name = f"ref_integrity_{column}"
            if column not in df.columns:
                return _missing_column(name, column, severity)

            orphans = df.filter(
                ~pl.col(column).is_in(reference_df[reference_column].unique().to_list()) & pl.col(column).is_not_null()
            ).height
            total = len(df)
            passed = orphans == 0

            return ValidationCheck(
                name=name,
                passed=passed,
                severity=severity,
                message=f"Column '{column}' has {orphans} orphan records" if not passed else "Referential integrity maintained",
                details={"orphan_count": orphans},
                failed_rows=orphans,
                total_rows=total,
            )

        self._checks.append(check)
        return self

    def validate(self, df: pl.DataFrame) -> ValidationResult:
        """
        Run all validation checks on DataFrame.

        Args:
            df: DataFrame to validate

        Returns:
            ValidationResult with all check results
        """
        started_at = datetime.utcnow()
        results = []

        logger.debug(f"Running {len(self._checks)} validation checks on {len(df)} rows", table=self.table)

        for check_func in self._checks:
            result = check_func(df)
            results.append(result)

            if not result.passed:
                logger.warning(
                    f"Validation failed: {result.name}",
                    table=self.table,
                    message=result.message,
                    severity=result.severity.value,
                )

        completed_at = datetime.utcnow()

        passed_checks = sum(1 for r in results if r.passed)
        failed_checks = sum(1 for r in results if not r.passed and r.severity == ValidationSeverity.ERROR)
        warning_count = sum(1 for r in results if not r.passed and r.severity == ValidationSeverity.WARNING)

        if failed_checks > 0:
            status = ValidationStatus.FAILED
        elif warning_count > 0 and self.strict_mode:
            status = ValidationStatus.FAILED
        elif warning_count > 0:
            status = ValidationStatus.PARTIAL
        else:
            status = ValidationStatus.PASSED

        validation_result = ValidationResult(
            table=self.table,
            status=status,
            total_checks=len(results),
            passed_checks=passed_checks,
            failed_checks=failed_checks,
            warning_count=warning_count,
            checks=results,
            started_at=started_at,
            completed_at=completed_at,
        )

        logger.info(
            f"Validation complete: {status.value}",
            table=self.table,
            passed=passed_checks,
            failed=failed_checks,
            warnings=warning_count,
        )

        return validation_result


# Contracts for the derived tables
def create_geolocation_validator() -> DataValidator:
    """dim_geolocation: one row per prefix, ambiguity matches the state set"""
    return (
        DataValidator("dim_geolocation")
        .add_not_null_check("zip_prefix")
        .add_unique_check("zip_prefix")
        .add_range_check("sample_count", min_value=1)
        .add_row_rule_check(
            "ambiguous_iff_multiple_states",
            pl.col("ambiguous") == (pl.col("states").list.len() > 1),
            "ambiguous flag disagrees with state set",
        )
    )


def create_customers_validator() -> DataValidator:
    """dim_customers: one row per identity"""
    return (
        DataValidator("dim_customers")
        .add_not_null_check("customer_unique_id")
        .add_unique_check("customer_unique_id")
        .add_not_null_check("representative_raw_id")
        .add_range_check("raw_id_variant_count", min_value=1)
    )


def create_products_validator() -> DataValidator:
    """dim_products: derived fields consistent with their inputs"""
    return (
        DataValidator("dim_products")
        .add_not_null_check("product_id")
        .add_unique_check("product_id")
        .add_not_null_check("category")
        .add_row_rule_check(
            "volume_iff_valid_dimensions",
            pl.col("volume_cm3").is_not_null() == ~pl.col("dim_invalid"),
            "volume present without valid dimensions, or missing with them",
        )
        .add_row_rule_check(
            "density_outlier_has_density",
            ~pl.col("density_outlier") | pl.col("density").is_not_null(),
            "density outlier without density",
        )
        .add_not_null_check("weight_g", severity=ValidationSeverity.INFO)
    )


def create_reviews_validator() -> DataValidator:
    return (
        DataValidator("order_reviews_dedup")
        .add_not_null_check("review_id")
        .add_unique_check("review_id")
        .add_range_check("review_score", min_value=1, max_value=5, severity=ValidationSeverity.WARNING)
    )


def create_orders_validator(customers: Optional[pl.DataFrame] = None) -> DataValidator:
    """orders_clean: one row per order, totals and coverage consistent"""
    validator = (
        DataValidator("orders_clean")
        .add_not_null_check("order_id")
        .add_unique_check("order_id")
        .add_not_null_check("customer_unique_id")
        .add_row_rule_check(
            "order_total_is_price_plus_freight",
            (
                pl.col("order_total").is_null()
                & (pl.col("sum_valid_price").is_null() | pl.col("sum_valid_freight").is_null())
            )
            | ((pl.col("order_total") - pl.col("sum_valid_price") - pl.col("sum_valid_freight")).abs() < 1e-6),
            "order_total differs from sum_valid_price + sum_valid_freight",
        )
        .add_row_rule_check(
            "coverage_null_without_total",
            pl.col("payment_coverage").is_null() | (pl.col("order_total").fill_null(0) != 0),
            "payment_coverage present while order_total is null or zero",
        )
        .add_range_check("payment_coverage", min_value=0)
        .add_not_null_check("items_count", severity=ValidationSeverity.WARNING)
    )
    if customers is not None:
        validator.add_referential_integrity_check("customer_unique_id", customers, "customer_unique_id")
    return validator


def create_rfm_validator() -> DataValidator:
    """customer_rfm: scores in 1..5, known segment labels"""
    validator = (
        DataValidator("customer_rfm")
        .add_not_null_check("customer_unique_id")
        .add_unique_check("customer_unique_id")
        .add_range_check("frequency", min_value=1)
        .add_enum_check("segment", [rule.label for rule in SEGMENT_RULES] + [DEFAULT_SEGMENT])
    )
    for score in ("recency_score", "frequency_score", "monetary_score"):
        validator.add_range_check(score, min_value=1, max_value=5)
    return validator


def create_unique_key_validator(table: str, key: Union[str, Sequence[str]]) -> DataValidator:
    """Generic key contract for the remaining tables"""
    columns = [key] if isinstance(key, str) else list(key)
    validator = DataValidator(table)
    for column in columns:
        validator.add_not_null_check(column)
    return validator.add_unique_check(columns)
