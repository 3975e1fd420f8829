"""
Unit Tests - Data Quality
"""
import pytest
import polars as pl

from olist_analytics.quality.validators import (
    DataValidator,
    ValidationSeverity,
    ValidationStatus,
    create_geolocation_validator,
    create_orders_validator,
    create_rfm_validator,
    create_unique_key_validator,
)


class TestDataValidator:
    """Tests for DataValidator"""

    def test_not_null_check_passes(self):
        """Test not null check with valid data"""
        df = pl.DataFrame({"id": [1, 2, 3], "name": ["a", "b", "c"]})

        validator = DataValidator()
        validator.add_not_null_check("id")

        result = validator.validate(df)

        assert result.status == ValidationStatus.PASSED
        assert result.passed_checks == 1

    def test_not_null_check_fails(self):
        """Test not null check with null values"""
        df = pl.DataFrame({"id": [1, None, 3], "name": ["a", "b", "c"]})

        validator = DataValidator()
        validator.add_not_null_check("id")

        result = validator.validate(df)

        assert result.status == ValidationStatus.FAILED
        assert result.failed_checks == 1

    def test_missing_column_fails(self):
        """A check on an absent column fails instead of raising"""
        df = pl.DataFrame({"id": [1]})

        result = DataValidator().add_not_null_check("other").validate(df)

        assert result.status == ValidationStatus.FAILED
        assert "not found" in result.failures[0].message

    def test_unique_check_fails(self):
        """Test unique check with duplicates"""
        df = pl.DataFrame({"id": [1, 2, 1]})

        validator = DataValidator()
        validator.add_unique_check("id")

        result = validator.validate(df)

        assert result.status == ValidationStatus.FAILED
        assert result.checks[0].failed_rows == 1

    def test_composite_unique_check(self):
        """A key spanning two columns is unique as a pair"""
        df = pl.DataFrame({"order_id": ["a", "a", "b"], "item": [1, 2, 1]})

        result = DataValidator().add_unique_check(["order_id", "item"]).validate(df)

        assert result.status == ValidationStatus.PASSED

    def test_range_check(self):
        """Test range check; nulls are ignored"""
        df = pl.DataFrame({"score": [1, 5, 0, 7, None]})

        validator = DataValidator()
        validator.add_range_check("score", min_value=1, max_value=5)

        result = validator.validate(df)

        assert result.status == ValidationStatus.FAILED
        # Two values outside range: 0 and 7
        check = result.checks[0]
        assert check.failed_rows == 2

    def test_enum_check(self):
        """Test enum/allowed values check"""
        df = pl.DataFrame({"status": ["delivered", "shipped", "lost_in_space"]})

        validator = DataValidator()
        validator.add_enum_check("status", ["delivered", "shipped", "canceled"])

        result = validator.validate(df)

        assert result.status == ValidationStatus.FAILED

    def test_row_rule_null_counts_as_failure(self):
        """A rule that evaluates to null fails the row"""
        df = pl.DataFrame({"a": [1, None, 3], "b": [1, 1, 3]})

        result = DataValidator().add_row_rule_check(
            "a_equals_b", pl.col("a") == pl.col("b"), "a differs from b"
        ).validate(df)

        assert result.checks[0].failed_rows == 1

    def test_warning_is_partial(self):
        """Warning-level failures do not fail the table unless strict"""
        df = pl.DataFrame({"id": [1, None]})

        lenient = DataValidator().add_not_null_check("id", severity=ValidationSeverity.WARNING)
        strict = DataValidator(strict_mode=True).add_not_null_check("id", severity=ValidationSeverity.WARNING)

        assert lenient.validate(df).status == ValidationStatus.PARTIAL
        assert strict.validate(df).status == ValidationStatus.FAILED

    def test_referential_integrity(self):
        """Values missing from the reference table are orphans"""
        customers = pl.DataFrame({"customer_unique_id": ["U1", "U2"]})
        orders = pl.DataFrame({"customer_unique_id": ["U1", "U3", None]})

        result = DataValidator().add_referential_integrity_check(
            "customer_unique_id", customers, "customer_unique_id"
        ).validate(orders)

        assert result.checks[0].failed_rows == 1


class TestTableContracts:
    """Tests for the pre-built contracts"""

    def test_geolocation_ambiguity_rule(self):
        """ambiguous must agree with the state set"""
        df = pl.DataFrame({
            "zip_prefix": [1, 2],
            "sample_count": [3, 1],
            "states": [["SP"], ["MG", "RJ"]],
            "ambiguous": [False, False],
        })

        result = create_geolocation_validator().validate(df)

        assert result.status == ValidationStatus.FAILED
        assert [c.name for c in result.failures] == ["ambiguous_iff_multiple_states"]

    def test_orders_total_consistency(self):
        """order_total must equal valid price plus valid freight"""
        df = pl.DataFrame({
            "order_id": ["o1", "o2", "o3"],
            "customer_unique_id": ["U1", "U1", "U2"],
            "items_count": [1, 1, None],
            "sum_valid_price": [10.0, 10.0, None],
            "sum_valid_freight": [2.0, 2.0, None],
            "order_total": [12.0, 15.0, None],
            "payment_coverage": [1.0, 0.8, None],
        })

        result = create_orders_validator().validate(df)

        failures = {c.name: c.failed_rows for c in result.failures}
        assert failures == {"order_total_is_price_plus_freight": 1, "not_null_items_count": 1}
        assert result.status == ValidationStatus.FAILED

    def test_rfm_scores_in_range(self):
        """Scores outside 1..5 and unknown labels are rejected"""
        df = pl.DataFrame({
            "customer_unique_id": ["U1", "U2"],
            "frequency": [1, 2],
            "recency_score": [5, 6],
            "frequency_score": [1, 2],
            "monetary_score": [1, 3],
            "segment": ["low_value_one_timers", "vip"],
        })

        result = create_rfm_validator().validate(df)

        assert {c.name for c in result.failures} == {"range_recency_score", "enum_segment"}

    @pytest.mark.parametrize("key", ["order_id", ["order_id", "order_item_id"]])
    def test_unique_key_validator(self, key):
        """Generic key contract accepts one or several columns"""
        df = pl.DataFrame({"order_id": ["a", "b"], "order_item_id": [1, 1]})

        result = create_unique_key_validator("some_table", key).validate(df)

        assert result.table == "some_table"
        assert result.status == ValidationStatus.PASSED
