"""
Raw Table Loader

Read-only access to the raw Olist snapshot. Supports:
- CSV and Parquet extracts, one file per table
- Required-column validation
- Timestamp parsing for the known lifecycle columns
"""

from dataclasses import dataclass, fields
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Union

import polars as pl
import structlog

logger = structlog.get_logger(__name__)


class FileFormat(str, Enum):
    """Supported raw file formats"""
    CSV = "csv"
    PARQUET = "parquet"


@dataclass(frozen=True)
class RawTableSpec:
    """Location and contract of one raw table"""
    name: str
    file_stem: str
    required_columns: List[str]
    datetime_columns: List[str]


RAW_TABLE_SPECS: Dict[str, RawTableSpec] = {
    spec.name: spec
    for spec in [
        RawTableSpec(
            "geolocation",
            "olist_geolocation_dataset",
            ["geolocation_zip_code_prefix", "geolocation_lat", "geolocation_lng",
             "geolocation_city", "geolocation_state"],
            [],
        ),
        RawTableSpec(
            "customers",
            "olist_customers_dataset",
            ["customer_id", "customer_unique_id", "customer_zip_code_prefix",
             "customer_city", "customer_state"],
            [],
        ),
        RawTableSpec(
            "orders",
            "olist_orders_dataset",
            ["order_id", "customer_id", "order_status", "order_purchase_timestamp",
             "order_approved_at", "order_delivered_carrier_date",
             "order_delivered_customer_date", "order_estimated_delivery_date"],
            ["order_purchase_timestamp", "order_approved_at", "order_delivered_carrier_date",
             "order_delivered_customer_date", "order_estimated_delivery_date"],
        ),
        RawTableSpec(
            "order_items",
            "olist_order_items_dataset",
            ["order_id", "order_item_id", "product_id", "seller_id",
             "shipping_limit_date", "price", "freight_value"],
            ["shipping_limit_date"],
        ),
        RawTableSpec(
            "order_payments",
            "olist_order_payments_dataset",
            ["order_id", "payment_sequential", "payment_type",
             "payment_installments", "payment_value"],
            [],
        ),
        RawTableSpec(
            "order_reviews",
            "olist_order_reviews_dataset",
            ["review_id", "order_id", "review_score", "review_comment_message",
             "review_creation_date", "review_answer_timestamp"],
            ["review_creation_date", "review_answer_timestamp"],
        ),
        RawTableSpec(
            "products",
            "olist_products_dataset",
            ["product_id", "product_category_name", "product_weight_g",
             "product_length_cm", "product_height_cm", "product_width_cm"],
            [],
        ),
        RawTableSpec(
            "sellers",
            "olist_sellers_dataset",
            ["seller_id", "seller_zip_code_prefix", "seller_city", "seller_state"],
            [],
        ),
        RawTableSpec(
            "category_translation",
            "product_category_name_translation",
            ["product_category_name", "product_category_name_english"],
            [],
        ),
    ]
}

# identifiers and zip prefixes stay text so leading zeros survive
TEXT_COLUMNS = [
    "customer_id", "customer_unique_id", "customer_zip_code_prefix",
    "seller_id", "seller_zip_code_prefix", "order_id", "product_id", "review_id",
    "geolocation_zip_code_prefix",
]


@dataclass
class RawTables:
    """The nine raw record sets the pipeline consumes"""
    geolocation: pl.DataFrame
    customers: pl.DataFrame
    orders: pl.DataFrame
    order_items: pl.DataFrame
    order_payments: pl.DataFrame
    order_reviews: pl.DataFrame
    products: pl.DataFrame
    sellers: pl.DataFrame
    category_translation: pl.DataFrame

    def as_dict(self) -> Dict[str, pl.DataFrame]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


def check_required_columns(name: str, df: pl.DataFrame) -> None:
    """Raise ValueError if a raw table lacks columns the pipeline reads"""
    spec = RAW_TABLE_SPECS[name]
    missing = [c for c in spec.required_columns if c not in df.columns]
    if missing:
        raise ValueError(f"Raw table '{name}' is missing columns: {missing}")


def parse_datetimes(df: pl.DataFrame, columns: List[str], fmt: Optional[str] = None) -> pl.DataFrame:
    """Parse text timestamp columns; already-typed columns are left alone"""
    exprs = [
        pl.col(c).str.to_datetime(format=fmt, strict=False).alias(c)
        for c in columns
        if c in df.columns and df.schema[c] == pl.Utf8
    ]
    return df.with_columns(exprs) if exprs else df


class RawTableLoader:
    """
    Loads the raw snapshot from a directory of extracts.

    Example:
        loader = RawTableLoader("data/raw", FileFormat.CSV)
        raw = loader.load_all()
    """

    def __init__(
        self,
        source_dir: Union[str, Path],
        file_format: FileFormat = FileFormat.CSV,
        null_values: Optional[List[str]] = None,
    ):
        self.source_dir = Path(source_dir)
        self.file_format = FileFormat(file_format)
        self.null_values = null_values or ["", "NULL", "null", "None", "NA", "N/A"]

    def path_for(self, name: str) -> Path:
        spec = RAW_TABLE_SPECS[name]
        return self.source_dir / f"{spec.file_stem}.{self.file_format.value}"

    def _read_csv(self, path: Path) -> pl.DataFrame:
        """Read CSV file with identifier columns forced to text"""
        header = pl.read_csv(path, n_rows=0).columns
        overrides = {c: pl.Utf8 for c in TEXT_COLUMNS if c in header}
        return pl.read_csv(
            path,
            null_values=self.null_values,
            schema_overrides=overrides,
            infer_schema_length=10000,
        )

    def _read_parquet(self, path: Path) -> pl.DataFrame:
        """Read Parquet file"""
        return pl.read_parquet(path)

    def load(self, name: str) -> pl.DataFrame:
        """
        Load one raw table.

        Raises:
            KeyError: unknown table name
            FileNotFoundError: extract missing
            ValueError: required columns missing
        """
        spec = RAW_TABLE_SPECS[name]
        path = self.path_for(name)
        if not path.exists():
            raise FileNotFoundError(f"Raw extract not found: {path}")

        if self.file_format == FileFormat.CSV:
            df = self._read_csv(path)
        else:
            df = self._read_parquet(path)

        check_required_columns(name, df)
        df = parse_datetimes(df, spec.datetime_columns)

        logger.info("Loaded raw table", table=name, rows=df.height, path=str(path))
        return df

    def load_all(self) -> RawTables:
        """Load every raw table"""
        return RawTables(**{name: self.load(name) for name in RAW_TABLE_SPECS})
