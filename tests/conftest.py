"""
Test Suite Configuration
"""
from datetime import date, datetime

import polars as pl
import pytest

from olist_analytics.config import Settings
from olist_analytics.ingestion.raw_loader import RawTables


SNAPSHOT_DATE = date(2018, 10, 17)


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """Create test settings"""
    return Settings(
        app_env="testing",
    )


@pytest.fixture
def snapshot_date() -> date:
    return SNAPSHOT_DATE


@pytest.fixture
def raw_geolocation() -> pl.DataFrame:
    """Samples for two zip prefixes; accents and spacing vary on purpose"""
    return pl.DataFrame({
        "geolocation_zip_code_prefix": ["01001", "01001", "01001", "01001", "20020", "20020"],
        "geolocation_lat": [-23.55, -23.56, -23.60, -23.50, -22.90, -22.92],
        "geolocation_lng": [-46.63, -46.64, -46.70, -46.80, -43.17, -43.19],
        "geolocation_city": ["São Paulo", "sao paulo ", "SAO  PAULO", "Osasco", "Rio de Janeiro", "rio de janeiro"],
        "geolocation_state": ["SP", "SP", "SP", "SP", "RJ", "RJ"],
    })


@pytest.fixture
def raw_customers() -> pl.DataFrame:
    """c1 and c2 are the same person (U1)"""
    return pl.DataFrame({
        "customer_id": ["c2", "c1", "c3", "c4"],
        "customer_unique_id": ["U1", "U1", "U2", "U3"],
        "customer_zip_code_prefix": ["01001", "01001", "20020", "99999"],
        "customer_city": ["Sao Paulo", "São Paulo", "Rio de Janeiro", "Porto Alegre"],
        "customer_state": ["SP", "sp", "RJ", "RS"],
    })


@pytest.fixture
def raw_orders() -> pl.DataFrame:
    return pl.DataFrame({
        "order_id": ["o1", "o2", "o3", "o4", "o5"],
        "customer_id": ["c1", "c2", "c3", "c4", "c3"],
        "order_status": ["delivered", "delivered", "canceled", "delivered", "Shipped"],
        "order_purchase_timestamp": [
            datetime(2018, 8, 1, 10, 0),
            datetime(2018, 9, 20, 9, 0),
            datetime(2018, 7, 1, 12, 0),
            datetime(2017, 6, 1, 8, 0),
            datetime(2018, 10, 1, 11, 0),
        ],
        "order_approved_at": [
            datetime(2018, 8, 1, 11, 0),
            datetime(2018, 9, 20, 10, 0),
            None,
            datetime(2017, 5, 31, 8, 0),
            datetime(2018, 10, 1, 12, 0),
        ],
        "order_delivered_carrier_date": [
            datetime(2018, 8, 3, 9, 0),
            datetime(2018, 9, 22, 9, 0),
            None,
            datetime(2017, 6, 3, 8, 0),
            None,
        ],
        "order_delivered_customer_date": [
            datetime(2018, 8, 10, 10, 0),
            datetime(2018, 9, 30, 9, 0),
            None,
            datetime(2017, 6, 10, 8, 0),
            None,
        ],
        "order_estimated_delivery_date": [
            datetime(2018, 8, 15),
            datetime(2018, 9, 25),
            datetime(2018, 7, 20),
            datetime(2017, 6, 20),
            datetime(2018, 10, 20),
        ],
    })


@pytest.fixture
def raw_order_items() -> pl.DataFrame:
    """o2 item price 0 and o4 missing freight are invalid; o5 has no items"""
    return pl.DataFrame({
        "order_id": ["o1", "o1", "o2", "o3", "o4"],
        "order_item_id": [1, 2, 1, 1, 1],
        "product_id": ["p1", "p2", "p3", "p1", "p2"],
        "seller_id": ["s1", "s1", "s2", "s1", "s2"],
        "shipping_limit_date": [
            datetime(2018, 8, 5),
            datetime(2018, 8, 4),
            datetime(2018, 9, 24),
            datetime(2018, 7, 5),
            datetime(2017, 6, 5),
        ],
        "price": [100.0, 0.0, 250.0, 80.0, 40.0],
        "freight_value": [10.0, 5.0, 20.0, 8.0, None],
    })


@pytest.fixture
def raw_order_payments() -> pl.DataFrame:
    return pl.DataFrame({
        "order_id": ["o1", "o1", "o2", "o3", "o4", "o4", "o5"],
        "payment_sequential": [1, 2, 1, 1, 1, 2, 1],
        "payment_type": ["credit_card", "VOUCHER", "boleto", "credit_card", "credit_card", "Debit_Card", "voucher"],
        "payment_installments": [3, 1, 1, 2, 1, 1, 1],
        "payment_value": [100.0, 15.0, 270.0, 88.0, 0.0, 40.0, 50.0],
    })


@pytest.fixture
def raw_order_reviews() -> pl.DataFrame:
    """r1 submitted three times"""
    return pl.DataFrame({
        "review_id": ["r1", "r1", "r1", "r2", "r3"],
        "order_id": ["o1", "o1", "o1", "o2", "o4"],
        "review_score": [2, 5, 1, 4, 3],
        "review_comment_title": [None, None, None, None, "meh"],
        "review_comment_message": ["primeira", "segunda", "terceira versao", "ok", "   "],
        "review_creation_date": [
            datetime(2018, 8, 11),
            datetime(2018, 8, 12),
            datetime(2018, 8, 13),
            datetime(2018, 10, 1),
            datetime(2017, 6, 11),
        ],
        "review_answer_timestamp": [
            None,
            None,
            None,
            datetime(2018, 10, 2, 10, 0),
            datetime(2017, 6, 12, 10, 0),
        ],
    })


@pytest.fixture
def raw_products() -> pl.DataFrame:
    return pl.DataFrame({
        "product_id": ["p1", "p2", "p3"],
        "product_category_name": ["beleza_saude", "cama_mesa_banho", "categoria_sem_traducao"],
        "product_name_lenght": [40, 35, 50],
        "product_description_lenght": [300, 120, 800],
        "product_photos_qty": [1, 2, 4],
        "product_weight_g": [500.0, 0.0, 20000.0],
        "product_length_cm": [10.0, 10.0, 10.0],
        "product_height_cm": [10.0, 5.0, 10.0],
        "product_width_cm": [10.0, 2.0, 10.0],
    })


@pytest.fixture
def raw_sellers() -> pl.DataFrame:
    return pl.DataFrame({
        "seller_id": ["s1", "s2"],
        "seller_zip_code_prefix": ["01001", "88888"],
        "seller_city": ["São Paulo", "Florianópolis"],
        "seller_state": ["SP", "SC"],
    })


@pytest.fixture
def raw_category_translation() -> pl.DataFrame:
    return pl.DataFrame({
        "product_category_name": ["beleza_saude", "cama_mesa_banho"],
        "product_category_name_english": ["health_beauty", "bed_bath_table"],
    })


@pytest.fixture
def raw_tables(
    raw_geolocation,
    raw_customers,
    raw_orders,
    raw_order_items,
    raw_order_payments,
    raw_order_reviews,
    raw_products,
    raw_sellers,
    raw_category_translation,
) -> RawTables:
    """Complete small raw snapshot"""
    return RawTables(
        geolocation=raw_geolocation,
        customers=raw_customers,
        orders=raw_orders,
        order_items=raw_order_items,
        order_payments=raw_order_payments,
        order_reviews=raw_order_reviews,
        products=raw_products,
        sellers=raw_sellers,
        category_translation=raw_category_translation,
    )
