"""
Unit Tests - Dimension Builders
"""
import polars as pl
import pytest

from olist_analytics.transformation.customers import CUSTOMER_COLUMNS, CustomerCanonicalizer
from olist_analytics.transformation.geo import GEO_COLUMNS, GeoResolver, attach_coordinates
from olist_analytics.transformation.products import ProductNormalizer
from olist_analytics.transformation.sellers import SELLER_COLUMNS, SellerResolver


@pytest.fixture
def dim_geolocation(raw_geolocation) -> pl.DataFrame:
    return GeoResolver().resolve(raw_geolocation)


class TestGeoResolver:
    """Tests for GeoResolver"""

    def test_one_row_per_prefix(self, dim_geolocation):
        """Samples collapse to one record per integer prefix"""
        assert dim_geolocation.columns == GEO_COLUMNS
        assert dim_geolocation["zip_prefix"].to_list() == [1001, 20020]

    def test_normalized_city_wins_with_median(self, dim_geolocation):
        """Spelling variants count together; coordinates are the group median"""
        row = dim_geolocation.filter(pl.col("zip_prefix") == 1001).row(0, named=True)

        assert row["city"] == "sao paulo"
        assert row["sample_count"] == 3
        assert row["lat"] == pytest.approx(-23.56)
        assert row["lng"] == pytest.approx(-46.64)
        assert row["states"] == ["SP"]
        assert row["ambiguous"] is False
        assert row["dominant_state"] == "SP"

    def test_ties_and_ambiguity(self):
        """Tied groups go to the smallest city and smallest state"""
        df = pl.DataFrame({
            "geolocation_zip_code_prefix": ["2002", "2002", "2002", "2002", "2002", "abc"],
            "geolocation_lat": [-22.9, -22.8, -22.7, -22.6, None, -1.0],
            "geolocation_lng": [-43.1, -43.2, -43.3, -43.4, -43.5, -1.0],
            "geolocation_city": ["rio", "rio", "niteroi", "Niterói", "rio", "x"],
            "geolocation_state": ["RJ", "RJ", "MG", "MG", "RJ", "SP"],
        })

        result = GeoResolver().resolve(df)

        assert result.height == 1
        row = result.row(0, named=True)
        assert row["zip_prefix"] == 2002
        assert row["city"] == "niteroi"
        assert row["sample_count"] == 2
        assert row["states"] == ["MG", "RJ"]
        assert row["ambiguous"] is True
        assert row["dominant_state"] == "MG"

    def test_attach_coordinates_matches_padded_text(self, dim_geolocation):
        """Padded text prefixes match integer geo keys"""
        df = pl.DataFrame({"zip_prefix": ["01001", "55555"]})

        result = attach_coordinates(df, dim_geolocation)

        assert result["geo_matched"].to_list() == [True, False]
        assert result["lat"][0] == pytest.approx(-23.56)
        assert result["lat"][1] is None


class TestCustomerCanonicalizer:
    """Tests for CustomerCanonicalizer"""

    def test_shared_identity_collapses(self, raw_customers):
        """Two raw ids for one person become a single record"""
        result = CustomerCanonicalizer().canonicalize(raw_customers)

        assert result.columns == CUSTOMER_COLUMNS
        assert result.height == 3
        u1 = result.filter(pl.col("customer_unique_id") == "U1").row(0, named=True)
        assert u1["representative_raw_id"] == "c1"
        assert u1["raw_id_variant_count"] == 2
        assert u1["city"] == "sao paulo"
        assert u1["state"] == "SP"
        assert u1["zip_prefix"] == "01001"

    def test_first_non_null_location(self):
        """A null location on the smallest raw id falls through to the next"""
        df = pl.DataFrame({
            "customer_id": ["a", "b"],
            "customer_unique_id": ["U", "U"],
            "customer_zip_code_prefix": [None, "12345"],
            "customer_city": [None, "Campinas"],
            "customer_state": ["SP", "RJ"],
        }, schema_overrides={"customer_zip_code_prefix": pl.Utf8, "customer_city": pl.Utf8})

        row = CustomerCanonicalizer().canonicalize(df).row(0, named=True)

        assert row["zip_prefix"] == "12345"
        assert row["city"] == "campinas"
        assert row["state"] == "SP"

    def test_null_identity_excluded(self):
        """Raw rows without customer_unique_id do not produce a record"""
        df = pl.DataFrame({
            "customer_id": ["a", "b"],
            "customer_unique_id": ["U", None],
            "customer_zip_code_prefix": ["01001", "01001"],
            "customer_city": ["x", "y"],
            "customer_state": ["SP", "SP"],
        })

        canonicalizer = CustomerCanonicalizer()

        assert canonicalizer.canonicalize(df)["customer_unique_id"].to_list() == ["U"]
        assert canonicalizer.identity_map(df)["customer_id"].to_list() == ["a"]

    def test_geo_attached(self, raw_customers, dim_geolocation):
        """Canonical zip prefix picks up median coordinates"""
        result = CustomerCanonicalizer().canonicalize(raw_customers, dim_geolocation)

        matched = dict(zip(result["customer_unique_id"], result["geo_matched"]))
        assert matched == {"U1": True, "U2": True, "U3": False}


class TestProductNormalizer:
    """Tests for ProductNormalizer"""

    @pytest.fixture
    def dim_products(self, raw_products, raw_category_translation):
        return ProductNormalizer().normalize(raw_products, raw_category_translation)

    def test_zero_weight_is_invalid(self, dim_products):
        """Zero weight becomes null; volume survives, density does not"""
        row = dim_products.filter(pl.col("product_id") == "p2").row(0, named=True)

        assert row["weight_g"] is None
        assert row["weight_invalid"] is True
        assert row["dim_invalid"] is False
        assert row["volume_cm3"] == pytest.approx(100.0)
        assert row["density"] is None
        assert row["category"] == "bed_bath_table"

    def test_density_and_outlier(self, dim_products):
        """Density is weight over volume; dense products are flagged"""
        rows = {r["product_id"]: r for r in dim_products.iter_rows(named=True)}

        assert rows["p1"]["density"] == pytest.approx(0.5)
        assert rows["p1"]["density_outlier"] is False
        assert rows["p3"]["density"] == pytest.approx(20.0)
        assert rows["p3"]["density_outlier"] is True

    def test_untranslated_category(self, dim_products):
        """A category with no translation defaults to 'other' and is flagged"""
        row = dim_products.filter(pl.col("product_id") == "p3").row(0, named=True)

        assert row["category"] == "other"
        assert row["category_missing_translation"] is True

    def test_descriptive_columns_renamed(self, dim_products):
        """Upstream 'lenght' columns come out spelled correctly"""
        assert "product_name_length" in dim_products.columns
        assert "product_description_length" in dim_products.columns
        assert "product_name_lenght" not in dim_products.columns

    def test_missing_dimension(self, raw_category_translation):
        """One zero dimension invalidates volume and density"""
        df = pl.DataFrame({
            "product_id": ["p"],
            "product_category_name": ["beleza_saude"],
            "product_weight_g": [100.0],
            "product_length_cm": [10.0],
            "product_height_cm": [0.0],
            "product_width_cm": [10.0],
        })

        row = ProductNormalizer().normalize(df, raw_category_translation).row(0, named=True)

        assert row["height_cm"] is None
        assert row["dim_invalid"] is True
        assert row["volume_cm3"] is None
        assert row["density"] is None
        assert row["weight_invalid"] is False

    def test_custom_threshold(self, raw_products, raw_category_translation):
        """The outlier threshold is configurable"""
        result = ProductNormalizer(density_threshold=0.1).normalize(raw_products, raw_category_translation)

        assert result.filter(pl.col("density_outlier"))["product_id"].to_list() == ["p1", "p3"]


class TestSellerResolver:
    """Tests for SellerResolver"""

    def test_resolve(self, raw_sellers, dim_geolocation):
        """Sellers are normalized and placed on the geo dimension"""
        result = SellerResolver().resolve(raw_sellers, dim_geolocation)

        assert result.columns == SELLER_COLUMNS
        rows = {r["seller_id"]: r for r in result.iter_rows(named=True)}
        assert rows["s1"]["city"] == "sao paulo"
        assert rows["s1"]["geo_matched"] is True
        assert rows["s1"]["zip_prefix_ambiguous"] is False
        assert rows["s2"]["city"] == "florianopolis"
        assert rows["s2"]["geo_matched"] is False
        assert rows["s2"]["lat"] is None
