"""
Unit tests for row hashing.

Run: pytest tests/unit/test_hash_utils.py -v
"""

import re
from dataclasses import replace

import pytest

from models.imports import ProviderCode, StagedItem
from utils.hash_utils import compute_row_hash, canonical_row, sha256_hex
from tests.factories import StagedItemFactory


HEX_64 = re.compile(r"^[0-9a-f]{64}$")


class TestComputeRowHash:
    """Tests for compute_row_hash()"""

    def test_hash_is_64_hex_chars(self):
        item = StagedItemFactory.create()

        assert HEX_64.match(compute_row_hash(item))

    def test_omitted_and_explicit_none_hash_the_same(self):
        """Should only depend on logical content."""
        # Arrange
        implicit = StagedItem(
            provider_code=ProviderCode.MRM,
            provider_sku="A-1",
            name="Filtro de Aire",
        )
        explicit = StagedItem(
            provider_code=ProviderCode.MRM,
            provider_sku="A-1",
            name="Filtro de Aire",
            brand=None,
            stock=None,
            price=None,
        )

        # Act / Assert
        assert compute_row_hash(implicit) == compute_row_hash(explicit)

    def test_integer_and_float_price_hash_the_same(self):
        base = StagedItemFactory.create(provider_sku="A-2")

        assert compute_row_hash(replace(base, price=1500)) == compute_row_hash(replace(base, price=1500.0))

    @pytest.mark.parametrize("field, value", [
        ("provider_sku", "OTHER"),
        ("name", "Otro nombre"),
        ("brand", "Honda"),
        ("model", "CG150"),
        ("category", "Llantas"),
        ("price", 1.0),
        ("price_discounted", 2.0),
        ("msrp", 3.0),
        ("stock", 99),
        ("unit", "PZA"),
        ("warehouse", "GDL"),
        ("provider_code", ProviderCode.MOTOS_Y_EQUIPOS),
    ])
    def test_changing_a_canonical_field_changes_hash(self, field, value):
        base = StagedItemFactory.create(provider_sku="A-3")

        changed = replace(base, **{field: value})

        assert compute_row_hash(changed) != compute_row_hash(base)

    def test_non_canonical_fields_do_not_change_hash(self):
        base = StagedItemFactory.create(provider_sku="A-4")

        changed = replace(base, description="Nueva", extra={"old_code": "Z"})

        assert compute_row_hash(changed) == compute_row_hash(base)

    def test_canonical_row_uses_empty_text_for_missing_fields(self):
        item = StagedItem(provider_code=ProviderCode.MRM, provider_sku="A-5", name="X")

        row = canonical_row(item)

        assert row["brand"] == ""
        assert row["warehouse"] == ""
        assert row["price"] is None
        assert row["providerCode"] == "mrm"


class TestSha256Hex:
    """Tests for sha256_hex()"""

    def test_known_digest(self):
        assert sha256_hex("abc") == (
            "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"
        )
