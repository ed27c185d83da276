"""
MRM price list (Precios_<MES><AÑO>_A.xlsx).

The workbook opens with a block of title rows; data starts at row 8. The
orchestrator drops those rows (settings.mrm_skip_rows) before rows reach
this adapter.

Column mappings:
- CÓDIGO → provider_sku
- DESCRIPCIÓN → name
- MOTO → brand
- MODELO → model
- UNIDAD → unit
- LÍNEA → category
- PRECIO → price
- PREC. DESC. → price_discounted
- PRECIO SUGERIDO → msrp
- CÓDIGO ANTERIOR → extra.old_code
"""

from typing import Optional

from models.imports import ProviderCode, StagedItem, DEFAULT_CURRENCY
from parsers.base_adapter import ProviderAdapter
from utils.text_utils import sanitize_price


class MRMAdapter(ProviderAdapter):
    """Spreadsheet layout with list, discounted and suggested prices."""

    provider_code = ProviderCode.MRM
    skip_rows_setting = "mrm_skip_rows"

    FIELD_ALIASES = {
        "provider_sku": ("código", "codigo", "code"),
        "name": ("descripción", "descripcion", "descrip", "description"),
        "brand": ("moto", "marca", "brand"),
        "model": ("modelo", "model"),
        "unit": ("unidad", "unit"),
        "category": ("línea", "linea", "line", "categoria", "categoría"),
        "price": ("precio", "price"),
        "price_discounted": (
            "prec. desc.",
            "prec desc",
            "precio desc",
            "precio descuento",
            "price discounted",
        ),
        "msrp": ("precio sugerido", "precio_sugerido", "msrp"),
        "old_code": ("código anterior", "codigo anterior", "old code", "codigo_anterior"),
    }

    def build_item(self, row: dict[str, str], row_index: int) -> Optional[StagedItem]:
        provider_sku = self.pick(row, "provider_sku")
        name = self.pick(row, "name")

        # Blank row
        if not provider_sku and not name:
            return None

        price_text = self.pick(row, "price")
        discounted_text = self.pick(row, "price_discounted")
        msrp_text = self.pick(row, "msrp")
        old_code = self.pick(row, "old_code")

        return StagedItem(
            provider_code=self.provider_code,
            provider_sku=provider_sku or self.placeholder_sku(row_index),
            name=name or self.NAME_PLACEHOLDER,
            brand=self.pick(row, "brand") or None,
            model=self.pick(row, "model") or None,
            category=self.pick(row, "category") or None,
            unit=self.pick(row, "unit") or None,
            price=sanitize_price(price_text) if price_text else None,
            price_discounted=sanitize_price(discounted_text) if discounted_text else None,
            msrp=sanitize_price(msrp_text) if msrp_text else None,
            currency=DEFAULT_CURRENCY,
            extra={"old_code": old_code} if old_code else {},
        )
