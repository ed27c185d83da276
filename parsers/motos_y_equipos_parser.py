"""
Motos y Equipos availability export (Disp_cte_admin.csv).

Column mappings:
- Cod. com → provider_sku
- Descrip. → name
- Marca → brand
- Almacen → warehouse
- Disp. → stock (int)
- Precio. → price (strip $ and ,)
- Fec. Rec. → extra.received_at_raw
"""

from typing import Optional

from models.imports import ProviderCode, StagedItem, DEFAULT_CURRENCY
from parsers.base_adapter import ProviderAdapter, parse_stock
from utils.text_utils import sanitize_price


class MotosYEquiposAdapter(ProviderAdapter):
    """CSV layout with one row per SKU and warehouse."""

    provider_code = ProviderCode.MOTOS_Y_EQUIPOS

    FIELD_ALIASES = {
        "provider_sku": ("cod. com", "cod com", "codigo", "codigo com"),
        "name": ("descrip.", "descrip", "descripcion", "descripción"),
        "brand": ("marca",),
        "warehouse": ("almacen", "almacén"),
        "stock": ("disp.", "disp", "disponible", "disponibilidad"),
        "price": ("precio.", "precio"),
        "received_at": ("fec. rec.", "fec rec", "fecha rec", "fecha recepcion"),
    }

    def build_item(self, row: dict[str, str], row_index: int) -> Optional[StagedItem]:
        provider_sku = self.pick(row, "provider_sku")
        name = self.pick(row, "name")

        # Blank row
        if not provider_sku and not name:
            return None

        price_text = self.pick(row, "price")
        received_at = self.pick(row, "received_at")

        return StagedItem(
            provider_code=self.provider_code,
            provider_sku=provider_sku or self.placeholder_sku(row_index),
            name=name or self.NAME_PLACEHOLDER,
            brand=self.pick(row, "brand") or None,
            warehouse=self.pick(row, "warehouse") or None,
            stock=parse_stock(self.pick(row, "stock")),
            price=sanitize_price(price_text) if price_text else None,
            currency=DEFAULT_CURRENCY,
            extra={"received_at_raw": received_at} if received_at else {},
        )
