"""
Supplier file parsers.

Adapters are looked up by provider code; adding a supplier means adding an
adapter module and one entry in ADAPTERS.
"""

from typing import Union

from exceptions import UnknownProviderError
from models.imports import ProviderCode
from parsers.base_adapter import ProviderAdapter
from parsers.motos_y_equipos_parser import MotosYEquiposAdapter
from parsers.mrm_parser import MRMAdapter
from parsers.provider_detector import detect_provider
from parsers.validators import RowValidation, validate_staged_item
from parsers.file_reader import FileFormat, detect_file_format, read_rows

ADAPTERS: dict[ProviderCode, type[ProviderAdapter]] = {
    ProviderCode.MOTOS_Y_EQUIPOS: MotosYEquiposAdapter,
    ProviderCode.MRM: MRMAdapter,
}


def get_adapter(provider_code: Union[ProviderCode, str]) -> ProviderAdapter:
    """
    Get the adapter for a provider.

    Raises:
        UnknownProviderError: No adapter registered for the code
    """
    try:
        code = ProviderCode(provider_code)
    except ValueError:
        raise UnknownProviderError(str(provider_code), [p.value for p in ADAPTERS])

    adapter_class = ADAPTERS.get(code)
    if adapter_class is None:
        raise UnknownProviderError(code.value, [p.value for p in ADAPTERS])
    return adapter_class()


__all__ = [
    "ADAPTERS",
    "get_adapter",
    "ProviderAdapter",
    "MotosYEquiposAdapter",
    "MRMAdapter",
    "detect_provider",
    "RowValidation",
    "validate_staged_item",
    "FileFormat",
    "detect_file_format",
    "read_rows",
]
