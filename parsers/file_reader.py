"""
Read supplier files into row dicts.

Every cell is read as text so codes keep their written form. Spreadsheets use
the first sheet with its first row as header (openpyxl for .xlsx, xlrd for
legacy .xls).
"""

from enum import Enum
from io import BytesIO, StringIO
from urllib.parse import urlparse
import pandas as pd
import structlog

from exceptions import FileParseError

logger = structlog.get_logger(__name__)

ZIP_SIGNATURE = b"PK"
OLE_SIGNATURE = b"\xd0\xcf\x11\xe0"


class FileFormat(str, Enum):
    CSV = "csv"
    XLSX = "xlsx"
    XLS = "xls"

    @property
    def is_spreadsheet(self) -> bool:
        return self != FileFormat.CSV


EXCEL_ENGINES = {
    FileFormat.XLSX: "openpyxl",
    FileFormat.XLS: "xlrd",
}


def detect_file_format(url: str, content: bytes) -> FileFormat:
    """
    Detect the container format.

    The URL extension wins; otherwise the leading bytes are sniffed. Anything
    that is not a ZIP or OLE container is treated as delimited text.
    """
    path = urlparse(url).path.lower()
    if path.endswith(".csv"):
        return FileFormat.CSV
    if path.endswith(".xlsx"):
        return FileFormat.XLSX
    if path.endswith(".xls"):
        return FileFormat.XLS

    if content.startswith(ZIP_SIGNATURE):
        return FileFormat.XLSX
    if content.startswith(OLE_SIGNATURE):
        return FileFormat.XLS
    return FileFormat.CSV


def decode_text(content: bytes) -> str:
    """UTF-8 (BOM tolerated), falling back to Latin-1 for older exports."""
    try:
        return content.decode("utf-8-sig")
    except UnicodeDecodeError:
        logger.debug("csv_decoded_latin1")
        return content.decode("latin-1")


def _to_records(df: pd.DataFrame) -> list[dict]:
    """Rows as dicts with trimmed headers; NaN → None; blank rows dropped."""
    df.columns = [str(c).strip() for c in df.columns]
    df = df.astype(object).where(pd.notna(df), None)

    records = []
    for row in df.to_dict(orient="records"):
        if all(value is None or str(value).strip() == "" for value in row.values()):
            continue
        records.append(row)
    return records


def read_rows(content: bytes, file_format: FileFormat) -> list[dict]:
    """
    Read every data row of a file.

    Args:
        content: Raw file bytes
        file_format: Container format from detect_file_format()

    Returns:
        List of header -> cell dicts, fully blank rows excluded

    Raises:
        FileParseError: File could not be read in the given format
    """
    try:
        if file_format == FileFormat.CSV:
            df = pd.read_csv(
                StringIO(decode_text(content)),
                dtype=str,
                keep_default_na=False,
                skip_blank_lines=True,
            )
        else:
            df = pd.read_excel(
                BytesIO(content),
                sheet_name=0,
                header=0,
                engine=EXCEL_ENGINES[file_format],
                dtype=str,
            )
    except pd.errors.EmptyDataError:
        logger.warning("import_file_empty", format=file_format.value)
        return []
    except Exception as e:
        logger.error("import_file_parse_failed", format=file_format.value, error=str(e))
        raise FileParseError(
            f"Could not read file as {file_format.value}: {e}",
            details={"format": file_format.value}
        )

    records = _to_records(df)
    logger.debug("import_file_read", format=file_format.value, rows=len(records))
    return records
