from datetime import datetime
from pathlib import Path
from typing import Any, List, Sequence
import csv

from .settings import EXPORT_DIR


def _csv_value(v: Any) -> str:
    if v is None:
        return ""
    if isinstance(v, (bytes, bytearray, memoryview)):
        return bytes(v).hex()
    return str(v)


def default_export_path(label: str = "results") -> Path:
    """Return a timestamped .csv path under the export directory."""
    safe = "".join(ch if ch.isalnum() or ch in "-_" else "_" for ch in label) or "results"
    stamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    return EXPORT_DIR / f"{safe}-{stamp}.csv"


def export_to_csv(columns: List[str], rows: Sequence[Sequence[Any]], path: str | Path, include_header: bool = True, delimiter: str = ',', utf8_bom: bool = False) -> Path:
    """Write columns and rows to a CSV file and return the final path.

    - A missing .csv suffix is appended and parent directories are created.
    - None becomes an empty field, binary values are written as hex.
    - utf8_bom: write with 'utf-8-sig' for spreadsheet tools that need it.
    """
    path = Path(path)
    if path.suffix.lower() != ".csv":
        path = path.with_name(path.name + ".csv")
    path.parent.mkdir(parents=True, exist_ok=True)

    encoding = 'utf-8-sig' if utf8_bom else 'utf-8'
    with open(path, "w", newline='', encoding=encoding) as f:
        writer = csv.writer(f, delimiter=delimiter)
        if include_header and columns:
            writer.writerow(columns)
        for row in rows:
            writer.writerow([_csv_value(v) for v in row])
    return path
