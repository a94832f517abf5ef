import csv
import io
from typing import Dict, List

from app.services.roster.interfaces import CsvSource
from app.utils.errors import RosterValidationError


class DictCsvSource(CsvSource):
    """Reads an uploaded CSV into header-keyed rows, skipping blank lines."""

    def __init__(self, encoding: str = "utf-8-sig"):
        # utf-8-sig strips the BOM spreadsheet exports prepend
        self.encoding = encoding

    def read(self, content: bytes) -> List[Dict[str, str]]:
        try:
            text = content.decode(self.encoding)
        except UnicodeDecodeError as e:
            raise RosterValidationError(
                "CSV file must be UTF-8 encoded", field="file"
            ) from e

        reader = csv.DictReader(io.StringIO(text, newline=""))
        if not reader.fieldnames:
            raise RosterValidationError("CSV file has no header row", field="file")

        rows = []
        for raw in reader:
            row = {
                (key or "").strip(): (value or "").strip()
                for key, value in raw.items()
                if key is not None and not isinstance(value, list)
            }
            if any(row.values()):
                rows.append(row)
        return rows
