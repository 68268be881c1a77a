# cargo_billing/importers/base_importer.py

import logging
import pandas as pd
from pathlib import Path
from typing import Dict, List, Optional
from ftfy import fix_text
from unidecode import unidecode

from cargo_billing.core.constants import StandardColumns
from cargo_billing.core.types import RawRow

logger = logging.getLogger(__name__)


class CSVReader:
    """Unified CSV reading with encoding/delimiter detection."""

    ENCODINGS = ["utf-8", "iso-8859-1", "latin-1"]
    DELIMITERS = [";", ",", "\t"]

    @staticmethod
    def read_csv(
        path: str,
        dtype: str = "str",
        delimiter: Optional[str] = None,
        **kwargs
    ) -> Optional[pd.DataFrame]:
        """
        Read CSV with automatic encoding/delimiter detection.

        A delimiter is accepted only when it splits the header into more
        than one column, unless it was given explicitly.

        Args:
            path: CSV file path
            dtype: Data type for columns
            delimiter: Specific delimiter or None for auto-detect
            **kwargs: Additional pandas read_csv arguments

        Returns:
            DataFrame or None if reading fails
        """
        delimiters = [delimiter] if delimiter else CSVReader.DELIMITERS

        for delim in delimiters:
            for encoding in CSVReader.ENCODINGS:
                try:
                    df = pd.read_csv(
                        path,
                        sep=delim,
                        dtype=dtype,
                        encoding=encoding,
                        skipinitialspace=True,
                        on_bad_lines="skip",
                        **kwargs
                    )
                except (UnicodeDecodeError, pd.errors.ParserError, pd.errors.EmptyDataError):
                    continue
                if df is not None and not df.empty and (delimiter or len(df.columns) > 1):
                    logger.debug(f"✅ Read {path} with delimiter='{delim}', encoding={encoding}")
                    return df

        logger.error(f"❌ Could not read {path} with any encoding/delimiter combination")
        return None


class HeaderNormalizer:
    """Normalize spreadsheet headers and map them to record fields."""

    # Normalized header -> stored record field
    HEADER_MAP: Dict[str, str] = {
        # Mail agent export
        "inb flight date": StandardColumns.INB_FLIGHT_DATE,
        "outb flight date": StandardColumns.OUTB_FLIGHT_DATE,
        "rec id": StandardColumns.REC_ID,
        "des no": StandardColumns.DES_NO,
        "rec numb": StandardColumns.REC_NUMB,
        "orig oe": StandardColumns.ORIG_OE,
        "dest oe": StandardColumns.DEST_OE,
        "inb flight no": StandardColumns.INB_FLIGHT_NO,
        "inb flight no sta": StandardColumns.INB_FLIGHT_NO,
        "outb flight no": StandardColumns.OUTB_FLIGHT_NO,
        "outb flight no std": StandardColumns.OUTB_FLIGHT_NO,
        "mail cat": StandardColumns.MAIL_CAT,
        "mail class": StandardColumns.MAIL_CLASS,
        "total kg": StandardColumns.TOTAL_KG,
        "invoice": StandardColumns.INVOICE,
        "customer name number": StandardColumns.CUSTOMER_NAME_NUMBER,
        "total eur": StandardColumns.TOTAL_EUR,
        # Mail system export
        "flight date": StandardColumns.INB_FLIGHT_DATE,
        "record id": StandardColumns.REC_ID,
        "destination": StandardColumns.DES_NO,
        "record number": StandardColumns.REC_NUMB,
        "origin oe": StandardColumns.ORIG_OE,
        "destination oe": StandardColumns.DEST_OE,
        "flight number": StandardColumns.INB_FLIGHT_NO,
        "outbound flight": StandardColumns.OUTB_FLIGHT_NO,
        "mail category": StandardColumns.MAIL_CAT,
        "mail classification": StandardColumns.MAIL_CLASS,
        "weight kg": StandardColumns.TOTAL_KG,
        "invoice type": StandardColumns.INVOICE,
        "customer info": StandardColumns.CUSTOMER_NAME_NUMBER,
    }

    @staticmethod
    def normalize_header(header: str) -> str:
        """
        Clean a single spreadsheet header.

        "Inb. Flight No. | STA" -> "inb flight no sta"
        """
        h = fix_text(str(header).strip())
        h = unidecode(h)
        for char in "*-_./|()":
            h = h.replace(char, " ")
        return ' '.join(h.split()).lower()

    @classmethod
    def apply_header_mapping(
        cls,
        df: pd.DataFrame,
        header_map: Optional[Dict[str, str]] = None,
    ) -> pd.DataFrame:
        """
        Rename DataFrame columns to record fields.

        Unknown headers keep their normalized name; duplicates get a
        numeric suffix so no column is silently overwritten.
        """
        mapping = header_map if header_map is not None else cls.HEADER_MAP

        new_columns = []
        seen = {}
        for orig_h in df.columns:
            norm_h = cls.normalize_header(orig_h)
            mapped = mapping.get(norm_h, norm_h)
            if mapped in seen:
                seen[mapped] += 1
                mapped = f"{mapped}_{seen[mapped]}"
            else:
                seen[mapped] = 0
            new_columns.append(mapped)

        df.columns = new_columns
        return df


class SpreadsheetReader:
    """Reads CSV or Excel exports into column-mapped raw rows."""

    EXCEL_SUFFIXES = {".xlsx", ".xls"}

    def __init__(self, header_map: Optional[Dict[str, str]] = None):
        self.csv_reader = CSVReader()
        self.header_map = header_map

    def read_rows(self, path: str, sheet_name=0) -> List[RawRow]:
        """
        Read a spreadsheet file into raw rows.

        Args:
            path: CSV or Excel file path
            sheet_name: Excel sheet (ignored for CSV)

        Returns:
            List of row dicts keyed by record field; empty cells are None
        """
        file_path = Path(path)
        if file_path.suffix.lower() in self.EXCEL_SUFFIXES:
            df = pd.read_excel(file_path, sheet_name=sheet_name, dtype=str)
        else:
            df = self.csv_reader.read_csv(str(file_path))

        if df is None or df.empty:
            logger.warning(f"⚠️ No rows read from {file_path.name}")
            return []

        df = df.dropna(how="all")
        df = HeaderNormalizer.apply_header_mapping(df, self.header_map)
        df = df.astype(object).where(df.notna(), None)

        logger.info(f"📋 Read {len(df)} rows from {file_path.name}: {df.columns.tolist()}")
        return df.to_dict("records")
