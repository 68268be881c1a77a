# cargo_billing/importers/cargo_converter.py

import logging
import math
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from cargo_billing.core.constants import DefaultValues, StandardColumns
from cargo_billing.core.exceptions import RowConversionError
from cargo_billing.core.types import RawRow, Record

logger = logging.getLogger(__name__)


class CargoRecordConverter:
    """
    Converts one column-mapped spreadsheet row into a cargo_data record.

    String columns are stripped and truncated to their stored length;
    weight and amount columns must be numeric when present.
    """

    # Keys produced by the upload UI -> record fields
    FIELD_ALIASES: Dict[str, str] = {
        "recordId": StandardColumns.REC_ID,
        "date": StandardColumns.INB_FLIGHT_DATE,
        "outbDate": StandardColumns.OUTB_FLIGHT_DATE,
        "desNo": StandardColumns.DES_NO,
        "recNumb": StandardColumns.REC_NUMB,
        "origOE": StandardColumns.ORIG_OE,
        "destOE": StandardColumns.DEST_OE,
        "inbFlightNo": StandardColumns.INB_FLIGHT_NO,
        "outbFlightNo": StandardColumns.OUTB_FLIGHT_NO,
        "mailCat": StandardColumns.MAIL_CAT,
        "mailClass": StandardColumns.MAIL_CLASS,
        "totalKg": StandardColumns.TOTAL_KG,
        "invoiceExtend": StandardColumns.INVOICE,
        "customer": StandardColumns.CUSTOMER_NAME_NUMBER,
        "totalEur": StandardColumns.TOTAL_EUR,
    }

    def __init__(self, now=None):
        self._now = now or (lambda: datetime.now(timezone.utc))

    def _canonical(self, row: RawRow) -> Dict[str, Any]:
        canonical = {}
        for key, value in row.items():
            canonical[self.FIELD_ALIASES.get(key, key)] = value
        return canonical

    @staticmethod
    def _text(value: Any) -> str:
        if value is None or (isinstance(value, float) and math.isnan(value)):
            return ""
        return str(value).strip()

    @classmethod
    def _number(cls, value: Any, field: str) -> Optional[float]:
        """Parse a numeric cell; None when empty, RowConversionError when malformed."""
        text = cls._text(value)
        if not text:
            return None
        try:
            number = float(text.replace(" ", "").replace(",", "."))
        except ValueError:
            raise RowConversionError(
                f"Invalid numeric value for {field}: {text!r}",
                {"field": field, "value": text},
            )
        if math.isnan(number) or math.isinf(number):
            raise RowConversionError(
                f"Invalid numeric value for {field}: {text!r}",
                {"field": field, "value": text},
            )
        return number

    def convert(self, row: RawRow) -> Record:
        """
        Convert one raw row.

        Raises:
            RowConversionError: row has no record id or a malformed number
        """
        if not isinstance(row, dict):
            raise RowConversionError(f"Row is not a mapping: {type(row).__name__}")

        data = self._canonical(row)
        rec_id = self._text(data.get(StandardColumns.REC_ID) or data.get(StandardColumns.ID))
        if not rec_id:
            raise RowConversionError("Row has no record id", {"row": row})

        record: Record = {}
        for column, max_length in StandardColumns.MAX_LENGTHS.items():
            record[column] = self._text(data.get(column))[:max_length]
        record[StandardColumns.REC_ID] = rec_id[:StandardColumns.MAX_LENGTHS[StandardColumns.REC_ID]]

        if not record[StandardColumns.CUSTOMER_NAME_NUMBER]:
            record[StandardColumns.CUSTOMER_NAME_NUMBER] = None

        weight = self._number(data.get(StandardColumns.TOTAL_KG), StandardColumns.TOTAL_KG)
        record[StandardColumns.TOTAL_KG] = weight or 0.0

        amount = self._number(data.get(StandardColumns.TOTAL_EUR), StandardColumns.TOTAL_EUR)
        record[StandardColumns.ASSIGNED_CUSTOMER] = None
        record[StandardColumns.ASSIGNED_RATE] = amount if amount else None
        record[StandardColumns.RATE_CURRENCY] = DefaultValues.DEFAULT_CURRENCY if amount else None
        record[StandardColumns.PROCESSED_AT] = self._now().isoformat()
        return record
