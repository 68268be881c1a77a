# cargo_billing/importers/ingestion.py

"""
Batched ingestion of imported rows into the record store.

Rows are converted one by one (bad rows are skipped), split into chunks,
and written strictly sequentially. A failed chunk stops the run; chunks
already written stay written.
"""

import asyncio
import inspect
import logging
from typing import Callable, List, Optional, Sequence, Tuple

from cargo_billing.core.config import Config
from cargo_billing.core.constants import ErrorMessages, IngestionStatus
from cargo_billing.core.exceptions import ChunkWriteError, RowConversionError, RowDropRateExceededError
from cargo_billing.core.logging import time_operation
from cargo_billing.core.types import (
    IngestionBatch, IngestionProgress, IngestionResult, RawRow, Record
)
from cargo_billing.store.base import RecordStore
from .cargo_converter import CargoRecordConverter

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[IngestionProgress], object]
StopCheck = Callable[[], bool]


class BatchIngestionPipeline:
    """
    Converts raw rows and saves them in sequential chunks.

    Usage:
        pipeline = BatchIngestionPipeline(store)
        result = await pipeline.ingest(rows, on_progress=progress_bar.update)
    """

    def __init__(
        self,
        store: RecordStore,
        converter: Optional[CargoRecordConverter] = None,
        chunk_size: Optional[int] = None,
        max_drop_rate: Optional[float] = None,
        yield_seconds: Optional[float] = None,
    ):
        self.store = store
        self.converter = converter or CargoRecordConverter()
        self.chunk_size = chunk_size or Config.ingestion.CHUNK_SIZE
        self.max_drop_rate = (
            Config.ingestion.MAX_ROW_DROP_RATE if max_drop_rate is None else max_drop_rate
        )
        self.yield_seconds = (
            Config.ingestion.CHUNK_YIELD_SECONDS if yield_seconds is None else yield_seconds
        )

    # ------------------------------------------------------------
    # Conversion
    # ------------------------------------------------------------

    def convert_rows(self, raw_rows: Sequence[RawRow]) -> Tuple[List[Record], int]:
        """Convert every row, skipping (and logging) the ones that fail."""
        records: List[Record] = []
        skipped = 0
        for index, row in enumerate(raw_rows):
            try:
                records.append(self.converter.convert(row))
            except RowConversionError as e:
                skipped += 1
                logger.warning(f"⚠️ Skipping row {index}: {e.message}")
        return records, skipped

    def _check_drop_rate(self, skipped: int, total: int):
        if total == 0 or skipped == 0:
            return
        rate = skipped / total
        if rate > self.max_drop_rate:
            raise RowDropRateExceededError(
                ErrorMessages.format(
                    ErrorMessages.DROP_RATE_EXCEEDED,
                    skipped=skipped,
                    total=total,
                    rate=rate * 100,
                    limit=self.max_drop_rate * 100,
                ),
                {"skipped": skipped, "total": total},
            )

    # ------------------------------------------------------------
    # Progress
    # ------------------------------------------------------------

    @staticmethod
    async def _emit(on_progress: Optional[ProgressCallback], event: IngestionProgress):
        if on_progress is None:
            return
        try:
            outcome = on_progress(event)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            # A broken progress bar must not abort the import
            logger.warning(f"⚠️ Progress callback failed: {e}")

    @staticmethod
    def _percentage(saved: int, total: int) -> int:
        if total == 0:
            return 100
        return int(saved * 100 / total)

    # ------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------

    async def _write_chunk(self, chunk: List[Record], batch_number: int):
        try:
            result = await self.store.bulk_insert(chunk)
        except Exception as e:
            raise ChunkWriteError(
                ErrorMessages.format(ErrorMessages.CHUNK_FAILED, batch=batch_number, error=e)
            ) from e
        if result.error:
            raise ChunkWriteError(
                ErrorMessages.format(ErrorMessages.CHUNK_FAILED, batch=batch_number, error=result.error)
            )

    async def ingest(
        self,
        raw_rows: Sequence[RawRow],
        on_progress: Optional[ProgressCallback] = None,
        should_stop: Optional[StopCheck] = None,
        chunk_size: Optional[int] = None,
    ) -> IngestionResult:
        """
        Save imported rows to the store.

        Args:
            raw_rows: Column-mapped spreadsheet rows
            on_progress: Receives an IngestionProgress before and after each chunk
            should_stop: Consulted between chunks; True cancels the run
            chunk_size: Records per store round-trip (default from config)

        Returns:
            IngestionResult with the number of records actually written
        """
        size = self.chunk_size if chunk_size is None else chunk_size
        result = IngestionResult(total_count=len(raw_rows), status=IngestionStatus.PREPARING)

        if size < 1:
            result.status = IngestionStatus.ERROR
            result.error = ErrorMessages.format(ErrorMessages.INVALID_CHUNK_SIZE, chunk_size=size)
            logger.error(f"❌ Import rejected: {result.error}")
            return result

        if not raw_rows:
            result.status = IngestionStatus.ERROR
            result.error = ErrorMessages.NO_ROWS
            return result

        await self._emit(on_progress, IngestionProgress(0, 0, len(raw_rows), 0, 0, IngestionStatus.PREPARING))

        records, skipped = self.convert_rows(raw_rows)
        result.skipped_rows = skipped
        logger.info(f"📦 Converted {len(records)} of {len(raw_rows)} rows ({skipped} skipped)")

        try:
            self._check_drop_rate(skipped, len(raw_rows))
        except RowDropRateExceededError as e:
            logger.error(f"❌ Import rejected: {e.message}")
            return await self._fail(result, e.message, on_progress, 0, 0)

        if not records:
            return await self._fail(result, ErrorMessages.NO_VALID_RECORDS, on_progress, 0, 0)

        batch = IngestionBatch(records=records, chunk_size=size)
        total = len(records)
        result.total_count = total
        result.status = IngestionStatus.SAVING

        with time_operation(f"Saving {total} records in {batch.total_chunks} batches", logger):
            for index, chunk in enumerate(batch.chunks()):
                batch_number = index + 1

                if index > 0:
                    if should_stop is not None and should_stop():
                        logger.warning(
                            f"⚠️ Import cancelled after {result.saved_count}/{total} records"
                        )
                        result.cancelled = True
                        result.status = IngestionStatus.CANCELLED
                        await self._emit(on_progress, IngestionProgress(
                            self._percentage(result.saved_count, total), result.saved_count,
                            total, index, batch.total_chunks, IngestionStatus.CANCELLED,
                        ))
                        return result
                    await asyncio.sleep(self.yield_seconds)

                await self._emit(on_progress, IngestionProgress(
                    self._percentage(result.saved_count, total), result.saved_count,
                    total, batch_number, batch.total_chunks, IngestionStatus.SAVING,
                ))

                try:
                    await self._write_chunk(chunk, batch_number)
                except ChunkWriteError as e:
                    logger.error(f"❌ {e.message} ({result.saved_count} records saved before failure)")
                    return await self._fail(
                        result, e.message, on_progress, batch_number, batch.total_chunks
                    )

                result.saved_count += len(chunk)
                logger.info(
                    f"💾 Batch {batch_number}/{batch.total_chunks} saved "
                    f"({result.saved_count}/{total})"
                )

                status = (
                    IngestionStatus.COMPLETED if batch_number == batch.total_chunks
                    else IngestionStatus.SAVING
                )
                await self._emit(on_progress, IngestionProgress(
                    self._percentage(result.saved_count, total), result.saved_count,
                    total, batch_number, batch.total_chunks, status,
                ))

        result.status = IngestionStatus.COMPLETED
        logger.info(f"✅ Saved {result.saved_count} records")
        return result

    async def _fail(
        self,
        result: IngestionResult,
        message: str,
        on_progress: Optional[ProgressCallback],
        batch_number: int,
        total_batches: int,
    ) -> IngestionResult:
        result.status = IngestionStatus.ERROR
        result.error = message
        await self._emit(on_progress, IngestionProgress(
            self._percentage(result.saved_count, result.total_count) if result.saved_count else 0,
            result.saved_count, result.total_count, batch_number, total_batches,
            IngestionStatus.ERROR,
        ))
        return result
