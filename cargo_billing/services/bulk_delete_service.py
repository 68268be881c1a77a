# cargo_billing/services/bulk_delete_service.py
import inspect
import logging
from typing import Callable, List, Optional, Sequence

from cargo_billing.core.config import Config
from cargo_billing.core.types import BulkDeleteResult
from cargo_billing.store.base import RecordStore

logger = logging.getLogger(__name__)


class BulkDeleteService:
    """Deletes selected records in sequential, cancellable batches."""

    def __init__(self, store: RecordStore):
        self.store = store

    async def delete_records(
        self,
        ids: Sequence[str],
        should_stop: Optional[Callable[[], bool]] = None,
        on_progress: Optional[Callable[[int, int], object]] = None,
        batch_size: Optional[int] = None,
    ) -> BulkDeleteResult:
        """
        Delete records by id.

        A failed batch is counted and the run moves on to the next one.
        on_progress receives (processed, total) after every batch.
        """
        size = Config.ingestion.DELETE_BATCH_SIZE if batch_size is None else batch_size
        result = BulkDeleteResult()
        if size < 1:
            result.error = f"Batch size must be at least 1, got {size}"
            logger.error(f"❌ Delete rejected: {result.error}")
            return result

        ids = list(ids)
        total = len(ids)
        errors: List[str] = []

        for start in range(0, total, size):
            if start > 0 and should_stop is not None and should_stop():
                result.cancelled = True
                logger.warning(f"⚠️ Delete cancelled after {result.deleted_count}/{total} records")
                break

            batch = ids[start:start + size]
            try:
                outcome = await self.store.delete_by_ids(batch)
                error = outcome.error
            except Exception as e:
                error = str(e)

            if error:
                result.failed_count += len(batch)
                errors.append(error)
                logger.error(f"❌ Failed to delete batch starting at {start}: {error}")
            else:
                result.deleted_count += len(batch)

            if on_progress is not None:
                try:
                    outcome = on_progress(result.deleted_count + result.failed_count, total)
                    if inspect.isawaitable(outcome):
                        await outcome
                except Exception as e:
                    logger.warning(f"⚠️ Delete progress callback failed: {e}")

        if errors:
            result.error = "; ".join(errors)
        logger.info(
            f"🗑️ Deleted {result.deleted_count}/{total} records"
            f"{f' ({result.failed_count} failed)' if result.failed_count else ''}"
        )
        return result
