"""
Batch runner for per-company work.

Items are split round-robin into partitions; every partition runs in its
own worker thread and handles its items one after another, so each worker
keeps to the pace of the rate-limited APIs behind the handler. A failing
item is logged and skipped. It never stops its partition or the others.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class HandlerResult:
    """Outcome of one handler call."""
    success: bool
    error: Optional[str] = None


def partition(items: Sequence[T], partition_count: int) -> Dict[int, List[T]]:
    """Split items round-robin into min(partition_count, len(items)) partitions.

    Item i goes to partition i % k, so order inside a partition follows the
    input. A count below 1 is treated as 1; no items gives no partitions.
    """
    items = list(items)
    if not items:
        return {}
    k = min(max(partition_count, 1), len(items))
    partitions: Dict[int, List[T]] = {i: [] for i in range(k)}
    for index, item in enumerate(items):
        partitions[index % k].append(item)
    return partitions


def _outcome(result) -> Tuple[bool, Optional[str]]:
    if isinstance(result, HandlerResult):
        return result.success, result.error
    return bool(result), None


def _run_partition(index: int, items: List[T], handler: Callable[[T], object], label: str) -> int:
    successes = 0
    for item in items:
        try:
            result = handler(item)
        except Exception as e:
            logger.error(f"[{label} {index}] Failed to process {item}: {e}")
            continue

        ok, error = _outcome(result)
        if ok:
            successes += 1
        else:
            logger.warning(f"[{label} {index}] {item} not processed: {error or 'no result'}")

    logger.info(f"[{label} {index}] Finished: {successes}/{len(items)} succeeded")
    return successes


def partition_and_run(items: Sequence[T], partition_count: int,
                      handler: Callable[[T], object], label: str = "partition") -> int:
    """Run handler over every item, partitions concurrently. Returns total successes.

    Returns only when every partition has finished. Handler failures are
    logged and counted as non-successes; they never propagate.
    """
    partitions = partition(items, partition_count)
    if not partitions:
        logger.info("No items to process")
        return 0

    total_items = sum(len(p) for p in partitions.values())
    logger.info(f"Processing {total_items} items in {len(partitions)} partitions")

    with ThreadPoolExecutor(max_workers=len(partitions), thread_name_prefix=label) as pool:
        futures = [
            pool.submit(_run_partition, index, part, handler, label)
            for index, part in partitions.items()
        ]
        total = sum(future.result() for future in futures)

    logger.info(f"Batch complete: {total}/{total_items} succeeded")
    return total
