"""
Concurrent count fan-out across sources.

Every (entity kind, source) count is submitted to a thread pool and every
submitted count is waited for. If any of them failed no snapshot is
produced: a partial snapshot would report drift that does not exist.
"""

import logging
import time
from collections.abc import Iterable, Mapping
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from datetime import datetime
from types import MappingProxyType

from opentelemetry import trace

from utils.config import DEFAULT_DB_CONCURRENCY
from utils.errors import SourceUnavailable
from utils.metrics import ReconciliationMetrics
from utils.tracing import trace_operation

from .sources import CountSource

logger = logging.getLogger(__name__)

LEGACY = "legacy"
RELATIONAL = "relational"
INDEX = "index"


@dataclass(frozen=True)
class CountSnapshot:
    """
    Counts per entity kind and source role, scoped to one cutoff.

    A count of None means the source does not hold that entity kind.
    """

    cutoff: datetime
    counts: Mapping[str, Mapping[str, int | None]]

    def __post_init__(self):
        frozen = {kind: MappingProxyType(dict(by_source)) for kind, by_source in self.counts.items()}
        object.__setattr__(self, "counts", MappingProxyType(frozen))

    @property
    def entity_kinds(self) -> tuple[str, ...]:
        return tuple(self.counts)

    def count(self, entity_kind: str, source: str) -> int | None:
        return self.counts.get(entity_kind, {}).get(source)


class CountAggregator:
    """
    Collects counts from several sources concurrently.

    Example:
        aggregator = CountAggregator(max_workers=config.db_concurrency)
        snapshot = aggregator.aggregate(
            {"legacy": legacy_source, "relational": relational_source},
            ["collection", "rule"],
            cutoff,
        )
    """

    def __init__(
        self,
        max_workers: int = DEFAULT_DB_CONCURRENCY,
        metrics: ReconciliationMetrics | None = None,
    ):
        if max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {max_workers}")
        self.max_workers = max_workers
        self.metrics = metrics or ReconciliationMetrics()

    def _count_one(self, role: str, source: CountSource, entity_kind: str, cutoff: datetime) -> int:
        start_time = time.time()
        try:
            value = source.count(entity_kind, cutoff)
        finally:
            self.metrics.observe_count(role, time.time() - start_time)

        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise SourceUnavailable(
                f"{role} source returned an invalid count for {entity_kind}: {value!r}"
            )
        return value

    def aggregate(
        self,
        sources: Mapping[str, CountSource],
        entity_kinds: Iterable[str],
        cutoff: datetime,
    ) -> CountSnapshot:
        """
        Count every entity kind in every source

        Args:
            sources: Source role ("legacy", "relational", "index") -> source
            entity_kinds: Entity kinds to count
            cutoff: Cutoff instant passed to every source

        Returns:
            CountSnapshot

        Raises:
            SourceUnavailable: If any count failed, after all counts finished
        """
        entity_kinds = list(entity_kinds)
        counts: dict[str, dict[str, int | None]] = {kind: {} for kind in entity_kinds}
        tasks = []
        for kind in entity_kinds:
            for role, source in sources.items():
                if source.supports(kind):
                    tasks.append((kind, role, source))
                else:
                    counts[kind][role] = None

        with trace_operation(
            "aggregate_counts",
            kind=trace.SpanKind.INTERNAL,
            count_tasks=len(tasks),
            max_workers=self.max_workers,
        ):
            if not tasks:
                logger.warning("No counts to collect")
                return CountSnapshot(cutoff=cutoff, counts=counts)

            logger.info(
                f"Collecting {len(tasks)} counts with {min(self.max_workers, len(tasks))} workers "
                f"(cutoff {cutoff.isoformat()})"
            )

            errors: list[tuple[str, str, Exception]] = []
            with ThreadPoolExecutor(max_workers=min(self.max_workers, len(tasks))) as executor:
                future_to_task = {
                    executor.submit(self._count_one, role, source, kind, cutoff): (kind, role)
                    for kind, role, source in tasks
                }

                for future in as_completed(future_to_task):
                    kind, role = future_to_task[future]
                    try:
                        counts[kind][role] = future.result()
                    except Exception as e:
                        logger.error(f"Count of {kind} in {role} source failed: {e}")
                        errors.append((kind, role, e))

        if errors:
            failed = ", ".join(f"{kind}/{role}" for kind, role, _ in errors)
            raise SourceUnavailable(
                f"{len(errors)} of {len(tasks)} counts failed ({failed})"
            ) from errors[0][2]

        return CountSnapshot(cutoff=cutoff, counts=counts)
