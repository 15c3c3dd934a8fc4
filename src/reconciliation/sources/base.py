"""
Count source interface.
"""

from abc import ABC, abstractmethod
from datetime import datetime

# Cutoff comparison used by timestamp-aware sources
AT_OR_AFTER_CUTOFF = ">="
BEFORE_CUTOFF = "<"
CUTOFF_OPERATORS = (AT_OR_AFTER_CUTOFF, BEFORE_CUTOFF)


class CountSource(ABC):
    """
    A system that can count the records of an entity kind.

    Sources that do not hold a kind report it through supports(); the
    aggregator records such counts as not applicable instead of zero.
    """

    name: str = "source"

    @abstractmethod
    def supports(self, entity_kind: str) -> bool:
        """Whether this source holds records of entity_kind."""

    @abstractmethod
    def count(self, entity_kind: str, cutoff: datetime) -> int:
        """
        Count records of entity_kind

        Args:
            entity_kind: Entity kind to count
            cutoff: Cutoff instant the count is scoped to

        Returns:
            Non-negative record count

        Raises:
            SourceUnavailable: If the source cannot be queried
        """


def validate_cutoff_operator(operator: str) -> str:
    if operator not in CUTOFF_OPERATORS:
        raise ValueError(
            f"Unsupported cutoff operator {operator!r}; expected one of {CUTOFF_OPERATORS}"
        )
    return operator
