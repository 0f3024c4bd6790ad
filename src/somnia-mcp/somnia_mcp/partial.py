import logging
from dataclasses import dataclass, field
from typing import Generic, List, TypeVar

T = TypeVar("T")


@dataclass
class PartialResult(Generic[T]):
    """A value built from many sub-units, some of which may have been skipped."""

    value: T
    warnings: List[str] = field(default_factory=list)

    def warn(self, logger: logging.Logger, message: str) -> None:
        logger.warning(message)
        self.warnings.append(message)

    def absorb(self, other: "PartialResult") -> None:
        self.warnings.extend(other.warnings)

    @property
    def complete(self) -> bool:
        return not self.warnings
