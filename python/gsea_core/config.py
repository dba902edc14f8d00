"""
Run configuration for the enrichment engine.
"""

import numbers
from dataclasses import dataclass, replace as _replace
from typing import Optional

from .errors import InvalidParameterError


# Methods accepted by statsmodels.stats.multitest.multipletests
FDR_METHODS = (
    'fdr_bh', 'fdr_by', 'bonferroni', 'sidak', 'holm', 'holm-sidak',
    'simes-hochberg', 'hommel', 'fdr_tsbh', 'fdr_tsbky',
)


@dataclass(frozen=True)
class EnrichmentConfig:
    """Defaults for a batch enrichment run."""

    permutations: int = 1000
    seed: int = 42
    max_workers: int = 4
    min_size: int = 1
    max_size: Optional[int] = None
    weight: float = 0.0  # running-sum weight exponent, 0 = classic statistic
    fdr_method: str = 'fdr_bh'

    def validate(self) -> 'EnrichmentConfig':
        check_permutations(self.permutations)
        if isinstance(self.max_workers, bool) or not isinstance(self.max_workers, numbers.Integral) or self.max_workers < 1:
            raise InvalidParameterError(f"max_workers must be a positive integer, got {self.max_workers!r}")
        if self.min_size < 1:
            raise InvalidParameterError(f"min_size must be >= 1, got {self.min_size}")
        if self.max_size is not None and self.max_size < self.min_size:
            raise InvalidParameterError(
                f"max_size ({self.max_size}) must be >= min_size ({self.min_size})"
            )
        if self.weight < 0:
            raise InvalidParameterError(f"weight must be >= 0, got {self.weight}")
        if self.fdr_method not in FDR_METHODS:
            raise InvalidParameterError(
                f"Unknown FDR method '{self.fdr_method}'. Use one of: {', '.join(FDR_METHODS)}"
            )
        return self

    def replace(self, **overrides) -> 'EnrichmentConfig':
        """Copy with the given fields changed; None values are ignored."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return _replace(self, **changes)


def check_permutations(permutations) -> int:
    if isinstance(permutations, bool) or not isinstance(permutations, numbers.Integral) or permutations < 1:
        raise InvalidParameterError(
            f"permutations must be a positive integer, got {permutations!r}"
        )
    return int(permutations)
