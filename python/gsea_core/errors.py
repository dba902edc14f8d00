"""
Exceptions raised by the gsea_core enrichment engine.

Input-level errors abort a run; EmptyIntersectionError is per gene set and
is turned into a skip record by the batch driver.
"""


class EnrichmentError(Exception):
    """Base class for enrichment errors"""


class InvalidInputError(EnrichmentError, ValueError):
    """Malformed ranking input (empty, non-finite scores, duplicate identifiers)"""


class EmptyIntersectionError(EnrichmentError, ValueError):
    """A gene set has no member in the ranked universe"""

    def __init__(self, name: str, set_size: int = 0):
        self.name = name
        self.set_size = set_size
        super().__init__(
            f"Gene set '{name}' has no genes in the ranked universe "
            f"({set_size} identifiers given)"
        )


class InvalidParameterError(EnrichmentError, ValueError):
    """Invalid analysis parameter (e.g. non-positive permutation count)"""
