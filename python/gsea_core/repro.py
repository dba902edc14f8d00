"""
Reproducibility metadata for gsea_core runs.

Tracks what is needed to repeat an enrichment run:
- Software versions
- Gene set collection hash
- Analysis parameters (permutations, seed, correction method)
- Input/output summaries and warnings
"""

import hashlib
import logging
import platform
import uuid
from dataclasses import dataclass, asdict, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Mapping, Optional

import numpy
import pandas
import scipy
import statsmodels

from . import __version__
from .ranking import gene_collection


@dataclass
class RunMetadata:
    """Metadata for a single batch enrichment run"""

    run_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z')
    )

    software_version: str = __version__
    python_version: str = field(default_factory=platform.python_version)
    dependencies: Dict[str, str] = field(default_factory=dict)

    gene_set_hash: str = ""
    gene_set_count: int = 0

    method: str = "GSEA-permutation"
    parameters: Dict[str, Any] = field(default_factory=dict)
    input_summary: Dict[str, Any] = field(default_factory=dict)
    output_summary: Dict[str, Any] = field(default_factory=dict)

    warnings: list = field(default_factory=list)

    def to_dict(self) -> Dict:
        """Convert to dictionary"""
        return asdict(self)


def gene_set_hash(gene_sets: Mapping[str, Iterable[str]]) -> str:
    """
    Short SHA256 hash of a gene set collection.

    Based on sorted set names and their sorted, de-duplicated genes, so the
    hash does not depend on input order. A single string counts as one gene.
    """
    sorted_items = []
    for name in sorted(gene_sets.keys()):
        genes = sorted(set(gene_collection(gene_sets[name])))
        sorted_items.append(f"{name}::{','.join(genes)}")

    content = "||".join(sorted_items)
    return hashlib.sha256(content.encode()).hexdigest()[:16]


class ReproducibilityLogger:
    """
    Collects RunMetadata while a batch run progresses.
    """

    def __init__(self, metadata: Optional[RunMetadata] = None):
        self.metadata = metadata or RunMetadata()
        self.metadata.dependencies = {
            'numpy': numpy.__version__,
            'pandas': pandas.__version__,
            'scipy': scipy.__version__,
            'statsmodels': statsmodels.__version__,
        }

    def set_gene_sets(self, gene_sets: Mapping[str, Iterable[str]]):
        self.metadata.gene_set_hash = gene_set_hash(gene_sets)
        self.metadata.gene_set_count = len(gene_sets)

    def set_parameters(self, **params):
        """
        Common parameters: permutations, seed, weight, fdr_method,
        min_size, max_size, max_workers
        """
        self.metadata.parameters.update(params)

    def set_input_summary(self, **summary):
        self.metadata.input_summary.update(summary)

    def set_output_summary(self, **summary):
        self.metadata.output_summary.update(summary)

    def add_warning(self, warning: str):
        """Add a warning message"""
        self.metadata.warnings.append(warning)
        logging.warning(f"Enrichment warning: {warning}")

    def get_metadata(self) -> RunMetadata:
        return self.metadata
