"""
Toy expression data for trying out the enrichment engine.

Generates a genes x samples matrix of normal noise for two groups, shifts
one gene set upwards in the second group by a modest amount, and returns
the matrix with a collection of gene sets (one shifted, the rest random).
"""

from dataclasses import dataclass
from typing import Dict, List, Optional

import numpy as np
import pandas as pd

from .errors import InvalidParameterError


@dataclass
class SimulatedData:
    """Simulated expression matrix and gene sets"""

    expression: pd.DataFrame  # genes x samples
    group1: List[str]
    group2: List[str]
    gene_sets: Dict[str, List[str]]
    shifted_set: str


def simulate_expression(
    n_genes: int = 1000,
    n_per_group: int = 5,
    n_sets: int = 10,
    set_size: int = 40,
    effect: float = 0.8,
    seed: Optional[int] = 0
) -> SimulatedData:
    """
    Simulate two-group expression data with one differentially expressed gene set.

    Args:
        n_genes: Number of genes
        n_per_group: Samples per group
        n_sets: Number of gene sets; the first one is shifted
        set_size: Genes per set
        effect: Mean shift (in noise SD units) of the shifted set in group 2
        seed: Random seed

    Returns:
        SimulatedData
    """
    if n_genes < 2 or n_per_group < 2 or n_sets < 1:
        raise InvalidParameterError("Need at least 2 genes, 2 samples per group and 1 gene set")
    if not 1 <= set_size <= n_genes:
        raise InvalidParameterError(f"set_size must be between 1 and {n_genes}, got {set_size}")

    rng = np.random.default_rng(seed)

    genes = [f"GENE{i + 1:05d}" for i in range(n_genes)]
    group1 = [f"Control_Rep{i + 1}" for i in range(n_per_group)]
    group2 = [f"Treatment_Rep{i + 1}" for i in range(n_per_group)]

    values = rng.normal(0.0, 1.0, size=(n_genes, 2 * n_per_group))

    gene_sets = {}
    members = []
    for s in range(n_sets):
        members.append(np.sort(rng.choice(n_genes, size=set_size, replace=False)))
        gene_sets[f"SET_{s + 1:02d}"] = [genes[i] for i in members[-1]]

    shifted_set = "SET_01"
    values[np.ix_(members[0], np.arange(n_per_group, 2 * n_per_group))] += effect

    expression = pd.DataFrame(values, index=genes, columns=group1 + group2)
    return SimulatedData(
        expression=expression,
        group1=group1,
        group2=group2,
        gene_sets=gene_sets,
        shifted_set=shifted_set,
    )
