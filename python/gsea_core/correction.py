"""
Multiple testing correction for batch enrichment results.
"""

import logging
from typing import List, Sequence

import numpy as np
from statsmodels.stats.multitest import multipletests

from .config import FDR_METHODS
from .errors import InvalidParameterError


def fdr_correction(p_values: Sequence[float], method: str = 'fdr_bh') -> List[float]:
    """
    Apply FDR correction to p-values.

    Args:
        p_values: Nominal p-values, one per tested gene set
        method: Correction method ('fdr_bh' for Benjamini-Hochberg, 'bonferroni', ...)

    Returns:
        List of adjusted p-values, in input order
    """
    if method not in FDR_METHODS:
        raise InvalidParameterError(
            f"Unknown FDR method '{method}'. Use one of: {', '.join(FDR_METHODS)}"
        )
    if len(p_values) == 0:
        return []

    p = np.asarray(p_values, dtype=float)
    if np.any((p < 0) | (p > 1)) or not np.all(np.isfinite(p)):
        raise InvalidParameterError("p-values must be finite and within [0, 1]")

    _, adjusted, _, _ = multipletests(p, method=method)
    logging.debug(f"Applied {method} correction to {len(p)} p-values")
    return [float(min(q, 1.0)) for q in adjusted]
