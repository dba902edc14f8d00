"""
Per-gene differential expression and ranking helpers.

Runs a two-group t-test for every gene, adds Benjamini-Hochberg FDR, and
turns the result into the signed -log10(p) ranking used by the enrichment
engine. With few samples and small effects the per-gene FDR is usually
not significant even when a whole gene set is shifted; that is the case
set-level enrichment is for.
"""

import logging
from typing import List

import numpy as np
import pandas as pd
from scipy import stats

from .correction import fdr_correction
from .errors import InvalidInputError


def ttest_de(
    expression: pd.DataFrame,
    group1_samples: List[str],
    group2_samples: List[str],
    equal_var: bool = True
) -> pd.DataFrame:
    """
    Two-group t-test per gene.

    Args:
        expression: DataFrame with genes as rows, samples as columns (log scale)
        group1_samples: Sample names for the reference group
        group2_samples: Sample names for the comparison group
        equal_var: Student's t-test if True, Welch's otherwise

    Returns:
        DataFrame indexed by gene with columns: mean_group1, mean_group2,
        diff (group2 - group1), t_stat, pvalue, FDR
    """
    if expression.empty:
        raise InvalidInputError("Empty expression matrix provided")

    missing_g1 = [s for s in group1_samples if s not in expression.columns]
    missing_g2 = [s for s in group2_samples if s not in expression.columns]

    if missing_g1:
        raise InvalidInputError(f"Group 1 samples not found: {missing_g1}")
    if missing_g2:
        raise InvalidInputError(f"Group 2 samples not found: {missing_g2}")

    if len(group1_samples) < 2 or len(group2_samples) < 2:
        raise InvalidInputError("Each group must have at least 2 samples")

    g1 = expression[group1_samples].to_numpy(dtype=float)
    g2 = expression[group2_samples].to_numpy(dtype=float)

    t_stat, pvalue = stats.ttest_ind(g2, g1, axis=1, equal_var=equal_var)
    t_stat = np.nan_to_num(t_stat, nan=0.0)
    # constant genes give NaN p-values
    pvalue = np.nan_to_num(pvalue, nan=1.0)

    df = pd.DataFrame({
        'mean_group1': g1.mean(axis=1),
        'mean_group2': g2.mean(axis=1),
        't_stat': t_stat,
        'pvalue': pvalue,
    }, index=expression.index)
    df.insert(2, 'diff', df['mean_group2'] - df['mean_group1'])
    df['FDR'] = fdr_correction(df['pvalue'].tolist(), method='fdr_bh')

    logging.info(
        f"t-test DE: {len(df)} genes, {int((df['pvalue'] < 0.05).sum())} with p < 0.05, "
        f"{int((df['FDR'] < 0.05).sum())} with FDR < 0.05"
    )
    return df


def ranking_from_de(
    de_table: pd.DataFrame,
    pvalue_col: str = 'pvalue',
    effect_col: str = 't_stat'
) -> pd.Series:
    """
    Signed -log10(p) ranking from a DE table.

    The sign comes from effect_col; p-values of 0 are clipped to the
    smallest positive float so every score stays finite.
    """
    for col in (pvalue_col, effect_col):
        if col not in de_table.columns:
            raise InvalidInputError(f"DE table has no column '{col}'")

    p = np.clip(de_table[pvalue_col].to_numpy(dtype=float), np.finfo(float).tiny, 1.0)
    sign = np.sign(de_table[effect_col].to_numpy(dtype=float))
    return pd.Series(sign * -np.log10(p), index=de_table.index, name='rank_score')
