"""
Single-set enrichment scoring for the gsea_core engine.

Running-sum (Kolmogorov-Smirnov-like) enrichment statistic with a
size-preserving permutation null. Every call owns its random generator and
touches no shared mutable state, so calls can run concurrently.
"""

import logging
from dataclasses import dataclass, asdict
from typing import Dict, Iterable, Optional, Tuple, Union

import numpy as np

from .config import check_permutations
from .errors import InvalidParameterError
from .ranking import GeneSet, RankedGeneList, prepare_gene_set


SeedLike = Union[None, int, np.random.SeedSequence, np.random.Generator]

# upper bound on random keys held in memory while drawing the null
NULL_CHUNK_ELEMENTS = 2_000_000


@dataclass(frozen=True)
class ScoreResult:
    """Enrichment statistics for one gene set"""

    name: str
    enrichment_score: float
    p_value: float
    nes: float  # ES scaled by the mean same-sign null score
    matched_size: int
    rank_at_max: int  # rank position of the running-sum extreme, -1 if ES == 0
    leading_edge: Tuple[str, ...]

    def to_dict(self) -> Dict:
        d = asdict(self)
        d['leading_edge'] = list(self.leading_edge)
        return d


def make_rng(random_seed: SeedLike = None) -> np.random.Generator:
    """Generator from an int, SeedSequence or existing Generator"""
    if isinstance(random_seed, np.random.Generator):
        return random_seed
    return np.random.default_rng(random_seed)


def _hit_weights(scores: np.ndarray, positions: np.ndarray, weight: float) -> Optional[np.ndarray]:
    """Normalized hit increments per row, or None for the unweighted statistic"""
    if weight == 0:
        return None
    w = np.abs(scores[positions]) ** weight
    totals = w.sum(axis=1, keepdims=True)
    k = positions.shape[1]
    # rows whose hits all score 0 fall back to equal increments
    with np.errstate(invalid='ignore', divide='ignore'):
        w = np.where(totals > 0, w / totals, 1.0 / k)
    return w


def running_sum_extremes(
    positions: np.ndarray,
    n_genes: int,
    hit_weights: Optional[np.ndarray] = None
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Signed enrichment scores for a batch of hit-position rows.

    Args:
        positions: (rows, k) array of sorted rank positions of set members
        n_genes: universe size N
        hit_weights: optional (rows, k) normalized hit increments; default 1/k

    Returns:
        Tuple of (scores, extreme_index); extreme_index is the hit index of
        the peak for positive scores, of the trough for negative ones
    """
    positions = np.atleast_2d(positions)
    rows, k = positions.shape

    if k == n_genes:
        # every gene is a hit: nothing to walk against
        return np.zeros(rows), np.zeros(rows, dtype=np.int64)

    miss_step = 1.0 / (n_genes - k)
    misses_before = positions - np.arange(k)

    if hit_weights is None:
        cum_after = np.broadcast_to(np.arange(1, k + 1) / k, (rows, k))
        cum_before = np.broadcast_to(np.arange(k) / k, (rows, k))
    else:
        cum_after = np.cumsum(hit_weights, axis=1)
        cum_before = cum_after - hit_weights

    # the running sum peaks right after a hit and bottoms out right before one
    peaks = cum_after - misses_before * miss_step
    troughs = cum_before - misses_before * miss_step

    peak_idx = peaks.argmax(axis=1)
    trough_idx = troughs.argmin(axis=1)
    row_idx = np.arange(rows)
    max_dev = np.maximum(peaks[row_idx, peak_idx], 0.0)
    min_dev = np.minimum(troughs[row_idx, trough_idx], 0.0)

    positive = max_dev >= -min_dev
    scores = np.where(positive, max_dev, min_dev)
    extreme_idx = np.where(positive, peak_idx, trough_idx)
    return scores, extreme_idx


def permutation_null(
    ranked: RankedGeneList,
    set_size: int,
    permutations: int,
    rng: np.random.Generator,
    weight: float = 0.0
) -> np.ndarray:
    """Null enrichment scores for random gene sets of the given size"""
    n = ranked.size
    rows_per_chunk = max(1, NULL_CHUNK_ELEMENTS // n)
    null = np.empty(permutations)

    for start in range(0, permutations, rows_per_chunk):
        rows = min(rows_per_chunk, permutations - start)
        # the set_size smallest of n uniform keys is a uniform draw without replacement
        keys = rng.random((rows, n))
        drawn = np.sort(keys.argpartition(set_size - 1, axis=1)[:, :set_size], axis=1)
        null[start:start + rows], _ = running_sum_extremes(
            drawn, n, _hit_weights(ranked.scores, drawn, weight)
        )
    return null


def nominal_p_value(es: float, null: np.ndarray) -> float:
    """
    Fraction of null scores at least as extreme as es (same sign), counting
    the observed score itself so the minimum is 1/(permutations+1).
    """
    if es > 0:
        count = np.count_nonzero(null >= es)
    elif es < 0:
        count = np.count_nonzero(null <= es)
    else:
        count = len(null)
    return float((count + 1) / (len(null) + 1))


def normalized_score(es: float, null: np.ndarray) -> float:
    if es > 0:
        same_sign = null[null >= 0]
    elif es < 0:
        same_sign = null[null < 0]
    else:
        return 0.0
    if len(same_sign) == 0:
        return 0.0
    scale = np.abs(same_sign).mean()
    if scale == 0:
        return 0.0
    return float(es / scale)


def score(
    ranked: RankedGeneList,
    gene_set: Union[GeneSet, Iterable[str]],
    permutations: int,
    random_seed: SeedLike = None,
    weight: float = 0.0
) -> ScoreResult:
    """
    Score one gene set against a ranked gene list.

    Args:
        ranked: Output of build_ranked_list()
        gene_set: GeneSet, or any collection of gene identifiers
        permutations: Number of random gene sets in the null
        random_seed: int, SeedSequence or Generator for the null draws
        weight: Running-sum weight exponent (0 = classic statistic)

    Returns:
        ScoreResult

    Raises:
        EmptyIntersectionError: gene set has no member in the ranking
        InvalidParameterError: non-positive permutations or negative weight
    """
    permutations = check_permutations(permutations)
    if weight < 0:
        raise InvalidParameterError(f"weight must be >= 0, got {weight}")
    if not isinstance(gene_set, GeneSet):
        gene_set = prepare_gene_set('<unnamed>', gene_set, ranked)

    positions = gene_set.hit_positions[np.newaxis, :]
    observed, extreme = running_sum_extremes(
        positions, ranked.size, _hit_weights(ranked.scores, positions, weight)
    )
    es = float(observed[0])
    extreme = int(extreme[0])

    hits = gene_set.hit_positions
    if es > 0:
        rank_at_max = int(hits[extreme])
        edge = hits[:extreme + 1]
    elif es < 0:
        rank_at_max = int(hits[extreme]) - 1
        edge = hits[extreme:]
    else:
        rank_at_max = -1
        edge = hits[:0]

    rng = make_rng(random_seed)
    null = permutation_null(ranked, gene_set.matched_size, permutations, rng, weight)

    result = ScoreResult(
        name=gene_set.name,
        enrichment_score=es,
        p_value=nominal_p_value(es, null),
        nes=normalized_score(es, null),
        matched_size=gene_set.matched_size,
        rank_at_max=rank_at_max,
        leading_edge=tuple(ranked.genes[p] for p in edge),
    )
    logging.debug(
        f"Scored '{gene_set.name}': ES={result.enrichment_score:.4f}, "
        f"p={result.p_value:.4g}, {gene_set.matched_size} genes"
    )
    return result
