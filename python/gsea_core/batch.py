"""
Batch enrichment driver for the gsea_core engine.

Scores many gene sets against one ranked gene list in parallel, corrects
the nominal p-values across the batch and keeps a separate record of the
gene sets that could not be tested.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, asdict
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union

import numpy as np
import pandas as pd

from .config import EnrichmentConfig
from .correction import fdr_correction
from .errors import EmptyIntersectionError, InvalidInputError
from .ranking import (
    GeneSet,
    RankedGeneList,
    RankingInput,
    build_ranked_list,
    normalize_gene_sets,
    prepare_gene_set,
)
from .repro import ReproducibilityLogger, RunMetadata
from .scorer import ScoreResult, score


RESULT_COLUMNS = [
    'name', 'enrichment_score', 'nes', 'p_value', 'q_value',
    'matched_size', 'set_size', 'missing_count', 'rank_at_max', 'leading_edge',
]

CANCELLED = "cancelled"


@dataclass(frozen=True)
class EnrichmentResult:
    """Result for a single tested gene set"""

    name: str

    # GSEA statistics
    enrichment_score: float
    nes: float
    p_value: float
    q_value: float

    # Gene counts
    matched_size: int  # genes found in the ranking
    set_size: int
    missing_count: int

    # Leading edge
    rank_at_max: int
    leading_edge: Tuple[str, ...]

    def to_dict(self) -> Dict:
        d = asdict(self)
        d['leading_edge'] = list(self.leading_edge)
        return d

    def is_significant(self, alpha: float = 0.25) -> bool:
        """GSEA convention: FDR < 0.25"""
        return self.q_value < alpha


@dataclass(frozen=True)
class SkippedGeneSet:
    """A gene set that was not tested, and why"""

    name: str
    reason: str


@dataclass
class BatchResult:
    """Tested results ordered by q-value, plus skipped gene sets"""

    results: Tuple[EnrichmentResult, ...]
    skipped: List[SkippedGeneSet]
    metadata: RunMetadata
    cancelled: bool = False

    @property
    def tested_names(self) -> List[str]:
        return [r.name for r in self.results]

    @property
    def skipped_names(self) -> List[str]:
        return [s.name for s in self.skipped]

    def significant(self, alpha: float = 0.25) -> List[EnrichmentResult]:
        return [r for r in self.results if r.is_significant(alpha)]

    def to_dataframe(self) -> pd.DataFrame:
        """Tested results as a DataFrame, leading edge joined with ';'"""
        rows = []
        for r in self.results:
            row = r.to_dict()
            row['leading_edge'] = ';'.join(r.leading_edge)
            rows.append(row)
        return pd.DataFrame(rows, columns=RESULT_COLUMNS)


def _size_filter_reason(gene_set: GeneSet, min_size: int, max_size: Optional[int]) -> Optional[str]:
    if gene_set.matched_size < min_size:
        return f"too few genes in ranking ({gene_set.matched_size} < {min_size})"
    if max_size is not None and gene_set.matched_size > max_size:
        return f"too many genes in ranking ({gene_set.matched_size} > {max_size})"
    return None


def _result_order(result: EnrichmentResult):
    return (result.q_value, -abs(result.enrichment_score), result.name)


def run(
    ranked: Union[RankedGeneList, RankingInput],
    gene_sets: Mapping[str, Iterable[str]],
    permutations: Optional[int] = None,
    seed: Optional[int] = None,
    config: Optional[EnrichmentConfig] = None,
    max_workers: Optional[int] = None,
    min_size: Optional[int] = None,
    max_size: Optional[int] = None,
    weight: Optional[float] = None,
    fdr_method: Optional[str] = None,
    progress_callback: Optional[Callable[[str, int, int], None]] = None,
    cancel_event: Optional[threading.Event] = None
) -> BatchResult:
    """
    Run permutation GSEA over a collection of gene sets.

    Args:
        ranked: RankedGeneList, or a raw gene -> score ranking
        gene_sets: Dictionary of gene set name -> genes
        permutations: Number of permutations per gene set
        seed: Run seed; each gene set gets its own child seed in input order
        config: Defaults for every parameter below (EnrichmentConfig())
        max_workers: Parallel scoring threads (1 = inline)
        min_size: Minimum matched gene set size
        max_size: Maximum matched gene set size
        weight: Running-sum weight exponent
        fdr_method: multipletests method for q-values
        progress_callback: Optional callback(gene_set_name, completed, total)
        cancel_event: When set, gene sets not yet scored are skipped as cancelled

    Returns:
        BatchResult

    Raises:
        InvalidInputError: malformed ranking or gene set collection
        InvalidParameterError: invalid permutations/workers/sizes/method
    """
    cfg = (config or EnrichmentConfig()).replace(
        permutations=permutations,
        seed=seed,
        max_workers=max_workers,
        min_size=min_size,
        max_size=max_size,
        weight=weight,
        fdr_method=fdr_method,
    ).validate()

    if not isinstance(ranked, RankedGeneList):
        ranked = build_ranked_list(ranked)
    if not isinstance(gene_sets, Mapping):
        raise InvalidInputError(
            f"gene_sets must be a mapping of name -> genes, got {type(gene_sets).__name__}"
        )

    names = list(gene_sets.keys())
    order = {name: i for i, name in enumerate(names)}
    collections, invalid = normalize_gene_sets(gene_sets)

    repro = ReproducibilityLogger()
    repro.set_gene_sets(collections)
    repro.set_parameters(
        permutations=cfg.permutations,
        seed=cfg.seed,
        weight=cfg.weight,
        fdr_method=cfg.fdr_method,
        min_size=cfg.min_size,
        max_size=cfg.max_size,
        max_workers=cfg.max_workers,
    )
    repro.set_input_summary(total_genes=ranked.size, total_gene_sets=len(gene_sets))

    logging.info(
        f"Running GSEA: {ranked.size} genes, {len(gene_sets)} gene sets, "
        f"{cfg.permutations} permutations, {cfg.max_workers} workers"
    )

    # child seeds are spawned in input order so results do not depend on scheduling
    child_seeds = np.random.SeedSequence(cfg.seed).spawn(len(names))

    skipped: List[SkippedGeneSet] = []
    tasks: List[Tuple[GeneSet, np.random.SeedSequence]] = []

    for name, child_seed in zip(names, child_seeds):
        if name in invalid:
            skipped.append(SkippedGeneSet(name, invalid[name]))
            continue
        try:
            gene_set = prepare_gene_set(name, collections[name], ranked)
        except EmptyIntersectionError as e:
            skipped.append(SkippedGeneSet(name, str(e)))
            continue

        reason = _size_filter_reason(gene_set, cfg.min_size, cfg.max_size)
        if reason:
            skipped.append(SkippedGeneSet(name, reason))
            continue

        tasks.append((gene_set, child_seed))

    scores: Dict[str, ScoreResult] = {}
    total = len(tasks)

    def score_one(gene_set: GeneSet, child_seed: np.random.SeedSequence) -> Optional[ScoreResult]:
        if cancel_event is not None and cancel_event.is_set():
            return None
        return score(ranked, gene_set, cfg.permutations, child_seed, cfg.weight)

    def record(name: str, result: Optional[ScoreResult]):
        if result is not None:
            scores[name] = result
        if progress_callback:
            progress_callback(name, len(scores), total)

    if cfg.max_workers == 1 or total <= 1:
        for gene_set, child_seed in tasks:
            record(gene_set.name, score_one(gene_set, child_seed))
    else:
        with ThreadPoolExecutor(max_workers=cfg.max_workers) as executor:
            futures = {
                executor.submit(score_one, gene_set, child_seed): gene_set.name
                for gene_set, child_seed in tasks
            }
            try:
                for future in as_completed(futures):
                    if future.cancelled():
                        continue
                    record(futures[future], future.result())
                    if cancel_event is not None and cancel_event.is_set():
                        for pending in futures:
                            pending.cancel()
            except BaseException:
                for pending in futures:
                    pending.cancel()
                raise

    cancelled = False
    for gene_set, _ in tasks:
        if gene_set.name not in scores:
            skipped.append(SkippedGeneSet(gene_set.name, CANCELLED))
            cancelled = True

    skipped.sort(key=lambda s: order[s.name])
    for s in skipped:
        if s.reason != CANCELLED:
            logging.warning(f"Skipped gene set '{s.name}': {s.reason}")

    # correction counts only the gene sets that were actually tested
    tested = [scores[gene_set.name] for gene_set, _ in tasks if gene_set.name in scores]
    q_values = fdr_correction([r.p_value for r in tested], method=cfg.fdr_method)

    matched = {gene_set.name: gene_set for gene_set, _ in tasks}
    results = []
    for res, q in zip(tested, q_values):
        gene_set = matched[res.name]
        results.append(EnrichmentResult(
            name=res.name,
            enrichment_score=res.enrichment_score,
            nes=res.nes,
            p_value=res.p_value,
            q_value=q,
            matched_size=res.matched_size,
            set_size=gene_set.set_size,
            missing_count=gene_set.missing_count,
            rank_at_max=res.rank_at_max,
            leading_edge=res.leading_edge,
        ))
    results.sort(key=_result_order)

    if cancelled:
        repro.add_warning(f"Run cancelled: {total - len(results)}/{total} gene sets not scored")

    repro.set_output_summary(
        tested=len(results),
        skipped=len(skipped),
        significant=sum(1 for r in results if r.is_significant()),
        top_gene_set=results[0].name if results else None,
    )

    logging.info(
        f"GSEA complete: {len(results)} tested, {len(skipped)} skipped"
    )

    return BatchResult(
        results=tuple(results),
        skipped=skipped,
        metadata=repro.get_metadata(),
        cancelled=cancelled,
    )


def run_gsea(
    gene_ranking: RankingInput,
    gene_sets: Mapping[str, Iterable[str]],
    permutations: int = 1000,
    seed: int = 42,
    **kwargs
) -> BatchResult:
    """
    Build the ranking and run the batch in one call.

    Args:
        gene_ranking: Dictionary of gene -> ranking score (e.g., sign(log2FC) * -log10(pvalue))
        gene_sets: Dictionary of gene set name -> genes
        permutations: Number of permutations per gene set
        seed: Random seed for reproducibility
        **kwargs: Additional arguments for run()
    """
    ranked = build_ranked_list(gene_ranking)
    return run(ranked, gene_sets, permutations=permutations, seed=seed, **kwargs)
