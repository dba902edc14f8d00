"""
Ranking input adapter for the gsea_core enrichment engine.

Turns a gene -> score mapping into a RankedGeneList (descending score,
ties kept in input order) and intersects gene sets with that universe.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Tuple, Union

import numpy as np
import pandas as pd

from .errors import InvalidInputError, EmptyIntersectionError


RankingInput = Union[Mapping[str, float], pd.Series, Iterable[Tuple[str, float]]]


@dataclass(frozen=True, eq=False)
class RankedGeneList:
    """Genes ordered by descending score"""

    genes: Tuple[str, ...]
    scores: np.ndarray
    positions: Dict[str, int] = field(repr=False)

    def __len__(self) -> int:
        return len(self.genes)

    def __contains__(self, gene) -> bool:
        return gene in self.positions

    @property
    def size(self) -> int:
        return len(self.genes)

    def to_series(self) -> pd.Series:
        """Ranked scores as a pandas Series indexed by gene"""
        return pd.Series(self.scores, index=list(self.genes), name='score')


@dataclass(frozen=True, eq=False)
class GeneSet:
    """A named gene set matched against a RankedGeneList"""

    name: str
    members: frozenset
    hit_positions: np.ndarray  # sorted rank positions of matched members
    set_size: int  # distinct identifiers supplied
    missing_count: int  # identifiers not in the universe

    @property
    def matched_size(self) -> int:
        return len(self.hit_positions)

    def __contains__(self, gene) -> bool:
        return gene in self.members


def _iter_pairs(ranking: RankingInput) -> List[Tuple[object, object]]:
    if isinstance(ranking, (pd.Series, Mapping)):
        return list(ranking.items())
    try:
        return [tuple(item) for item in ranking]
    except TypeError:
        raise InvalidInputError(
            f"Gene ranking must be a mapping, a pandas Series or (gene, score) pairs, "
            f"got {type(ranking).__name__}"
        )


def build_ranked_list(ranking: RankingInput) -> RankedGeneList:
    """
    Validate a gene ranking and sort it by descending score.

    Ties are broken by input order, so the same input always produces the
    same ranking.

    Args:
        ranking: gene -> score mapping, pandas Series, or (gene, score) pairs

    Returns:
        RankedGeneList

    Raises:
        InvalidInputError: empty input, empty or duplicated identifiers,
            non-numeric or non-finite scores
    """
    if ranking is None:
        raise InvalidInputError("Empty gene ranking provided")

    pairs = _iter_pairs(ranking)
    if not pairs:
        raise InvalidInputError("Empty gene ranking provided")

    genes = []
    values = []
    seen = set()

    for item in pairs:
        if len(item) != 2:
            raise InvalidInputError(f"Expected (gene, score) pair, got {item!r}")
        gene, score = item
        gene = str(gene).strip()
        if not gene:
            raise InvalidInputError("Gene ranking contains an empty gene identifier")
        if gene in seen:
            raise InvalidInputError(f"Duplicate gene identifier '{gene}' in ranking")

        try:
            score = float(score)
        except (ValueError, TypeError):
            raise InvalidInputError(f"Gene '{gene}' has invalid score: {score!r}")
        if not math.isfinite(score):
            raise InvalidInputError(f"Gene '{gene}' has non-finite score: {score}")

        seen.add(gene)
        genes.append(gene)
        values.append(score)

    scores = np.asarray(values, dtype=float)
    # stable sort keeps input order among equal scores
    order = np.argsort(-scores, kind='stable')

    ranked_genes = tuple(genes[i] for i in order)
    ranked_scores = scores[order]
    ranked_scores.setflags(write=False)

    return RankedGeneList(
        genes=ranked_genes,
        scores=ranked_scores,
        positions={gene: pos for pos, gene in enumerate(ranked_genes)},
    )


def gene_collection(genes) -> Tuple[str, ...]:
    """
    Materialize one gene set value as a tuple of identifiers.

    A single string is one gene. Generators are consumed exactly once here,
    so callers can reuse the tuple for hashing and matching.

    Raises:
        InvalidInputError: if the value is not a collection of identifiers
    """
    if isinstance(genes, str):
        genes = [genes]
    elif genes is None or isinstance(genes, (bytes, Mapping)):
        raise InvalidInputError(f"expected a collection of gene identifiers, got {type(genes).__name__}")
    try:
        items = list(genes)
    except TypeError:
        raise InvalidInputError(f"expected a collection of gene identifiers, got {type(genes).__name__}")
    return tuple(str(g).strip() for g in items if g is not None and str(g).strip())


def normalize_gene_sets(gene_sets: Mapping[str, Iterable[str]]) -> Tuple[Dict[str, Tuple[str, ...]], Dict[str, str]]:
    """
    Materialize every gene set value once.

    Returns:
        Tuple of (name -> identifiers, name -> reason for values that are
        not gene collections)
    """
    valid = {}
    invalid = {}
    for name, genes in gene_sets.items():
        try:
            valid[name] = gene_collection(genes)
        except InvalidInputError as e:
            invalid[name] = f"invalid gene set value: {e}"
    return valid, invalid


def prepare_gene_set(name: str, genes: Iterable[str], ranked: RankedGeneList) -> GeneSet:
    """
    Intersect a gene collection with the ranked universe.

    Raises:
        EmptyIntersectionError: if no identifier is in the universe
    """
    members = frozenset(gene_collection(genes))

    positions = [ranked.positions[g] for g in members if g in ranked.positions]
    missing = len(members) - len(positions)

    if not positions:
        raise EmptyIntersectionError(name, len(members))

    if missing:
        logging.debug(f"Gene set '{name}': {missing}/{len(members)} genes not in ranking, ignored")

    hit_positions = np.sort(np.asarray(positions, dtype=np.int64))
    hit_positions.setflags(write=False)

    return GeneSet(
        name=name,
        members=members,
        hit_positions=hit_positions,
        set_size=len(members),
        missing_count=missing,
    )
