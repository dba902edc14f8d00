"""
gsea_core: permutation-based Gene Set Enrichment Analysis

This package provides:
- Ranking input validation (gene -> score)
- Running-sum enrichment scoring with a size-preserving permutation null
- Batch scoring of gene set collections with FDR correction
- Per-gene t-test ranking and toy data simulation
- Reproducibility metadata
"""

__version__ = "0.1.0"

from .errors import (
    EnrichmentError,
    InvalidInputError,
    EmptyIntersectionError,
    InvalidParameterError,
)
from .config import EnrichmentConfig
from .ranking import RankedGeneList, GeneSet, build_ranked_list, prepare_gene_set
from .scorer import ScoreResult, score
from .correction import fdr_correction
from .repro import ReproducibilityLogger, RunMetadata
from .batch import BatchResult, EnrichmentResult, SkippedGeneSet, run, run_gsea
from .de import ttest_de, ranking_from_de
from .simulate import SimulatedData, simulate_expression

__all__ = [
    "EnrichmentError",
    "InvalidInputError",
    "EmptyIntersectionError",
    "InvalidParameterError",
    "EnrichmentConfig",
    "RankedGeneList",
    "GeneSet",
    "build_ranked_list",
    "prepare_gene_set",
    "ScoreResult",
    "score",
    "fdr_correction",
    "ReproducibilityLogger",
    "RunMetadata",
    "BatchResult",
    "EnrichmentResult",
    "SkippedGeneSet",
    "run",
    "run_gsea",
    "ttest_de",
    "ranking_from_de",
    "SimulatedData",
    "simulate_expression",
]
