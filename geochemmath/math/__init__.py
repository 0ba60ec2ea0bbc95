"""
Numerical engine for geochemmath.

Descriptive statistics, pairwise correlation and regression, the
combinatorial scan, correlation matrices, PCA variable suggestions, PCA
and K-means clustering of the PCA scores.
"""

from geochemmath.math.errors import (
    GeochemMathError,
    EmptyInputError,
    InsufficientDataError,
    UnsupportedMethodError,
    InsufficientSamplesError,
    InsufficientVariablesError,
)
from geochemmath.math.sample_matrix import SampleMatrix, parse_number, pair_values
from geochemmath.math.stats import DescriptiveStats, descriptive_stats
from geochemmath.math.corr import CorrelationResult, calculate_statistics, correlation_matrix
from geochemmath.math.scan import ScanEntry, ScanSummary, full_scan_analysis, scan_summary
from geochemmath.math.grouping import PCASuggestion, EstimatedVarianceProfile, suggest_pca_variables
from geochemmath.math.pca import PCAResult, perform_pca
from geochemmath.math.clusters import Cluster, kmeans, find_optimal_k

__all__ = [
    'GeochemMathError',
    'EmptyInputError',
    'InsufficientDataError',
    'UnsupportedMethodError',
    'InsufficientSamplesError',
    'InsufficientVariablesError',
    'SampleMatrix',
    'parse_number',
    'pair_values',
    'DescriptiveStats',
    'descriptive_stats',
    'CorrelationResult',
    'calculate_statistics',
    'correlation_matrix',
    'ScanEntry',
    'ScanSummary',
    'full_scan_analysis',
    'scan_summary',
    'PCASuggestion',
    'EstimatedVarianceProfile',
    'suggest_pca_variables',
    'PCAResult',
    'perform_pca',
    'Cluster',
    'kmeans',
    'find_optimal_k',
]
