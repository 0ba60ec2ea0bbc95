"""
Analysis facade for a geochemical dataset.

A GeochemAnalysis binds a table, its numeric columns and a configuration,
and exposes the engine operations with configured defaults. The rows are
never modified.
"""

import logging
import time
from typing import Any, Dict, List, Optional, Sequence

from geochemmath.components.config import Config, ConfigManager
from geochemmath.math.clusters import as_random_state
from geochemmath.math.corr import CorrelationResult, calculate_statistics, dataset_correlation_matrix
from geochemmath.math.errors import EmptyInputError
from geochemmath.math.grouping import PCASuggestion, suggest_pca_variables
from geochemmath.math.pca import PCAResult, perform_pca
from geochemmath.math.sample_matrix import Rows, column_values, paired_columns, to_records
from geochemmath.math.scan import ScanSummary, scan_summary
from geochemmath.math.stats import DescriptiveStats, descriptive_stats
from geochemmath.utils.general import hash_map_subset

logger = logging.getLogger(__name__)


class GeochemAnalysis:
    """
    Statistical analysis of one geochemical dataset.
    """

    def __init__(self,
                 rows: Rows,
                 numeric_columns: Sequence[str],
                 config: Optional[Config] = None):
        """
        Initialize an analysis.

        Args:
            rows: Dataset rows (list of mappings or DataFrame)
            numeric_columns: Columns treated as numeric variables
            config: Configuration (defaults to the shared ConfigManager instance)

        Raises:
            KeyError: if a numeric column appears in no row
        """
        self.rows = to_records(rows)
        self.numeric_columns = list(numeric_columns)
        self.config = config if config is not None else ConfigManager.get_config()

        present = set()
        for row in self.rows:
            present.update(row.keys())
        missing = [col for col in self.numeric_columns if col not in present]
        if missing:
            raise KeyError(f"Numeric columns not found in data: {', '.join(missing)}")

        # one generator per analysis so repeated PCA runs draw fresh but repeatable seeds
        self._rng = as_random_state(self.config.get('clustering.random-seed'))

        logger.debug(f"Analysis over {len(self.rows)} rows and {len(self.numeric_columns)} numeric columns")

    def _columns(self, variables: Optional[Sequence[str]]) -> List[str]:
        if variables is None:
            return list(self.numeric_columns)
        return list(variables)

    def describe(self, column: str) -> DescriptiveStats:
        """
        Descriptive statistics of one column.

        Args:
            column: Column name

        Returns:
            DescriptiveStats
        """
        return descriptive_stats(column_values(self.rows, column))

    def describe_all(self) -> Dict[str, DescriptiveStats]:
        """
        Descriptive statistics for every numeric column with data.

        Columns without a single usable number are skipped with a warning.
        """
        results = {}
        for column in self.numeric_columns:
            try:
                results[column] = self.describe(column)
            except EmptyInputError:
                logger.warning(f"Column {column} has no numeric values, skipping")
        return results

    def correlate(self,
                  x_col: str,
                  y_col: str,
                  methods: Optional[Sequence[str]] = None) -> CorrelationResult:
        """
        Correlation and regression between two columns.

        Args:
            x_col: First column
            y_col: Second column
            methods: Methods (defaults to pearson and spearman)

        Returns:
            CorrelationResult, with ``error`` set when too few rows pair up
        """
        if methods is None:
            methods = ('pearson', 'spearman')
        x_clean, y_clean = paired_columns(self.rows, x_col, y_col)
        return calculate_statistics(
            x_clean, y_clean, methods,
            p_value_method=self.config.get('scan.p-value-method', 'exact'),
            tie_method=self.config.get('scan.tie-method', 'average')
        )

    def scan(self,
             threshold: Optional[float] = None,
             p_threshold: Optional[float] = None,
             methods: Optional[Sequence[str]] = None,
             exclude_columns: Optional[Sequence[str]] = None) -> ScanSummary:
        """
        Combinatorial scan over the numeric columns.

        Arguments left as None take their value from the ``scan`` config.

        Returns:
            ScanSummary
        """
        scan_config = self.config.get('scan', {})
        return scan_summary(
            self.rows,
            self.numeric_columns,
            threshold=scan_config.get('threshold', 0.5) if threshold is None else threshold,
            p_threshold=scan_config.get('p-threshold', 0.05) if p_threshold is None else p_threshold,
            methods=scan_config.get('methods', ['pearson']) if methods is None else methods,
            p_value_method=scan_config.get('p-value-method', 'exact'),
            tie_method=scan_config.get('tie-method', 'average'),
            exclude_columns=exclude_columns
        )

    def correlation_matrix(self, variables: Optional[Sequence[str]] = None) -> Dict[str, Dict[str, float]]:
        """Pearson correlation matrix of the given (or all numeric) columns."""
        return dataset_correlation_matrix(self.rows, self._columns(variables))

    def suggest_pca(self,
                    variables: Optional[Sequence[str]] = None,
                    threshold: Optional[float] = None) -> List[PCASuggestion]:
        """
        Suggest variable groups for PCA.

        Args:
            variables: Candidate columns (defaults to all numeric columns)
            threshold: Grouping |r| threshold (defaults to config)

        Returns:
            Suggestions sorted by descending confidence
        """
        variables = self._columns(variables)
        grouping = hash_map_subset(self.config.get('grouping', {}), ['threshold', 'domain-confidence'])
        if threshold is None:
            threshold = grouping.get('threshold', 0.6)
        matrix = self.correlation_matrix(variables)
        return suggest_pca_variables(
            matrix, variables,
            threshold=threshold,
            domain_confidence=grouping.get('domain-confidence', 0.75)
        )

    def run_pca(self,
                variables: Sequence[str],
                n_components: Optional[int] = None) -> PCAResult:
        """
        PCA with K-means on the first two components.

        Args:
            variables: Columns to analyze
            n_components: Components to retain (defaults to config)

        Returns:
            PCAResult

        Raises:
            InsufficientVariablesError, InsufficientSamplesError
        """
        start_time = time.time()
        if n_components is None:
            n_components = self.config.get('pca.n-components')
        result = perform_pca(
            self.rows,
            variables,
            n_components=n_components,
            random_state=self._rng,
            max_k=self.config.get('clustering.max-k', 6),
            max_iters=self.config.get('clustering.max-iters', 100),
            eigen_solver=self.config.get('pca.eigen-solver', 'eigh')
        )
        logger.info(f"run_pca completed in {time.time() - start_time:.3f}s")
        return result
