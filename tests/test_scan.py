"""
Tests for the combinatorial scan module.
"""

import pytest
import numpy as np
import pandas as pd
import sys
import os

# Add the parent directory to the path to import the module
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from geochemmath.math.corr import CorrelationResult
from geochemmath.math.errors import UnsupportedMethodError
from geochemmath.math.scan import (
    ScanEntry, column_pairs, meets_criteria, common_prefix_length,
    is_duplicate_pair, relationship_tags, scan_pair, scan_pairs,
    full_scan_analysis, scan_summary
)


def make_rows(**columns):
    """Build row mappings from column lists of equal length."""
    names = list(columns.keys())
    n_rows = len(columns[names[0]])
    return [{name: columns[name][i] for name in names} for i in range(n_rows)]


class TestColumnPairs:
    """Tests for pair enumeration."""

    def test_all_pairs_in_order(self):
        """Test that every unordered pair appears once."""
        assert list(column_pairs(['a', 'b', 'c'])) == [('a', 'b'), ('a', 'c'), ('b', 'c')]

    def test_duplicate_columns(self):
        """Test that repeated column names are paired once."""
        assert list(column_pairs(['a', 'b', 'a'])) == [('a', 'b')]

    def test_too_few_columns(self):
        """Test that fewer than two columns give no pairs."""
        assert list(column_pairs(['a'])) == []
        assert list(column_pairs([])) == []


class TestCriteria:
    """Tests for the selection rule."""

    def test_meets_criteria(self):
        """Test threshold and significance checks."""
        stats = CorrelationResult(pearson_corr=-0.8, pearson_p=0.01,
                                  spearman_corr=0.3, spearman_p=0.4)

        assert meets_criteria(stats, ['pearson'], 0.5, 0.05)
        assert not meets_criteria(stats, ['spearman'], 0.5, 0.05)
        assert meets_criteria(stats, ['spearman', 'pearson'], 0.5, 0.05)
        assert not meets_criteria(stats, ['pearson'], 0.9, 0.05)
        assert not meets_criteria(stats, ['pearson'], 0.5, 0.001)

    def test_error_never_qualifies(self):
        """Test that failed pairs never meet the criteria."""
        stats = CorrelationResult(error="Not enough valid data points")
        assert not meets_criteria(stats, ['pearson'], 0.0, 1.0)


class TestTags:
    """Tests for relationship tags."""

    def test_common_prefix_length(self):
        assert common_prefix_length('abcd', 'abxy') == 2
        assert common_prefix_length('', 'abc') == 0

    def test_duplicate_unit_variants(self):
        """Test that unit variants of one quantity are duplicates."""
        assert is_duplicate_pair(0.999, 'Cu_ppm', 'Cu_ppb')
        assert not is_duplicate_pair(0.9, 'Cu_ppm', 'Cu_ppb')
        assert not is_duplicate_pair(None, 'Cu_ppm', 'Cu_ppb')

    def test_duplicate_common_prefix(self):
        """Test that nearly identical names are duplicates."""
        assert is_duplicate_pair(0.995, 'SiO2_total_wt', 'SiO2_total_wt2')
        assert not is_duplicate_pair(0.995, 'SiO2', 'Al2O3')

    def test_strength_tags(self):
        """Test strong and moderate tags."""
        strong = CorrelationResult(pearson_corr=-0.85)
        moderate = CorrelationResult(pearson_corr=0.5)
        weak = CorrelationResult(pearson_corr=0.1)

        assert 'strong-negative' in relationship_tags(strong, 'x', 'y')
        assert relationship_tags(moderate, 'x', 'y') == ['moderate']
        assert relationship_tags(weak, 'x', 'y') == []

    def test_non_linear_tags(self):
        """Test non-linear and log-scale tags."""
        stats = CorrelationResult(pearson_corr=0.5, spearman_corr=0.9)
        tags = relationship_tags(stats, 'Au', 'As')

        assert 'non-linear' in tags
        assert 'log-scale' in tags

        stats = CorrelationResult(pearson_corr=0.65, spearman_corr=0.9)
        tags = relationship_tags(stats, 'Au', 'As')
        assert 'non-linear' in tags
        assert 'log-scale' not in tags


class TestScanPair:
    """Tests for scanning a single pair."""

    def test_perfect_pair(self):
        """Test a perfectly correlated pair."""
        rows = make_rows(A=[1, 2, 3, 4], B=[2, 4, 6, 8])
        entry = scan_pair(rows, 'A', 'B', threshold=0.99, p_threshold=0.05)

        assert isinstance(entry, ScanEntry)
        assert entry.meets_criteria
        assert np.isclose(entry.statistics.pearson_corr, 1.0)
        assert 'strong-positive' in entry.tags

    def test_pair_then_filter(self):
        """Test that missing cells do not misalign the two columns."""
        rows = make_rows(A=[None, 1, 2, 3, 4], B=[10, 2, 4, 6, 8])
        entry = scan_pair(rows, 'A', 'B')

        assert entry.statistics.n == 4
        assert np.isclose(entry.statistics.pearson_corr, 1.0)

    def test_failed_pair(self):
        """Test a pair without enough data."""
        rows = make_rows(A=[1, 2, 3], B=[None, None, 1])
        entry = scan_pair(rows, 'A', 'B')

        assert entry.statistics.error is not None
        assert not entry.meets_criteria
        assert entry.tags == []

    def test_to_dict(self):
        """Test that the statistics are merged into the entry dictionary."""
        rows = make_rows(A=[1, 2, 3, 4], B=[2, 4, 6, 8])
        result = scan_pair(rows, 'A', 'B').to_dict()

        assert result['x_variable'] == 'A'
        assert result['y_variable'] == 'B'
        assert 'pearson_corr' in result
        assert 'spearman_corr' not in result


class TestFullScan:
    """Tests for the full combinatorial scan."""

    def setup_method(self):
        self.rows = make_rows(
            A=[1, 2, 3, 4],
            B=[2, 4, 6, 8],
            C=[3, 1, 4, 2],
        )

    def test_single_significant_pair(self):
        """Test that only the perfectly related pair survives."""
        results = full_scan_analysis(self.rows, ['A', 'B'], threshold=0.99, p_threshold=0.05)

        assert len(results) == 1
        assert results[0].x_variable == 'A'
        assert results[0].y_variable == 'B'

    def test_unrelated_column(self):
        """Test that an uncorrelated column adds no results."""
        results = full_scan_analysis(self.rows, ['A', 'B', 'C'], threshold=0.99, p_threshold=0.05)

        assert [(r.x_variable, r.y_variable) for r in results] == [('A', 'B')]

    def test_exclude_columns(self):
        """Test removing columns before pairing."""
        results = full_scan_analysis(self.rows, ['A', 'B', 'C'], threshold=0.99,
                                     exclude_columns=['B'])
        assert results == []

    def test_failed_pairs_do_not_abort(self):
        """Test that a sparse column is skipped and counted."""
        rows = [dict(row, D=None) for row in self.rows]
        summary = scan_summary(rows, ['A', 'B', 'D'], threshold=0.99)

        assert summary.total_combinations == 3
        assert summary.failed_combinations == 2
        assert summary.significant_combinations == 1

    def test_dataframe_input(self):
        """Test scanning a DataFrame."""
        df = pd.DataFrame(self.rows)
        results = full_scan_analysis(df, ['A', 'B', 'C'], threshold=0.99)

        assert len(results) == 1

    def test_unsupported_method(self):
        """Test that Kendall is rejected up front."""
        with pytest.raises(UnsupportedMethodError):
            full_scan_analysis(self.rows, ['A', 'B'], methods=['kendall'])

    def test_summary_sorting_and_options(self):
        """Test that the summary lists the strongest pair first."""
        rows = make_rows(
            A=[1, 2, 3, 4, 5, 6],
            B=[2, 4, 6, 8, 10, 12],
            C=[1, 3, 2, 5, 4, 6],
        )
        summary = scan_summary(rows, ['A', 'C', 'B'], threshold=0.5, p_threshold=0.2)

        assert summary.significant_combinations == len(summary.results)
        strengths = [entry.strength() for entry in summary.results]
        assert strengths == sorted(strengths, reverse=True)
        assert summary.results[0].strength() == pytest.approx(1.0)

        result = summary.to_dict()
        assert result['options']['threshold'] == 0.5
        assert result['options']['methods'] == ['pearson']
        assert result['execution_time'] >= 0

    def test_scan_pairs_keeps_failures(self):
        """Test that batch scanning returns every entry."""
        rows = [dict(row, D=None) for row in self.rows]
        entries = scan_pairs(rows, [('A', 'B'), ('A', 'D')])

        assert len(entries) == 2
        assert entries[1].statistics.error is not None
