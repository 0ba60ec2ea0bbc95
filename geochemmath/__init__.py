"""
Geochemmath package for geochemical data analysis.

Descriptive statistics, correlation scans, PCA and clustering for
tables of geochemical assay results.
"""

__version__ = '0.1.0'

from geochemmath.analysis import GeochemAnalysis
from geochemmath.components.config import Config, ConfigManager
