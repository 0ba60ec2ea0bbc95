"""
Dataset-level analysis for geochemmath.
"""

from geochemmath.analysis.analysis import GeochemAnalysis
