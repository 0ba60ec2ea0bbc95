"""
System components for geochemmath.

This module provides configuration handling shared by the analysis
facade and the command line.
"""

from geochemmath.components.config import Config, ConfigManager
