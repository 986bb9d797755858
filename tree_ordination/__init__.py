"""
Tree species ordination for hexagon-grid sample units.

Reshapes GIS frequency tables into sample-by-species matrices, ordinates
them and exports scores for interpolation in GIS software.
"""

__version__ = "0.1.0"
