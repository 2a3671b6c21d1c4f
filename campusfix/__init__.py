"""
Campus Fix - campus issue reporting with photo validation and geofencing.
"""

__version__ = "0.1.0"
