"""
Bundle Repair - recovers self-contained HTML/CSS/JS bundles from raw model output
"""

__version__ = "1.0.0"
