"""
NCP Analyzer — netNCP scoring

Computes priority-weighted net nature's contributions to people (netNCP)
per stakeholder group and forest type, with sensitivity analysis.
"""

__version__ = "1.0.0"
__author__ = "CATIE Consultancy"

from ncp_analyzer.pipeline import run_pipeline
from ncp_analyzer.sensitivity import run_sensitivity
from ncp_analyzer.analysis import run_analysis

__all__ = ["run_pipeline", "run_sensitivity", "run_analysis", "__version__"]
