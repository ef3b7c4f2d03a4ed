"""
Analysis modules for schedule what-if scenarios.
"""

from .critical_path import analyze_critical_path, get_critical_path_by_wbs, print_critical_path_report
from .activity_impact import analyze_activity_impact, analyze_activity_sensitivity

__all__ = [
    'analyze_critical_path',
    'get_critical_path_by_wbs',
    'print_critical_path_report',
    'analyze_activity_impact',
    'analyze_activity_sensitivity',
]
