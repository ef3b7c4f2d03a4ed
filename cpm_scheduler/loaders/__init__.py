"""
Project loaders: application JSON and Primavera P6 XER exports.
"""

from .project_loader import load_project
from .xer_loader import load_xer_project, build_project_data
from .xer_parser import XERParser

__all__ = [
    'load_project',
    'load_xer_project',
    'build_project_data',
    'XERParser',
]
