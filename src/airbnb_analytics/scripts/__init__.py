"""
Airbnb Analytics - CLI Scripts Package

Command-line entry points for the analytics project. Each script can be
invoked via:
- Direct execution: python -m airbnb_analytics.scripts.<script_name>
- Entry points: airbnb-<command> (after pip install)
"""

from . import (
    run_project,
    validate_config,
)

__all__ = [
    "run_project",
    "validate_config",
]
