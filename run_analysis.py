"""Convenience launcher for the analysis CLI.

Usage:
  python run_analysis.py --config analysis.yaml [--metrics cycle_time,daily_wip]

Equivalent to the ``team-perf`` console script, usable without installing
the package.
"""

import sys

from team_perf.cli import main

if __name__ == "__main__":
    sys.exit(main())
