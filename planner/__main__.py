"""
Entry point for running the planner as a module.

Usage:
    python -m planner import-subjects state.json subjects.csv
    python -m planner summary state.json
    python -m planner export state.json --format csv -o exams.csv
"""

from planner.cli import main

if __name__ == "__main__":
    main()
