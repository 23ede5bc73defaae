"""
Package entry point.

Allows running the application via:

    python -m absencetracker

This simply forwards execution to absencetracker.cli.main().
"""

from absencetracker.cli import main

if __name__ == "__main__":
    main()
