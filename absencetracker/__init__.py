"""
Absence Tracker: class attendance against per-course absence allowances,
grouped by academic semester.
"""

from pathlib import Path

__version__ = (Path(__file__).resolve().parent / "VERSION").read_text(encoding="utf-8").strip()
