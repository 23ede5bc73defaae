"""
Opaque identifiers for semesters, courses and attendance records.
"""

from __future__ import annotations

import uuid


def generate_id(prefix: str = "") -> str:
    """
    Return a new random identifier, e.g. 'course-3f2b...'.

    UUID4 gives 122 random bits, so collisions are not a practical concern
    for a single user's data.
    """
    value = str(uuid.uuid4())
    return f"{prefix}-{value}" if prefix else value
