"""
Short course names for compact table headers.

generate_short_name("Design & Analysis of Algorithms") -> "DAA"
generate_short_name("Operating Systems Lab")           -> "OS Lab"
generate_short_name("Philosophy")                      -> "PHILOSOP"
"""

from __future__ import annotations

import re

EXCLUDED_WORDS = {
    "and", "of", "the", "in", "to", "for", "with", "on", "at", "by", "an", "a",
    "&", "-", "/", "(", ")", "i", "ii", "iii", "iv", "v",
}

# Manual overrides for well-known courses (checked by substring, longest first)
KNOWN_ABBREVIATIONS = {
    "object oriented programming": "OOP",
    "data structures and algorithms": "DSA",
    "data structures": "DS",
    "design and analysis of algorithms": "DAA",
    "design & analysis of algorithms": "DAA",
    "database management systems": "DBMS",
    "database systems": "DBS",
    "operating systems": "OS",
    "computer networks": "CN",
    "software engineering": "SE",
    "artificial intelligence": "AI",
    "machine learning": "ML",
    "deep learning": "DL",
    "human computer interaction": "HCI",
    "computer organization and assembly language": "COAL",
    "digital logic design": "DLD",
    "discrete mathematics": "DM",
    "linear algebra": "LA",
    "probability and statistics": "P&S",
    "information security": "IS",
    "software design and architecture": "SDA",
    "software design & architecture": "SDA",
    "programming fundamentals": "PF",
    "theory of automata": "TOA",
}


def generate_short_name(name: str, course_code: str = "", max_length: int = 8) -> str:
    text = (name or course_code or "").strip()
    if not text:
        return "N/A"

    normalized = text.lower()
    is_lab = "lab" in normalized.split() or normalized.endswith("(lab)")

    for full_name in sorted(KNOWN_ABBREVIATIONS, key=len, reverse=True):
        if full_name in normalized:
            abbr = KNOWN_ABBREVIATIONS[full_name]
            return f"{abbr} Lab" if is_lab else abbr

    stripped = re.sub(r"\s*\(lab\)$|\s*\blab$", "", normalized)
    words = [w for w in re.split(r"[\s&/\-()]+", stripped) if w and w not in EXCLUDED_WORDS]

    if not words:
        return text[:max_length].upper()

    if len(words) == 1:
        short = words[0][:max_length].upper()
    else:
        # first letters of up to four significant words
        short = "".join(w[0] for w in words[:4]).upper()

    if is_lab:
        short += " Lab" if len(short) <= 4 else "L"

    return short[:max_length]
