"""
CA exam syllabus taxonomy.

Foundation has a flat list of papers; Intermediate and Final split their papers
into Group I and Group II.
"""

from __future__ import annotations

from typing import Optional

__all__ = [
    "LEVELS",
    "GROUPS",
    "DIFFICULTIES",
    "CA_EXAMS",
    "SyllabusError",
    "list_subjects",
    "validate_subject",
]

LEVELS = ("Foundation", "Intermediate", "Final")
GROUPS = ("Group I", "Group II")
DIFFICULTIES = ("Easy", "Medium", "Hard")

CA_EXAMS: dict[str, dict] = {
    "Foundation": {
        "papers": [
            {"name": "Paper 1: Accounting", "value": "Accounting"},
            {"name": "Paper 2: Business Laws", "value": "Business Laws"},
            {"name": "Paper 3: Quantitative Aptitude", "value": "Quantitative Aptitude"},
            {"name": "Paper 4: Business Economics", "value": "Business Economics"},
        ],
    },
    "Intermediate": {
        "Group I": {
            "papers": [
                {"name": "Paper 1: Advanced Accounting", "value": "Advanced Accounting"},
                {"name": "Paper 2: Corporate & Other Laws", "value": "Corporate & Other Laws"},
                {"name": "Paper 3: Taxation", "value": "Taxation"},
            ],
        },
        "Group II": {
            "papers": [
                {"name": "Paper 4: Cost & Management Accounting", "value": "Cost & Management Accounting"},
                {"name": "Paper 5: Auditing & Ethics", "value": "Auditing & Ethics"},
                {
                    "name": "Paper 6: Financial Management & Strategic Management",
                    "value": "Financial Management & Strategic Management",
                },
            ],
        },
    },
    "Final": {
        "Group I": {
            "papers": [
                {"name": "Paper 1: Financial Reporting", "value": "Financial Reporting"},
                {
                    "name": "Paper 2: Strategic Financial Management (SFM)",
                    "value": "Strategic Financial Management",
                },
                {
                    "name": "Paper 3: Advanced Auditing & Professional Ethics",
                    "value": "Advanced Auditing & Professional Ethics",
                },
            ],
        },
        "Group II": {
            "papers": [
                {"name": "Paper 4: Corporate & Economic Laws", "value": "Corporate & Economic Laws"},
                {
                    "name": "Paper 5: Strategic Cost Management & Performance Evaluation (SCMP)",
                    "value": "Strategic Cost Management & Performance Evaluation",
                },
                {"name": "Paper 6: Integrated Business Solutions", "value": "Integrated Business Solutions"},
            ],
        },
    },
}


class SyllabusError(ValueError):
    """Raised when a level/group/subject combination is not part of the syllabus."""


def _has_groups(level: str) -> bool:
    return "papers" not in CA_EXAMS[level]


def list_subjects(level: str, group: Optional[str] = None) -> list[str]:
    """
    Return the subject values for a level (and group, where the level has groups).

    When a grouped level is queried without a group, subjects of both groups are
    returned in paper order.
    """
    if level not in CA_EXAMS:
        raise SyllabusError(f"unknown exam level: {level!r}")

    entry = CA_EXAMS[level]
    if not _has_groups(level):
        return [p["value"] for p in entry["papers"]]

    if group is None:
        return [p["value"] for g in GROUPS for p in entry[g]["papers"]]
    if group not in entry:
        raise SyllabusError(f"unknown group {group!r} for level {level}")
    return [p["value"] for p in entry[group]["papers"]]


def validate_subject(level: str, group: Optional[str], subject: str) -> None:
    if level not in CA_EXAMS:
        raise SyllabusError(f"unknown exam level: {level!r}")
    if _has_groups(level):
        if not group:
            raise SyllabusError(f"level {level} requires a group (Group I or Group II)")
    elif group:
        raise SyllabusError(f"level {level} has no groups")

    if subject not in list_subjects(level, group):
        raise SyllabusError(f"subject {subject!r} is not part of {level}{' ' + group if group else ''}")
