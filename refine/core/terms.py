"""
Controlled values written into output columns.
"""

PRESENT = "present"
ABSENT = "absent"
MISAPPLIED = "misapplied"

ISO_DAY_FORMAT = "%Y-%m-%d"
ISO_MONTH_FORMAT = "%Y-%m"


def occurrence_status(individual_count: float) -> str:
    """Return PRESENT for a positive abundance, ABSENT otherwise."""
    return PRESENT if individual_count > 0 else ABSENT
