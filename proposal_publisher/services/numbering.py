"""
Proposal numbering.

Proposals are numbered "{term}.{ordinal}", where the term is the governance
year and the ordinal counts the proposals already filed for that term in the
docs repository.

The ordinal is derived from a snapshot of the docs directory listing, not from
a counter owned by this service. Two proposals numbered from the same snapshot
(or a listing that changes between numbering and commit) can receive the same
number. Branches are keyed by proposal id so they never collide, but the file
commit for the second proposal then fails and is reported for that proposal.
"""
from datetime import date
from typing import Dict, Iterable, Optional


def current_term(
    today: Optional[date] = None,
    reference_year: int = 2025,
    reference_term: int = 6,
) -> int:
    """Governance term for a date. Terms are one year long, starting January 1."""
    today = today or date.today()
    return reference_term + (today.year - reference_year)


def count_term_files(term: int, file_names: Iterable[str]) -> int:
    """Count listing entries filed under a term (names starting with "{term}.")."""
    prefix = f"{term}."
    return sum(1 for name in file_names if name.startswith(prefix))


def next_number(
    term: int,
    file_names: Iterable[str],
    corrections: Optional[Dict[int, int]] = None,
) -> str:
    """Next proposal number for a term, given the existing file names.

    Args:
        term: Current governance term
        file_names: Names in the proposals directory, e.g. "7.1.mdx"
        corrections: Optional term -> offset table applied to the ordinal

    Returns:
        Proposal number such as "7.3"
    """
    offset = (corrections or {}).get(term, 0)
    ordinal = count_term_files(term, file_names) + 1 + offset
    return f"{term}.{ordinal}"
