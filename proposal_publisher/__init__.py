"""
Governance proposal publisher.

Polls the DAO's governance feeds for new proposals, numbers each one within
its governance term, renders it into the docs site's MDX format and opens a
pull request against the documentation repository.
"""

__all__ = [
]
