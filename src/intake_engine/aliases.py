"""AliasTable — one canonical answer key per datum, many read-compatible names.

Form configurations written over time refer to the same datum under several
keys (``shipping_state``, ``home_state`` and ``state`` all mean the patient's
state).  The session stores each answer under its canonical key; every reader
(condition evaluator, calculation engine, text interpolation) resolves any
alias back to it.

Usage::

    aliases = AliasTable({"state": ["shipping_state", "home_state"]})
    aliases.canonical("home_state")           # -> "state"
    aliases.lookup("shipping_state", {"state": "TX"})  # -> "TX"
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping

logger = logging.getLogger(__name__)

DEFAULT_ALIASES: dict[str, list[str]] = {
    "state": ["shipping_state", "home_state"],
    "first_name": ["account_firstName", "firstName", "account_first_name"],
    "last_name": ["account_lastName", "lastName", "account_last_name"],
}


class AliasTable:
    """Bidirectional mapping between canonical keys and their aliases.

    Args:
        groups: mapping of canonical key -> list of alias keys.  Defaults to
            :data:`DEFAULT_ALIASES`.
    """

    def __init__(self, groups: Mapping[str, Iterable[str]] | None = None) -> None:
        if groups is None:
            groups = DEFAULT_ALIASES
        self._groups: dict[str, tuple[str, ...]] = {}
        self._canonical: dict[str, str] = {}
        for canonical, names in groups.items():
            self._add(canonical, names)

    def _add(self, canonical: str, names: Iterable[str]) -> None:
        names = tuple(n for n in names if n != canonical)
        for name in names:
            previous = self._canonical.get(name)
            if previous is not None and previous != canonical:
                logger.warning(
                    "Alias %r moved from %r to %r", name, previous, canonical
                )
            self._canonical[name] = canonical
        self._groups[canonical] = names

    def merged(self, overrides: Mapping[str, Iterable[str]] | None) -> AliasTable:
        """Return a new table with *overrides* layered on top of this one."""
        groups: dict[str, Iterable[str]] = dict(self._groups)
        groups.update(overrides or {})
        return AliasTable(groups)

    def canonical(self, key: str) -> str:
        """Return the canonical key for *key* (itself if it is not an alias)."""
        return self._canonical.get(key, key)

    def names(self, key: str) -> tuple[str, ...]:
        """All keys meaning the same datum as *key*, canonical first."""
        canonical = self.canonical(key)
        return (canonical, *self._groups.get(canonical, ()))

    def lookup(self, key: str, answers: Mapping[str, Any]) -> Any:
        """Read *key* from *answers*, trying the exact key first, then its aliases.

        Empty values (None, "") are skipped so that a stale empty alias does
        not hide a filled canonical entry.
        """
        value = answers.get(key)
        if value is not None and value != "":
            return value
        for name in self.names(key):
            if name == key:
                continue
            candidate = answers.get(name)
            if candidate is not None and candidate != "":
                return candidate
        return value

    def expand(self, answers: Mapping[str, Any]) -> dict[str, Any]:
        """Return *answers* plus an entry for every alias of every answered key.

        Explicit entries in *answers* always win over alias-derived ones.
        """
        expanded = dict(answers)
        for key, value in answers.items():
            for name in self.names(key):
                expanded.setdefault(name, value)
        return expanded

    def __contains__(self, key: str) -> bool:
        return key in self._canonical or key in self._groups

    def __repr__(self) -> str:
        return f"AliasTable({self._groups!r})"
