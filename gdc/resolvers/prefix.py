"""Import path index with exact and longest-prefix lookup."""

from __future__ import annotations

from typing import Dict, List, Optional

from ..models import Revision


class PrefixIndex:
    """Maps import paths and project roots to revisions.

    ``lookup`` tries an exact package entry first, then the longest indexed
    root that is an element-wise prefix of the query. Keys are normalized
    without trailing slashes, so two distinct keys can never match at the
    same length and the result does not depend on insertion order.
    """

    def __init__(self):
        self._exact: Dict[str, Revision] = {}
        self._roots: Dict[str, Revision] = {}

    def add_exact(self, import_path: str, revision: Revision):
        key = import_path.strip("/")
        if key and key not in self._exact:
            self._exact[key] = revision

    def add_root(self, prefix: str, revision: Revision):
        key = prefix.strip("/")
        if key and key not in self._roots:
            self._roots[key] = revision

    def lookup(self, import_path: str) -> Optional[Revision]:
        rev = self._exact.get(import_path)
        if rev is not None:
            return rev
        return self.longest_prefix(import_path)

    def longest_prefix(self, import_path: str) -> Optional[Revision]:
        parts = import_path.split("/")
        for i in range(len(parts), 0, -1):
            rev = self._roots.get("/".join(parts[:i]))
            if rev is not None:
                return rev
        return None

    def revisions(self) -> List[Revision]:
        return sorted(set(self._exact.values()) | set(self._roots.values()))

    def __len__(self) -> int:
        return len(set(self._exact) | set(self._roots))
