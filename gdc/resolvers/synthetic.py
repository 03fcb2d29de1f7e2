"""Resolver for the unresolved allowlist."""

from __future__ import annotations

from typing import List, Optional

from ..models import Revision, matches_any_prefix


class SyntheticResolver:
    """Answers "known to be unpinned" for allowlisted import paths.

    With ``allow_all`` every query matches.
    """
    tool = "unresolved"
    root = ""

    def __init__(self, prefixes: List[str], allow_all: bool = False):
        self.prefixes = list(prefixes)
        self.allow_all = allow_all

    @property
    def label(self) -> str:
        if self.allow_all:
            return "unresolved:*"
        return "unresolved:" + ",".join(self.prefixes)

    def resolve(self, import_path: str) -> Optional[Revision]:
        if self.allow_all or matches_any_prefix(import_path, self.prefixes):
            return Revision(name=import_path, revision="", is_unresolved=True)
        return None

    def revisions(self) -> List[Revision]:
        return []
