"""Ordered composition of resolvers: the first one that answers wins."""

from __future__ import annotations

from typing import List, Optional, Tuple

from ..models import Revision
from .base import Resolver


class ChainResolver:
    tool = "chain"

    def __init__(self, members: List[Resolver]):
        self.members = list(members)
        self.root = self.members[0].root if self.members else ""

    @property
    def label(self) -> str:
        return " -> ".join(m.label for m in self.members)

    def resolve(self, import_path: str) -> Optional[Revision]:
        return self.resolve_with_source(import_path)[0]

    def resolve_with_source(self, import_path: str) -> Tuple[Optional[Revision], Optional[Resolver]]:
        """Return the revision and the member that produced it."""
        for member in self.members:
            rev = member.resolve(import_path)
            if rev is not None:
                return rev, member
        return None, None

    def revisions(self) -> List[Revision]:
        seen = set()
        for member in self.members:
            seen.update(member.revisions())
        return sorted(seen)

    def __len__(self) -> int:
        return len(self.members)
