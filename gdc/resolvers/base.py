"""The contract every lockfile resolver satisfies.

Resolvers read their backing file once, at construction, and answer every
query from memory. ``resolve`` returns ``None`` when the lockfile says nothing
about the import path.
"""

from __future__ import annotations

from typing import List, Optional, Protocol

from ..models import Revision


class Resolver(Protocol):
    tool: str
    root: str

    @property
    def label(self) -> str: ...

    def resolve(self, import_path: str) -> Optional[Revision]: ...

    def revisions(self) -> List[Revision]: ...
