"""Resolver for dep (``Gopkg.lock``).

Each ``[[projects]]`` entry pins a repository root; its ``packages`` list
names the sub-packages in use (``"."`` is the root itself).
"""

from __future__ import annotations

import os
import tomllib
from typing import List, Optional

from ..errors import LockfileUnparseableError
from ..models import Lockfile, Revision
from .prefix import PrefixIndex


class DepResolver:
    tool = "dep"

    def __init__(self, lockfile: Lockfile):
        self.lockfile = lockfile
        self.root = lockfile.root
        self.index = PrefixIndex()
        self._load()

    @property
    def label(self) -> str:
        return f"{self.tool}:{self.lockfile.path}"

    def _load(self):
        path = self.lockfile.path
        if not os.path.isfile(path):
            raise LockfileUnparseableError(path, self.tool, "lockfile is missing (run `dep ensure`)")
        try:
            with open(path, "rb") as fh:
                data = tomllib.load(fh)
        except (tomllib.TOMLDecodeError, UnicodeDecodeError) as e:
            raise LockfileUnparseableError(path, self.tool, str(e)) from e

        projects = data.get("projects", [])
        if not isinstance(projects, list):
            raise LockfileUnparseableError(path, self.tool, "`projects` must be an array of tables")

        for project in projects:
            name = project.get("name") if isinstance(project, dict) else None
            if not name:
                raise LockfileUnparseableError(path, self.tool, "project entry without a name")
            pinned = project.get("version") or project.get("revision") or ""
            rev = Revision(name=name, revision=pinned, is_unresolved=not pinned)
            self.index.add_root(name, rev)
            for pkg in project.get("packages", []) or []:
                if pkg in (".", ""):
                    self.index.add_exact(name, rev)
                else:
                    self.index.add_exact(f"{name}/{pkg}", rev)

    def resolve(self, import_path: str) -> Optional[Revision]:
        return self.index.lookup(import_path)

    def revisions(self) -> List[Revision]:
        return self.index.revisions()
