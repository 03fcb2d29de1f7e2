"""Resolver for godep (``Godeps/Godeps.json``)."""

from __future__ import annotations

import json
from typing import List, Optional

from ..errors import LockfileUnparseableError
from ..models import Lockfile, Revision
from .prefix import PrefixIndex


class GodepResolver:
    tool = "godep"

    def __init__(self, lockfile: Lockfile):
        self.lockfile = lockfile
        self.root = lockfile.root
        self.index = PrefixIndex()
        self.import_path = ""
        self._load()

    @property
    def label(self) -> str:
        return f"{self.tool}:{self.lockfile.path}"

    def _load(self):
        path = self.lockfile.path
        try:
            with open(path, "r", encoding="utf-8") as fh:
                data = json.load(fh)
        except FileNotFoundError as e:
            raise LockfileUnparseableError(path, self.tool, "lockfile is missing") from e
        except json.JSONDecodeError as e:
            raise LockfileUnparseableError(path, self.tool, str(e)) from e
        if not isinstance(data, dict):
            raise LockfileUnparseableError(path, self.tool, "expected a JSON object")

        self.import_path = data.get("ImportPath") or ""
        for dep in data.get("Deps") or []:
            if not isinstance(dep, dict) or not dep.get("ImportPath"):
                raise LockfileUnparseableError(path, self.tool, f"invalid dependency {dep!r}")
            name = dep["ImportPath"]
            rev_id = dep.get("Rev") or ""
            rev = Revision(name=name, revision=rev_id, is_unresolved=not rev_id)
            self.index.add_exact(name, rev)
            self.index.add_root(name, rev)

    def resolve(self, import_path: str) -> Optional[Revision]:
        return self.index.lookup(import_path)

    def revisions(self) -> List[Revision]:
        return self.index.revisions()
