"""Resolver for glide (``glide.lock``)."""

from __future__ import annotations

import os
from typing import List, Optional

import yaml

from ..errors import LockfileUnparseableError
from ..models import Lockfile, Revision
from .prefix import PrefixIndex


class GlideResolver:
    tool = "glide"

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
            raise LockfileUnparseableError(path, self.tool, "lockfile is missing (run `glide install`)")
        try:
            with open(path, "r", encoding="utf-8") as fh:
                data = yaml.safe_load(fh) or {}
        except yaml.YAMLError as e:
            raise LockfileUnparseableError(path, self.tool, str(e)) from e
        if not isinstance(data, dict):
            raise LockfileUnparseableError(path, self.tool, "expected a mapping")

        imports = []
        for section in ("imports", "testImports"):
            entries = data.get(section) or []
            if not isinstance(entries, list):
                raise LockfileUnparseableError(path, self.tool, f"`{section}` must be a list")
            imports.extend(entries)

        for entry in imports:
            if not isinstance(entry, dict) or not entry.get("name"):
                raise LockfileUnparseableError(path, self.tool, f"invalid import entry {entry!r}")
            name = entry["name"]
            version = str(entry.get("version") or "")
            rev = Revision(name=name, revision=version, is_unresolved=not version)
            self.index.add_root(name, rev)
            self.index.add_exact(name, rev)
            for sub in entry.get("subpackages") or []:
                self.index.add_exact(f"{name}/{sub}", rev)

    def resolve(self, import_path: str) -> Optional[Revision]:
        return self.index.lookup(import_path)

    def revisions(self) -> List[Revision]:
        return self.index.revisions()
