"""Resolver backed by a ``vendor/`` directory tree.

The directory tree is the lockfile: ``x/y/z`` resolves only when
``vendor/x/y/z`` exists. Revisions come from ``vendor/modules.txt`` when the
tree was produced by ``go mod vendor``; anything else is reported unresolved.
The tree is indexed once at construction.
"""

from __future__ import annotations

import os
from typing import Dict, List, Optional, Set

from ..errors import LockfileUnparseableError
from ..models import Lockfile, Revision
from .prefix import PrefixIndex

MODULES_TXT = "modules.txt"


def parse_modules_txt(text: str, path: str = MODULES_TXT) -> Dict[str, Revision]:
    modules: Dict[str, Revision] = {}
    for lineno, line in enumerate(text.splitlines(), 1):
        if not line.startswith("# "):
            continue  # package lines and "## explicit" markers
        toks = line[2:].split()
        if not toks:
            raise LockfileUnparseableError(path, "vendor", f"line {lineno}: empty module line")
        name = toks[0]
        if "=>" in toks:
            new = toks[toks.index("=>") + 1:]
            if not new:
                raise LockfileUnparseableError(path, "vendor", f"line {lineno}: replace without target")
            if len(new) > 1:
                modules[name] = Revision(name=name, revision=new[1])
            else:
                # replaced by a local directory
                modules[name] = Revision(name=name, revision="", is_unresolved=True)
        elif len(toks) > 1:
            modules[name] = Revision(name=name, revision=toks[1])
        else:
            modules[name] = Revision(name=name, revision="", is_unresolved=True)
    return modules


class VendorTreeResolver:
    tool = "vendor"

    def __init__(self, lockfile: Lockfile):
        self.lockfile = lockfile
        self.root = lockfile.root
        self.vendor_dir = lockfile.path
        self.dirs: Set[str] = set()
        self.go_dirs: Set[str] = set()
        self.modules = PrefixIndex()
        self._load()

    @property
    def label(self) -> str:
        return f"{self.tool}:{self.vendor_dir}"

    def _load(self):
        if not os.path.isdir(self.vendor_dir):
            raise LockfileUnparseableError(self.vendor_dir, self.tool, "vendor directory is missing")

        for dirpath, dirs, files in os.walk(self.vendor_dir):
            dirs[:] = sorted(d for d in dirs if not d.startswith("."))
            rel = os.path.relpath(dirpath, self.vendor_dir)
            if rel == ".":
                continue
            key = rel.replace(os.sep, "/")
            self.dirs.add(key)
            if any(f.endswith(".go") for f in files):
                self.go_dirs.add(key)

        meta = os.path.join(self.vendor_dir, MODULES_TXT)
        if os.path.isfile(meta):
            try:
                with open(meta, "r", encoding="utf-8") as fh:
                    text = fh.read()
            except UnicodeDecodeError as e:
                raise LockfileUnparseableError(meta, self.tool, str(e)) from e
            for name, rev in parse_modules_txt(text, meta).items():
                self.modules.add_root(name, rev)

    def resolve(self, import_path: str) -> Optional[Revision]:
        if import_path not in self.dirs:
            return None
        rev = self.modules.longest_prefix(import_path)
        if rev is not None:
            return rev
        return Revision(name=import_path, revision="", is_unresolved=True)

    def revisions(self) -> List[Revision]:
        if len(self.modules):
            return self.modules.revisions()
        return [Revision(name=d, revision="", is_unresolved=True) for d in sorted(self.go_dirs)]
