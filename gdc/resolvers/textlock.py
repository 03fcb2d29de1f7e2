"""Resolvers for the whitespace-separated lockfiles of vndr and gdm.

Both list one repository per line as ``import-path revision``; vndr allows a
third column with an alternate repository URL. ``#`` starts a comment.
"""

from __future__ import annotations

from typing import List, Optional, Tuple

from ..errors import LockfileUnparseableError
from ..models import Lockfile, Revision
from .prefix import PrefixIndex


def parse_columns(path: str, tool: str, max_columns: int) -> List[Tuple[str, ...]]:
    try:
        with open(path, "r", encoding="utf-8") as fh:
            lines = fh.read().splitlines()
    except FileNotFoundError as e:
        raise LockfileUnparseableError(path, tool, "lockfile is missing") from e
    except UnicodeDecodeError as e:
        raise LockfileUnparseableError(path, tool, str(e)) from e

    rows: List[Tuple[str, ...]] = []
    for lineno, line in enumerate(lines, 1):
        line = line.split("#", 1)[0].strip()
        if not line:
            continue
        cols = tuple(line.split())
        if len(cols) < 2 or len(cols) > max_columns:
            raise LockfileUnparseableError(path, tool, f"line {lineno}: expected `path revision`")
        rows.append(cols)
    return rows


class VndrResolver:
    tool = "vndr"
    max_columns = 3

    def __init__(self, lockfile: Lockfile):
        self.lockfile = lockfile
        self.root = lockfile.root
        self.index = PrefixIndex()
        self.sources = {}
        for cols in parse_columns(lockfile.path, self.tool, self.max_columns):
            name, rev_id = cols[0], cols[1]
            self.index.add_root(name, Revision(name=name, revision=rev_id))
            if len(cols) > 2:
                self.sources[name] = cols[2]

    @property
    def label(self) -> str:
        return f"{self.tool}:{self.lockfile.path}"

    def resolve(self, import_path: str) -> Optional[Revision]:
        return self.index.longest_prefix(import_path)

    def revisions(self) -> List[Revision]:
        return self.index.revisions()


class GdmResolver(VndrResolver):
    tool = "gdm"
    max_columns = 2
