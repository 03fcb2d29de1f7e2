"""Resolver for Go modules (``go.mod``).

Only the directives that pin versions matter here: ``module``, ``require``
and ``replace``, either on one line or in a parenthesized block. A query
resolves to the required module with the longest matching path.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Tuple

from ..errors import LockfileUnparseableError
from ..models import Lockfile, Revision
from .prefix import PrefixIndex


def _is_local_path(target: str) -> bool:
    return target.startswith(("./", "../", "/")) or target in (".", "..")


def _tokens(line: str) -> List[str]:
    line = line.split("//", 1)[0]
    return [t.strip('"`') for t in line.split()]


def parse_go_mod(text: str, path: str = "go.mod") -> Tuple[str, Dict[str, str], List[Tuple[str, str, str, str]]]:
    """Return ``(module_path, requires, replaces)``.

    ``replaces`` holds ``(old_path, old_version, new_path, new_version)``
    tuples; versions may be empty.
    """
    module_path = ""
    requires: Dict[str, str] = {}
    replaces: List[Tuple[str, str, str, str]] = []

    block: Optional[str] = None
    for lineno, raw in enumerate(text.splitlines(), 1):
        toks = _tokens(raw)
        if not toks:
            continue

        if block is not None:
            if toks == [")"]:
                block = None
                continue
            directive, args = block, toks
        else:
            directive, args = toks[0], toks[1:]
            if args == ["("]:
                block = directive
                continue

        if directive == "module":
            if len(args) != 1:
                raise LockfileUnparseableError(path, "gomodules", f"line {lineno}: malformed module directive")
            module_path = args[0]
        elif directive == "require":
            if len(args) != 2:
                raise LockfileUnparseableError(path, "gomodules", f"line {lineno}: malformed require")
            requires[args[0]] = args[1]
        elif directive == "replace":
            if "=>" not in args:
                raise LockfileUnparseableError(path, "gomodules", f"line {lineno}: replace without =>")
            arrow = args.index("=>")
            old, new = args[:arrow], args[arrow + 1:]
            if not old or not new or len(old) > 2 or len(new) > 2:
                raise LockfileUnparseableError(path, "gomodules", f"line {lineno}: malformed replace")
            replaces.append((
                old[0],
                old[1] if len(old) > 1 else "",
                new[0],
                new[1] if len(new) > 1 else "",
            ))
        # go, toolchain, exclude and retract do not pin anything

    if block is not None:
        raise LockfileUnparseableError(path, "gomodules", f"unterminated {block} block")
    return module_path, requires, replaces


class GoModulesResolver:
    tool = "gomodules"

    def __init__(self, lockfile: Lockfile):
        self.lockfile = lockfile
        self.root = lockfile.root
        self.index = PrefixIndex()
        self.module_path = ""
        self._load()

    @property
    def label(self) -> str:
        return f"{self.tool}:{self.lockfile.path}"

    def _load(self):
        path = self.lockfile.path
        try:
            with open(path, "r", encoding="utf-8") as fh:
                text = fh.read()
        except FileNotFoundError as e:
            raise LockfileUnparseableError(path, self.tool, "go.mod is missing") from e
        except UnicodeDecodeError as e:
            raise LockfileUnparseableError(path, self.tool, str(e)) from e

        self.module_path, requires, replaces = parse_go_mod(text, path)

        for name, version in requires.items():
            rev = Revision(name=name, revision=version)
            for old, old_version, new, new_version in replaces:
                if old != name or (old_version and old_version != version):
                    continue
                if _is_local_path(new):
                    rev = Revision(name=name, revision="", is_unresolved=True)
                else:
                    rev = Revision(name=name, revision=new_version or version)
            self.index.add_root(name, rev)

    def resolve(self, import_path: str) -> Optional[Revision]:
        return self.index.longest_prefix(import_path)

    def revisions(self) -> List[Revision]:
        return self.index.revisions()
