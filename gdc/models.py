"""Data models for Go dependency analysis."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple


# Import paths the toolchain treats as standard even though no directory backs them.
PSEUDO_STANDARD_PACKAGES = frozenset({"C", "unsafe"})


# ---------------------------------------------------------------------------
# Import path helpers
# ---------------------------------------------------------------------------

def unvendor(import_path: str) -> str:
    """Strip everything up to and including the last ``/vendor/`` element.

    ``example.org/app/vendor/github.com/pkg/errors`` -> ``github.com/pkg/errors``
    """
    idx = import_path.rfind("/vendor/")
    if idx == -1:
        return import_path
    return import_path[idx + len("/vendor/"):]


def is_vendored(import_path: str) -> bool:
    return "/vendor/" in import_path


def is_internal_path(import_path: str) -> bool:
    """True for toolchain-private paths such as ``internal/cpu`` or ``vendor/golang.org/x/net``."""
    first = import_path.split("/", 1)[0]
    return first in ("internal", "vendor")


def visible_path(import_path: str) -> str:
    """Unvendored path with any non-leading ``internal`` subtree folded into its parent.

    ``example.org/app/vendor/github.com/x/y/internal/z`` -> ``github.com/x/y``
    """
    path = unvendor(import_path)
    parts = path.split("/")
    if "internal" in parts[1:]:
        return "/".join(parts[: parts.index("internal", 1)])
    return path


def has_path_prefix(import_path: str, prefix: str) -> bool:
    """Element-wise prefix test: ``a/b`` is a prefix of ``a/b/c`` but not of ``a/bc``."""
    if not prefix:
        return True
    prefix = prefix.rstrip("/")
    return import_path == prefix or import_path.startswith(prefix + "/")


def matches_any_prefix(import_path: str, prefixes: List[str]) -> bool:
    """Raw string prefix test used by user supplied allowlists."""
    return any(import_path.startswith(p) for p in prefixes)


def path_within(path: str, directory: str) -> bool:
    """True when *path* is *directory* or lies below it."""
    path = os.path.normpath(path)
    directory = os.path.normpath(directory)
    if path == directory:
        return True
    return path.startswith(directory.rstrip(os.sep) + os.sep)


# ---------------------------------------------------------------------------
# Toolchain records
# ---------------------------------------------------------------------------

@dataclass
class Package:
    """One package as reported by ``go list``."""
    import_path: str
    dir: str = ""
    name: str = ""
    is_standard: bool = False
    is_internal: bool = False
    imports: List[str] = field(default_factory=list)  # direct imports
    deps: List[str] = field(default_factory=list)  # transitive closure
    tool_error: Optional[str] = None

    @property
    def is_excluded(self) -> bool:
        """Standard-library and toolchain-internal packages never become graph nodes."""
        return (
            self.is_standard
            or self.is_internal
            or self.import_path in PSEUDO_STANDARD_PACKAGES
        )


@dataclass(frozen=True)
class GoEnv:
    """Subset of ``go env`` the analyzer relies on."""
    version: str
    goroot: str
    gopath: Tuple[str, ...] = ()
    gomod: str = ""

    @property
    def search_roots(self) -> List[str]:
        """Directories that bound an upward lockfile walk."""
        roots: List[str] = []
        if self.goroot:
            roots.append(os.path.join(self.goroot, "src"))
            roots.append(self.goroot)
        for entry in self.gopath:
            roots.append(os.path.join(entry, "src"))
            roots.append(os.path.join(entry, "pkg", "mod"))
            roots.append(entry)
        return [os.path.normpath(r) for r in roots]


# ---------------------------------------------------------------------------
# Resolution records
# ---------------------------------------------------------------------------

@dataclass(frozen=True, order=True)
class Revision:
    """A pinned (or knowingly unpinned) dependency."""
    name: str
    revision: str = ""
    is_unresolved: bool = False

    def __str__(self) -> str:
        if self.is_unresolved:
            return f"{self.name}@(unresolved)"
        if not self.revision:
            return self.name
        return f"{self.name}@{self.revision}"


@dataclass(frozen=True)
class Lockfile:
    """Location and format of a lockfile; the resolver reads it."""
    tool: str
    path: str  # the pinned file (or the vendor directory for the vendor tool)
    root: str  # the project directory governed by it
    manifest: Optional[str] = None


@dataclass(frozen=True)
class Project:
    root: str
    import_path: str = ""
    lockfile: Optional[Lockfile] = None

    @property
    def manifest(self) -> Optional[str]:
        return self.lockfile.manifest if self.lockfile else None

    def owns(self, import_path: str) -> bool:
        """True for the project's own, non-vendored packages."""
        if not self.import_path or is_vendored(import_path):
            return False
        return has_path_prefix(import_path, self.import_path)


# ---------------------------------------------------------------------------
# Build-constraint worlds
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class World:
    """A build view: optional GOOS/GOARCH overrides plus build tags.

    The host world has no overrides and an empty name.
    """
    name: str = ""
    goos: Optional[str] = None
    goarch: Optional[str] = None
    tags: Tuple[str, ...] = ()

    @property
    def is_host(self) -> bool:
        return not self.name and self.goos is None and self.goarch is None

    @property
    def label(self) -> str:
        return self.name or "host"

    def env(self) -> Dict[str, str]:
        overrides: Dict[str, str] = {}
        if self.goos:
            overrides["GOOS"] = self.goos
        if self.goarch:
            overrides["GOARCH"] = self.goarch
        return overrides

    def with_tags(self, extra: List[str]) -> "World":
        if not extra:
            return self
        merged = tuple(dict.fromkeys([*self.tags, *extra]))
        return World(name=self.name, goos=self.goos, goarch=self.goarch, tags=merged)


HOST_WORLD = World()


# ---------------------------------------------------------------------------
# Outer analyzer input
# ---------------------------------------------------------------------------

@dataclass
class Module:
    """A unit handed to the analyzer by the surrounding CLI."""
    name: str
    dir: str
    build_target: str
    options: Dict[str, object] = field(default_factory=dict)
