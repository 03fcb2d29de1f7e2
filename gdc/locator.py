"""Resolver location and project discovery.

Given a package directory, walk upward to find the lockfiles that may pin
it, filter them through the vendoring policies, and bind each one to a
resolver. Every filesystem probe and every resolver is computed once per
analysis and shared between worker threads.
"""

from __future__ import annotations

import os
import sys
import threading
from dataclasses import replace
from typing import Callable, Dict, Hashable, List, Optional

from .config import AnalyzerOptions
from .models import GoEnv, Lockfile, Project, matches_any_prefix, path_within
from .resolvers.base import Resolver
from .resolvers.chain import ChainResolver
from .resolvers.registry import detect_lockfile, load_resolver
from .resolvers.synthetic import SyntheticResolver

VCS_MARKERS = (".git", ".hg", ".svn", ".bzr")


class OnceCache:
    """Write-once map shared across threads.

    A miss computes the value under a lock private to that key; a hit reads
    the dict without locking. A computation that raises caches nothing.
    """

    def __init__(self):
        self._values: Dict[Hashable, object] = {}
        self._locks: Dict[Hashable, threading.Lock] = {}
        self._guard = threading.Lock()

    def get_or_compute(self, key: Hashable, compute: Callable[[], object]):
        try:
            return self._values[key]
        except KeyError:
            pass
        with self._guard:
            lock = self._locks.setdefault(key, threading.Lock())
        with lock:
            if key in self._values:
                return self._values[key]
            value = compute()
            self._values[key] = value
            return value

    def snapshot(self) -> dict:
        return dict(self._values)

    def __len__(self) -> int:
        return len(self._values)


class ResolverLocator:
    """Finds the resolver(s) responsible for a package directory."""

    def __init__(
        self,
        options: AnalyzerOptions,
        env: GoEnv,
        project: Optional[Project] = None,
        verbose: bool = False,
    ):
        self.options = options
        self.env = env
        self.project = project
        self.verbose = verbose
        self.boundaries = set(env.search_roots)

        self._lockfiles = OnceCache()  # dir -> Optional[Lockfile]
        self._vcs = OnceCache()  # dir -> bool
        self._resolvers = OnceCache()  # lockfile path -> resolver
        self._projects = OnceCache()  # dir -> Project
        self._chains = OnceCache()  # (dir, external allowed) -> ChainResolver

        self.synthetic: Optional[SyntheticResolver] = None
        if options.allow_unresolved or options.unresolved_prefixes:
            self.synthetic = SyntheticResolver(options.unresolved_prefixes, allow_all=options.allow_unresolved)

    # ------------------------------------------------------------------
    # Filesystem probes (memoized)
    # ------------------------------------------------------------------

    def lockfile_at(self, directory: str) -> Optional[Lockfile]:
        directory = os.path.abspath(directory)
        if os.path.basename(directory) == "vendor":
            return None
        return self._lockfiles.get_or_compute(directory, lambda: detect_lockfile(directory))

    def has_vcs(self, directory: str) -> bool:
        directory = os.path.abspath(directory)
        return self._vcs.get_or_compute(
            directory,
            lambda: any(os.path.exists(os.path.join(directory, m)) for m in VCS_MARKERS),
        )

    def resolver_for(self, lockfile: Lockfile) -> Resolver:
        """Resolver bound to *lockfile*; built (and parsed) on first use."""
        key = os.path.abspath(lockfile.path)
        return self._resolvers.get_or_compute(key, lambda: load_resolver(lockfile))

    def ancestors(self, directory: str) -> List[str]:
        """*directory* and its parents, stopping before a toolchain search root."""
        result: List[str] = []
        current = os.path.abspath(directory)
        while True:
            if current in self.boundaries:
                break
            result.append(current)
            parent = os.path.dirname(current)
            if parent == current:
                break
            current = parent
        return result

    def candidates(self, directory: str) -> List[Lockfile]:
        """Every lockfile from *directory* upward, nearest first."""
        found = []
        for d in self.ancestors(directory):
            lockfile = self.lockfile_at(d)
            if lockfile is not None:
                found.append(lockfile)
        return found

    # ------------------------------------------------------------------
    # Vendoring policies
    # ------------------------------------------------------------------

    def _relative_parts(self, directory: str) -> List[str]:
        directory = os.path.abspath(directory)
        base = None
        for root in self.boundaries:
            if path_within(directory, root) and (base is None or len(root) > len(base)):
                base = root
        rel = os.path.relpath(directory, base) if base else directory
        return [p for p in rel.split(os.sep) if p and p != "."]

    def is_vendored_dir(self, directory: str) -> bool:
        """True when *directory* lies inside some ``vendor/`` tree."""
        return "vendor" in self._relative_parts(directory)

    def is_external(self, directory: str) -> bool:
        if self.project is None:
            return False
        return not path_within(directory, self.project.root)

    def external_allowed(self, import_path: str) -> bool:
        if not self.options.allow_external_vendor:
            return False
        prefixes = self.options.external_vendor_prefixes
        return not prefixes or matches_any_prefix(import_path, prefixes)

    def accepted_candidates(self, directory: str, external_ok: bool) -> List[Lockfile]:
        """Candidates that survive the nested and external vendor policies.

        A candidate that is both nested and external must pass both policies.
        """
        accepted = []
        for lockfile in self.candidates(directory):
            if self.is_vendored_dir(lockfile.root) and not self.options.allow_nested_vendor:
                self._log(f"skipping nested vendor project {lockfile.root}")
                continue
            if self.is_external(lockfile.root) and not external_ok:
                continue
            accepted.append(lockfile)
        return accepted

    # ------------------------------------------------------------------
    # Location
    # ------------------------------------------------------------------

    def locate(self, directory: str, import_path: str) -> ChainResolver:
        """Resolver chain for the package *import_path* found in *directory*.

        Nearest accepted lockfile first; vendored packages may also consult
        one ancestor (every ancestor with ``allow_deep_vendor``). The project
        resolver and the unresolved allowlist close the chain. The chain may
        be empty.
        """
        directory = os.path.abspath(directory) if directory else ""
        external_ok = self.external_allowed(import_path)
        return self._chains.get_or_compute(
            (directory, external_ok),
            lambda: self._build_chain(directory, external_ok),
        )

    def _build_chain(self, directory: str, external_ok: bool) -> ChainResolver:
        members = []
        if directory:
            accepted = self.accepted_candidates(directory, external_ok)
            if self.is_vendored_dir(directory):
                limit = None if self.options.allow_deep_vendor else 2
            else:
                limit = 1
            for lockfile in accepted[:limit]:
                members.append(self.resolver_for(lockfile))

        if self.project is not None and self.project.lockfile is not None:
            project_resolver = self.resolver_for(self.project.lockfile)
            if all(m is not project_resolver for m in members):
                members.append(project_resolver)

        if self.synthetic is not None:
            members.append(self.synthetic)
        return ChainResolver(members)

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    def nearest_vcs(self, directory: str) -> Optional[str]:
        for d in self.ancestors(directory):
            if self.has_vcs(d):
                return d
        return None

    def project_for(self, directory: str, target_import_path: str = "") -> Project:
        """Discover the project containing *directory*.

        The root is the nearest lockfile directory, unless there is none or
        it sits above the nearest VCS checkout, in which case the checkout
        is the project.
        """
        directory = os.path.abspath(directory)
        return self._projects.get_or_compute(
            directory,
            lambda: self._discover_project(directory, target_import_path),
        )

    def _discover_project(self, directory: str, target_import_path: str) -> Project:
        found = self.candidates(directory)
        lockfile = found[0] if found else None
        vcs_dir = self.nearest_vcs(directory)

        if lockfile is None or (vcs_dir and vcs_dir != lockfile.root and path_within(vcs_dir, lockfile.root)):
            root = vcs_dir or directory
            lockfile = self.lockfile_at(root) if vcs_dir else None
        else:
            root = lockfile.root

        project = Project(root=root, lockfile=lockfile)
        return replace(project, import_path=self.project_import_path(project, directory, target_import_path))

    def project_at(self, root: str, target_dir: str = "", target_import_path: str = "") -> Project:
        """Project rooted at a caller supplied directory, without discovery."""
        root = os.path.abspath(root)
        project = Project(root=root, lockfile=self.lockfile_at(root))
        return replace(
            project,
            import_path=self.project_import_path(project, target_dir or root, target_import_path),
        )

    def project_import_path(self, project: Project, target_dir: str, target_import_path: str) -> str:
        lockfile = project.lockfile
        if lockfile is not None and lockfile.tool == "gomodules":
            module_path = getattr(self.resolver_for(lockfile), "module_path", "")
            if module_path:
                return module_path

        if target_import_path and target_dir:
            rel = os.path.relpath(os.path.abspath(target_dir), project.root)
            if rel == ".":
                return target_import_path
            if not rel.startswith(".."):
                suffix = "/" + rel.replace(os.sep, "/")
                if target_import_path.endswith(suffix):
                    return target_import_path[: -len(suffix)]

        for entry in self.env.gopath:
            src = os.path.join(entry, "src")
            if path_within(project.root, src) and os.path.normpath(project.root) != os.path.normpath(src):
                return os.path.relpath(project.root, src).replace(os.sep, "/")
        return ""

    def bind_project(self, project: Project):
        self.project = project

    # ------------------------------------------------------------------
    # Debugging
    # ------------------------------------------------------------------

    def cache_snapshot(self) -> Dict[str, Dict[str, Optional[str]]]:
        """Plain-dict view of the resolver and project caches."""
        return {
            "resolvers": {k: v.label for k, v in self._resolvers.snapshot().items()},
            "projects": {k: v.root for k, v in self._projects.snapshot().items()},
            "lockfiles": {
                k: (v.path if v else None) for k, v in self._lockfiles.snapshot().items()
            },
        }

    def _log(self, message: str):
        if self.verbose:
            print(f"[locator] {message}", file=sys.stderr)
