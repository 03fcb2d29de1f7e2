"""Analysis engine: orchestrates tracing, resolution and graph fusion.

For every build world the target's transitive imports are listed with the
go tool, each package is mapped to a revision through the locator, and the
per-world results are fused into one revision graph. Worlds run in parallel;
the result does not depend on their completion order.
"""

from __future__ import annotations

import os
import sys
import threading
import time
from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Set, Tuple

from .config import AnalyzerOptions, compile_worlds
from .errors import (
    CanceledError,
    LockfileUnparseableError,
    ResolverNotFoundError,
    TargetUnbuildableError,
    UnresolvedDependencyError,
    WorldConflictError,
)
from .graphs.models import DependencyGraph, GraphBuilder
from .locator import ResolverLocator
from .models import (
    HOST_WORLD,
    PSEUDO_STANDARD_PACKAGES,
    GoEnv,
    Module,
    Package,
    Project,
    Revision,
    World,
    is_internal_path,
    matches_any_prefix,
    visible_path,
)
from .resolvers.registry import detect_lockfile, detect_orphan_manifest, lockfile_from_path
from .toolchain.gocmd import GoTool


@dataclass
class WorldTrace:
    """What one build world contributed."""
    world: World
    edges: Set[Tuple[str, str]] = field(default_factory=set)  # visible import paths
    revisions: Dict[str, Revision] = field(default_factory=dict)
    sources: Dict[str, str] = field(default_factory=dict)  # import path -> resolver label
    missing: List[Tuple[str, Optional[str]]] = field(default_factory=list)  # (import path, resolver label)
    warnings: List[str] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.error is not None


@dataclass
class UnresolvedEntry:
    import_path: str
    resolver: Optional[str]
    world: str

    def to_dict(self) -> dict:
        return {"import_path": self.import_path, "resolver": self.resolver, "world": self.world or "host"}


@dataclass
class AnalysisResult:
    """Everything an analysis produced."""
    graph: DependencyGraph
    project: Project
    strategy: str
    worlds: List[str] = field(default_factory=list)
    failed_worlds: List[Tuple[str, str]] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    unresolved: List[UnresolvedEntry] = field(default_factory=list)  # allowed by policy
    duration_seconds: float = 0.0

    def to_dict(self) -> dict:
        return {
            "strategy": self.strategy,
            "project": {"root": self.project.root, "import_path": self.project.import_path},
            "worlds": [w or "host" for w in self.worlds],
            "failed_worlds": [{"world": w or "host", "error": e} for w, e in self.failed_worlds],
            "warnings": list(self.warnings),
            "unresolved": [u.to_dict() for u in self.unresolved],
        }


class Engine:
    """Runs one analysis of ``module.build_target``."""

    def __init__(
        self,
        go: Optional[GoTool],
        module: Module,
        options: AnalyzerOptions,
        verbose: bool = False,
        cancel: Optional[threading.Event] = None,
    ):
        self.go = go
        self.module = module
        self.options = options
        self.verbose = verbose
        self.cancel_event = cancel or (go.cancel if go is not None else threading.Event())

        self.locator: Optional[ResolverLocator] = None
        self.project: Optional[Project] = None
        self.warnings: List[str] = []
        self._host_root: Optional[Package] = None
        self._warn_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def cancel(self):
        self.cancel_event.set()

    def analyze(self) -> AnalysisResult:
        start = time.time()
        opts = self.options
        manifest_only = opts.skip_tracing or opts.strategy_kind == "manifest"

        self._log(f"Target: {self.module.build_target}")
        self._check_canceled()

        if manifest_only:
            env = static_env()
        else:
            env = self.go.env()
            self._log(f"Toolchain: {env.version}")

        self.locator = ResolverLocator(opts, env, verbose=self.verbose)

        if opts.strategy_kind == "import-trace" and not opts.skip_tracing:
            worlds = [HOST_WORLD.with_tags(opts.tags)]
        else:
            worlds = compile_worlds(opts)

        if manifest_only:
            self.project = self._discover_project(self.module.dir, "", manifest_only=True)
            result = self._analyze_manifest()
        else:
            host = worlds[-1]
            self._host_root = self.go.list_one(self.module.build_target, host)
            target_dir = self._host_root.dir or self.module.dir
            target_path = "" if self._host_root.tool_error else self._host_root.import_path
            self.project = self._discover_project(target_dir, target_path)
            result = self._analyze_traced(worlds)

        result.warnings = list(self.warnings)
        result.duration_seconds = time.time() - start
        self._log(f"Graph: {result.graph.node_count} nodes, {result.graph.edge_count} edges")
        return result

    # ------------------------------------------------------------------
    # Project
    # ------------------------------------------------------------------

    def _discover_project(self, target_dir: str, target_import_path: str, manifest_only: bool = False) -> Project:
        opts = self.options
        if opts.skip_project:
            project = self.locator.project_at(self.module.dir, target_dir, target_import_path)
        else:
            project = self.locator.project_for(target_dir, target_import_path)

        tool = opts.strategy_tool
        if opts.lockfile or opts.manifest:
            lockfile = lockfile_from_path(opts.lockfile, opts.manifest, tool, base=self.module.dir)
            project = replace(project, lockfile=lockfile)
        elif tool and (project.lockfile is None or project.lockfile.tool != tool):
            lockfile = detect_lockfile(project.root, tools=[tool])
            if lockfile is None:
                self._require_lock(project.root, [tool])
                raise ResolverNotFoundError(
                    f"no {tool} lockfile in {project.root}",
                    import_path=self.module.build_target,
                    resolver=tool,
                )
            project = replace(project, lockfile=lockfile)
        elif manifest_only and project.lockfile is None:
            self._require_lock(project.root)

        self.locator.bind_project(project)
        lock_desc = f"{project.lockfile.tool} ({project.lockfile.path})" if project.lockfile else "none"
        self._log(f"Project: {project.root} [{project.import_path or '?'}], lockfile: {lock_desc}")
        return project

    def _require_lock(self, root: str, tools: Optional[List[str]] = None):
        """A project manifest without its lockfile cannot be read."""
        orphan = detect_orphan_manifest(root, tools=tools)
        if orphan is not None:
            raise LockfileUnparseableError(
                orphan.path, orphan.tool, f"lockfile is missing next to manifest {orphan.manifest}"
            )

    def _root_revision(self) -> Revision:
        name = self.project.import_path or self.module.build_target
        return Revision(name=name, revision="")

    # ------------------------------------------------------------------
    # Manifest strategy
    # ------------------------------------------------------------------

    def _analyze_manifest(self) -> AnalysisResult:
        project = self.project
        if project.lockfile is None:
            raise ResolverNotFoundError(
                f"no lockfile found for project at {project.root}",
                import_path=self.module.build_target,
            )
        resolver = self.locator.resolver_for(project.lockfile)
        root = self._root_revision()
        builder = GraphBuilder(root, strategy="manifest")

        offenders: List[UnresolvedEntry] = []
        allowed: List[UnresolvedEntry] = []
        for rev in resolver.revisions():
            self._check_canceled()
            if _is_unpinned(rev):
                entry = UnresolvedEntry(rev.name, resolver.label, "")
                if self._unresolved_allowed(rev.name):
                    allowed.append(entry)
                else:
                    offenders.append(entry)
                    continue
            builder.add_edge(root, rev)

        if offenders:
            raise UnresolvedDependencyError([(e.import_path, e.resolver, e.world) for e in offenders])

        return AnalysisResult(
            graph=builder.freeze(),
            project=project,
            strategy="manifest",
            unresolved=allowed,
        )

    # ------------------------------------------------------------------
    # Import tracing
    # ------------------------------------------------------------------

    def _analyze_traced(self, worlds: List[World]) -> AnalysisResult:
        strategy = self.options.strategy_kind
        self._log(f"Worlds: {', '.join(w.label for w in worlds)}")

        traces: List[WorldTrace] = []
        workers = self.go.max_workers if self.go is not None else 1
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = [pool.submit(self._trace_world, w) for w in worlds]
            try:
                for future in futures:
                    traces.append(future.result())
            except BaseException:
                for f in futures:
                    f.cancel()
                raise

        self._check_canceled()
        failed = [(t.world.name, t.error) for t in traces if t.failed]
        for t in traces:
            for w in t.warnings:
                self._warn(w)
            if t.failed:
                self._warn(f"target {self.module.build_target} is unbuildable in world {t.world.label}: {t.error}")

        live = [t for t in traces if not t.failed]
        if not live:
            raise TargetUnbuildableError(self.module.build_target, failed)

        revisions, origins = self._fuse_revisions(live)
        graph, allowed = self._build_graph(live, revisions, origins, strategy)

        return AnalysisResult(
            graph=graph,
            project=self.project,
            strategy=strategy,
            worlds=[w.name for w in worlds],
            failed_worlds=failed,
            unresolved=allowed,
        )

    def _trace_world(self, world: World) -> WorldTrace:
        self._check_canceled()
        trace = WorldTrace(world=world)

        if self._host_root is not None and world == HOST_WORLD.with_tags(self.options.tags):
            root = self._host_root
        else:
            root = self.go.list_one(self.module.build_target, world)
        if root.tool_error:
            trace.error = root.tool_error
            return trace

        listed = self.go.list_packages(root.deps, world) if root.deps else []
        self._check_canceled()
        by_path: Dict[str, Package] = {p.import_path: p for p in listed}
        by_path[root.import_path] = root

        # Walk direct imports from the target; only reachable packages count.
        visited: Dict[str, Package] = {root.import_path: root}
        queue = [root]
        while queue:
            pkg = queue.pop()
            for imp in pkg.imports:
                dep = by_path.get(imp)
                if _excluded(imp, dep):
                    continue
                if dep is None:
                    dep = Package(import_path=imp, tool_error="not reported by go list")
                    by_path[imp] = dep
                trace.edges.add((visible_path(pkg.import_path), visible_path(imp)))
                if imp not in visited:
                    visited[imp] = dep
                    queue.append(dep)

        self._log(f"  {world.label}: {len(visited)} packages")

        for path in sorted(visited):
            pkg = visited[path]
            if pkg is root:
                continue
            self._check_canceled()
            if pkg.tool_error:
                trace.warnings.append(
                    f"package {pkg.import_path} could not be traced in world {world.label}: {pkg.tool_error}"
                )
            self._resolve_into(trace, pkg)
        return trace

    def _resolve_into(self, trace: WorldTrace, pkg: Package):
        key = visible_path(pkg.import_path)
        if key in trace.revisions:
            return
        if self.project.owns(key):
            trace.revisions[key] = self._root_revision()
            return

        chain = self.locator.locate(pkg.dir, key)
        rev, source = chain.resolve_with_source(key)
        if rev is None:
            trace.missing.append((key, chain.label or None))
            return
        trace.revisions[key] = rev
        trace.sources[key] = source.label

    # ------------------------------------------------------------------
    # Fusion
    # ------------------------------------------------------------------

    def _fuse_revisions(self, traces: List[WorldTrace]) -> Tuple[Dict[str, Revision], Dict[str, Tuple[str, Optional[str]]]]:
        """First resolved revision per import path wins; later worlds must agree.

        Returns the fused revisions and, per import path, the world and
        resolver that supplied them.
        """
        fused: Dict[str, Revision] = {}
        origins: Dict[str, Tuple[str, Optional[str]]] = {}
        for trace in traces:
            for key in sorted(trace.revisions):
                rev = trace.revisions[key]
                origin = (trace.world.name, trace.sources.get(key))
                prev = fused.get(key)
                if prev is None:
                    fused[key] = rev
                    origins[key] = origin
                    continue
                if prev == rev or _is_unpinned(rev):
                    continue
                if _is_unpinned(prev):
                    fused[key] = rev
                    origins[key] = origin
                    continue
                raise WorldConflictError(
                    key,
                    (str(prev), origins[key][0]),
                    (str(rev), trace.world.name),
                )
        return fused, origins

    def _build_graph(
        self,
        traces: List[WorldTrace],
        revisions: Dict[str, Revision],
        origins: Dict[str, Tuple[str, Optional[str]]],
        strategy: str,
    ) -> Tuple[DependencyGraph, List[UnresolvedEntry]]:
        offenders: List[UnresolvedEntry] = []
        allowed: List[UnresolvedEntry] = []

        # Imports no resolver could answer in any world.
        reported: Set[str] = set()
        for trace in traces:
            for key, label in trace.missing:
                if key in revisions or key in reported:
                    continue
                reported.add(key)
                offenders.append(UnresolvedEntry(key, label, trace.world.name))

        # Imports that resolved to nothing pinned.
        root = self._root_revision()
        for key in sorted(revisions):
            rev = revisions[key]
            if rev == root or not _is_unpinned(rev):
                continue
            world, label = origins[key]
            entry = UnresolvedEntry(key, label, world)
            if self._unresolved_allowed(key):
                allowed.append(entry)
            else:
                offenders.append(entry)

        if offenders:
            raise UnresolvedDependencyError([(e.import_path, e.resolver, e.world) for e in offenders])

        edge_worlds: Dict[Tuple[str, str], Set[str]] = defaultdict(set)
        for trace in traces:
            for edge in trace.edges:
                edge_worlds[edge].add(trace.world.label)

        builder = GraphBuilder(root, strategy=strategy)
        root_path = visible_path(self._host_root.import_path) if self._host_root else ""
        for (src, dst), worlds in sorted(edge_worlds.items()):
            src_rev = root if src == root_path else revisions.get(src)
            dst_rev = revisions.get(dst)
            if src_rev is None or dst_rev is None:
                continue
            builder.add_edge(src_rev, dst_rev, worlds)
        return builder.freeze(), allowed

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _unresolved_allowed(self, import_path: str) -> bool:
        opts = self.options
        return opts.allow_unresolved or matches_any_prefix(import_path, opts.unresolved_prefixes)

    def _check_canceled(self):
        if self.cancel_event.is_set():
            raise CanceledError()

    def _warn(self, message: str):
        with self._warn_lock:
            self.warnings.append(message)
        if self.verbose:
            print(f"[engine] warning: {message}", file=sys.stderr)

    def _log(self, message: str):
        if self.verbose:
            print(f"[engine] {message}")


def _is_unpinned(rev: Revision) -> bool:
    return rev.is_unresolved or not rev.revision


def _excluded(import_path: str, pkg: Optional[Package]) -> bool:
    if import_path in PSEUDO_STANDARD_PACKAGES or is_internal_path(import_path):
        return True
    return pkg is not None and pkg.is_excluded


def static_env() -> GoEnv:
    """GOROOT/GOPATH from the process environment, for runs that skip the go tool."""
    gopath = os.environ.get("GOPATH") or os.path.join(os.path.expanduser("~"), "go")
    return GoEnv(
        version="",
        goroot=os.environ.get("GOROOT", ""),
        gopath=tuple(p for p in gopath.split(os.pathsep) if p),
    )
