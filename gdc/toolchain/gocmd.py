"""Adapter for the ``go`` command-line tool.

All knowledge about packages, their directories and standard-library
membership comes from ``go list -e -json``; the analyzer never guesses. The
go tool's command-line interface is stable across releases while its
internals are not, so nothing here links against or imitates them.

Per-package failures (``"Error"`` in the JSON stream, or a whole invocation
failing for a world) are recorded on ``Package.tool_error`` instead of being
raised. Only a missing tool or undecodable output is fatal.
"""

from __future__ import annotations

import json
import os
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Optional

from ..config import ToolchainConfig
from ..errors import GdcError, TargetUnbuildableError, ToolchainMalformedOutputError, ToolchainMissingError
from ..models import HOST_WORLD, PSEUDO_STANDARD_PACKAGES, GoEnv, Package, World, is_internal_path
from .runner import RunResult, SubprocessRunner


class GoTool:
    """Single point of contact with the go command for one module directory."""

    def __init__(
        self,
        command: str,
        dir: str,
        runner=None,
        cancel: Optional[threading.Event] = None,
        max_workers: int = 4,
        timeout: Optional[float] = 600,
        chunk_size: int = 200,
        modules_vendor: bool = False,
    ):
        self.command = command
        self.dir = dir
        self.runner = runner or SubprocessRunner()
        self.cancel = cancel or threading.Event()
        self.max_workers = max(1, max_workers)
        self.timeout = timeout
        self.chunk_size = max(1, chunk_size)
        self.modules_vendor = modules_vendor

        self._slots = threading.BoundedSemaphore(self.max_workers)
        self._env: Optional[GoEnv] = None
        self._env_lock = threading.Lock()

    @classmethod
    def from_config(
        cls,
        config: ToolchainConfig,
        dir: str,
        runner=None,
        cancel: Optional[threading.Event] = None,
        modules_vendor: bool = False,
    ) -> "GoTool":
        return cls(
            command=config.resolve_command(),
            dir=dir,
            runner=runner,
            cancel=cancel,
            max_workers=config.max_workers,
            timeout=config.timeout,
            chunk_size=config.list_chunk_size,
            modules_vendor=modules_vendor,
        )

    # ------------------------------------------------------------------
    # Process plumbing
    # ------------------------------------------------------------------

    def _run(self, args: List[str], env: Optional[Dict[str, str]] = None) -> RunResult:
        argv = [self.command, *args]
        with self._slots:
            return self.runner.run(
                argv,
                cwd=self.dir,
                env=env or None,
                timeout=self.timeout,
                cancel=self.cancel,
            )

    # ------------------------------------------------------------------
    # Environment
    # ------------------------------------------------------------------

    def version(self) -> str:
        """Return the toolchain version (``go1.21.0``); fails if go is missing."""
        result = self._run(["version"])
        if not result.ok:
            raise ToolchainMissingError(self.command, result.stderr.strip())
        parts = result.stdout.split()
        # "go version go1.21.0 linux/amd64"
        if len(parts) >= 3 and parts[0] == "go" and parts[1] == "version":
            return parts[2]
        raise ToolchainMalformedOutputError([self.command, "version"], f"unexpected output {result.stdout.strip()!r}")

    def env(self) -> GoEnv:
        """Version, GOROOT and GOPATH entries; computed once."""
        if self._env is not None:
            return self._env
        with self._env_lock:
            if self._env is None:
                self._env = self._read_env()
        return self._env

    def _read_env(self) -> GoEnv:
        version = self.version()
        args = ["env", "-json"]
        result = self._run(args)
        if not result.ok:
            raise ToolchainMalformedOutputError([self.command, *args], result.stderr.strip() or "non-zero exit")
        try:
            data = json.loads(result.stdout)
        except json.JSONDecodeError as e:
            raise ToolchainMalformedOutputError([self.command, *args], str(e)) from e
        if not isinstance(data, dict):
            raise ToolchainMalformedOutputError([self.command, *args], "expected a JSON object")

        gopath = tuple(p for p in (data.get("GOPATH") or "").split(os.pathsep) if p)
        return GoEnv(
            version=version,
            goroot=data.get("GOROOT") or "",
            gopath=gopath,
            gomod=data.get("GOMOD") or "",
        )

    # ------------------------------------------------------------------
    # Package listing
    # ------------------------------------------------------------------

    def list_packages(self, targets: List[str], world: World = HOST_WORLD) -> List[Package]:
        """List packages under *world*, one record per package.

        Large target lists are split into chunks that run in parallel, bounded
        by the adapter's worker count.
        """
        if not targets:
            return []
        chunks = [targets[i:i + self.chunk_size] for i in range(0, len(targets), self.chunk_size)]
        if len(chunks) == 1:
            return self._list_chunk(chunks[0], world)

        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            results = list(pool.map(lambda c: self._list_chunk(c, world), chunks))
        return [pkg for chunk in results for pkg in chunk]

    def list_one(self, target: str, world: World = HOST_WORLD) -> Package:
        """List a single package; same record ``list_packages`` would return for it."""
        packages = self.list_packages([target], world)
        for pkg in packages:
            if pkg.import_path == target:
                return pkg
        if packages:
            return packages[0]
        return Package(import_path=target, tool_error="go list reported no package")

    def _list_args(self, targets: List[str], world: World) -> List[str]:
        args = ["list", "-e", "-json"]
        if self.modules_vendor:
            args.append("-mod=vendor")
        if world.tags:
            args.extend(["-tags", ",".join(world.tags)])
        args.extend(targets)
        return args

    def _list_chunk(self, targets: List[str], world: World) -> List[Package]:
        args = self._list_args(targets, world)
        result = self._run(args, env=world.env())
        packages = parse_list_output(result.stdout, [self.command, *args])

        if not packages and not result.ok:
            # The whole invocation failed (e.g. unsupported GOOS/GOARCH pair).
            reason = result.stderr.strip() or f"go list exited with status {result.returncode}"
            return [Package(import_path=t, tool_error=reason) for t in targets]
        return packages

    # ------------------------------------------------------------------
    # Build lifecycle
    # ------------------------------------------------------------------

    def clean(self, targets: List[str]):
        result = self._run(["clean", *targets])
        if not result.ok:
            raise GdcError(f"go clean failed: {result.stderr.strip()}", import_path=" ".join(targets))

    def build(self, targets: List[str]):
        result = self._run(["build", *targets])
        if not result.ok:
            raise TargetUnbuildableError(" ".join(targets), [("", result.stderr.strip())])


def parse_list_output(stdout: str, argv: List[str]) -> List[Package]:
    """Decode the concatenated JSON objects printed by ``go list -json``."""
    decoder = json.JSONDecoder()
    packages: List[Package] = []
    idx = 0
    end = len(stdout)
    while True:
        while idx < end and stdout[idx].isspace():
            idx += 1
        if idx >= end:
            break
        try:
            obj, idx = decoder.raw_decode(stdout, idx)
        except json.JSONDecodeError as e:
            raise ToolchainMalformedOutputError(argv, str(e)) from e
        packages.append(_package_from_json(obj, argv))
    return packages


def _package_from_json(obj, argv: List[str]) -> Package:
    if not isinstance(obj, dict) or not isinstance(obj.get("ImportPath"), str):
        raise ToolchainMalformedOutputError(argv, "package record without ImportPath")

    import_path = obj["ImportPath"]
    error = obj.get("Error")
    tool_error = None
    if isinstance(error, dict):
        tool_error = error.get("Err") or "unknown error"
    elif error:
        tool_error = str(error)

    return Package(
        import_path=import_path,
        dir=obj.get("Dir") or "",
        name=obj.get("Name") or "",
        is_standard=bool(obj.get("Standard")) or import_path in PSEUDO_STANDARD_PACKAGES,
        is_internal=is_internal_path(import_path),
        imports=list(obj.get("Imports") or []),
        deps=list(obj.get("Deps") or []),
        tool_error=tool_error,
    )
