"""Shared fixtures: a GOPATH laid out in tmp_path and a canned go command."""

import json
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from gdc.analyzer import GoAnalyzer
from gdc.errors import CanceledError
from gdc.models import Module
from gdc.toolchain.runner import RunResult


@dataclass
class FakePackage:
    import_path: str
    dir: str = ""
    imports: List[str] = field(default_factory=list)
    standard: bool = False
    error: Optional[str] = None
    when: Dict[str, List[str]] = field(default_factory=dict)  # condition -> replacement imports


class FakeGo:
    """Stands in for the go command.

    A world is the set of active conditions: GOOS, GOARCH and build tags.
    ``when`` swaps a package's imports under a condition; ``fail_conditions``
    makes every ``go list`` under that condition exit non-zero.
    """

    def __init__(self, goroot: str, gopath: str, version: str = "go1.21.0"):
        self.goroot = goroot
        self.gopath = gopath
        self.version = version
        self.packages: Dict[str, FakePackage] = {}
        self.fail_conditions = set()
        self.cleaned = set()
        self.calls = []
        self.on_list = None
        self._lock = threading.Lock()

    def add(self, import_path, dir="", imports=(), standard=False, error=None, when=None):
        self.packages[import_path] = FakePackage(
            import_path=import_path,
            dir=dir,
            imports=list(imports),
            standard=standard,
            error=error,
            when=dict(when or {}),
        )

    def subcommands(self) -> List[str]:
        return [argv[1] for argv, _ in self.calls]

    def run(self, argv, cwd=None, env=None, timeout=None, cancel=None):
        if cancel is not None and cancel.is_set():
            raise CanceledError()
        with self._lock:
            self.calls.append((list(argv), dict(env or {})))

        sub, args = argv[1], argv[2:]
        if sub == "version":
            return RunResult(0, f"go version {self.version} linux/amd64\n")
        if sub == "env":
            data = {"GOROOT": self.goroot, "GOPATH": self.gopath, "GOMOD": ""}
            return RunResult(0, json.dumps(data, indent="\t"))
        if sub == "list":
            return self._list(args, env or {}, cancel)
        if sub == "clean":
            self.cleaned.update(args)
            return RunResult(0, "")
        if sub == "build":
            for target in args:
                pkg = self.packages.get(target)
                if pkg is None or pkg.error:
                    return RunResult(1, "", f"can't load package: {target}")
            self.cleaned.difference_update(args)
            return RunResult(0, "")
        return RunResult(2, "", f"go {sub}: unknown command")

    def _list(self, args, env, cancel):
        tags: List[str] = []
        targets: List[str] = []
        i = 0
        while i < len(args):
            arg = args[i]
            if arg == "-tags":
                tags = [t for t in args[i + 1].split(",") if t]
                i += 2
                continue
            if not arg.startswith("-"):
                targets.append(arg)
            i += 1

        conditions = {c for c in (env.get("GOOS"), env.get("GOARCH")) if c} | set(tags)
        if self.on_list is not None:
            self.on_list(targets, conditions, cancel)
        if conditions & self.fail_conditions:
            return RunResult(1, "", "cmd/go: unsupported GOOS/GOARCH pair")

        records = [self._record(t, conditions) for t in targets]
        return RunResult(0, "\n".join(json.dumps(r, indent="\t") for r in records) + "\n")

    def _imports(self, pkg: FakePackage, conditions) -> List[str]:
        for cond in sorted(pkg.when):
            if cond in conditions:
                return list(pkg.when[cond])
        return list(pkg.imports)

    def _record(self, target: str, conditions) -> dict:
        pkg = self.packages.get(target)
        if pkg is None:
            return {"ImportPath": target, "Error": {"Err": f"cannot find package \"{target}\""}}

        deps, queue = set(), [target]
        while queue:
            current = self.packages.get(queue.pop())
            if current is None:
                continue
            for imp in self._imports(current, conditions):
                if imp not in deps:
                    deps.add(imp)
                    queue.append(imp)

        record = {
            "Dir": pkg.dir,
            "ImportPath": target,
            "Name": target.rsplit("/", 1)[-1],
            "Imports": self._imports(pkg, conditions),
            "Deps": sorted(deps),
        }
        if pkg.standard:
            record["Standard"] = True
        error = pkg.error or ("package is not built" if target in self.cleaned else None)
        if error:
            record["Error"] = {"Err": error}
        return record


class Workspace:
    """A GOROOT and a GOPATH in a temporary directory, wired to a FakeGo."""

    def __init__(self, base: Path):
        self.base = base
        self.goroot = base / "goroot"
        self.gopath = base / "gopath"
        self.src = self.gopath / "src"
        (self.goroot / "src").mkdir(parents=True)
        self.src.mkdir(parents=True)
        self.go = FakeGo(str(self.goroot), str(self.gopath))

    def package(self, import_path, imports=(), error=None, when=None, dir=None) -> Path:
        d = Path(dir) if dir else self.src / import_path
        d.mkdir(parents=True, exist_ok=True)
        (d / "doc.go").write_text(f"package {import_path.rsplit('/', 1)[-1]}\n")
        self.go.add(import_path, dir=str(d), imports=imports, error=error, when=when)
        return d

    def std(self, *import_paths):
        for path in import_paths:
            self.go.add(path, dir=str(self.goroot / "src" / path), standard=True)

    def write(self, rel: str, text: str) -> Path:
        path = self.src / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text)
        return path

    def module(self, target: str, dir=None, **options) -> Module:
        return Module(
            name=target.rsplit("/", 1)[-1],
            dir=str(dir or self.src / target),
            build_target=target,
            options=options,
        )

    def analyzer(self, target: str, dir=None, **options) -> GoAnalyzer:
        return GoAnalyzer(self.module(target, dir=dir, **options), runner=self.go)


def dep_lock(*projects) -> str:
    """Gopkg.lock text for ``(name, version)`` pairs."""
    out = []
    for name, version in projects:
        out.append("[[projects]]")
        out.append(f'  name = "{name}"')
        out.append('  packages = ["."]')
        out.append('  revision = "0123456789abcdef"')
        if version:
            out.append(f'  version = "{version}"')
        out.append("")
    return "\n".join(out)


APP = "example.com/app"
BAR = "github.com/foo/bar"


def vendored(path: str, owner: str = APP) -> str:
    return f"{owner}/vendor/{path}"


@pytest.fixture
def ws(tmp_path):
    return Workspace(tmp_path)


@pytest.fixture
def simple_app(ws):
    """example.com/app importing its own util package and one vendored dependency."""
    ws.std("fmt", "strings", "errors")
    app = ws.package(APP, imports=["fmt", f"{APP}/util", vendored(BAR)])
    ws.package(f"{APP}/util", imports=["strings"])
    ws.package(vendored(BAR), imports=["errors"])
    ws.write(f"{APP}/Gopkg.lock", dep_lock((BAR, "v1.0.0")))
    (app / ".git").mkdir()
    return ws
