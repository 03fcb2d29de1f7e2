"""Exceptions raised by the analyzer.

Every failure the analyzer reports is a ``GdcError``. Where it makes sense
the error carries the offending import path, the governing resolver and the
build world it happened in.
"""

from __future__ import annotations

from typing import List, Optional, Tuple


class GdcError(Exception):
    """Base exception for the analyzer."""

    def __init__(
        self,
        message: str,
        import_path: Optional[str] = None,
        resolver: Optional[str] = None,
        world: Optional[str] = None,
    ):
        self.import_path = import_path
        self.resolver = resolver
        self.world = world
        details = []
        if import_path:
            details.append(f"package={import_path}")
        if resolver:
            details.append(f"resolver={resolver}")
        if world is not None:
            details.append(f"world={world or 'host'}")
        if details:
            message = f"{message} ({', '.join(details)})"
        super().__init__(message)


class ConfigError(GdcError):
    """Invalid analyzer options or configuration file."""


class ToolchainMissingError(GdcError):
    """The go command could not be found or executed."""

    def __init__(self, command: str, reason: str = ""):
        self.command = command
        msg = f"Go toolchain not found: {command}"
        if reason:
            msg += f" ({reason})"
        super().__init__(msg)


class ToolchainMalformedOutputError(GdcError):
    """The go command ran but its output could not be decoded."""

    def __init__(self, argv: List[str], reason: str):
        self.argv = list(argv)
        super().__init__(f"Malformed output from `{' '.join(argv)}`: {reason}")


class TargetUnbuildableError(GdcError):
    """The target package could not be listed in any build world."""

    def __init__(self, target: str, failures: List[Tuple[str, str]]):
        self.target = target
        self.failures = list(failures)
        reasons = "; ".join(f"{w or 'host'}: {err}" for w, err in failures)
        super().__init__(f"Target is unbuildable in every world: {reasons}", import_path=target)


class LockfileUnparseableError(GdcError):
    """A lockfile or manifest exists but cannot be read."""

    def __init__(self, path: str, tool: str, reason: str):
        self.path = path
        self.tool = tool
        super().__init__(f"Could not parse {tool} lockfile {path}: {reason}", resolver=tool)


class ResolverNotFoundError(GdcError):
    """No lockfile governs the requested directory."""


class UnresolvedDependencyError(GdcError):
    """One or more dependencies have no revision and the policy does not allow it.

    ``entries`` lists every offender at once as
    ``(import_path, resolver, world)`` tuples.
    """

    def __init__(self, entries: List[Tuple[str, Optional[str], str]]):
        self.entries = sorted(entries, key=lambda e: (e[0], e[1] or "", e[2]))
        lines = [
            f"  {path} (resolver={resolver or 'none'}, world={world or 'host'})"
            for path, resolver, world in self.entries
        ]
        first = self.entries[0] if self.entries else (None, None, None)
        super().__init__(
            f"{len(self.entries)} unresolved dependencies:\n" + "\n".join(lines),
            import_path=first[0],
        )


class WorldConflictError(GdcError):
    """Two build worlds pinned the same package to different revisions."""

    def __init__(
        self,
        import_path: str,
        first: Tuple[str, str],
        second: Tuple[str, str],
    ):
        self.first = first
        self.second = second
        super().__init__(
            f"Revision conflict: {first[0]} in world {first[1] or 'host'} "
            f"vs {second[0]} in world {second[1] or 'host'}",
            import_path=import_path,
        )


class CanceledError(GdcError):
    """Analysis was canceled before it completed."""

    def __init__(self, message: str = "Analysis canceled"):
        super().__init__(message)
