"""Lockfile detection and resolver construction."""

from __future__ import annotations

import os
from typing import Callable, Dict, List, Optional, Tuple

from ..errors import ConfigError
from ..models import Lockfile
from .base import Resolver
from .dep import DepResolver
from .glide import GlideResolver
from .godep import GodepResolver
from .gomodules import GoModulesResolver
from .govendor import GovendorResolver
from .textlock import GdmResolver, VndrResolver
from .vendor import VendorTreeResolver

# (tool, lockfile relative path, manifest relative path) in detection order.
LOCKFILE_FORMATS: List[Tuple[str, str, Optional[str]]] = [
    ("godep", os.path.join("Godeps", "Godeps.json"), None),
    ("govendor", os.path.join("vendor", "vendor.json"), None),
    ("dep", "Gopkg.lock", "Gopkg.toml"),
    ("glide", "glide.lock", "glide.yaml"),
    ("vndr", "vendor.conf", None),
    ("gdm", "Godeps", None),
    ("gomodules", "go.mod", None),
    ("vendor", "vendor", None),
]

RESOLVERS: Dict[str, Callable[[Lockfile], Resolver]] = {
    "dep": DepResolver,
    "glide": GlideResolver,
    "godep": GodepResolver,
    "govendor": GovendorResolver,
    "vndr": VndrResolver,
    "gdm": GdmResolver,
    "gomodules": GoModulesResolver,
    "vendor": VendorTreeResolver,
}

_BASENAMES = {
    "Godeps.json": "godep",
    "vendor.json": "govendor",
    "Gopkg.lock": "dep",
    "Gopkg.toml": "dep",
    "glide.lock": "glide",
    "glide.yaml": "glide",
    "vendor.conf": "vndr",
    "Godeps": "gdm",
    "go.mod": "gomodules",
    "vendor": "vendor",
}


def _present(tool: str, path: str) -> bool:
    if tool == "vendor":
        return os.path.isdir(path)
    return os.path.isfile(path)


def detect_lockfile(directory: str, tools: Optional[List[str]] = None) -> Optional[Lockfile]:
    """Return the lockfile governing *directory* itself, if any.

    A manifest whose lockfile was never generated does not count.
    """
    for tool, rel_lock, rel_manifest in LOCKFILE_FORMATS:
        if tools is not None and tool not in tools:
            continue
        lock_path = os.path.join(directory, rel_lock)
        if not _present(tool, lock_path):
            continue
        manifest_path = os.path.join(directory, rel_manifest) if rel_manifest else None
        if manifest_path is not None and not os.path.isfile(manifest_path):
            manifest_path = None
        return Lockfile(tool=tool, path=lock_path, root=directory, manifest=manifest_path)
    return None


def detect_orphan_manifest(directory: str, tools: Optional[List[str]] = None) -> Optional[Lockfile]:
    """A manifest in *directory* whose lockfile is missing, as a Lockfile record."""
    for tool, rel_lock, rel_manifest in LOCKFILE_FORMATS:
        if rel_manifest is None or (tools is not None and tool not in tools):
            continue
        manifest_path = os.path.join(directory, rel_manifest)
        lock_path = os.path.join(directory, rel_lock)
        if os.path.isfile(manifest_path) and not _present(tool, lock_path):
            return Lockfile(tool=tool, path=lock_path, root=directory, manifest=manifest_path)
    return None


def _resolve_path(path: str, base: str) -> str:
    if os.path.isabs(path) or not base:
        return os.path.abspath(path)
    return os.path.normpath(os.path.join(os.path.abspath(base), path))


def lockfile_from_path(
    lockfile_path: str = "",
    manifest_path: str = "",
    tool: Optional[str] = None,
    base: str = "",
) -> Lockfile:
    """Build a Lockfile from user supplied paths (``lockfile`` / ``manifest`` options).

    Relative paths are taken against *base*, the module directory.
    """
    if lockfile_path:
        lockfile_path = _resolve_path(lockfile_path, base)
    if manifest_path:
        manifest_path = _resolve_path(manifest_path, base)
    given = lockfile_path or manifest_path
    if not given:
        raise ConfigError("a lockfile or manifest path is required")

    if tool is None:
        tool = _BASENAMES.get(os.path.basename(given))
        if tool is None:
            raise ConfigError(f"cannot infer lockfile format of {given}; use strategy manifest:<tool>")
    if tool not in RESOLVERS:
        raise ConfigError(f"unknown lockfile format {tool!r}")

    rel_lock = dict((t, lock) for t, lock, _ in LOCKFILE_FORMATS)[tool]
    rel_manifest = dict((t, m) for t, _, m in LOCKFILE_FORMATS)[tool]

    if lockfile_path:
        lock = lockfile_path
    else:
        # Only a manifest was given: the lockfile sits next to it.
        lock = os.path.join(os.path.dirname(given), os.path.basename(rel_lock))

    # Godeps/Godeps.json and vendor/vendor.json live one level below the project.
    depth = rel_lock.count(os.sep)
    root = os.path.dirname(lock)
    for _ in range(depth):
        root = os.path.dirname(root)

    manifest = manifest_path or None
    if manifest is None and rel_manifest:
        candidate = os.path.join(root, rel_manifest)
        if os.path.isfile(candidate):
            manifest = candidate
    return Lockfile(tool=tool, path=lock, root=root, manifest=manifest)


def load_resolver(lockfile: Lockfile) -> Resolver:
    """Construct the resolver for *lockfile*; parse errors surface here."""
    factory = RESOLVERS.get(lockfile.tool)
    if factory is None:
        raise ConfigError(f"unknown lockfile format {lockfile.tool!r}")
    return factory(lockfile)
