"""Configuration loading and validation for Go dependency analysis."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional

import yaml

from .errors import ConfigError
from .models import HOST_WORLD, World


GO_CMD_ENV = "GDC_GO_CMD"

OS_TAGS = [
    "windows", "linux", "freebsd", "android", "darwin", "dragonfly", "nacl",
    "netbsd", "openbsd", "plan9", "solaris",
]
ARCH_TAGS = [
    "386", "amd64", "amd64p32", "arm", "armbe", "arm64", "arm64be", "ppc64",
    "ppc64le", "mips", "mipsle", "mips64", "mips64le", "mips64p32",
    "mips64p32le", "ppc", "s390", "s390x", "sparc", "sparc64",
]

STRATEGIES = ("manifest", "import-trace", "world-union")


# ---------------------------------------------------------------------------
# Analyzer options
# ---------------------------------------------------------------------------

@dataclass
class AnalyzerOptions:
    tags: list = field(default_factory=list)  # appended to every world
    all_tags: bool = False  # add one world per OS and per arch
    worlds: list = field(default_factory=list)  # explicit worlds: os, arch, os/arch or a tag
    strategy: str = "world-union"  # manifest[:tool] | import-trace | world-union
    lockfile: str = ""
    manifest: str = ""
    allow_unresolved: bool = False
    allow_unresolved_prefix: str = ""  # space-delimited
    allow_nested_vendor: bool = False
    allow_deep_vendor: bool = False
    allow_external_vendor: bool = False
    allow_external_vendor_prefix: str = ""  # space-delimited
    modules_vendor: bool = False
    skip_tracing: bool = False
    skip_project: bool = False

    @property
    def unresolved_prefixes(self) -> List[str]:
        return self.allow_unresolved_prefix.split()

    @property
    def external_vendor_prefixes(self) -> List[str]:
        return self.allow_external_vendor_prefix.split()

    @property
    def strategy_kind(self) -> str:
        return self.strategy.split(":", 1)[0]

    @property
    def strategy_tool(self) -> Optional[str]:
        """Lockfile format forced by ``manifest:<tool>``, if any."""
        if ":" in self.strategy:
            return self.strategy.split(":", 1)[1] or None
        return None


def decode_options(data: Optional[Dict[str, Any]]) -> AnalyzerOptions:
    """Decode a module's raw option mapping (``allow-unresolved: true`` style).

    Unknown keys are ignored. Values of the wrong type raise ``ConfigError``.
    """
    options = AnalyzerOptions()
    if not data:
        return options
    if not isinstance(data, dict):
        raise ConfigError(f"options must be a mapping, got {type(data).__name__}")

    by_name = {f.name: f for f in fields(AnalyzerOptions)}
    for raw_key, value in data.items():
        key = str(raw_key).replace("-", "_")
        f = by_name.get(key)
        if f is None:
            continue
        current = getattr(options, key)
        if isinstance(current, bool):
            if not isinstance(value, bool):
                raise ConfigError(f"option {raw_key!r} expects a boolean, got {value!r}")
        elif isinstance(current, list):
            if isinstance(value, str):
                value = value.split()
            elif not isinstance(value, (list, tuple)) or not all(isinstance(v, str) for v in value):
                raise ConfigError(f"option {raw_key!r} expects a list of strings, got {value!r}")
            value = list(value)
        elif isinstance(current, str):
            if not isinstance(value, str):
                raise ConfigError(f"option {raw_key!r} expects a string, got {value!r}")
        setattr(options, key, value)

    validate_options(options)
    return options


def validate_options(options: AnalyzerOptions):
    if options.strategy_kind not in STRATEGIES:
        raise ConfigError(
            f"unknown strategy {options.strategy!r} (expected one of {', '.join(STRATEGIES)})"
        )
    if options.strategy_tool and options.strategy_kind != "manifest":
        raise ConfigError(f"only the manifest strategy accepts a tool suffix: {options.strategy!r}")


# ---------------------------------------------------------------------------
# Build-constraint worlds
# ---------------------------------------------------------------------------

def parse_world(token: str) -> World:
    """Turn ``linux``, ``arm64``, ``linux/arm64`` or a custom tag into a World."""
    token = token.strip()
    if not token:
        return HOST_WORLD
    if "/" in token:
        goos, _, goarch = token.partition("/")
        return World(name=token, goos=goos or None, goarch=goarch or None)
    if token in OS_TAGS:
        return World(name=token, goos=token)
    if token in ARCH_TAGS:
        return World(name=token, goarch=token)
    return World(name=token, tags=(token,))


def compile_worlds(options: AnalyzerOptions) -> List[World]:
    """Every world the analysis visits; the host world is always last.

    Explicit ``worlds`` come first, then (with ``all_tags``) one world per OS
    and one per architecture. ``tags`` are appended to each of them.
    """
    tokens: List[str] = list(options.worlds)
    if options.all_tags:
        tokens.extend(OS_TAGS)
        tokens.extend(ARCH_TAGS)

    worlds: List[World] = []
    seen = set()
    for token in tokens:
        world = parse_world(token)
        if world.is_host or world.name in seen:
            continue
        seen.add(world.name)
        worlds.append(world.with_tags(options.tags))

    # Include the current build setup.
    worlds.append(HOST_WORLD.with_tags(options.tags))
    return worlds


# ---------------------------------------------------------------------------
# Toolchain / output config
# ---------------------------------------------------------------------------

@dataclass
class ToolchainConfig:
    command: str = ""  # empty: $GDC_GO_CMD, then "go"
    max_workers: int = 4
    timeout: int = 600  # seconds per go invocation
    list_chunk_size: int = 200  # packages per `go list` call

    def resolve_command(self) -> str:
        return self.command or os.environ.get(GO_CMD_ENV) or "go"


@dataclass
class OutputConfig:
    directory: str = "gdc_output"
    formats: list = field(default_factory=lambda: ["json", "dot"])


# ---------------------------------------------------------------------------
# Top-level Config
# ---------------------------------------------------------------------------

@dataclass
class GdcConfig:
    version: str = "1.0"
    options: AnalyzerOptions = field(default_factory=AnalyzerOptions)
    toolchain: ToolchainConfig = field(default_factory=ToolchainConfig)
    output: OutputConfig = field(default_factory=OutputConfig)


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------

def _apply_dict(obj, data: dict):
    """Apply dictionary values to a dataclass instance, recursively."""
    if not isinstance(data, dict):
        return
    for key, value in data.items():
        key = str(key).replace("-", "_")
        if hasattr(obj, key):
            current = getattr(obj, key)
            if hasattr(current, '__dataclass_fields__') and isinstance(value, dict):
                _apply_dict(current, value)
            else:
                setattr(obj, key, value)


def load_config(config_path: Optional[str] = None, module_dir: Optional[str] = None) -> GdcConfig:
    """Load analyzer configuration from a YAML file.

    Search order when *config_path* is None:
      1. ``gdc.yaml`` in *module_dir*
      2. ``.gdc.yaml`` in *module_dir*

    *module_dir* defaults to cwd.
    """
    if module_dir is None:
        module_dir = os.getcwd()

    config = GdcConfig()

    if config_path is None:
        candidates = [
            os.path.join(module_dir, "gdc.yaml"),
            os.path.join(module_dir, ".gdc.yaml"),
        ]
        for candidate in candidates:
            if os.path.isfile(candidate):
                config_path = candidate
                break
    elif not os.path.isfile(config_path):
        raise ConfigError(f"config file not found: {config_path}")

    if config_path:
        try:
            with open(config_path, "r", encoding="utf-8") as fh:
                data = yaml.safe_load(fh) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"invalid YAML in {config_path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"{config_path} must contain a mapping")

        if "version" in data:
            config.version = str(data["version"])
        if "options" in data:
            config.options = decode_options(data["options"])
        if "toolchain" in data:
            _apply_dict(config.toolchain, data["toolchain"])
        if "output" in data:
            _apply_dict(config.output, data["output"])

    # Resolve output directory relative to the config (or module) directory
    if not os.path.isabs(config.output.directory):
        base = os.path.dirname(os.path.abspath(config_path)) if config_path else module_dir
        config.output.directory = os.path.normpath(os.path.join(base, config.output.directory))

    return config
