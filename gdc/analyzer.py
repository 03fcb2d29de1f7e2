"""Analyzer facade for one Go module.

The surrounding CLI hands over a ``Module`` (name, directory, build target
and a raw option mapping). ``GoAnalyzer`` decodes the options, checks that a
go toolchain is present and exposes the build lifecycle plus ``analyze``.
"""

from __future__ import annotations

import os
import threading
from dataclasses import fields
from typing import List, Optional

from .config import AnalyzerOptions, GdcConfig, decode_options
from .engine import AnalysisResult, Engine
from .models import HOST_WORLD, Module
from .toolchain.gocmd import GoTool


def merge_options(base: AnalyzerOptions, module_options: dict) -> AnalyzerOptions:
    """Module options override the config file; keys the module omits keep *base* values."""
    decoded = decode_options(module_options)
    given = {str(k).replace("-", "_") for k in (module_options or {})}
    merged = AnalyzerOptions()
    for f in fields(AnalyzerOptions):
        source = decoded if f.name in given else base
        setattr(merged, f.name, getattr(source, f.name))
    return merged


class GoAnalyzer:
    """Clean, build and analyze a module's build target."""

    def __init__(
        self,
        module: Module,
        config: Optional[GdcConfig] = None,
        runner=None,
        verbose: bool = False,
        cancel: Optional[threading.Event] = None,
    ):
        self.module = module
        self.config = config or GdcConfig()
        self.options = merge_options(self.config.options, module.options)
        self.verbose = verbose
        self.cancel_event = cancel or threading.Event()
        self._runner = runner

        self.go: Optional[GoTool] = None
        if not (self.options.skip_tracing or self.options.strategy_kind == "manifest"):
            self.go = GoTool.from_config(
                self.config.toolchain,
                dir=os.path.abspath(module.dir),
                runner=self._runner,
                cancel=self.cancel_event,
                modules_vendor=self.options.modules_vendor,
            )
            # Fail fast when the toolchain is missing.
            self.version = self.go.version()
        else:
            self.version = ""

    @property
    def targets(self) -> List[str]:
        return [self.module.build_target]

    def _require_go(self) -> GoTool:
        if self.go is None:
            self.go = GoTool.from_config(
                self.config.toolchain,
                dir=os.path.abspath(self.module.dir),
                runner=self._runner,
                cancel=self.cancel_event,
                modules_vendor=self.options.modules_vendor,
            )
        return self.go

    def clean(self):
        self._require_go().clean(self.targets)

    def build(self):
        self._require_go().build(self.targets)

    def is_built(self) -> bool:
        """True when the target lists cleanly in the host world."""
        pkg = self._require_go().list_one(self.module.build_target, HOST_WORLD.with_tags(self.options.tags))
        return not pkg.tool_error

    def cancel(self):
        self.cancel_event.set()

    def analyze(self) -> AnalysisResult:
        engine = Engine(
            self.go,
            Module(
                name=self.module.name,
                dir=os.path.abspath(self.module.dir),
                build_target=self.module.build_target,
                options=self.module.options,
            ),
            self.options,
            verbose=self.verbose,
            cancel=self.cancel_event,
        )
        return engine.analyze()


def write_output(result: AnalysisResult, config: GdcConfig, verbose: bool = True) -> List[str]:
    """Write all output files based on config."""
    from .output import dot_writer, json_writer

    output_dir = config.output.directory
    formats = config.output.formats
    written_files: List[str] = []

    if verbose:
        print(f"\n[gdc] Writing results to {output_dir}...")

    if "json" in formats:
        written_files.append(json_writer.write_graph_json(result.graph, output_dir))
        written_files.append(json_writer.write_report_json(result, output_dir))

    if "dot" in formats:
        written_files.append(dot_writer.write_graph_dot(result.graph, output_dir))

    if verbose:
        for path in written_files:
            print(f"  {os.path.relpath(path, output_dir)}")

    return written_files
