"""CLI entry point for the Go dependency analyzer.

Usage:
    gdc [options] [TARGET]
    python -m gdc [options] [TARGET]

Options:
    TARGET                      Import path (or ./relative pattern) to analyze (default: .)
    --dir PATH                  Module directory the go tool runs in (default: cwd)
    --config PATH               Path to gdc.yaml config file
    --strategy NAME             manifest[:tool], import-trace or world-union
    --tags LIST                 Build tags added to every world
    --[no-]all-tags             Add one world per GOOS and per GOARCH
    --world NAME                Extra world (linux, arm64, linux/arm64 or a tag); repeatable
    --lockfile PATH             Use this lockfile instead of discovering one
    --manifest PATH             Use this manifest instead of discovering one
    --[no-]allow-unresolved     Accept dependencies without a pinned revision
    --allow-unresolved-prefix P Accept unpinned dependencies under these prefixes
    --[no-]allow-nested-vendor  Consult lockfiles of vendored projects
    --[no-]allow-deep-vendor    Consult every enclosing vendored lockfile
    --[no-]allow-external-vendor
                                Consult lockfiles outside the project
    --allow-external-vendor-prefix P
                                Limit --allow-external-vendor to these prefixes
    --[no-]modules-vendor       Pass -mod=vendor to go list
    --[no-]skip-tracing         Read the lockfile only; never run go list
    --[no-]skip-project         Use --dir as the project root without discovery
    --clean / --build           Run go clean / go build on the target first
    --format LIST               Comma-separated output formats (json,dot)
    --output DIR                Override output directory
    --quiet / -q                Suppress progress output
"""

from __future__ import annotations

import argparse
import os
import sys


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gdc",
        description="Compute the revision-level dependency graph of a Go package",
    )
    parser.add_argument(
        "target",
        nargs="?",
        default=".",
        help="Import path of the package to analyze (default: the package in --dir)",
    )
    parser.add_argument("--dir", type=str, default=None, help="Module directory (default: current directory)")
    parser.add_argument("--config", type=str, default=None, help="Path to gdc.yaml configuration file")
    parser.add_argument("--strategy", type=str, default=None, help="manifest[:tool], import-trace or world-union")
    parser.add_argument("--tags", type=str, default=None, help="Comma-separated build tags for every world")
    parser.add_argument("--all-tags", action=argparse.BooleanOptionalAction, default=None,
                        help="Analyze every GOOS and GOARCH")
    parser.add_argument("--world", action="append", default=None, help="Additional build world (repeatable)")
    parser.add_argument("--lockfile", type=str, default=None, help="Lockfile to use")
    parser.add_argument("--manifest", type=str, default=None, help="Manifest to use")
    parser.add_argument("--allow-unresolved", action=argparse.BooleanOptionalAction, default=None,
                        help="Accept dependencies without a pinned revision")
    parser.add_argument("--allow-unresolved-prefix", type=str, default=None,
                        help="Space-delimited import path prefixes allowed to stay unpinned")
    parser.add_argument("--allow-nested-vendor", action=argparse.BooleanOptionalAction, default=None,
                        help="Consult lockfiles of vendored projects")
    parser.add_argument("--allow-deep-vendor", action=argparse.BooleanOptionalAction, default=None,
                        help="Consult every enclosing vendored lockfile")
    parser.add_argument("--allow-external-vendor", action=argparse.BooleanOptionalAction, default=None,
                        help="Consult lockfiles outside the project")
    parser.add_argument("--allow-external-vendor-prefix", type=str, default=None,
                        help="Space-delimited prefixes for --allow-external-vendor")
    parser.add_argument("--modules-vendor", action=argparse.BooleanOptionalAction, default=None,
                        help="Run go list with -mod=vendor")
    parser.add_argument("--skip-tracing", action=argparse.BooleanOptionalAction, default=None,
                        help="Do not run go list")
    parser.add_argument("--skip-project", action=argparse.BooleanOptionalAction, default=None,
                        help="Treat --dir as the project root")
    parser.add_argument("--clean", action="store_true", default=False, help="Run go clean on the target first")
    parser.add_argument("--build", action="store_true", default=False, help="Run go build on the target first")
    parser.add_argument("--format", type=str, default=None, help="Comma-separated output formats (json,dot)")
    parser.add_argument("--output", type=str, default=None, help="Output directory for results")
    parser.add_argument("-q", "--quiet", action="store_true", default=False, help="Suppress output")
    return parser


def options_from_args(args) -> dict:
    """Module option mapping holding only the flags given on the command line.

    Boolean flags have ``--no-`` forms so a command line can switch off
    what ``gdc.yaml`` switches on.
    """
    options = {}
    if args.strategy:
        options["strategy"] = args.strategy
    if args.tags:
        options["tags"] = [t.strip() for t in args.tags.split(",") if t.strip()]
    if args.world:
        options["worlds"] = list(args.world)
    for flag in (
        "all_tags",
        "allow_unresolved",
        "allow_nested_vendor",
        "allow_deep_vendor",
        "allow_external_vendor",
        "modules_vendor",
        "skip_tracing",
        "skip_project",
    ):
        value = getattr(args, flag)
        if value is not None:
            options[flag] = value
    for name in ("lockfile", "manifest", "allow_unresolved_prefix", "allow_external_vendor_prefix"):
        value = getattr(args, name)
        if value:
            options[name] = value
    return options


def main(argv=None, runner=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    module_dir = os.path.abspath(args.dir) if args.dir else os.getcwd()
    if not os.path.isdir(module_dir):
        print(f"Error: module directory not found: {module_dir}", file=sys.stderr)
        return 1

    from .analyzer import GoAnalyzer, write_output
    from .config import load_config
    from .errors import GdcError
    from .models import Module

    verbose = not args.quiet

    try:
        config = load_config(config_path=args.config, module_dir=module_dir)

        # Apply CLI overrides
        if args.format:
            config.output.formats = [f.strip() for f in args.format.split(",") if f.strip()]
        if args.output:
            config.output.directory = os.path.abspath(args.output)

        module = Module(
            name=os.path.basename(module_dir),
            dir=module_dir,
            build_target=args.target,
            options=options_from_args(args),
        )
        analyzer = GoAnalyzer(module, config=config, runner=runner, verbose=verbose)

        if verbose:
            print("=" * 60)
            print("  Go Dependency Analyzer v1.0")
            print("=" * 60)
            print(f"  Go: {analyzer.version or '(not used)'}")
            print(f"  Target: {module.build_target}")
            print(f"  Strategy: {analyzer.options.strategy}")
            print(f"  Formats: {', '.join(config.output.formats)}")
            print("=" * 60)
            print()

        if args.clean:
            analyzer.clean()
        if args.build:
            analyzer.build()

        result = analyzer.analyze()
        written = write_output(result, config, verbose=verbose)
    except GdcError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("Interrupted", file=sys.stderr)
        return 130

    if verbose:
        print(f"\n{'=' * 60}")
        print(f"  Done! {result.graph.node_count} revisions, {result.graph.edge_count} edges.")
        if result.warnings:
            print(f"  Warnings: {len(result.warnings)}")
        print(f"  Wrote {len(written)} files.")
        print(f"  Time: {result.duration_seconds:.1f}s")
        print(f"{'=' * 60}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
