"""Tests for the lockfile resolvers and format detection."""

import json

import pytest

from gdc.errors import ConfigError, LockfileUnparseableError
from gdc.models import Lockfile, Revision
from gdc.resolvers.chain import ChainResolver
from gdc.resolvers.dep import DepResolver
from gdc.resolvers.glide import GlideResolver
from gdc.resolvers.godep import GodepResolver
from gdc.resolvers.gomodules import GoModulesResolver, parse_go_mod
from gdc.resolvers.govendor import GovendorResolver
from gdc.resolvers.prefix import PrefixIndex
from gdc.resolvers.registry import (
    detect_lockfile,
    detect_orphan_manifest,
    load_resolver,
    lockfile_from_path,
)
from gdc.resolvers.synthetic import SyntheticResolver
from gdc.resolvers.textlock import GdmResolver, VndrResolver
from gdc.resolvers.vendor import VendorTreeResolver, parse_modules_txt


def _make_lockfile(tmp_path, rel, text, tool):
    path = tmp_path / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)
    return Lockfile(tool=tool, path=str(path), root=str(tmp_path))


class TestPrefixIndex:
    def test_longest_prefix_wins(self):
        index = PrefixIndex()
        index.add_root("github.com/a", Revision("github.com/a", "1"))
        index.add_root("github.com/a/b", Revision("github.com/a/b", "2"))
        assert index.lookup("github.com/a/b/c").revision == "2"
        assert index.lookup("github.com/a/x").revision == "1"

    def test_prefix_is_element_wise(self):
        index = PrefixIndex()
        index.add_root("github.com/a/b", Revision("github.com/a/b", "1"))
        assert index.lookup("github.com/a/bc") is None

    def test_exact_before_prefix(self):
        index = PrefixIndex()
        index.add_root("github.com/a", Revision("github.com/a", "root"))
        index.add_exact("github.com/a/b", Revision("github.com/other", "exact"))
        assert index.lookup("github.com/a/b").revision == "exact"

    def test_trailing_slash_normalized(self):
        index = PrefixIndex()
        index.add_root("github.com/a/", Revision("github.com/a", "1"))
        index.add_root("github.com/a", Revision("github.com/a", "2"))
        assert index.lookup("github.com/a/x").revision == "1"
        assert len(index) == 1


class TestDep:
    LOCK = """
[[projects]]
  name = "github.com/pkg/errors"
  packages = ["."]
  revision = "645ef00459ed84a119197bfb8d8205042c6df63d"
  version = "v0.8.0"

[[projects]]
  branch = "master"
  name = "golang.org/x/net"
  packages = ["context", "http2"]
  revision = "d41e8174641f662c5a2d1c7a5f9e828788eb8706"
"""

    def test_version_preferred_over_revision(self, tmp_path):
        r = DepResolver(_make_lockfile(tmp_path, "Gopkg.lock", self.LOCK, "dep"))
        assert r.resolve("github.com/pkg/errors") == Revision("github.com/pkg/errors", "v0.8.0")
        assert r.resolve("golang.org/x/net/http2").revision.startswith("d41e81")

    def test_subpackage_resolves_to_project(self, tmp_path):
        r = DepResolver(_make_lockfile(tmp_path, "Gopkg.lock", self.LOCK, "dep"))
        assert r.resolve("golang.org/x/net/context").name == "golang.org/x/net"
        assert r.resolve("golang.org/x/text") is None

    def test_revisions_sorted(self, tmp_path):
        r = DepResolver(_make_lockfile(tmp_path, "Gopkg.lock", self.LOCK, "dep"))
        assert [rev.name for rev in r.revisions()] == ["github.com/pkg/errors", "golang.org/x/net"]

    def test_manifest_without_lock_is_not_a_lockfile(self, tmp_path):
        (tmp_path / "Gopkg.toml").write_text("")
        assert detect_lockfile(str(tmp_path)) is None

        orphan = detect_orphan_manifest(str(tmp_path))
        assert orphan.tool == "dep"
        assert orphan.manifest == str(tmp_path / "Gopkg.toml")
        with pytest.raises(LockfileUnparseableError):
            load_resolver(orphan)

    def test_manifest_recorded_next_to_lock(self, tmp_path):
        (tmp_path / "Gopkg.toml").write_text("")
        (tmp_path / "Gopkg.lock").write_text("")
        lockfile = detect_lockfile(str(tmp_path))
        assert lockfile.manifest == str(tmp_path / "Gopkg.toml")
        assert detect_orphan_manifest(str(tmp_path)) is None

    def test_bad_toml(self, tmp_path):
        with pytest.raises(LockfileUnparseableError) as exc:
            DepResolver(_make_lockfile(tmp_path, "Gopkg.lock", "[[projects]\n", "dep"))
        assert exc.value.tool == "dep"


class TestGlide:
    def test_subpackages(self, tmp_path):
        text = """
hash: abc
imports:
- name: github.com/spf13/cobra
  version: a1f051bc3eba734da4772d60e2d677f47cf93ef4
  subpackages:
  - doc
- name: gopkg.in/yaml.v2
  version: 53feefa2559fb8dfa8d81baad31be332c97d6c77
"""
        r = GlideResolver(_make_lockfile(tmp_path, "glide.lock", text, "glide"))
        assert r.resolve("github.com/spf13/cobra/doc").name == "github.com/spf13/cobra"
        assert r.resolve("gopkg.in/yaml.v2").revision.startswith("53feef")

    def test_test_imports(self, tmp_path):
        text = "imports: []\ntestImports:\n- name: github.com/stretchr/testify\n  version: v1.2.2\n"
        r = GlideResolver(_make_lockfile(tmp_path, "glide.lock", text, "glide"))
        assert r.resolve("github.com/stretchr/testify/assert").revision == "v1.2.2"

    def test_invalid_yaml(self, tmp_path):
        with pytest.raises(LockfileUnparseableError):
            GlideResolver(_make_lockfile(tmp_path, "glide.lock", "imports: [\n", "glide"))


class TestGodep:
    def test_deps(self, tmp_path):
        data = {
            "ImportPath": "example.com/app",
            "GoVersion": "go1.9",
            "Deps": [
                {"ImportPath": "github.com/a/b", "Rev": "1111"},
                {"ImportPath": "github.com/a/b/c", "Comment": "v1.2", "Rev": "2222"},
            ],
        }
        r = GodepResolver(_make_lockfile(tmp_path, "Godeps/Godeps.json", json.dumps(data), "godep"))
        assert r.import_path == "example.com/app"
        assert r.resolve("github.com/a/b/c").revision == "2222"
        assert r.resolve("github.com/a/b/d").revision == "1111"

    def test_missing_file(self, tmp_path):
        lockfile = Lockfile(tool="godep", path=str(tmp_path / "nope.json"), root=str(tmp_path))
        with pytest.raises(LockfileUnparseableError):
            GodepResolver(lockfile)


class TestGovendor:
    def test_packages(self, tmp_path):
        data = {"package": [{"path": "github.com/x/y", "revision": "abcd"}]}
        r = GovendorResolver(_make_lockfile(tmp_path, "vendor/vendor.json", json.dumps(data), "govendor"))
        assert r.resolve("github.com/x/y/z") == Revision("github.com/x/y", "abcd")

    def test_entry_without_path(self, tmp_path):
        data = {"package": [{"revision": "abcd"}]}
        with pytest.raises(LockfileUnparseableError):
            GovendorResolver(_make_lockfile(tmp_path, "vendor/vendor.json", json.dumps(data), "govendor"))


class TestTextLocks:
    def test_vndr_with_comments_and_sources(self, tmp_path):
        text = "# comment\ngithub.com/a/b v1.0.0\ngithub.com/c/d 1234 https://mirror/c/d.git # fork\n"
        r = VndrResolver(_make_lockfile(tmp_path, "vendor.conf", text, "vndr"))
        assert r.resolve("github.com/a/b/sub").revision == "v1.0.0"
        assert r.sources == {"github.com/c/d": "https://mirror/c/d.git"}

    def test_gdm_rejects_third_column(self, tmp_path):
        with pytest.raises(LockfileUnparseableError):
            GdmResolver(_make_lockfile(tmp_path, "Godeps", "github.com/a/b 1 extra\n", "gdm"))

    def test_single_column_line(self, tmp_path):
        with pytest.raises(LockfileUnparseableError) as exc:
            VndrResolver(_make_lockfile(tmp_path, "vendor.conf", "github.com/a/b\n", "vndr"))
        assert "line 1" in str(exc.value)


class TestGoModules:
    GO_MOD = """module example.com/app

go 1.21

require (
	github.com/pkg/errors v0.9.1
	golang.org/x/net v0.17.0 // indirect
	example.com/local v0.0.0
)

require github.com/single/line v1.0.0

replace golang.org/x/net => golang.org/x/net v0.18.0

replace example.com/local => ../local
"""

    def test_parse(self):
        module, requires, replaces = parse_go_mod(self.GO_MOD)
        assert module == "example.com/app"
        assert requires["github.com/single/line"] == "v1.0.0"
        assert ("example.com/local", "", "../local", "") in replaces

    def test_replaces(self, tmp_path):
        r = GoModulesResolver(_make_lockfile(tmp_path, "go.mod", self.GO_MOD, "gomodules"))
        assert r.module_path == "example.com/app"
        assert r.resolve("golang.org/x/net/http2").revision == "v0.18.0"
        assert r.resolve("example.com/local/pkg").is_unresolved
        assert r.resolve("github.com/pkg/errors") == Revision("github.com/pkg/errors", "v0.9.1")

    def test_unterminated_block(self, tmp_path):
        with pytest.raises(LockfileUnparseableError):
            GoModulesResolver(_make_lockfile(tmp_path, "go.mod", "module a\nrequire (\n  b v1\n", "gomodules"))


class TestVendorTree:
    def test_modules_txt(self, tmp_path):
        vendor = tmp_path / "vendor"
        (vendor / "github.com" / "pkg" / "errors").mkdir(parents=True)
        (vendor / "github.com" / "pkg" / "errors" / "errors.go").write_text("package errors\n")
        (vendor / "modules.txt").write_text(
            "# github.com/pkg/errors v0.9.1\n## explicit\ngithub.com/pkg/errors\n"
        )
        r = VendorTreeResolver(Lockfile(tool="vendor", path=str(vendor), root=str(tmp_path)))
        assert r.resolve("github.com/pkg/errors") == Revision("github.com/pkg/errors", "v0.9.1")
        assert r.resolve("github.com/pkg/other") is None

    def test_tree_without_metadata_is_unresolved(self, tmp_path):
        vendor = tmp_path / "vendor"
        (vendor / "github.com" / "a" / "b").mkdir(parents=True)
        (vendor / "github.com" / "a" / "b" / "b.go").write_text("package b\n")
        r = VendorTreeResolver(Lockfile(tool="vendor", path=str(vendor), root=str(tmp_path)))
        assert r.resolve("github.com/a/b").is_unresolved
        assert [rev.name for rev in r.revisions()] == ["github.com/a/b"]

    def test_local_replacement(self):
        modules = parse_modules_txt("# example.com/x v1.0.0 => ../x\n# example.com/y => example.com/z v2.0.0\n")
        assert modules["example.com/x"].is_unresolved
        assert modules["example.com/y"].revision == "v2.0.0"


class TestChainAndSynthetic:
    def test_first_answer_wins(self, tmp_path):
        first = VndrResolver(_make_lockfile(tmp_path / "a", "vendor.conf", "github.com/x/y 1\n", "vndr"))
        second = VndrResolver(_make_lockfile(tmp_path / "b", "vendor.conf", "github.com/x/y 2\ngithub.com/p/q 3\n", "vndr"))
        chain = ChainResolver([first, second])
        rev, source = chain.resolve_with_source("github.com/x/y")
        assert rev.revision == "1" and source is first
        assert chain.resolve("github.com/p/q").revision == "3"
        assert " -> " in chain.label

    def test_empty_chain(self):
        assert ChainResolver([]).resolve("anything") is None

    def test_synthetic_prefixes(self):
        r = SyntheticResolver(["github.com/loose"])
        assert r.resolve("github.com/loose/x") == Revision("github.com/loose/x", "", True)
        assert r.resolve("github.com/tight") is None
        assert SyntheticResolver([], allow_all=True).resolve("x").is_unresolved


class TestRegistry:
    def test_detection_order(self, tmp_path):
        (tmp_path / "glide.lock").write_text("imports: []\n")
        (tmp_path / "go.mod").write_text("module a\n")
        assert detect_lockfile(str(tmp_path)).tool == "glide"
        assert detect_lockfile(str(tmp_path), tools=["gomodules"]).tool == "gomodules"

    def test_vendor_directory(self, tmp_path):
        (tmp_path / "vendor").mkdir()
        lockfile = detect_lockfile(str(tmp_path))
        assert lockfile.tool == "vendor"
        assert lockfile.path == str(tmp_path / "vendor")

    def test_nothing(self, tmp_path):
        assert detect_lockfile(str(tmp_path)) is None

    def test_lockfile_from_path_infers_root(self, tmp_path):
        lockfile = lockfile_from_path(str(tmp_path / "Godeps" / "Godeps.json"))
        assert lockfile.tool == "godep"
        assert lockfile.root == str(tmp_path)

    def test_lockfile_from_manifest(self, tmp_path):
        (tmp_path / "Gopkg.toml").write_text("")
        lockfile = lockfile_from_path(manifest_path=str(tmp_path / "Gopkg.toml"))
        assert lockfile.path == str(tmp_path / "Gopkg.lock")
        assert lockfile.manifest == str(tmp_path / "Gopkg.toml")

    def test_relative_paths_use_base(self, tmp_path):
        lockfile = lockfile_from_path("locks/Gopkg.lock", base=str(tmp_path))
        assert lockfile.path == str(tmp_path / "locks" / "Gopkg.lock")
        assert lockfile.root == str(tmp_path / "locks")

    def test_unknown_basename(self, tmp_path):
        with pytest.raises(ConfigError):
            lockfile_from_path(str(tmp_path / "deps.txt"))
