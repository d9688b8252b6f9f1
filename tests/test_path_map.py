"""Tests for path mapping and tree projection."""

from __future__ import annotations

import pytest

from mirrorsync.core.errors import ConfigurationError
from mirrorsync.core.git_utils import TreeEntry
from mirrorsync.core.path_map import PathMapper


def _mapper():
    return PathMapper.from_config(
        {
            "map": {
                "tools/lib/bpf": "src",
                "tools/include/uapi/linux/bpf.h": "include/uapi/linux/bpf.h",
                "tools/lib/bpf/special": "extra",
            },
            "exclude": ["src/Makefile", "src/Build"],
        }
    )


def _entry(path, sha="a" * 40):
    return TreeEntry("100644", "blob", sha, path)


class TestMapping:
    def test_directory_prefix(self):
        assert _mapper().map_path("tools/lib/bpf/libbpf.c") == "src/libbpf.c"

    def test_single_file(self):
        assert _mapper().map_path("tools/include/uapi/linux/bpf.h") == "include/uapi/linux/bpf.h"

    def test_longest_prefix_wins(self):
        assert _mapper().map_path("tools/lib/bpf/special/x.c") == "extra/x.c"

    def test_unmapped(self):
        mapper = _mapper()
        assert mapper.map_path("tools/lib/bpfx/y.c") is None
        assert mapper.map_path("kernel/bpf/core.c") is None

    def test_reverse_lookup(self):
        assert _mapper().source_path_for("src/Makefile") == "tools/lib/bpf/Makefile"

    def test_projected_excludes_mirror_only_files(self):
        mapper = _mapper()
        assert mapper.is_projected("tools/lib/bpf/btf.c")
        assert not mapper.is_projected("tools/lib/bpf/Makefile")
        assert not mapper.is_projected("kernel/bpf/core.c")

    def test_in_view(self):
        mapper = _mapper()
        assert mapper.in_view("src/btf.c")
        assert not mapper.in_view("src/Makefile")
        assert not mapper.in_view("README.md")


class TestPathspecs:
    def test_source_pathspec_excludes_source_images(self):
        spec = _mapper().source_stat_pathspec()
        assert "tools/lib/bpf" in spec
        assert ":(exclude)tools/lib/bpf/Build" in spec
        assert ":(exclude)tools/lib/bpf/Makefile" in spec

    def test_mirror_pathspec(self):
        spec = _mapper().mirror_stat_pathspec()
        assert spec[:3] == ["src", "include/uapi/linux/bpf.h", "extra"]
        assert ":(exclude)src/Makefile" in spec


class TestProjection:
    def test_move_keeps_unmapped_and_drops_excluded(self):
        moved = _mapper().move(
            [_entry("tools/lib/bpf/a.c"), _entry("tools/lib/bpf/Makefile"), _entry("kernel/x.c")]
        )
        assert [e.path for e in moved] == ["__mirror/src/a.c", "kernel/x.c"]

    def test_project(self):
        projected = _mapper().project(
            [
                _entry("tools/lib/bpf/a.c", "1" * 40),
                _entry("tools/include/uapi/linux/bpf.h", "2" * 40),
                _entry("kernel/x.c"),
            ]
        )
        assert [(e.path, e.sha) for e in projected] == [
            ("src/a.c", "1" * 40),
            ("include/uapi/linux/bpf.h", "2" * 40),
        ]

    def test_custom_staging_root(self):
        mapper = PathMapper.from_config({"map": {"lib": "src"}, "staging_root": "/stage/"})
        assert mapper.staging_root == "stage"
        assert [e.path for e in mapper.move([_entry("lib/a.c")])] == ["stage/src/a.c"]


class TestFromConfig:
    def test_empty_map(self):
        with pytest.raises(ConfigurationError):
            PathMapper.from_config({"map": {}})

    def test_blank_entry(self):
        with pytest.raises(ConfigurationError):
            PathMapper.from_config({"map": {"lib": " / "}})

    def test_normalizes_slashes(self):
        mapper = PathMapper.from_config({"map": {"/lib/": "src/"}})
        assert mapper.mapping == (("lib", "src"),)
