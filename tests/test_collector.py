"""Tests for sitepipe.collector."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from sitepipe import collector
from sitepipe.collector import CollectionError, ContentCollector, DocumentSequence
from sitepipe.config import PatternSpec
from sitepipe.models import DocumentKind
from tests._fixtures.site_builder import SiteBuilder


def test_collect_matches_declared_patterns_in_order(site_builder: SiteBuilder) -> None:
    site_builder.write_config()
    site_builder.write(
        {
            "foo.cpp": "int main() {}\n",
            "docs/bar.md": "# Bar\n",
            "readme.txt": "not collected\n",
        }
    )
    config = site_builder.load()

    documents = list(ContentCollector().collect(config))

    assert [document.display_path for document in documents] == ["foo.cpp", "docs/bar.md"]
    assert documents[0].path == (site_builder.path() / "foo.cpp").resolve()
    assert documents[0].kind is DocumentKind.EXAMPLE
    assert documents[1].kind is DocumentKind.DOCUMENTATION


def test_collect_output_is_stable_and_restartable(site_builder: SiteBuilder) -> None:
    site_builder.write_config()
    site_builder.write(
        {
            "zeta.md": "z\n",
            "alpha.md": "a\n",
            "posts/2021/type_list.md": "post\n",
            "posts/2021/type_list.cpp": "// example\n",
            "src/main.cpp": "// main\n",
        }
    )
    sequence = ContentCollector().collect(site_builder.load())

    first = sequence.display_paths()
    second = sequence.display_paths()

    assert first == second
    assert first == [
        "posts/2021/type_list.cpp",
        "src/main.cpp",
        "alpha.md",
        "zeta.md",
        "posts/2021/type_list.md",
    ]
    assert len(set(sequence.paths())) == len(first)


def test_collect_is_lazy(site_builder: SiteBuilder) -> None:
    site_builder.write_config()
    sequence = ContentCollector().collect(site_builder.load())

    assert sequence.display_paths() == []

    site_builder.write({"late.md": "# added after collect\n"})

    assert sequence.display_paths() == ["late.md"]


def test_pattern_without_matches_is_not_an_error(tmp_path: Path) -> None:
    (tmp_path / "page.md").write_text("# Page\n", encoding="utf-8")
    sequence = DocumentSequence(
        tmp_path,
        PatternSpec.of(["*.hpp", "*.md", "*.rst"]),
        PatternSpec.of([]),
    )

    assert sequence.display_paths() == ["page.md"]


def test_duplicate_matches_keep_first_declaration(tmp_path: Path) -> None:
    (tmp_path / "docs").mkdir()
    (tmp_path / "docs" / "intro.md").write_text("# Intro\n", encoding="utf-8")
    sequence = DocumentSequence(
        tmp_path,
        PatternSpec.of(["docs/*.md", "*.md", "intro.*"]),
        PatternSpec.of(["*.md"]),
    )

    documents = list(sequence)

    assert [document.display_path for document in documents] == ["docs/intro.md"]
    assert documents[0].kind is DocumentKind.EXAMPLE


@pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks unavailable")
def test_symlinked_duplicates_are_dropped(tmp_path: Path) -> None:
    (tmp_path / "docs").mkdir()
    target = tmp_path / "docs" / "post.md"
    target.write_text("# Post\n", encoding="utf-8")
    try:
        (tmp_path / "alias.md").symlink_to(target)
    except OSError:
        pytest.skip("cannot create symlinks here")

    sequence = DocumentSequence(tmp_path, PatternSpec.of(["*.md"]), PatternSpec.of([]))

    assert sequence.paths() == [target.resolve()]


def test_strip_prefix_rewrites_display_paths(tmp_path: Path) -> None:
    (tmp_path / "content" / "posts").mkdir(parents=True)
    (tmp_path / "content" / "posts" / "hello.md").write_text("hi\n", encoding="utf-8")
    (tmp_path / "index.md").write_text("home\n", encoding="utf-8")

    sequence = DocumentSequence(
        tmp_path,
        PatternSpec.of(["*.md"], strip_prefix="content"),
        PatternSpec.of([]),
    )

    assert sequence.display_paths() == ["index.md", "posts/hello.md"]


def test_collect_skips_vcs_output_and_gitignored_paths(site_builder: SiteBuilder) -> None:
    site_builder.write_config()
    site_builder.write(
        {
            ".gitignore": "drafts/\n*.tmp.md\n",
            ".git/notes.md": "internal\n",
            "html/index.md": "generated\n",
            "drafts/wip.md": "draft\n",
            "scratch.tmp.md": "scratch\n",
            "post.md": "post\n",
        }
    )

    sequence = ContentCollector().collect(site_builder.load())

    assert sequence.display_paths() == ["post.md"]


def test_collect_rejects_missing_root(site_builder: SiteBuilder, tmp_path: Path) -> None:
    site_builder.write_config()
    config = site_builder.load()

    with pytest.raises(CollectionError, match="not found"):
        ContentCollector().collect(config, tmp_path / "missing")


def test_collect_rejects_file_root(site_builder: SiteBuilder) -> None:
    config_file = site_builder.write_config()
    config = site_builder.load()

    with pytest.raises(CollectionError, match="not a directory"):
        ContentCollector().collect(config, config_file)


def test_single_star_does_not_cross_directories(tmp_path: Path) -> None:
    (tmp_path / "docs" / "deep").mkdir(parents=True)
    (tmp_path / "docs" / "top.md").write_text("top\n", encoding="utf-8")
    (tmp_path / "docs" / "deep" / "x.md").write_text("deep\n", encoding="utf-8")

    shallow = DocumentSequence(tmp_path, PatternSpec.of(["docs/*.md"]), PatternSpec.of([]))
    recursive = DocumentSequence(tmp_path, PatternSpec.of(["docs/**/*.md"]), PatternSpec.of([]))

    assert shallow.display_paths() == ["docs/top.md"]
    assert recursive.display_paths() == ["docs/top.md", "docs/deep/x.md"]


def test_unreadable_subdirectory_raises_collection_error(
    site_builder: SiteBuilder, monkeypatch: pytest.MonkeyPatch
) -> None:
    site_builder.write_config()
    site_builder.write({"post.md": "post\n"})
    sequence = ContentCollector().collect(site_builder.load())

    def walk_with_denied_subdir(top, onerror=None, **kwargs):
        onerror(PermissionError(13, "Permission denied", str(Path(top) / "private")))
        yield from ()

    monkeypatch.setattr(collector.os, "walk", walk_with_denied_subdir)

    with pytest.raises(CollectionError, match="private"):
        sequence.display_paths()


def test_unreadable_root_is_rejected(
    site_builder: SiteBuilder, monkeypatch: pytest.MonkeyPatch
) -> None:
    site_builder.write_config()
    config = site_builder.load()
    monkeypatch.setattr(collector.os, "access", lambda path, mode: False)

    with pytest.raises(CollectionError, match="not readable"):
        ContentCollector().collect(config)


def test_undecodable_gitignore_raises_collection_error(site_builder: SiteBuilder) -> None:
    site_builder.write_config()
    site_builder.write({"post.md": "post\n"})
    (site_builder.path() / ".gitignore").write_bytes(b"caf\xe9/\n")
    sequence = ContentCollector().collect(site_builder.load())

    with pytest.raises(CollectionError, match=".gitignore"):
        list(sequence)
