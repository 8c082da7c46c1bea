from __future__ import annotations

from pathlib import Path

import pytest

from asterisk_harness.sandbox.assets import copy_files
from asterisk_harness.sandbox.run_directory import FixtureRunDirectory


def test_paths_resolve_below_roots(tmp_path: Path) -> None:
    directory = FixtureRunDirectory(tmp_path / "build", "test_dial[pjsip]", fixtures_root=tmp_path / "fx")

    assert directory.root == (tmp_path / "build" / "test_dial-pjsip").resolve()
    assert directory.run_path("var", "log") == directory.root / "var" / "log"
    assert directory.fixture_path("asterisk-default") == (tmp_path / "fx" / "asterisk-default").resolve()


def test_prepare_discards_previous_contents(tmp_path: Path) -> None:
    directory = FixtureRunDirectory(tmp_path, "instance", fixtures_root=tmp_path)
    directory.prepare()
    directory.run_path("stale.txt").write_text("old", encoding="utf-8")

    directory.prepare()

    assert directory.root.is_dir()
    assert list(directory.root.iterdir()) == []

    directory.cleanup()
    assert not directory.root.exists()


def test_unusable_name_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        FixtureRunDirectory(tmp_path, "///", fixtures_root=tmp_path)


def test_copy_files_keeps_relative_layout(tmp_path: Path) -> None:
    source = tmp_path / "src"
    (source / "pjsip.d").mkdir(parents=True)
    (source / "extensions.conf").write_text("[default]\n", encoding="utf-8")
    (source / "pjsip.d" / "bob.conf").write_text("[bob]\n", encoding="utf-8")
    (source / "notes.md").write_text("skip\n", encoding="utf-8")

    copied = copy_files(source, "**/*.conf", tmp_path / "dest")

    assert copied == [tmp_path / "dest" / "extensions.conf", tmp_path / "dest" / "pjsip.d" / "bob.conf"]
    assert not (tmp_path / "dest" / "notes.md").exists()


def test_copy_files_with_missing_source(tmp_path: Path) -> None:
    assert copy_files(tmp_path / "missing", "**/*", tmp_path / "dest") == []
    assert not (tmp_path / "dest").exists()
