from __future__ import annotations

from pathlib import Path

import pytest

from data_manifest.errors import StructuralError
from data_manifest.reconcile import generate, validate

from tests.fixtures import make_archive, sha256_text


def _baseline(tmp_path: Path, files: dict[str, str] | None = None) -> tuple[Path, Path]:
    root = make_archive(tmp_path, files)
    manifest = tmp_path / "manifest.txt"
    generate(root, "arc", manifest, worker_count=2)
    return root, manifest


def test_validate_unmodified_tree_succeeds(tmp_path: Path) -> None:
    root, manifest = _baseline(tmp_path)

    outcome = validate(root, "arc", manifest)

    assert outcome.ok
    assert outcome.valid == 4
    assert (outcome.invalid, outcome.new, outcome.missing) == (0, 0, 0)


def test_validate_detects_modified_file(tmp_path: Path) -> None:
    root, manifest = _baseline(tmp_path, {"a": "hello", "b": "world"})
    (root / "b").write_text("WORLD", encoding="utf-8")

    outcome = validate(root, "arc", manifest)

    assert not outcome.ok
    assert outcome.valid == 1
    assert outcome.invalid == 1
    mismatch = outcome.mismatches[0]
    assert mismatch.path == "arc/b"
    assert mismatch.expected == sha256_text("world")
    assert mismatch.actual == sha256_text("WORLD")


def test_validate_detects_missing_file(tmp_path: Path) -> None:
    root, manifest = _baseline(tmp_path, {"a": "hello", "b": "world"})
    (root / "a").unlink()

    outcome = validate(root, "arc", manifest)

    assert not outcome.ok
    assert outcome.missing == 1
    assert outcome.missing_paths == ["arc/a"]
    assert outcome.valid == 1


def test_validate_new_file_alone_does_not_fail(tmp_path: Path) -> None:
    root, manifest = _baseline(tmp_path, {"a": "hello"})
    (root / "extra.txt").write_text("new", encoding="utf-8")

    outcome = validate(root, "arc", manifest)

    assert outcome.ok
    assert outcome.new == 1
    assert outcome.new_paths == ["arc/extra.txt"]


def test_validate_reports_everything_before_failing(tmp_path: Path) -> None:
    root, manifest = _baseline(tmp_path, {"a": "1", "b": "2", "c": "3"})
    (root / "a").write_text("changed", encoding="utf-8")
    (root / "b").unlink()
    (root / "d").write_text("4", encoding="utf-8")

    outcome = validate(root, "arc", manifest)

    assert not outcome.ok
    assert (outcome.valid, outcome.invalid, outcome.new, outcome.missing) == (1, 1, 1, 1)


def test_validate_classifications_are_exclusive_and_exhaustive(tmp_path: Path) -> None:
    root, manifest = _baseline(tmp_path)
    (root / "a").write_text("changed", encoding="utf-8")
    (root / "b").unlink()
    (root / "fresh").write_text("f", encoding="utf-8")

    outcome = validate(root, "arc", manifest)

    live = 4  # 3 baseline survivors + fresh
    assert outcome.valid + outcome.invalid + outcome.new == live
    assert outcome.missing == 1


def test_validate_uses_explicit_label_for_every_file(tmp_path: Path) -> None:
    root = make_archive(tmp_path, {"a": "hello"}, name="dirname")
    manifest = tmp_path / "manifest.txt"
    generate(root, "custom", manifest, worker_count=1)

    outcome = validate(root, "custom", manifest)

    assert outcome.ok
    assert outcome.valid == 1
    assert outcome.new == 0


def test_validate_with_missing_manifest_reports_all_new(tmp_path: Path) -> None:
    root = make_archive(tmp_path, {"a": "hello", "b": "world"})

    outcome = validate(root, "arc", tmp_path / "absent.txt")

    assert outcome.ok
    assert outcome.new == 2


def test_validate_empty_archive_reports_all_missing(tmp_path: Path) -> None:
    root, manifest = _baseline(tmp_path, {"a": "hello"})
    (root / "a").unlink()

    outcome = validate(root, "arc", manifest)

    assert not outcome.ok
    assert outcome.missing == 1


def test_validate_parallel_matches_sequential(tmp_path: Path) -> None:
    root, manifest = _baseline(tmp_path)
    (root / "a").write_text("changed", encoding="utf-8")

    seq = validate(root, "arc", manifest, worker_count=1)
    par = validate(root, "arc", manifest, worker_count=4)

    assert seq.to_dict() == par.to_dict()


def test_validate_progress_sink_sees_every_live_file(tmp_path: Path) -> None:
    root, manifest = _baseline(tmp_path, {"a": "1", "b": "2"})
    (root / "c").write_text("3", encoding="utf-8")
    seen: list[int] = []

    validate(root, "arc", manifest, progress_sink=lambda done, total: seen.append(done))

    assert seen == [1, 2, 3]


def test_validate_does_not_modify_manifest(tmp_path: Path) -> None:
    root, manifest = _baseline(tmp_path, {"a": "hello"})
    before = manifest.read_bytes()
    (root / "a").write_text("changed", encoding="utf-8")
    (root / "b").write_text("new", encoding="utf-8")

    validate(root, "arc", manifest)

    assert manifest.read_bytes() == before


def test_validate_missing_archive_is_structural_error(tmp_path: Path) -> None:
    with pytest.raises(StructuralError):
        validate(tmp_path / "nope", "arc", tmp_path / "manifest.txt")


def test_validate_to_dict_includes_ok_and_mode(tmp_path: Path) -> None:
    root, manifest = _baseline(tmp_path, {"a": "hello"})

    data = validate(root, "arc", manifest).to_dict()

    assert data["mode"] == "validate"
    assert data["ok"] is True
    assert data["valid"] == 1


def test_write_report_is_sorted_utf8_json(tmp_path: Path) -> None:
    import json

    from data_manifest.reconcile import write_report

    root, manifest = _baseline(tmp_path, {"a": "hello", "b": "world"})
    (root / "b").write_text("changed", encoding="utf-8")
    outcome = validate(root, "arc", manifest)

    report = write_report(tmp_path / "reports" / "validate.json", outcome)

    text = report.read_text(encoding="utf-8")
    assert text.endswith("}\n")
    data = json.loads(text)
    assert list(data) == sorted(data)
    assert data["ok"] is False
    assert data["mismatches"] == [
        {"path": "arc/b", "expected": sha256_text("world"), "actual": sha256_text("changed")}
    ]
