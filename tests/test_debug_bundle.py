from __future__ import annotations

import zipfile
from pathlib import Path

from netlib_login_check.util.debug_bundle import create_debug_bundle


def test_create_debug_bundle_includes_artifacts_and_log(tmp_path: Path) -> None:
    art_dir = tmp_path / "artifacts"
    (art_dir / "steps").mkdir(parents=True)
    (art_dir / "fail_invalid_alice.png").write_bytes(b"png")
    (art_dir / "fail_invalid_alice.log.txt").write_text("Invalid credentials.", encoding="utf-8")
    (art_dir / "steps" / "step_01_alice_loaded.png").write_bytes(b"png")
    (art_dir / "old_bundle.zip").write_bytes(b"zip")

    log_file = tmp_path / "login_check.log"
    log_file.write_text("hello", encoding="utf-8")

    out = create_debug_bundle(
        artifacts_dir=str(art_dir),
        log_file=str(log_file),
        out_dir=str(tmp_path),
        label="netlib",
    )
    assert out.exists()
    assert out.suffix == ".zip"
    assert out.name.startswith("debug_bundle_netlib_")

    with zipfile.ZipFile(out, "r") as z:
        names = set(z.namelist())
        assert "login_check.log" in names
        assert "artifacts/fail_invalid_alice.png" in names
        assert "artifacts/fail_invalid_alice.log.txt" in names
        assert "artifacts/steps/step_01_alice_loaded.png" in names
        assert "artifacts/old_bundle.zip" not in names


def test_create_debug_bundle_tolerates_missing_inputs(tmp_path: Path) -> None:
    out = create_debug_bundle(
        artifacts_dir=str(tmp_path / "nope"),
        log_file=str(tmp_path / "missing.log"),
        out_dir=str(tmp_path / "out"),
    )
    with zipfile.ZipFile(out, "r") as z:
        assert z.namelist() == []


def test_create_debug_bundle_only_holds_log_and_artifacts(tmp_path: Path) -> None:
    (tmp_path / ".env").write_text("ACCOUNTS=alice:hunter2", encoding="utf-8")
    (tmp_path / "config.yaml").write_text("accounts: alice:hunter2", encoding="utf-8")
    log_file = tmp_path / "login_check.log"
    log_file.write_text("hello", encoding="utf-8")

    out = create_debug_bundle(artifacts_dir=str(tmp_path / "artifacts"), log_file=str(log_file), out_dir=str(tmp_path))

    with zipfile.ZipFile(out, "r") as z:
        assert z.namelist() == ["login_check.log"]
