from __future__ import annotations

import time
import zipfile
from pathlib import Path


def create_debug_bundle(
    *,
    artifacts_dir: str,
    log_file: str,
    out_dir: str = "data",
    label: str = "",
) -> Path:
    """
    Zip the run's screenshots, log excerpts and log file into one shareable archive.

    Never includes `.env` or YAML config (they hold account secrets): only the log file and the artifacts
    directory are added.
    """
    out_root = Path(out_dir)
    out_root.mkdir(parents=True, exist_ok=True)

    stamp = time.strftime("%Y%m%d_%H%M%S")
    lab = (label or "").strip().lower()
    lab_part = f"_{lab}" if lab else ""
    out_path = out_root / f"debug_bundle{lab_part}_{stamp}.zip"

    art = Path(artifacts_dir)
    log = Path(log_file)

    def _add_file(z: zipfile.ZipFile, file_path: Path, arcname: str) -> None:
        try:
            if file_path.exists() and file_path.is_file() and file_path.resolve() != out_path.resolve():
                z.write(file_path, arcname=arcname)
        except OSError:
            # a file rotated away mid-bundle shouldn't fail the bundle
            return

    with zipfile.ZipFile(out_path, "w", compression=zipfile.ZIP_DEFLATED) as z:
        _add_file(z, log, arcname=log.name)

        if art.exists() and art.is_dir():
            for p in sorted(art.rglob("*")):
                if not p.is_file() or p.suffix == ".zip":
                    continue
                _add_file(z, p, arcname=str(Path("artifacts") / p.relative_to(art)))

    return out_path
