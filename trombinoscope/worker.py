"""
Derivative export: regenerate cropped JPEGs from the embedded records (Qt-free).

``export_worker`` runs in child processes spawned by
``concurrent.futures.ProcessPoolExecutor``.  It reloads each photo from
disk, so it only sees crops that have been saved.  This module must
**never** import PyQt6; doing so can crash or hang on some platforms.
"""

import logging
import os
from concurrent.futures import ProcessPoolExecutor, as_completed
from pathlib import Path
from typing import Callable

from trombinoscope.config import DEFAULT_ASPECT_RATIO, JPEG_QUALITY_DEFAULT
from trombinoscope.session import CropSession

logger = logging.getLogger(__name__)


def export_worker(args: dict) -> dict:
    """Write one cropped derivative.  Runs in a separate process."""
    idx = args["index"]
    img_path = Path(args["path"])
    out_dir = Path(args["output_dir"])
    quality = args.get("jpeg_quality", JPEG_QUALITY_DEFAULT)
    ratio = tuple(args.get("ratio", DEFAULT_ASPECT_RATIO))

    try:
        session = CropSession.load(img_path, ratio)
        if session is None:
            return {"index": idx, "success": False, "name": img_path.name, "error": "unreadable image"}
        out_dir.mkdir(parents=True, exist_ok=True)
        out_path = out_dir / f"{img_path.stem}.jpg"
        session.current_crop_image().save(str(out_path), "JPEG", quality=quality, optimize=True)
        return {"index": idx, "success": True, "name": img_path.name}
    except Exception as e:
        return {"index": idx, "success": False, "name": img_path.name, "error": str(e)}


def export_all(
    paths: list[Path],
    output_dir: Path,
    jpeg_quality: int = JPEG_QUALITY_DEFAULT,
    ratio: tuple[int, int] = DEFAULT_ASPECT_RATIO,
    max_workers: int | None = None,
    on_result: Callable[[dict, int, int], bool] | None = None,
) -> list[dict]:
    """
    Regenerate a derivative for every photo in ``paths``, in parallel.

    Returns the worker results in completion order.  Failures are logged
    and returned, not raised.

    ``on_result(result, completed, total)`` is called as each job finishes;
    returning False cancels the jobs that have not started yet.
    """
    if not paths:
        return []
    if max_workers is None:
        max_workers = max(1, (os.cpu_count() or 4) - 1)  # Leave one core free for UI
    args_list = [
        {
            "index": i,
            "path": str(p),
            "output_dir": str(output_dir),
            "jpeg_quality": jpeg_quality,
            "ratio": list(ratio),
        }
        for i, p in enumerate(paths)
    ]

    results = []
    with ProcessPoolExecutor(max_workers=max_workers) as executor:
        futures = [executor.submit(export_worker, args) for args in args_list]
        for future in as_completed(futures):
            result = future.result()
            if not result["success"]:
                logger.error("Export failed for %s: %s", result["name"], result["error"])
            results.append(result)
            if on_result is not None and on_result(result, len(results), len(futures)) is False:
                logger.info("Export cancelled after %d/%d", len(results), len(futures))
                executor.shutdown(wait=False, cancel_futures=True)
                break

    ok = sum(1 for r in results if r["success"])
    logger.info("Exported %d/%d derivative(s) to %s", ok, len(results), output_dir)
    return results
