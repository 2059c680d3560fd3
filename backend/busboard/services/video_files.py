"""Output artifact paths and temp directory housekeeping."""

import logging
import shutil
from pathlib import Path

logger = logging.getLogger(__name__)

TEMP_DIR_PREFIX = "scenario_"


def output_path_for(videos_dir: str | Path, scenario_id: str, extension: str = "mp4") -> Path:
    """Deterministic artifact path for a scenario."""
    return Path(videos_dir) / f"scenario_{scenario_id}.{extension}"


def video_exists(path: str | Path) -> bool:
    """True only for a present, non-empty file."""
    path = Path(path)
    try:
        return path.is_file() and path.stat().st_size > 0
    except OSError:
        return False


def delete_video(path: str | Path) -> bool:
    path = Path(path)
    try:
        path.unlink()
    except FileNotFoundError:
        return False
    logger.info(f"[CLEANUP] Deleted video {path}")
    return True


def cleanup_stale_temp_dirs(temp_root: str | Path, prefix: str = TEMP_DIR_PREFIX) -> int:
    """Remove job temp directories left behind by a previous process.

    Only safe at startup, before the worker has picked up any job.
    """
    temp_root = Path(temp_root)
    if not temp_root.is_dir():
        return 0

    removed = 0
    for entry in temp_root.iterdir():
        if not (entry.is_dir() and entry.name.startswith(prefix)):
            continue
        try:
            shutil.rmtree(entry)
            removed += 1
        except OSError as e:
            logger.error(f"[CLEANUP] Could not remove stale temp dir {entry}: {e}")

    if removed:
        logger.info(f"[CLEANUP] Removed {removed} stale temp directories from {temp_root}")
    return removed
