import contextlib
import logging
import pathlib
import shutil
import time
from collections.abc import Iterator
from uuid import uuid4

from reporter.core.config import settings

logger = logging.getLogger(__name__)


def cleanup_tmp(tmp_dir: str | pathlib.Path | None = None) -> None:
    """Remove files older than cleanup_ttl in the scratch area."""
    root = pathlib.Path(tmp_dir) if tmp_dir is not None else settings.scratch_dir
    for item in root.glob("*"):
        try:
            if time.time() - item.stat().st_mtime > settings.cleanup_ttl:
                logger.info(f"Attempting to remove old item: {item}")
                if item.is_dir():
                    shutil.rmtree(item)
                    logger.info(f"Successfully removed directory: {item}")
                else:
                    item.unlink()
                    logger.info(f"Successfully removed file/symlink: {item}")
        except FileNotFoundError:
            logger.warning(f"Item not found during cleanup (possibly already deleted): {item}")
        except OSError as e:
            logger.error(f"Error removing item {item}: {e}")


@contextlib.contextmanager
def stage_audio(audio_bytes: bytes, request_id: str, suffix: str = ".wav") -> Iterator[pathlib.Path]:
    """Write *audio_bytes* into the scratch area and yield the path.

    The staged file is removed when the block exits, whether or not the
    transcription succeeded.
    """
    scratch = pathlib.Path(settings.scratch_dir)
    scratch.mkdir(parents=True, exist_ok=True)
    staged = scratch / f"audio_{request_id}_{uuid4().hex}{suffix}"
    try:
        staged.write_bytes(audio_bytes)
        logger.debug("[%s] Staged %d audio bytes at %s", request_id, len(audio_bytes), staged)
        yield staged
    finally:
        staged.unlink(missing_ok=True)
        logger.debug("[%s] Removed staged audio %s", request_id, staged)
