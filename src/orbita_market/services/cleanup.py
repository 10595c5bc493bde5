# src/orbita_market/services/cleanup.py
"""
Compensating cleanup for the install, update and publish pipelines.

Removal here is advisory: failures are logged at WARNING and never
replace the error that triggered the cleanup.
"""

import logging
import shutil
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator, Optional, Union

logger = logging.getLogger(__name__)


def remove_tree_best_effort(path: Union[str, Path]) -> None:
    """Recursively remove `path`, logging (not raising) on failure."""
    target = Path(path)
    if not target.exists():
        return
    try:
        shutil.rmtree(target)
        logger.debug(f"Removed {target}")
    except OSError as e:
        logger.warning(f"Cleanup failed for {target}: {e}")


def remove_file_best_effort(path: Union[str, Path]) -> None:
    target = Path(path)
    try:
        target.unlink(missing_ok=True)
    except OSError as e:
        logger.warning(f"Failed to remove {target}: {e}")


@contextmanager
def discard_on_failure(
    path: Union[str, Path], keep: Optional[Callable[[], bool]] = None
) -> Iterator[Path]:
    """
    Remove the directory tree at `path` if the managed block raises.

    `keep` is asked at failure time whether the tree must survive anyway,
    e.g. because another installation now references it. If `keep` itself
    fails the tree is kept. The original exception always propagates
    unchanged.
    """
    target = Path(path)
    try:
        yield target
    except BaseException:
        if _should_keep(keep, target):
            logger.info(f"Not rolling back {target}: still in use")
        else:
            logger.info(f"Rolling back {target}")
            remove_tree_best_effort(target)
        raise


def _should_keep(keep: Optional[Callable[[], bool]], target: Path) -> bool:
    if keep is None:
        return False
    try:
        return keep()
    except Exception as e:
        logger.warning(f"Could not decide whether {target} is in use, keeping it: {e}")
        return True
