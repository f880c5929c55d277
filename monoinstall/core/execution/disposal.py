"""
Asynchronous directory disposal.

Deleting a large installed folder is slow.  ``AsyncDisposer.dispose()``
first renames the directory into a recycler folder on the same volume, so
the original path is free as soon as the call returns, then deletes the
renamed copy on a daemon thread.  The returned ``DisposalHandle`` lets
callers that need the space back wait for completion; pure cleanup
callers may ignore it.

Entries left in the recycler by an interrupted run are swept (deleted in
the background too) the first time a disposer is used.
"""

from __future__ import annotations

import logging
import os
import shutil
import threading
import time
from pathlib import Path

logger = logging.getLogger(__name__)


class DisposalHandle:
    """Completion handle for one disposal."""

    def __init__(self, source: Path, target: Path, thread: threading.Thread | None = None):
        self.source = source
        self.target = target
        self._thread = thread
        self.error: BaseException | None = None

    @property
    def done(self) -> bool:
        return self._thread is None or not self._thread.is_alive()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the deletion finishes. Returns True when done."""
        if self._thread is not None:
            self._thread.join(timeout)
        return self.done


class AsyncDisposer:
    """Disposes of directories under one recycler folder."""

    def __init__(self, recycler_folder: Path):
        self.recycler_folder = recycler_folder
        self._handles: list[DisposalHandle] = []
        self._swept = False

    @property
    def pending(self) -> list[DisposalHandle]:
        return [h for h in self._handles if not h.done]

    def dispose(self, path: Path) -> DisposalHandle:
        """Move ``path`` out of the way now and delete it in the background."""
        self.sweep()
        self.recycler_folder.mkdir(parents=True, exist_ok=True)
        target = self.recycler_folder / f"{path.name}-{os.getpid()}-{time.monotonic_ns()}"

        try:
            path.rename(target)
        except OSError as e:
            # Different volume or locked entry: fall back to deleting in place.
            logger.debug("Cannot move %s to recycler (%s), deleting synchronously", path, e)
            handle = DisposalHandle(path, path)
            try:
                _remove(path)
            except OSError as err:
                handle.error = err
                logger.warning("Failed to delete %s: %s", path, err)
            self._handles.append(handle)
            return handle

        logger.debug("Disposing of %s via %s", path, target)
        return self._start(DisposalHandle(path, target))

    def sweep(self) -> list[DisposalHandle]:
        """Delete whatever an earlier run left in the recycler folder.

        Only runs once per disposer; later calls return an empty list.
        """
        if self._swept:
            return []
        self._swept = True
        if not self.recycler_folder.is_dir():
            return []

        own = {h.target for h in self._handles}
        leftovers = sorted(p for p in self.recycler_folder.iterdir() if p not in own)
        if leftovers:
            logger.info("Sweeping %d leftover entries from %s", len(leftovers), self.recycler_folder)
        return [self._start(DisposalHandle(p, p)) for p in leftovers]

    def wait_all(self, timeout: float | None = None) -> bool:
        """Wait for every disposal started by this disposer."""
        return all(h.wait(timeout) for h in self._handles)

    def _start(self, handle: DisposalHandle) -> DisposalHandle:
        thread = threading.Thread(
            target=self._delete,
            args=(handle,),
            daemon=True,
            name=f"dispose-{handle.source.name}",
        )
        handle._thread = thread
        thread.start()
        self._handles.append(handle)
        return handle

    @staticmethod
    def _delete(handle: DisposalHandle) -> None:
        try:
            _remove(handle.target)
        except OSError as e:
            handle.error = e
            logger.warning("Failed to delete %s: %s", handle.target, e)


def _remove(path: Path) -> None:
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    elif path.exists() or path.is_symlink():
        path.unlink()
