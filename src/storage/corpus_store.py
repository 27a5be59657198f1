# src/storage/corpus_store.py - v1
"""Local filesystem persistence of the corpus between runs.

Layout under the corpus directory:
    corpus-state.json      validated Corpus snapshot
    synthesis.lock         PID of the single writer
    .tmp-corpus-*          in-flight writes (renamed into place)

A corrupt or invalid state file is reported and treated as "no corpus" so
the next run starts fresh instead of crashing.
"""

from __future__ import annotations

import contextlib
import errno
import json
import logging
import os
import uuid
from pathlib import Path
from typing import Iterator

from pydantic import ValidationError

from distiller.core.models import Corpus

logger = logging.getLogger(__name__)

STATE_FILE = "corpus-state.json"
LOCK_FILE = "synthesis.lock"
TEMP_PREFIX = ".tmp-corpus-"


class CorpusLockedError(RuntimeError):
    """Another live process holds the synthesis lock."""


def _process_alive(pid: int) -> bool:
    """Signal 0 probes for existence without delivering anything."""
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


class CorpusStore:
    """Load, save and lock the persisted corpus in one directory."""

    def __init__(self, base_dir: str | Path) -> None:
        self._dir = Path(base_dir).expanduser()

    @property
    def state_path(self) -> Path:
        return self._dir / STATE_FILE

    @property
    def lock_path(self) -> Path:
        return self._dir / LOCK_FILE

    def load(self) -> Corpus | None:
        """Load the corpus, or None when absent, unreadable or invalid."""
        path = self.state_path
        if not path.exists():
            return None
        try:
            return Corpus.model_validate_json(path.read_text(encoding="utf-8"))
        except ValidationError as e:
            logger.warning(
                "Corpus state validation failed, starting fresh: %s (%d errors)",
                path, e.error_count(),
            )
            return None
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Failed to read corpus state %s: %s", path, e)
            return None

    def save(self, corpus: Corpus) -> Path:
        """Write the corpus atomically (temp file + rename)."""
        self._dir.mkdir(parents=True, exist_ok=True)
        temp_path = self._dir / f"{TEMP_PREFIX}{uuid.uuid4().hex}"
        payload = json.dumps(corpus.model_dump(mode="json"), indent=2, ensure_ascii=False)
        try:
            temp_path.write_text(payload, encoding="utf-8")
            os.replace(temp_path, self.state_path)
        except OSError:
            temp_path.unlink(missing_ok=True)
            raise
        logger.debug("Corpus saved: %s (cycle %d)", self.state_path, corpus.cycle_count)
        return self.state_path

    def cleanup_temp_files(self) -> int:
        """Remove temp files left behind by crashed writes."""
        if not self._dir.is_dir():
            return 0
        removed = 0
        for path in self._dir.glob(f"{TEMP_PREFIX}*"):
            try:
                path.unlink()
                removed += 1
            except OSError as e:
                logger.debug("Could not remove temp file %s: %s", path, e)
        return removed

    @contextlib.contextmanager
    def lock(self) -> Iterator[Path]:
        """Hold the single-writer lock for the duration of the block.

        A lock left by a dead process is removed and taken over.

        Raises:
            CorpusLockedError: If a live process holds the lock.
        """
        self._dir.mkdir(parents=True, exist_ok=True)
        self.cleanup_temp_files()
        self._acquire()
        try:
            yield self.lock_path
        finally:
            try:
                self.lock_path.unlink(missing_ok=True)
            except OSError as e:
                logger.warning("Failed to release lock %s: %s", self.lock_path, e)

    def _acquire(self, retry_stale: bool = True) -> None:
        try:
            fd = os.open(self.lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            holder = self._lock_holder()
            if retry_stale and (holder is None or not _process_alive(holder)):
                logger.warning("Removing stale synthesis lock (pid %s)", holder)
                self.lock_path.unlink(missing_ok=True)
                self._acquire(retry_stale=False)
                return
            raise CorpusLockedError(
                f"Synthesis already in progress (pid {holder}). "
                f"Remove {self.lock_path} if stale."
            ) from None
        except OSError as e:
            if e.errno == errno.EEXIST:
                raise CorpusLockedError(f"Lock exists: {self.lock_path}") from e
            raise
        with os.fdopen(fd, "w") as f:
            f.write(str(os.getpid()))
        logger.debug("Acquired synthesis lock %s", self.lock_path)

    def _lock_holder(self) -> int | None:
        try:
            return int(self.lock_path.read_text(encoding="utf-8").strip())
        except (OSError, ValueError):
            return None
