"""Path helpers shared by the session store and the hook adapters.

file_lock + atomic_write give the session store its cross-process update
guarantee: an exclusive flock on a sidecar lock file serializes
read-modify-write cycles, and tmp file + os.replace means readers only ever
see a complete record.
"""

import fcntl
import os
import posixpath
import tempfile
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import Optional, Union


def lock_path_for(filepath: Path) -> Path:
    """Sidecar that file_lock() flocks for filepath. Never deleted."""
    return Path(str(filepath) + ".lock")


@contextmanager
def file_lock(filepath: Path):
    """Hold an exclusive flock on filepath's .lock sidecar.

    The sidecar outlives the record it guards; deleting it while a waiter
    holds it open would hand the next writer a different inode.
    """
    lock_path = lock_path_for(filepath)
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    with open(lock_path, "w") as lock_fd:
        fcntl.flock(lock_fd, fcntl.LOCK_EX)
        try:
            yield
        finally:
            fcntl.flock(lock_fd, fcntl.LOCK_UN)


@contextmanager
def atomic_write(filepath: Path, mode: str = "w", lock: bool = True):
    """Write to a file atomically using tmp + os.replace pattern.

    With lock=True an exclusive file lock is held for the duration of the
    write. Pass lock=False when the caller already holds file_lock() for
    the same path; flock is per open file description, so taking it twice
    from one process would deadlock.
    """
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)

    if lock:
        with file_lock(filepath):
            with _replace_via_tmp(filepath, mode) as f:
                yield f
    else:
        with _replace_via_tmp(filepath, mode) as f:
            yield f


@contextmanager
def _replace_via_tmp(filepath: Path, mode: str):
    fd, tmp_path = tempfile.mkstemp(
        dir=filepath.parent,
        prefix=f".{filepath.name}.",
        suffix=".tmp",
    )
    try:
        with os.fdopen(fd, mode) as f:
            yield f
        os.replace(tmp_path, filepath)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


def parse_timestamp(value: Union[str, int, float]) -> datetime:
    """Session record timestamp -> aware UTC datetime.

    Accepts ISO 8601 text (a trailing Z is allowed, naive means UTC) or
    Unix seconds. Raises ValueError for anything else.
    """
    if isinstance(value, bool):
        raise ValueError(f"not a timestamp: {value!r}")
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError) as e:
            raise ValueError(f"timestamp out of range: {value!r}") from e
    if not isinstance(value, str):
        raise ValueError(f"not a timestamp: {value!r}")
    dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def relative_to_project(file_path: str, project_dir: Optional[Path]) -> str:
    """Express file_path relative to project_dir with POSIX separators.

    Paths outside the project (or any path when project_dir is None) keep
    their own form, normalized so that "./a/../b.sql" reads "b.sql". Globs
    are anchored to this form.
    """
    if not file_path:
        return file_path

    path = Path(file_path)
    if project_dir is not None and path.is_absolute():
        try:
            rel = path.relative_to(project_dir)
        except ValueError:
            try:
                rel = path.resolve().relative_to(Path(project_dir).resolve())
            except (ValueError, OSError):
                rel = None
        if rel is not None:
            file_path = PurePosixPath(*rel.parts).as_posix()

    if os.sep != "/":
        file_path = file_path.replace(os.sep, "/")
    return posixpath.normpath(file_path)
