"""Session State Store - which guardrails a session has already satisfied.

Every hook invocation is a fresh process, so session memory lives on disk:
one JSON record per session id in the state directory.

    <state_dir>/skills-used-<session key>.json
    {"session_id": "...", "used_skills": ["db-verify"], "updated_at": "..."}

Updates are read-modify-write under an exclusive flock on the record's
.lock sidecar, and the new record replaces the old one with os.replace.
Records for different sessions never share a lock.

Unreadable records degrade to an empty session. Losing memoization only
costs a repeated (remediable) block, never a missed one.
"""

import hashlib
import json
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

from .errors import StateError
from .path_utils import atomic_write, file_lock, parse_timestamp

logger = logging.getLogger(__name__)

RECORD_PREFIX = "skills-used-"
RECORD_SUFFIX = ".json"

_SAFE_SESSION_ID = re.compile(r"^[A-Za-z0-9_.-]{1,128}$")


@dataclass(frozen=True)
class SessionState:
    """Guardrails satisfied so far in one session."""
    session_id: str
    used_skills: frozenset = field(default_factory=frozenset)
    updated_at: Optional[datetime] = None

    def has_used(self, rule_name: str) -> bool:
        return rule_name in self.used_skills

    def to_record(self) -> dict:
        return {
            "session_id": self.session_id,
            "used_skills": sorted(self.used_skills),
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


def session_key(session_id: str) -> str:
    """Filename-safe key for a session id."""
    if _SAFE_SESSION_ID.match(session_id) and session_id not in {".", ".."}:
        return session_id
    return hashlib.sha256(session_id.encode("utf-8")).hexdigest()


def _state_from_record(data: object, session_id: str) -> SessionState:
    if not isinstance(data, dict):
        raise StateError("session record is not an object")
    used = data.get("used_skills", [])
    if not isinstance(used, list) or not all(isinstance(s, str) for s in used):
        raise StateError("session record 'used_skills' is not a list of names")
    stored_id = data.get("session_id", session_id)
    if stored_id != session_id:
        raise StateError(f"session record belongs to {stored_id!r}")
    updated_at = data.get("updated_at")
    try:
        updated = parse_timestamp(updated_at) if updated_at else None
    except ValueError:
        logger.warning("Ignoring bad updated_at %r for session %s", updated_at, session_id)
        updated = None
    return SessionState(
        session_id=session_id,
        used_skills=frozenset(used),
        updated_at=updated,
    )


class SessionStore:
    """File-backed store, one record per session id."""

    def __init__(self, state_dir: Path):
        self.state_dir = Path(state_dir)

    def record_path(self, session_id: str) -> Path:
        return self.state_dir / f"{RECORD_PREFIX}{session_key(session_id)}{RECORD_SUFFIX}"

    def _read(self, session_id: str) -> SessionState:
        """Read a record. Raises StateError if it exists but is unusable."""
        path = self.record_path(session_id)
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return SessionState(session_id=session_id)
        except OSError as e:
            raise StateError(f"cannot read {path}: {e}") from e
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise StateError(f"corrupt session record {path}: {e}") from e
        return _state_from_record(data, session_id)

    def _read_or_empty(self, session_id: str) -> SessionState:
        try:
            return self._read(session_id)
        except StateError as e:
            logger.warning("Treating session %s as empty: %s", session_id, e)
            return SessionState(session_id=session_id)

    def get(self, session_id: str) -> SessionState:
        """Current state for session_id. Never raises."""
        return self._read_or_empty(session_id)

    def has_used(self, session_id: str, rule_name: str) -> bool:
        return self.get(session_id).has_used(rule_name)

    def mark_used(self, session_id: str, rule_name: str) -> SessionState:
        """Record that rule_name's guardrail fired in session_id. Idempotent.

        A failed write is logged, not raised: the caller has already decided
        to block, and the cost of losing the mark is one more block later.
        """
        path = self.record_path(session_id)
        current = SessionState(session_id=session_id)
        try:
            with file_lock(path):
                current = self._read_or_empty(session_id)
                if current.has_used(rule_name):
                    return current
                updated = SessionState(
                    session_id=session_id,
                    used_skills=current.used_skills | {rule_name},
                    updated_at=datetime.now(timezone.utc),
                )
                with atomic_write(path, lock=False) as f:
                    json.dump(updated.to_record(), f, indent=2)
                return updated
        except OSError as e:
            logger.warning(
                "Could not persist session %s (rule %s): %s", session_id, rule_name, e,
            )
            return current

    def clear(self, session_id: str) -> bool:
        """Forget a session. Returns True if a record was removed."""
        path = self.record_path(session_id)
        if not path.exists():
            return False
        with file_lock(path):
            try:
                path.unlink()
            except FileNotFoundError:
                return False
        return True

    def _record_files(self) -> list[Path]:
        if not self.state_dir.is_dir():
            return []
        return sorted(self.state_dir.glob(f"{RECORD_PREFIX}*{RECORD_SUFFIX}"))

    def sessions(self) -> list[SessionState]:
        """All readable session records, oldest first. Corrupt ones are skipped."""
        states = []
        for path in self._record_files():
            try:
                data = json.loads(path.read_text(encoding="utf-8"))
                session_id = data.get("session_id") if isinstance(data, dict) else None
                if not isinstance(session_id, str):
                    raise StateError("record has no session_id")
                states.append(_state_from_record(data, session_id))
            except (OSError, json.JSONDecodeError, StateError) as e:
                logger.warning("Skipping unreadable session record %s: %s", path.name, e)
        epoch = datetime.min.replace(tzinfo=timezone.utc)
        return sorted(states, key=lambda s: s.updated_at or epoch)

    @staticmethod
    def _last_updated(path: Path) -> Optional[datetime]:
        """Record's updated_at, else its mtime. None if the file is gone."""
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            updated = data.get("updated_at") if isinstance(data, dict) else None
            if not updated:
                raise ValueError("no updated_at")
            return parse_timestamp(updated)
        except FileNotFoundError:
            return None
        except (OSError, ValueError):
            try:
                return datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)
            except FileNotFoundError:
                return None

    def prune(self, max_age: timedelta, now: Optional[datetime] = None) -> list[str]:
        """Delete records not updated within max_age.

        Each stale record is re-checked and removed under its lock, so a
        concurrent mark_used is never lost. Lock sidecars are kept: another
        process may be waiting on one. Returns the removed record filenames.
        """
        now = now or datetime.now(timezone.utc)
        cutoff = now - max_age
        removed = []
        for path in self._record_files():
            last = self._last_updated(path)
            if last is None or last >= cutoff:
                continue
            with file_lock(path):
                last = self._last_updated(path)
                if last is None or last >= cutoff:
                    continue
                path.unlink()
            removed.append(path.name)
        if removed:
            logger.info("Pruned %d session records older than %s", len(removed), max_age)
        return removed


class MemorySessionStore:
    """In-process store with the SessionStore interface, for dry runs."""

    def __init__(self):
        self._used: dict[str, set[str]] = {}

    def get(self, session_id: str) -> SessionState:
        return SessionState(
            session_id=session_id,
            used_skills=frozenset(self._used.get(session_id, ())),
        )

    def has_used(self, session_id: str, rule_name: str) -> bool:
        return rule_name in self._used.get(session_id, set())

    def mark_used(self, session_id: str, rule_name: str) -> SessionState:
        self._used.setdefault(session_id, set()).add(rule_name)
        return self.get(session_id)
