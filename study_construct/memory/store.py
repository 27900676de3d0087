"""Weakness Memory Store - durable per-user profiles.

Each user lives in their own JSON file under the memory directory, so adding
a user never rewrites anyone else's record and writers for different users
never contend. Every mutation is read-modify-write against the file and is
persisted with write-new-then-replace before the call returns.
"""

import hashlib
import json
import os
import re
import tempfile
import threading
from datetime import datetime, timedelta
from pathlib import Path

from loguru import logger
from pydantic import ValidationError

from study_construct.config.settings import get_settings
from study_construct.models.memory import QuizResult, WeaknessProfile

_SLUG_RE = re.compile(r"[^A-Za-z0-9_-]+")


def profile_filename(user_id: str) -> str:
    """
    Map a user id to a filesystem-safe, collision-free file name.

    Args:
        user_id: Arbitrary user identity

    Returns:
        File name such as ``alice_3f2a9c1d0b.json``
    """
    slug = _SLUG_RE.sub("-", user_id).strip("-")[:40] or "user"
    digest = hashlib.sha256(user_id.encode("utf-8")).hexdigest()[:10]
    return f"{slug}_{digest}.json"


def atomic_write_json(path: Path, data: dict) -> None:
    """
    Write JSON so readers only ever see the old or the new file.

    The payload goes to a temp file in the same directory, is flushed and
    fsynced, then swapped in with ``os.replace``.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            json.dump(data, handle, indent=2)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise
    fsync_directory(path.parent)


def fsync_directory(directory: Path) -> None:
    """Flush a directory entry so a completed rename survives a crash."""
    if os.name != "posix":
        return
    fd = os.open(directory, os.O_RDONLY)
    try:
        os.fsync(fd)
    finally:
        os.close(fd)


def quarantine_file(path: Path) -> Path:
    """
    Move an unreadable profile out of the way without deleting it.

    Returns:
        Where the damaged file now lives
    """
    backup = path.with_suffix(f".corrupt-{datetime.now():%Y%m%d%H%M%S%f}")
    os.replace(path, backup)
    fsync_directory(path.parent)
    return backup


class WeaknessMemoryStore:
    """Read and update WeaknessProfiles on disk."""

    def __init__(self, base_dir: Path | str | None = None) -> None:
        self.base_dir = Path(base_dir) if base_dir else get_settings().memory_dir
        self._locks: dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _path_for(self, user_id: str) -> Path:
        return self.base_dir / profile_filename(user_id)

    def _lock_for(self, user_id: str) -> threading.Lock:
        with self._registry_lock:
            if user_id not in self._locks:
                self._locks[user_id] = threading.Lock()
            return self._locks[user_id]

    def _load(self, user_id: str, for_update: bool = False) -> WeaknessProfile:
        """
        Read a profile from disk.

        An unreadable file reads as a fresh profile. When the profile is about
        to be rewritten, the damaged file is first moved aside so its history
        can still be recovered by hand.
        """
        path = self._path_for(user_id)
        if not path.exists():
            return WeaknessProfile(user_id=user_id)

        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            data["user_id"] = user_id
            return WeaknessProfile.model_validate(data)
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            if not for_update:
                logger.warning(f"Unreadable profile for {user_id!r} at {path}: {e}")
                return WeaknessProfile(user_id=user_id)
            backup = quarantine_file(path)
            logger.warning(
                f"Unreadable profile for {user_id!r} moved to {backup}, starting fresh: {e}"
            )
            return WeaknessProfile(user_id=user_id)

    def _load_for_update(self, user_id: str) -> WeaknessProfile:
        if not user_id.strip():
            raise ValueError("user_id must not be empty")
        return self._load(user_id, for_update=True)

    def _save(self, profile: WeaknessProfile) -> None:
        atomic_write_json(
            self._path_for(profile.user_id), profile.model_dump(mode="json")
        )

    def get_profile(self, user_id: str) -> WeaknessProfile:
        """
        Get a user's profile, or a zero-value profile for an unknown user.

        Never raises for unknown, empty or unreadable ids and never writes.
        """
        if not user_id.strip():
            return WeaknessProfile(user_id=user_id)
        return self._load(user_id)

    def record_topic_studied(self, user_id: str, topic: str) -> WeaknessProfile:
        """Add a topic (set semantics) and refresh the session timestamp."""
        with self._lock_for(user_id):
            profile = self._load_for_update(user_id)
            topics = list(profile.topics_studied)
            if topic.strip() and topic.strip() not in topics:
                topics.append(topic.strip())
            profile = profile.model_copy(
                update={"topics_studied": topics, "last_session_at": datetime.now()}
            )
            self._save(profile)
        logger.debug(f"Recorded topic {topic!r} for {user_id!r}")
        return profile

    def record_quiz_result(self, user_id: str, result: QuizResult) -> list[QuizResult]:
        """
        Append a quiz result.

        Timestamps within one history are strictly increasing, so two results
        recorded back to back never share a timestamp.

        Returns:
            The full updated quiz history
        """
        with self._lock_for(user_id):
            profile = self._load_for_update(user_id)
            history = list(profile.quiz_history)
            completed_at = result.completed_at
            if history and completed_at <= history[-1].completed_at:
                completed_at = history[-1].completed_at + timedelta(microseconds=1)
            history.append(result.model_copy(update={"completed_at": completed_at}))
            profile = profile.model_copy(
                update={"quiz_history": history, "last_session_at": datetime.now()}
            )
            self._save(profile)
        logger.debug(f"Recorded quiz result {result.score}/{result.total} for {user_id!r}")
        return history

    def update_weaknesses(self, user_id: str, new_weaknesses: list[str]) -> WeaknessProfile:
        """Union new weaknesses into the profile; existing ones are never removed."""
        with self._lock_for(user_id):
            profile = self._load_for_update(user_id)
            weaknesses = list(profile.weaknesses)
            for weakness in new_weaknesses:
                weakness = weakness.strip()
                if weakness and weakness not in weaknesses:
                    weaknesses.append(weakness)
            profile = profile.model_copy(
                update={"weaknesses": weaknesses, "last_session_at": datetime.now()}
            )
            self._save(profile)
        return profile
