"""
Flat-file Audio Storage.

Every completed session is persisted exactly once as

    {audio_dir}/audio_<unix_ms>.<ext>

Features:
    - Unique names per process: if the millisecond name is already taken
      on disk or reserved by a concurrent save, the timestamp is bumped
    - Atomic writes: bytes go to a hidden temp file that is renamed into
      place, so a reader never sees a partial file
    - Writes run in a worker thread (asyncio.to_thread), never on the loop
    - Optional TTL cleanup of old files in a background thread

Usage:
    store = AudioStore("./audio_files")
    stored = await store.save(audio_bytes, "mp3", final_text="Hello")
    data = await store.load(stored.path)
"""
from __future__ import annotations

import asyncio
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Set

from tts_relay.core.config import Defaults, StorageConfig
from tts_relay.core.logging import get_logger, info, verbose, warn
from tts_relay.services.errors import AudioNotFoundError, StorageWriteError
from tts_relay.utils.timeit import timeit

_LOG = get_logger("tts-relay.storage")


@dataclass(frozen=True)
class StoredAudioFile:
    path: str
    byte_length: int
    final_text: str = ""


class AudioStore:
    """
    Writes finished session audio to a flat directory.

    Thread-safe: name reservation is guarded by a lock, so sessions on
    the event loop and the CLI can share one store.
    """

    def __init__(
        self,
        audio_dir: str,
        file_prefix: str = Defaults.STORAGE_FILE_PREFIX,
        ttl_seconds: int = Defaults.STORAGE_TTL_SECONDS,
        cleanup_interval_s: int = Defaults.STORAGE_CLEANUP_INTERVAL_S,
    ):
        self._dir = Path(audio_dir).resolve()
        self._prefix = file_prefix
        self._ttl_seconds = ttl_seconds
        self._cleanup_interval = cleanup_interval_s

        self._lock = threading.Lock()
        self._reserved: Set[str] = set()

        self._cleanup_lock = threading.Lock()
        self._cleanup_running = False
        self._last_cleanup = 0.0

    @classmethod
    def from_config(cls, config: StorageConfig) -> "AudioStore":
        return cls(
            audio_dir=config.audio_dir,
            file_prefix=config.file_prefix,
            ttl_seconds=config.ttl_seconds,
            cleanup_interval_s=config.cleanup_interval_s,
        )

    @property
    def audio_dir(self) -> Path:
        return self._dir

    def _reserve_path(self, extension: str) -> Path:
        ms = int(time.time() * 1000)
        with self._lock:
            while True:
                name = f"{self._prefix}{ms}.{extension}"
                if name not in self._reserved and not (self._dir / name).exists():
                    self._reserved.add(name)
                    return self._dir / name
                ms += 1

    def _release(self, path: Path) -> None:
        with self._lock:
            self._reserved.discard(path.name)

    def _write(self, path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_name(f".{path.name}.tmp")
        try:
            tmp.write_bytes(data)
            tmp.replace(path)
        except OSError:
            tmp.unlink(missing_ok=True)
            raise

    async def save(self, data: bytes, extension: str, final_text: str = "") -> StoredAudioFile:
        """
        Persist `data` under a fresh unique name.

        Raises:
            StorageWriteError: If the directory or file cannot be written.
        """
        extension = extension.lstrip(".") or "bin"
        path = self._reserve_path(extension)
        try:
            with timeit("storage_write") as t:
                await asyncio.to_thread(self._write, path, data)
        except OSError as exc:
            warn(_LOG, "storage_write_error", path=str(path), error=str(exc))
            raise StorageWriteError(details={"path": str(path), "error": str(exc)}) from exc
        finally:
            self._release(path)

        info(_LOG, "saved", path=path.name, bytes=len(data), seconds=round(t.timing.seconds, 4))
        self.maybe_cleanup()
        return StoredAudioFile(path=str(path), byte_length=len(data), final_text=final_text)

    async def load(self, path: str) -> bytes:
        """Read a stored file back."""
        return await asyncio.to_thread(Path(path).read_bytes)

    def locate(self, filename: str) -> Path:
        """
        Path of a stored file, given its bare name.

        Only names carrying the file prefix that resolve to a file directly
        inside the audio directory are accepted.

        Raises:
            AudioNotFoundError: Unknown, foreign or path-like name.
        """
        if (
            not filename.startswith(self._prefix)
            or Path(filename).name != filename
            or "\\" in filename
        ):
            raise AudioNotFoundError(details={"filename": filename, "reason": "rejected name"})
        path = (self._dir / filename).resolve()
        if path.parent != self._dir or not path.is_file():
            raise AudioNotFoundError(details={"filename": filename, "reason": "missing"})
        return path

    def _audio_files(self):
        if not self._dir.exists():
            return []
        return [p for p in self._dir.glob(f"{self._prefix}*") if p.is_file()]

    def storage_info(self) -> Dict[str, Any]:
        """
        Current usage of the audio directory.

        Returns:
            Dict with audio_dir, file_count, total_bytes, ttl_seconds
        """
        file_count = 0
        total_bytes = 0
        for audio_file in self._audio_files():
            try:
                total_bytes += audio_file.stat().st_size
                file_count += 1
            except OSError:
                continue  # removed between listing and stat
        return {
            "audio_dir": str(self._dir),
            "file_count": file_count,
            "total_bytes": total_bytes,
            "ttl_seconds": self._ttl_seconds,
        }

    def maybe_cleanup(self) -> None:
        """
        Start a background cleanup if a TTL is set and the interval elapsed.

        Non-blocking; at most one cleanup runs at a time.
        """
        if self._ttl_seconds <= 0:
            return
        now = time.time()
        with self._cleanup_lock:
            if self._cleanup_running or now - self._last_cleanup < self._cleanup_interval:
                return
            self._cleanup_running = True
            self._last_cleanup = now

        threading.Thread(target=self._do_cleanup, daemon=True, name="audio-ttl-cleanup").start()

    def force_cleanup(self) -> Dict[str, int]:
        """Remove expired files now (blocking)."""
        with self._cleanup_lock:
            self._cleanup_running = True
        return self._do_cleanup()

    def _do_cleanup(self) -> Dict[str, int]:
        try:
            if self._ttl_seconds <= 0:
                return {"files_removed": 0, "bytes_freed": 0}

            cutoff = time.time() - self._ttl_seconds
            files_removed = 0
            bytes_freed = 0
            for audio_file in self._audio_files():
                try:
                    st = audio_file.stat()
                    if st.st_mtime < cutoff:
                        audio_file.unlink()
                        files_removed += 1
                        bytes_freed += st.st_size
                except OSError as e:
                    verbose(_LOG, "cleanup_file_error", file=audio_file.name, error=str(e))

            if files_removed:
                info(_LOG, "storage_cleanup", files_removed=files_removed, bytes_freed=bytes_freed)
            return {"files_removed": files_removed, "bytes_freed": bytes_freed}
        finally:
            with self._cleanup_lock:
                self._cleanup_running = False
