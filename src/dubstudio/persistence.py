"""
Job snapshot and blob storage.
"""

import json
import logging
import os
import re
from pathlib import Path
from typing import Protocol

from .io_ffmpeg import ensure_dir
from .models import JobState

logger = logging.getLogger("dubstudio")

_SAFE_ID_RE = re.compile(r"[^A-Za-z0-9._-]")


class JobRepository(Protocol):
    def save_job(self, snapshot: JobState) -> None: ...

    def load_all_jobs(self) -> list[JobState]: ...

    def delete_job(self, job_id: str) -> None: ...

    def save_blob(self, blob_id: str, data: bytes) -> None: ...

    def load_blob(self, blob_id: str) -> bytes | None: ...


class InMemoryJobRepository:
    def __init__(self) -> None:
        self.jobs: dict[str, JobState] = {}
        self.blobs: dict[str, bytes] = {}
        self.history: list[JobState] = []

    def save_job(self, snapshot: JobState) -> None:
        self.jobs[snapshot.id] = snapshot
        self.history.append(snapshot)

    def load_all_jobs(self) -> list[JobState]:
        return list(self.jobs.values())

    def delete_job(self, job_id: str) -> None:
        self.jobs.pop(job_id, None)
        for key in [k for k in self.blobs if k == job_id or k.startswith(f"{job_id}_")]:
            del self.blobs[key]

    def save_blob(self, blob_id: str, data: bytes) -> None:
        self.blobs[blob_id] = bytes(data)

    def load_blob(self, blob_id: str) -> bytes | None:
        return self.blobs.get(blob_id)


class FileJobRepository:
    """
    One JSON file per job under ``<root>/jobs`` and raw blobs under ``<root>/blobs``.

    Snapshots are written to a temp file and renamed into place.
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)
        self.jobs_dir = self.root / "jobs"
        self.blobs_dir = self.root / "blobs"
        ensure_dir(self.jobs_dir)
        ensure_dir(self.blobs_dir)

    @staticmethod
    def _safe(name: str) -> str:
        return _SAFE_ID_RE.sub("_", name)

    def _job_path(self, job_id: str) -> Path:
        return self.jobs_dir / f"{self._safe(job_id)}.json"

    def _blob_path(self, blob_id: str) -> Path:
        return self.blobs_dir / f"{self._safe(blob_id)}.bin"

    def save_job(self, snapshot: JobState) -> None:
        path = self._job_path(snapshot.id)
        tmp = path.with_suffix(".json.tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(snapshot.to_dict(), f, ensure_ascii=False, indent=2)
        os.replace(tmp, path)

    def load_all_jobs(self) -> list[JobState]:
        jobs: list[JobState] = []
        for path in sorted(self.jobs_dir.glob("*.json")):
            try:
                with open(path, encoding="utf-8") as f:
                    jobs.append(JobState.from_dict(json.load(f)))
            except (OSError, ValueError, KeyError, TypeError) as e:
                logger.warning(f"Skipping unreadable job snapshot {path.name}: {e}")
        return jobs

    def delete_job(self, job_id: str) -> None:
        self._job_path(job_id).unlink(missing_ok=True)
        safe = self._safe(job_id)
        for blob in self.blobs_dir.glob(f"{safe}*.bin"):
            if blob.stem == safe or blob.stem.startswith(f"{safe}_"):
                blob.unlink(missing_ok=True)

    def save_blob(self, blob_id: str, data: bytes) -> None:
        self._blob_path(blob_id).write_bytes(data)

    def load_blob(self, blob_id: str) -> bytes | None:
        path = self._blob_path(blob_id)
        return path.read_bytes() if path.exists() else None
