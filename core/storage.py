"""Artifact storage: load a project's files at request start, store them at the end.

Stores carry a version number per project. Passing `expected_version` to
store() makes the write conditional, so two overlapping amends to the same
project cannot silently overwrite each other.
"""

import json
import logging
import os
import re
import threading
from dataclasses import dataclass, field

from config.defaults import DEFAULTS
from utils.folder_naming import check_containment

logger = logging.getLogger(__name__)

METADATA_FILE = ".siteforge.json"
_PROJECT_ID_RE = re.compile(r"^[a-z0-9][a-z0-9_-]{0,99}$")


class VersionConflict(Exception):
    """The stored project moved on since it was loaded."""

    def __init__(self, project_id, expected, actual):
        super().__init__(
            f"Project {project_id!r} is at version {actual}, expected {expected}; "
            "another build finished first"
        )
        self.project_id = project_id
        self.expected = expected
        self.actual = actual


@dataclass
class StoredProject:
    project_id: str
    files: dict[str, str] = field(default_factory=dict)
    version: int = 0

    @property
    def exists(self) -> bool:
        return self.version > 0


def check_project_id(project_id):
    if not _PROJECT_ID_RE.match(project_id or ""):
        raise ValueError(f"Invalid project id: {project_id!r}")
    return project_id


class ArtifactStore:
    """Interface for the storage collaborator."""

    def load(self, project_id) -> StoredProject:
        raise NotImplementedError

    def store(self, project_id, files, expected_version=None) -> int:
        """Replace the project's files; return the new version."""
        raise NotImplementedError

    def project_ids(self) -> list[str]:
        raise NotImplementedError

    def _check_version(self, project_id, current, expected_version):
        if expected_version is not None and expected_version != current:
            logger.warning("Version conflict on %s: expected %s, found %s",
                           project_id, expected_version, current)
            raise VersionConflict(project_id, expected_version, current)


class InMemoryStore(ArtifactStore):
    def __init__(self):
        self._projects = {}
        self._lock = threading.Lock()

    def load(self, project_id) -> StoredProject:
        check_project_id(project_id)
        with self._lock:
            files, version = self._projects.get(project_id, ({}, 0))
            return StoredProject(project_id, dict(files), version)

    def store(self, project_id, files, expected_version=None) -> int:
        check_project_id(project_id)
        with self._lock:
            _, current = self._projects.get(project_id, ({}, 0))
            self._check_version(project_id, current, expected_version)
            self._projects[project_id] = (dict(files), current + 1)
            return current + 1

    def project_ids(self) -> list[str]:
        with self._lock:
            return sorted(self._projects)


class FileSystemStore(ArtifactStore):
    """One directory per project under `root`, plus a small metadata file."""

    def __init__(self, root=None):
        self.root = os.path.abspath(root or DEFAULTS["store_dir"])
        self._lock = threading.Lock()

    def _project_dir(self, project_id):
        return os.path.join(self.root, check_project_id(project_id))

    def _read_metadata(self, project_dir):
        path = os.path.join(project_dir, METADATA_FILE)
        if not os.path.exists(path):
            return {"version": 0, "files": []}
        with open(path) as f:
            return json.load(f)

    def load(self, project_id) -> StoredProject:
        project_dir = self._project_dir(project_id)
        with self._lock:
            meta = self._read_metadata(project_dir)
            files = {}
            for rel_path in meta.get("files", []):
                full_path = check_containment(project_dir, rel_path)
                if os.path.exists(full_path):
                    with open(full_path) as f:
                        files[rel_path] = f.read()
            return StoredProject(project_id, files, meta.get("version", 0))

    def store(self, project_id, files, expected_version=None) -> int:
        project_dir = self._project_dir(project_id)
        # Resolve every path before touching disk
        resolved = {path: check_containment(project_dir, path) for path in files}
        metadata_path = os.path.join(os.path.realpath(project_dir), METADATA_FILE)
        for path, full_path in resolved.items():
            if full_path == metadata_path:
                raise ValueError(f"Reserved file name: {path}")
        with self._lock:
            meta = self._read_metadata(project_dir)
            current = meta.get("version", 0)
            self._check_version(project_id, current, expected_version)

            os.makedirs(project_dir, exist_ok=True)
            for path, full_path in resolved.items():
                os.makedirs(os.path.dirname(full_path), exist_ok=True)
                with open(full_path, "w") as f:
                    f.write(files[path])

            for stale in set(meta.get("files", [])) - set(files):
                stale_path = check_containment(project_dir, stale)
                if os.path.exists(stale_path):
                    os.remove(stale_path)

            version = current + 1
            with open(os.path.join(project_dir, METADATA_FILE), "w") as f:
                json.dump({"version": version, "files": sorted(files)}, f, indent=2)

        logger.info("Stored %d file(s) for %s at version %d", len(files), project_id, version)
        return version

    def project_ids(self) -> list[str]:
        if not os.path.isdir(self.root):
            return []
        return sorted(
            name for name in os.listdir(self.root)
            if os.path.exists(os.path.join(self.root, name, METADATA_FILE))
        )
