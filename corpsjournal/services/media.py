"""
Media store: permanent copies of images and audio notes.

A media file has no record of its own. Its path, embedded in an entry's
`images` / `audioNotes[].uri`, is its only identity. Lifecycle follows the
entries: files are copied in when attached, deleted with their entry, and
swept when no entry references them any more.

The store never reads entry records. Callers hand it a single path (delete)
or the set of referenced paths (sweep).
"""
from __future__ import annotations

import os
import secrets
import shutil
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from corpsjournal.core.errors import MediaStorageError
from corpsjournal.core.logging import setup_logger

logger = setup_logger("media_store")

DEFAULT_IMAGE_EXTENSION = "jpg"
DEFAULT_AUDIO_EXTENSION = "m4a"
_FILE_URI_PREFIX = "file://"


@dataclass
class MediaStats:
    total_bytes: int
    image_count: int
    audio_count: int

    @property
    def total_files(self) -> int:
        return self.image_count + self.audio_count

    def to_dict(self) -> dict:
        return {
            "totalBytes": self.total_bytes,
            "totalSizeMb": f"{self.total_bytes / (1024 * 1024):.2f}",
            "imageCount": self.image_count,
            "audioCount": self.audio_count,
            "totalFiles": self.total_files,
        }


def file_extension(uri: str | None) -> str:
    """Lower-cased extension of the last path component, query string ignored."""
    if not uri:
        return ""
    name = uri.split("?")[0].rstrip("/").rsplit("/", 1)[-1]
    if "." not in name:
        return ""
    return name.rsplit(".", 1)[1].lower()


def _local_path(uri: str | os.PathLike) -> Path:
    text = os.fspath(uri)
    if text.startswith(_FILE_URI_PREFIX):
        text = text[len(_FILE_URI_PREFIX):]
    return Path(text)


class MediaStore:
    """Owns `<root>/images` and `<root>/audio`."""

    def __init__(self, root: str | os.PathLike):
        self.root = Path(root)
        self.images_dir = self.root / "images"
        self.audio_dir = self.root / "audio"
        self.ensure_directories()

    # ------------------------------------------------------------------
    # Directories
    # ------------------------------------------------------------------

    def ensure_directories(self) -> None:
        """Create the media tree if needed. Failures are logged, not raised."""
        for directory in (self.root, self.images_dir, self.audio_dir):
            if directory.is_dir():
                continue
            try:
                directory.mkdir(parents=True, exist_ok=True)
                logger.info(f"Created media directory {directory}")
            except OSError as exc:
                logger.error(f"Could not create media directory {directory}: {exc}")

    def directory_paths(self) -> dict[str, str]:
        return {
            "main": str(self.root),
            "images": str(self.images_dir),
            "audio": str(self.audio_dir),
        }

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def save_image(self, temp_path: str | os.PathLike, entry_id: str) -> str:
        return self._save(temp_path, entry_id, self.images_dir, "", DEFAULT_IMAGE_EXTENSION)

    def save_audio(self, temp_path: str | os.PathLike, entry_id: str) -> str:
        return self._save(temp_path, entry_id, self.audio_dir, "audio_", DEFAULT_AUDIO_EXTENSION)

    def _save(
        self,
        temp_path: str | os.PathLike,
        entry_id: str,
        directory: Path,
        infix: str,
        default_extension: str,
    ) -> str:
        """
        Copy `temp_path` into `directory` under a collision-resistant name.
        The copy lands in a hidden part file first and is renamed into place,
        so a half-written file is never visible. Raises MediaStorageError.
        """
        self.ensure_directories()
        source = _local_path(temp_path)
        extension = file_extension(os.fspath(temp_path)) or default_extension
        safe_entry_id = str(entry_id).replace("/", "_").replace(os.sep, "_")
        millis = int(time.time() * 1000)
        file_name = f"entry_{safe_entry_id}_{infix}{millis}_{secrets.token_hex(6)}.{extension}"
        destination = directory / file_name
        part_file = directory / f".{file_name}.part"

        try:
            shutil.copyfile(source, part_file)
            os.replace(part_file, destination)
        except OSError as exc:
            try:
                part_file.unlink(missing_ok=True)
            except OSError:
                logger.warning(f"Could not remove partial copy {part_file}")
            kind = "audio" if directory == self.audio_dir else "image"
            logger.error(f"Error saving {kind} {source}: {exc}")
            raise MediaStorageError(f"Failed to save {kind}: {exc}", source=str(source)) from exc

        logger.info(f"Media saved: {source} -> {destination}")
        return str(destination)

    # ------------------------------------------------------------------
    # Deletes
    # ------------------------------------------------------------------

    def delete(self, path: str | os.PathLike) -> bool:
        """
        Remove one media file. True if a file was removed, False if it was
        already absent. Other failures are logged and reported as False.
        """
        target = _local_path(path)
        if not self._is_managed(target):
            logger.warning(f"Refusing to delete {target}: outside media root {self.root}")
            return False
        try:
            target.unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            logger.error(f"Error deleting media file {target}: {exc}")
            return False
        logger.info(f"Media file deleted: {target}")
        return True

    def sweep_orphans(self, referenced_paths: Iterable[str]) -> int:
        """
        Delete every stored file whose path is not in `referenced_paths`.
        An empty iterable deletes all media (full data wipe).
        Returns the number of files actually removed.
        """
        referenced = {self._key(_local_path(p)) for p in referenced_paths if p}
        deleted = 0
        for path in self._list_files(self.images_dir) + self._list_files(self.audio_dir):
            if self._key(path) in referenced:
                continue
            if self.delete(path):
                deleted += 1
        logger.info(f"Orphan sweep completed: {deleted} file(s) deleted")
        return deleted

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def file_exists(self, path: str | os.PathLike) -> bool:
        return _local_path(path).is_file()

    def file_size(self, path: str | os.PathLike) -> int:
        try:
            return _local_path(path).stat().st_size
        except OSError:
            return 0

    def stats(self) -> MediaStats:
        """Best-effort usage figures. An unreadable file counts as 0 bytes."""
        images = self._list_files(self.images_dir)
        audio = self._list_files(self.audio_dir)
        total = sum(self.file_size(p) for p in images + audio)
        return MediaStats(total_bytes=total, image_count=len(images), audio_count=len(audio))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _list_files(self, directory: Path) -> list[Path]:
        try:
            return sorted(
                p for p in directory.iterdir()
                if p.is_file() and not p.name.startswith(".")
            )
        except OSError as exc:
            logger.error(f"Could not list media directory {directory}: {exc}")
            return []

    def _is_managed(self, path: Path) -> bool:
        return Path(os.path.abspath(path)).is_relative_to(os.path.abspath(self.root))

    @staticmethod
    def _key(path: Path) -> str:
        return os.path.normcase(os.path.abspath(path))
