import io
import zipfile
from pathlib import Path, PurePosixPath
from typing import List, Mapping, Optional, Union

from ..config import settings
from ..types import FileEntry
from ..utils.logger import app_logger

ArchiveSource = Union[str, Path, bytes, Mapping[str, Union[str, bytes]]]


class ArchiveReadError(Exception):
    """Raised when an uploaded archive cannot be opened at all."""


def normalize_entry_path(name: str) -> str:
    """Forward slashes, no leading './' or '/'."""
    path = name.replace("\\", "/")
    while path.startswith("./"):
        path = path[2:]
    return path.lstrip("/")


def should_ignore_path(path: str, ignored_dirs=None, ignored_extensions=None) -> bool:
    """Check whether an archive entry is excluded from ingestion."""
    ignored_dirs = set(ignored_dirs if ignored_dirs is not None else settings.ignored_dirs_list)
    ignored_extensions = ignored_extensions if ignored_extensions is not None else settings.ignored_extensions_list

    if not path or path.endswith("/"):
        return True
    parts = PurePosixPath(path).parts
    if any(part in ignored_dirs for part in parts[:-1]):
        return True
    lower_name = parts[-1].lower()
    return any(lower_name.endswith(ext) for ext in ignored_extensions)


class ArchiveScanner:
    """Reads an uploaded archive into decoded file entries."""

    def __init__(self, max_file_size: Optional[int] = None):
        self.max_file_size = max_file_size or settings.max_file_size
        self.logger = app_logger.bind(component="scanner")

    def read_archive(self, source: ArchiveSource) -> List[FileEntry]:
        """Return the archive's text files sorted by path."""
        if isinstance(source, Mapping):
            entries = self._read_mapping(source)
        else:
            entries = self._read_zip(source)

        entries.sort(key=lambda entry: entry.path)
        self.logger.info(f"Found {len(entries)} files to process")
        return entries

    def _read_zip(self, source: Union[str, Path, bytes]) -> List[FileEntry]:
        handle = io.BytesIO(source) if isinstance(source, (bytes, bytearray)) else source
        try:
            with zipfile.ZipFile(handle) as archive:
                entries = []
                for info in archive.infolist():
                    path = normalize_entry_path(info.filename)
                    if info.is_dir() or should_ignore_path(path):
                        continue
                    if info.file_size > self.max_file_size:
                        self.logger.warning(f"Skipping large file: {path}")
                        continue
                    entries.append(FileEntry(path=path, content=_decode(archive.read(info))))
                return entries
        except (zipfile.BadZipFile, OSError, zipfile.LargeZipFile) as e:
            self.logger.error(f"Error reading archive: {e}")
            raise ArchiveReadError(f"Cannot read archive: {e}") from e

    def _read_mapping(self, source: Mapping[str, Union[str, bytes]]) -> List[FileEntry]:
        entries = {}
        for name, data in source.items():
            path = normalize_entry_path(name)
            if should_ignore_path(path):
                continue
            content = data if isinstance(data, str) else _decode(data)
            if len(content.encode("utf-8")) > self.max_file_size:
                self.logger.warning(f"Skipping large file: {path}")
                continue
            entries[path] = FileEntry(path=path, content=content)
        return list(entries.values())


def _decode(data: bytes) -> str:
    return data.decode("utf-8", errors="ignore")
