from __future__ import annotations

import csv
import os
import sys
import zipfile
from dataclasses import dataclass
from pathlib import Path

import requests
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    TaskProgressColumn,
    TextColumn,
    TimeRemainingColumn,
)

from .logging_utils import debug_log, stderr_console
from .search import Candidate

__all__ = [
    "DATA_DIR_ENV",
    "INDEX_FILENAME",
    "INDEX_URL",
    "IndexFetchError",
    "IndexLoadError",
    "IndexStatus",
    "default_data_dir",
    "ensure_index",
    "load_candidates",
    "load_index",
    "resolve_data_dir",
]

INDEX_URL = "https://www.aozora.gr.jp/index_pages/list_person_all_extended_utf8.zip"
INDEX_FILENAME = "list_person_all_extended_utf8.csv"
DATA_DIR_ENV = "AOZORA_DATA_DIR"
_ARCHIVE_NAME = "tmp.zip"
_HEADER_FIRST_FIELD = "作品ID"


class IndexFetchError(RuntimeError):
    pass


class IndexLoadError(RuntimeError):
    pass


@dataclass(slots=True)
class IndexStatus:
    path: Path
    downloaded: bool


def default_data_dir() -> Path:
    return Path(sys.prefix) / "share" / "aozora"


def resolve_data_dir(override: str | os.PathLike[str] | None = None) -> Path:
    if override:
        return Path(override).expanduser()
    env_dir = os.environ.get(DATA_DIR_ENV)
    if env_dir:
        return Path(env_dir).expanduser()
    return default_data_dir()


def ensure_index(
    data_dir: Path,
    *,
    url: str = INDEX_URL,
    force: bool = False,
    timeout: float = 60.0,
) -> IndexStatus:
    """Download and unpack the author/work index unless it is already cached."""
    index_path = data_dir / INDEX_FILENAME
    if index_path.is_file() and not force:
        return IndexStatus(path=index_path, downloaded=False)

    archive_path = data_dir / _ARCHIVE_NAME
    try:
        data_dir.mkdir(parents=True, exist_ok=True)
        _download_archive(url, archive_path, timeout)
        _extract_archive(archive_path, data_dir)
    except OSError as exc:
        raise IndexFetchError(f"Failed to store index in {data_dir}: {exc}") from exc
    except zipfile.BadZipFile as exc:
        raise IndexFetchError(f"Index archive is not a zip file: {exc}") from exc
    finally:
        archive_path.unlink(missing_ok=True)

    if not index_path.is_file():
        raise IndexFetchError(f"{INDEX_FILENAME} not found in {url}")
    debug_log(f"Index stored at {index_path}")
    return IndexStatus(path=index_path, downloaded=True)


def _download_archive(url: str, archive_path: Path, timeout: float) -> Path:
    try:
        response = requests.get(url, stream=True, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as exc:
        raise IndexFetchError(f"Failed to download index archive: {exc}") from exc

    total = response.headers.get("Content-Length")
    total_bytes = int(total) if total and total.isdigit() else None
    progress = Progress(
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        DownloadColumn(),
        TimeRemainingColumn(),
        console=stderr_console(),
        transient=True,
    )
    try:
        with archive_path.open("wb") as handle, progress:
            task = progress.add_task("Downloading Aozora Bunko index", total=total_bytes)
            for chunk in response.iter_content(chunk_size=1024 * 1024):
                if not chunk:
                    continue
                handle.write(chunk)
                progress.advance(task, len(chunk))
    except requests.RequestException as exc:
        raise IndexFetchError(f"Index download interrupted: {exc}") from exc
    return archive_path


def _extract_archive(archive_path: Path, destination: Path) -> None:
    with zipfile.ZipFile(archive_path) as zf:
        members = zf.infolist()
        progress = Progress(
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            TimeRemainingColumn(),
            console=stderr_console(),
            transient=True,
        )
        with progress:
            task = progress.add_task("Extracting index", total=len(members) or None)
            for member in members:
                zf.extract(member, destination)
                progress.advance(task, 1)


def load_index(path: Path) -> list[list[str]]:
    """Read the index CSV, dropping the header row."""
    try:
        with path.open("r", encoding="utf-8-sig", newline="") as handle:
            rows = [row for row in csv.reader(handle) if row]
    except (OSError, UnicodeDecodeError, csv.Error) as exc:
        raise IndexLoadError(f"Failed to read index {path}: {exc}") from exc
    if rows and rows[0][0] == _HEADER_FIRST_FIELD:
        rows = rows[1:]
    debug_log(f"Loaded {len(rows)} index rows from {path}")
    return rows


def load_candidates(path: Path) -> list[Candidate]:
    return [Candidate.from_row(row) for row in load_index(path)]
