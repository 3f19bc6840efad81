"""
Lightbend Telemetry (Cinnamon) Grafana dashboards
Downloaded as a versioned zip archive and read into memory
"""

import os
import re
import zipfile
import zlib
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List

import pulumi
import requests

from .errors import DashboardError

DOWNLOAD_DIR = "downloads"
DOWNLOAD_TIMEOUT = 60
CHUNK_SIZE = 64 * 1024

# a damaged entry fails inside zf.read, not only a damaged index
ARCHIVE_ERRORS = (zipfile.BadZipFile, zipfile.LargeZipFile, zlib.error, EOFError,
                  NotImplementedError, RuntimeError, UnicodeDecodeError)


@dataclass(frozen=True)
class Dashboard:
    name: str
    json: str

    @property
    def filename(self) -> str:
        return f"{self.name}.json"


def dashboard_name(entry_name: str) -> str:
    """ConfigMap-safe name for an archive entry, e.g. 'Akka Actors.json' -> 'akka-actors'"""
    stem = os.path.basename(entry_name)[:-len(".json")]
    return re.sub(r"[^a-z0-9-]+", "-", stem.lower()).strip("-")


def create_download_directory(directory: str) -> Path:
    path = Path(directory).resolve()
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise DashboardError(f"Failed to create directory {path}. Error: {e}") from e
    return path


def download_archive(url: str, directory: Path, timeout: int = DOWNLOAD_TIMEOUT) -> Path:
    """
    Download the dashboards archive into `directory`

    Raises:
        DashboardError: any status other than 200
        requests.RequestException: network failures
    """
    target = directory / url.rsplit("/", 1)[-1]
    with requests.get(url, stream=True, timeout=timeout) as response:
        if response.status_code != 200:
            raise DashboardError(f"Expected HTTP Status 200 but got {response.status_code}")
        with open(target, "wb") as f:
            for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                f.write(chunk)
    return target


def unique_name(name: str, taken: Dict[str, int]) -> str:
    """`name`, or `name-2`, `name-3`... once it has been used"""
    count = taken.get(name, 0) + 1
    taken[name] = count
    if count == 1:
        return name
    return unique_name(f"{name}-{count}", taken)


def read_dashboards(archive: Path) -> List[Dashboard]:
    """
    Every *.json entry of the archive, as a Dashboard with a unique name.
    Entries whose name has no usable characters are skipped.

    Raises:
        DashboardError: the archive or one of its entries can't be read
    """
    dashboards = []
    taken: Dict[str, int] = {}
    try:
        with zipfile.ZipFile(archive) as zf:
            for info in zf.infolist():
                if info.is_dir() or not info.filename.endswith(".json"):
                    continue
                name = dashboard_name(info.filename)
                if not name:
                    pulumi.log.debug(f"Skipping dashboard {info.filename}, no usable name")
                    continue
                dashboards.append(Dashboard(unique_name(name, taken), zf.read(info).decode("utf-8")))
    except ARCHIVE_ERRORS as e:
        raise DashboardError(f"Could not read {archive} zip file: {e}") from e
    return dashboards


def fetch_dashboards(url: str, directory: str = DOWNLOAD_DIR) -> List[Dashboard]:
    """Directory, download, unzip. Each step only runs once the previous one succeeded."""
    path = create_download_directory(directory)
    archive = download_archive(url, path)
    dashboards = read_dashboards(archive)
    pulumi.log.debug(f"Read {len(dashboards)} dashboards from {archive}")
    return dashboards
