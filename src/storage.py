"""
Candidate list file storage.

Reads and writes the JSON file holding the last collected
DNS server list.
"""

import json
from pathlib import Path


DEFAULT_LIST_FILE = Path("data") / "dns-list.json"


class StorageError(RuntimeError):
    """Raised when the server list file cannot be read or written."""


def read_server_list(path: Path) -> list[str]:
    """
    Read a server list file.

    Raises:
        StorageError: If the file is missing, unreadable or not a list of strings
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        raise StorageError(f"Failed to read {path}: {e}") from e

    if not isinstance(data, list) or not all(isinstance(ip, str) for ip in data):
        raise StorageError(f"Failed to read {path}: expected a JSON list of strings")

    return data


def write_server_list(path: Path, servers: list[str]) -> None:
    """Write a server list file, creating parent directories."""
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(list(servers), f, indent=2)
    except OSError as e:
        raise StorageError(f"Failed to write {path}: {e}") from e
