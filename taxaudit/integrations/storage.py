"""Storage access through fsspec.

One code path for the local disk and any fsspec-backed remote (``s3://``,
``gs://``, ``memory://``). Blocking filesystem calls run in a worker thread.
"""

import asyncio
import os
from datetime import datetime, timezone
from typing import Any

import fsspec
from fsspec.core import url_to_fs
from fsspec.implementations.local import LocalFileSystem


def resolve(url: str, path: str = "") -> tuple[fsspec.AbstractFileSystem, str]:
    """Return the filesystem for ``url`` and the full path of ``path`` in it.

    Examples:
        resolve("/srv/backups", "clients.json") -> (LocalFileSystem, "/srv/backups/clients.json")
        resolve("s3://bucket/firm", "users.json") -> (S3FileSystem, "bucket/firm/users.json")
    """
    fs, base = url_to_fs(url)
    if not path:
        return fs, base
    return fs, f"{base.rstrip('/')}/{path.lstrip('/')}"


def get_filesystem(url: str) -> fsspec.AbstractFileSystem:
    return resolve(url)[0]


def build_full_path(url: str, path: str = "") -> str:
    return resolve(url, path)[1]


def _modified_at(info: dict[str, Any]) -> datetime:
    # Local files report ``mtime``; the memory and object stores use ``created``
    # or ``LastModified``.
    for key in ("mtime", "created", "LastModified", "updated"):
        value = info.get(key)
        if value is None:
            continue
        if isinstance(value, datetime):
            return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
        if isinstance(value, (int, float)):
            return datetime.fromtimestamp(value, tz=timezone.utc)
    return datetime.now(timezone.utc)


def list_files(url: str, path: str = "") -> list[dict[str, Any]]:
    """List the files (not directories) directly under a storage path.

    Returns:
        Dicts with name, path, size and mtime; empty when the path is missing.
    """
    fs, full_path = resolve(url, path)
    if not fs.exists(full_path):
        return []

    try:
        items = fs.ls(full_path, detail=True)
    except FileNotFoundError:
        return []

    files = []
    for item in items:
        if item.get("type") == "directory":
            continue
        item_path = item.get("name", "")
        files.append(
            {
                "name": os.path.basename(item_path.rstrip("/")),
                "path": item_path,
                "size": item.get("size", 0),
                "mtime": _modified_at(item),
            }
        )
    return files


def file_exists(url: str, path: str) -> bool:
    fs, full_path = resolve(url, path)
    return fs.exists(full_path)


def _read_sync(fs: fsspec.AbstractFileSystem, path: str) -> bytes:
    with fs.open(path, "rb") as f:
        return f.read()


def _write_sync(fs: fsspec.AbstractFileSystem, path: str, content: bytes) -> None:
    if isinstance(fs, LocalFileSystem):
        fs.makedirs(os.path.dirname(path), exist_ok=True)
    with fs.open(path, "wb") as f:
        f.write(content)


async def read_file(url: str, path: str = "") -> bytes:
    """Read a file's bytes.

    Raises:
        FileNotFoundError: The file does not exist.
    """
    fs, full_path = resolve(url, path)
    return await asyncio.to_thread(_read_sync, fs, full_path)


async def write_file(url: str, path: str, content: bytes) -> str:
    """Write bytes, creating local parent directories as needed.

    Returns:
        The full path written.
    """
    fs, full_path = resolve(url, path)
    await asyncio.to_thread(_write_sync, fs, full_path, content)
    return full_path
