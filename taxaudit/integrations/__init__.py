"""Storage and cloud backup integrations built on fsspec."""

from taxaudit.integrations.cloud_backup import (
    COLLECTION_FILES,
    CloudBackupAdapter,
    FileResult,
    InvalidBackupNameError,
)
from taxaudit.integrations.storage import (
    build_full_path,
    get_filesystem,
    list_files,
    read_file,
    write_file,
)

__all__ = [
    "COLLECTION_FILES",
    "CloudBackupAdapter",
    "FileResult",
    "InvalidBackupNameError",
    "build_full_path",
    "get_filesystem",
    "list_files",
    "read_file",
    "write_file",
]
