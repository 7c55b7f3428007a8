"""Snapshot persistence for Beyond Epic.

- ``codec`` turns progress and active effects into versionless camelCase JSON
  and back, tolerating missing or malformed fields.
- ``storage`` writes exports atomically to the user-data directory.
"""

from .codec import deserialize, serialize, state_from_dict, state_to_dict
from .storage import EXPORT_FILE_NAME, default_save_dir, export_snapshot, read_snapshot

__all__ = [
    "EXPORT_FILE_NAME",
    "default_save_dir",
    "deserialize",
    "export_snapshot",
    "read_snapshot",
    "serialize",
    "state_from_dict",
    "state_to_dict",
]
