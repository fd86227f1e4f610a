"""
Log directory housekeeping.

Each run writes its JSON logs under ``<log_dir>/<date>/<HH_MM>``; this
module prunes the per-day folder so only the newest runs are kept.
"""
from os import remove, scandir, path
from shutil import rmtree


def clear_latest_items(dir_path: str, n_to_keep: int) -> None:
    """
    Remove the oldest entries of ``dir_path`` so that at most ``n_to_keep``
    remain.

    Entries are ordered by modification time. Files, symlinks and folders
    are removed; anything else is left alone.

    Args:
        dir_path (str): Directory holding the run folders.
        n_to_keep (int): How many of the newest entries survive.

    Raises:
        FileNotFoundError: If ``dir_path`` does not exist.
        OSError: If the directory cannot be scanned.
    """
    if not path.exists(dir_path):
        raise FileNotFoundError(f"Path not found: {dir_path}")

    try:
        entries = sorted(scandir(dir_path), key=lambda entry: entry.stat().st_mtime)
    except OSError as e:
        raise OSError(f"Error scanning directory {dir_path}: {e}") from e

    excess = len(entries) - n_to_keep
    for entry in entries[:max(excess, 0)]:
        try:
            if entry.is_file() or entry.is_symlink():
                remove(entry.path)
            elif entry.is_dir():
                rmtree(entry.path)
        except OSError as e:
            # Keep pruning the rest; a locked folder from a live run is expected.
            print(f"Error deleting item {entry.path}: {e}")
