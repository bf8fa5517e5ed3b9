"""Change detection for JSON files shared between str00py processes."""

import os
from pathlib import Path
from typing import Optional, Tuple

FileSignature = Tuple[int, int, int]


def file_signature(path: Path) -> Optional[FileSignature]:
    """
    Identify the current version of a file.

    Atomic saves replace the file with a new inode, so the inode number
    changes even when two saves land within the same mtime tick.

    Args:
        path: File to inspect.

    Returns:
        (inode, mtime_ns, size), or None if the file does not exist.
    """
    try:
        st = os.stat(path)
    except FileNotFoundError:
        return None
    except OSError:
        # Unreadable paths are reported by the subsequent read
        return None
    return (st.st_ino, st.st_mtime_ns, st.st_size)
