"""Filesystem access for translation files."""
import logging
import os
import shutil
import tempfile
from typing import List

logger = logging.getLogger(__name__)


def read_file(file_path: str) -> str:
    with open(file_path, 'r', encoding='utf-8') as file:
        return file.read()


def _default_file_mode() -> int:
    """Mode a plain ``open(path, 'w')`` would give a new file under the current umask."""
    umask = os.umask(0)
    os.umask(umask)
    return 0o666 & ~umask


def write_file(file_path: str, content: str) -> None:
    """
    Write ``content`` atomically.

    The content goes to a temporary file in the same directory which then
    replaces ``file_path``, so a failed write leaves the previous file intact.
    The temporary file takes the mode of the file it replaces, or the umask
    default when ``file_path`` does not exist yet.
    """
    directory = os.path.dirname(os.path.abspath(file_path))
    os.makedirs(directory, exist_ok=True)
    fd, temp_path = tempfile.mkstemp(dir=directory, prefix='.', suffix='.tmp')
    try:
        with os.fdopen(fd, 'w', encoding='utf-8', newline='') as temp_file:
            temp_file.write(content)
        if os.path.exists(file_path):
            shutil.copymode(file_path, temp_path)
        else:
            os.chmod(temp_path, _default_file_mode())
        os.replace(temp_path, file_path)
    except BaseException:
        if os.path.exists(temp_path):
            os.remove(temp_path)
        raise
    logger.debug(f"Wrote {file_path}")


def list_files(directory: str) -> List[str]:
    """Return the names of the regular files in ``directory``, sorted."""
    return sorted(
        entry for entry in os.listdir(directory)
        if os.path.isfile(os.path.join(directory, entry))
    )


def list_subdirectories(directory: str) -> List[str]:
    return sorted(
        entry for entry in os.listdir(directory)
        if os.path.isdir(os.path.join(directory, entry)) and not entry.startswith('.')
    )


def is_directory(path: str) -> bool:
    return os.path.isdir(path)
