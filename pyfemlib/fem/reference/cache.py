# pyfemlib/fem/reference/cache.py
"""
Derive-once, load-many storage for shape-function coefficient tables.

All supported (family, order) tables live in one ``.npz`` file. The file is
written atomically under a lock so that concurrent first runs do not clobber
each other; a stale or unreadable file is regenerated once.
"""
import logging
import os
import tempfile
import time
import zipfile
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Optional, Tuple

import numpy as np

from pyfemlib.core.topology import ElementFamily

logger = logging.getLogger(__name__)

FORMAT_VERSION = 1
_FILE_NAME = f"shape_functions_v{FORMAT_VERSION}.npz"

Key = Tuple[ElementFamily, int]


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").lower() in {"1", "true", "yes"}


def default_cache_dir() -> Path:
    env = os.getenv("PYFEMLIB_CACHE_DIR")
    if env:
        return Path(env).expanduser()
    return Path.home() / ".cache" / "pyfemlib"


def disk_cache_enabled() -> bool:
    return not _env_flag("PYFEMLIB_NO_DISK_CACHE")


def _entry_name(key: Key) -> str:
    fam, order = key
    return f"{fam.name}_{order}"


class ShapeFunctionCache:
    """
    On-disk table of coefficient matrices keyed by (family, order).

    load(expected) -> dict or None   (None on miss / stale file)
    store(tables)                     (atomic write)
    """

    def __init__(self, directory: Optional[Path] = None) -> None:
        self.directory = Path(directory) if directory is not None else default_cache_dir()

    @property
    def path(self) -> Path:
        return self.directory / _FILE_NAME

    # ------------------------------------------------------------------
    # public API
    # ------------------------------------------------------------------
    def load(self, expected: Dict[Key, int]) -> Optional[Dict[Key, np.ndarray]]:
        """
        Read every table listed in ``expected`` (key -> nne).

        Returns None when the file is missing, unreadable, from another
        format version or does not hold every expected table with the right
        shape. A bad file is removed so the next ``store`` replaces it.
        """
        path = self.path
        if not path.exists():
            logger.debug(f"Shape-function cache miss: {path} does not exist.")
            return None
        try:
            with np.load(path, allow_pickle=False) as data:
                if int(data["__version__"]) != FORMAT_VERSION:
                    raise ValueError(f"format version {int(data['__version__'])}")
                tables = {}
                for key, nne in expected.items():
                    arr = np.array(data[_entry_name(key)], dtype=float)
                    if arr.shape != (nne, nne) or not np.all(np.isfinite(arr)):
                        raise ValueError(f"bad table {_entry_name(key)} with shape {arr.shape}")
                    tables[key] = arr
        except (OSError, KeyError, ValueError, zipfile.BadZipFile) as e:
            logger.warning(f"Shape-function cache {path} is stale ({e}); rebuilding.")
            try:
                path.unlink()
            except OSError:
                pass
            return None
        logger.debug(f"Loaded {len(tables)} shape-function tables from {path}.")
        return tables

    def store(self, tables: Dict[Key, np.ndarray]) -> Path:
        """Write all tables at once; returns the cache file path."""
        self.directory.mkdir(parents=True, exist_ok=True)
        payload = {_entry_name(k): np.asarray(v, dtype=float) for k, v in tables.items()}
        payload["__version__"] = np.array(FORMAT_VERSION)
        target = self.path
        with self._file_lock(target):
            fd, tmp = tempfile.mkstemp(dir=self.directory, suffix=".npz.tmp")
            try:
                with os.fdopen(fd, "wb") as fh:
                    np.savez(fh, **payload)
                os.replace(tmp, target)
            except BaseException:
                try:
                    os.unlink(tmp)
                except OSError:
                    pass
                raise
        logger.info(f"Wrote {len(tables)} shape-function tables to {target}.")
        return target

    def clear(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass

    # ..................................................................
    # locking helper (prevent two procs writing the same file concurrently)
    # ..................................................................
    @contextmanager
    def _file_lock(self, file: Path, timeout: float = 30.0):
        lock_path = file.with_suffix(".lock")
        start = time.monotonic()
        while True:
            try:
                fd = os.open(lock_path, os.O_CREAT | os.O_EXCL | os.O_RDWR)
                break          # acquired
            except FileExistsError:
                if time.monotonic() - start > timeout:
                    # a crashed writer left its lock behind
                    logger.warning(f"Removing stale lock {lock_path}.")
                    try:
                        lock_path.unlink()
                    except FileNotFoundError:
                        pass
                    start = time.monotonic()
                    continue
                time.sleep(0.05)
        try:
            yield
        finally:
            os.close(fd)
            try:
                lock_path.unlink()
            except FileNotFoundError:
                pass
