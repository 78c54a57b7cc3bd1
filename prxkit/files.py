"""File helpers and the fixed paths of the plugin layout."""

from __future__ import annotations

import logging
import os
from typing import Union

PathLike = Union[str, "os.PathLike[str]"]

BASE_PATH = "/data/hen"
HEN_INI = "hen.ini"
HEN_SECTION = "HEN"
VERSION_TXT = "version.txt"
HDD_INI_PATH = f"{BASE_PATH}/{HEN_INI}"
USB_INI_PATH = f"/mnt/usb0/{HEN_INI}"
PRX_BOOTLOADER_PATH = f"{BASE_PATH}/plugin_bootloader.prx"
PRX_LOADER_PATH = f"{BASE_PATH}/plugin_loader.prx"
PRX_SERVER_PATH = f"{BASE_PATH}/plugin_server.prx"
PRX_MONO_PATH = f"{BASE_PATH}/plugin_shellui.prx"
SHELLUI_DATA_PATH = f"{BASE_PATH}/shellui_data"
SHELLUI_HEN_SETTINGS = f"{SHELLUI_DATA_PATH}/hen_settings.xml"

TEMP_DIR = "/user/temp"
MAX_PATH = 260

logger = logging.getLogger(__name__)


def get_file_size(path: PathLike) -> int:
    """Return the size of a file in bytes."""
    return os.stat(path).st_size


def read_file(path: PathLike, size: int) -> bytes:
    """Read ``size`` bytes; a shorter file is padded with zero bytes."""
    if size < 0:
        raise ValueError("size must not be negative")
    with open(path, "rb") as handle:
        data = handle.read(size)
    return data.ljust(size, b"\0")


def write_file(path: PathLike, data: bytes) -> None:
    """Replace the file's contents with ``data``."""
    with open(path, "wb") as handle:
        handle.write(data)


def file_exists(path: PathLike) -> bool:
    return os.access(path, os.F_OK)


def touch(path: PathLike) -> None:
    """Create the file, or empty it if it exists."""
    with open(path, "w"):
        pass


def _temp_path(name: str, temp_dir: PathLike) -> str:
    return f"{os.fspath(temp_dir)}/{name}"[: MAX_PATH - 1]


def touch_temp(name: str, temp_dir: PathLike = TEMP_DIR) -> str:
    """Create a marker file named ``name`` in the temp directory; return its path."""
    path = _temp_path(name, temp_dir)
    try:
        touch(path)
    except OSError:
        logger.info("[touch_temp] %s failed", path)
        raise
    logger.info("[touch_temp] %s created", path)
    return path


def file_exists_temp(name: str, temp_dir: PathLike = TEMP_DIR) -> bool:
    """Tell whether the marker file ``name`` exists in the temp directory."""
    path = _temp_path(name, temp_dir)
    exists = file_exists(path)
    logger.info("[file_exists_temp] %s exists: %s", path, exists)
    return exists