"""Reading and writing integer files, and running external commands safely."""

from __future__ import annotations

import os
import pwd
import re
import stat
import subprocess
from typing import Iterator, Pattern, Sequence, Union

from . import ui

_INT_PATTERN = re.compile(r"[+-]?[0-9]+")


class PermissionCheckError(Exception):
    """Raised when a file is not safe to be executed."""


class CommandError(Exception):
    """Raised when an external command cannot be run or fails."""


def check_file_permissions_for_execution(path: str) -> bool:
    """Return True if the file is owned by root and not writable by others.

    Raises PermissionCheckError naming the reason otherwise.
    """
    try:
        resolved = os.path.realpath(path, strict=True)
        info = os.stat(resolved)
    except OSError as exc:
        raise PermissionCheckError("file not found") from exc

    if info.st_uid != 0:
        raise PermissionCheckError("owner is not root")

    mode = stat.S_IMODE(info.st_mode)
    if info.st_gid != 0 and mode & 0o020:
        raise PermissionCheckError("group is not root but has write permission")

    if mode & 0o002:
        raise PermissionCheckError("others have write permission")

    return True


def read_int_from_file(path: str) -> int:
    """Read a single integer from a file."""
    with open(path, "rb") as handle:
        text = handle.read().decode("utf-8", errors="replace")
    if not text:
        raise ValueError(f"file is empty: {path}")
    text = text.strip()
    if not _INT_PATTERN.fullmatch(text):
        raise ValueError(f"invalid integer in {path}: {text!r}")
    return int(text)


def write_int_to_file(value: int, path: str) -> None:
    """Write a single integer to a file, following symlinks."""
    target = os.path.realpath(path) or path
    fd = os.open(target, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o644)
    with os.fdopen(fd, "w") as handle:
        handle.write(str(int(value)))


def _walk(path: str) -> Iterator[tuple[str, str, bool]]:
    """Yield (path, name, is_dir) in lexical order without following symlinks."""
    info = os.lstat(path)
    is_dir = stat.S_ISDIR(info.st_mode)
    yield path, os.path.basename(path), is_dir
    if is_dir:
        for name in sorted(os.listdir(path)):
            yield from _walk(os.path.join(path, name))


def find_files_matching(path: str, pattern: Union[str, Pattern[str]]) -> list[str]:
    """Resolved device paths of all non-directory entries whose name matches."""
    expr = re.compile(pattern) if isinstance(pattern, str) else pattern
    result = []
    for entry_path, name, is_dir in _walk(path):
        if is_dir or not expr.search(name):
            continue
        if os.path.exists(entry_path + "/name"):
            device_path = entry_path
        else:
            device_path = entry_path + "/device"
        result.append(os.path.realpath(device_path, strict=True))
    return result


def expand_home(path: str) -> str:
    """Replace a leading '~' with the current user's home directory."""
    if not path.startswith("~"):
        return path
    home = pwd.getpwuid(os.getuid()).pw_dir
    return os.path.normpath(os.path.join(home, path[1:].lstrip("/")))


def safe_cmd_execution(executable: str, args: Sequence[str], timeout: float) -> str:
    """Run a root-owned executable and return its output without surrounding newlines."""
    try:
        check_file_permissions_for_execution(executable)
    except PermissionCheckError as exc:
        raise CommandError(f"cannot execute {executable}: {exc}") from exc

    try:
        completed = subprocess.run(
            [executable, *args], capture_output=True, timeout=timeout
        )
    except subprocess.TimeoutExpired as exc:
        ui.warning("Command timed out: %s", executable)
        raise CommandError(f"command timed out: {executable}") from exc
    except OSError as exc:
        raise CommandError(f"cannot execute {executable}: {exc}") from exc

    if completed.returncode != 0:
        stderr = completed.stderr.decode("utf-8", errors="replace")
        ui.warning("Command failed to execute: %s: %s", executable, stderr)
        raise CommandError(
            f"command {executable} exited with status {completed.returncode}"
        )

    return completed.stdout.decode("utf-8", errors="replace").strip("\n")