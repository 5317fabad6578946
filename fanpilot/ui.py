"""Console messages and desktop notifications."""

from __future__ import annotations

import os
import subprocess
import sys

ICON_DIALOG_ERROR = "dialog-error"
ICON_DIALOG_INFO = "dialog-information"
ICON_DIALOG_WARN = "dialog-warning"

URGENCY_LOW = "low"
URGENCY_NORMAL = "normal"
URGENCY_CRITICAL = "critical"

APP_NAME = "fanpilot"

_debug_enabled = False


def _format(message: str, args: tuple) -> str:
    return message % args if args else message


def _emit(text: str, newline: bool = True) -> None:
    stream = sys.stdout
    stream.write(text + ("\n" if newline else ""))
    stream.flush()


def set_debug_enabled(enabled: bool) -> None:
    """Turn printing of debug messages on or off."""
    global _debug_enabled
    _debug_enabled = bool(enabled)


def printf(message: str, *args) -> None:
    _emit(_format(message, args), newline=False)


def printfln(message: str, *args) -> None:
    _emit(_format(message, args))


def debug(message: str, *args) -> None:
    if _debug_enabled:
        _emit("DEBUG: " + _format(message, args))


def success(message: str, *args) -> None:
    _emit("SUCCESS: " + _format(message, args))


def info(message: str, *args) -> None:
    _emit("INFO: " + _format(message, args))


def warning(message: str, *args) -> None:
    _emit("WARNING: " + _format(message, args))


def error(message: str, *args) -> None:
    _emit("ERROR: " + _format(message, args))


def warning_and_notify(title: str, message: str, *args) -> None:
    error(message, *args)
    notify_error(title, _format(message, args))


def error_and_notify(title: str, message: str, *args) -> None:
    error(message, *args)
    notify_error(title, _format(message, args))


def fatal(message: str, *args) -> None:
    """Notify, print a fatal message and exit with status 1."""
    text = _format(message, args)
    notify_error("Fatal Error", text)
    _emit("FATAL: " + text)
    raise SystemExit(1)


def notify_info(title: str, text: str) -> None:
    notify_send(URGENCY_LOW, title, text, ICON_DIALOG_INFO)


def notify_warn(title: str, text: str) -> None:
    notify_send(URGENCY_NORMAL, title, text, ICON_DIALOG_WARN)


def notify_error(title: str, text: str) -> None:
    notify_send(URGENCY_CRITICAL, title, text, ICON_DIALOG_ERROR)


def _display_user(display: str) -> str | None:
    result = subprocess.run(["who"], capture_output=True, text=True, check=True)
    for line in result.stdout.split("\n"):
        if display in line:
            fields = line.split()
            if fields:
                return fields[0].strip()
    return None


def notify_send(urgency: str, title: str, text: str, icon: str) -> None:
    """Send a desktop notification to the user owning the current display."""
    display = os.environ.get("DISPLAY")
    if display is None:
        warning("Cannot send notification, missing env variable 'DISPLAY'!")
        return

    try:
        user = _display_user(display)
    except (OSError, subprocess.CalledProcessError) as exc:
        warning("Cannot send notification, unable to find user of display session: %s", exc)
        return

    if not user:
        warning("Cannot send notification, unable to detect user of current display session")
        return

    problem: object = "no output"
    try:
        result = subprocess.run(["id", "-u", user], capture_output=True, text=True)
        user_id = result.stdout.strip()
        if result.returncode != 0:
            problem = result.stderr.strip() or f"exit status {result.returncode}"
    except OSError as exc:
        user_id = ""
        problem = exc
    if not user_id:
        warning("Cannot send notification, unable to detect user id: %s", problem)
        return

    command = [
        "sudo", "-u", user,
        "DISPLAY=" + display,
        "DBUS_SESSION_BUS_ADDRESS=unix:path=/run/user/" + user_id + "/bus",
        "notify-send",
        "-a", APP_NAME,
        "-u", urgency,
        "-i", icon,
        title, text,
    ]
    try:
        subprocess.run(command, check=True)
    except (OSError, subprocess.CalledProcessError) as exc:
        error("Error sending notification: %s", exc)