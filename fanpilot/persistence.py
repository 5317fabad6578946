"""On-disk storage of measured fan curves and PWM maps."""

from __future__ import annotations

import json
import os
import re
import sqlite3
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, Mapping, Optional, TypeVar

from . import ui
from .fans import Fan

BUCKET_FANS = "fans"
BUCKET_FAN_PWM_MAP = "fanPwmMap"

TABLE_NAME = "buckets"
OPEN_TIMEOUT = 60.0

_INT_KEY = re.compile(r"[+-]?[0-9]+")

T = TypeVar("T")


def _encode(mapping: Mapping[int, object]) -> bytes:
    return json.dumps({str(key): mapping[key] for key in sorted(mapping)}).encode("utf-8")


def _decode_map(data: bytes, convert: Callable[[object], T]) -> Optional[Dict[int, T]]:
    """Decode a JSON object with integer keys; raise ValueError if it is malformed."""
    parsed = json.loads(data.decode("utf-8"))
    if parsed is None:
        return None
    if not isinstance(parsed, dict):
        raise ValueError("stored data is not an object")
    result: Dict[int, T] = {}
    for key, value in parsed.items():
        if not _INT_KEY.fullmatch(key):
            raise ValueError(f"invalid key: {key!r}")
        result[int(key)] = convert(value)
    return result


def _to_float(value: object) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"not a number: {value!r}")
    return float(value)


def _to_int(value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"not an integer: {value!r}")
    return value


class Persistence:
    """Key/value store of per-fan data in buckets, kept in a single file."""

    def __init__(self, db_path: str):
        self.db_path = db_path

    @contextmanager
    def _open(self) -> Iterator[sqlite3.Connection]:
        if not os.path.exists(self.db_path):
            os.close(os.open(self.db_path, os.O_WRONLY | os.O_CREAT, 0o600))
        conn = sqlite3.connect(self.db_path, timeout=OPEN_TIMEOUT)
        try:
            conn.execute(
                f"CREATE TABLE IF NOT EXISTS {TABLE_NAME} ("
                "bucket TEXT NOT NULL, key TEXT NOT NULL, value BLOB NOT NULL, "
                "PRIMARY KEY (bucket, key))"
            )
            with conn:
                yield conn
        finally:
            conn.close()

    def _put(self, bucket: str, key: str, data: bytes) -> None:
        with self._open() as conn:
            conn.execute(
                f"INSERT OR REPLACE INTO {TABLE_NAME} (bucket, key, value) VALUES (?, ?, ?)",
                (bucket, key, data),
            )

    def _delete(self, bucket: str, key: str) -> None:
        with self._open() as conn:
            conn.execute(
                f"DELETE FROM {TABLE_NAME} WHERE bucket = ? AND key = ?", (bucket, key)
            )

    def _load(
        self, bucket: str, key: str, convert: Callable[[object], T], what: str
    ) -> Optional[Dict[int, T]]:
        """Load a stored map; corrupt data is deleted and yields None.

        Raises KeyError if nothing is stored under the key.
        """
        with self._open() as conn:
            row = conn.execute(
                f"SELECT value FROM {TABLE_NAME} WHERE bucket = ? AND key = ?",
                (bucket, key),
            ).fetchone()
            if row is None:
                raise KeyError(key)
            try:
                return _decode_map(bytes(row[0]), convert)
            except (ValueError, UnicodeDecodeError) as exc:
                ui.warning("Unable to unmarshal saved %s data for %s: %s", what, key, exc)
                try:
                    conn.execute(
                        f"DELETE FROM {TABLE_NAME} WHERE bucket = ? AND key = ?",
                        (bucket, key),
                    )
                except sqlite3.Error as delete_error:
                    ui.error("Unable to delete corrupt data key %s: %s", key, delete_error)
                return None

    def save_fan_pwm_data(self, fan: Fan) -> None:
        """Store the fan curve data of the given fan."""
        data = fan.fan_curve_data
        if data is None:
            raise ValueError(f"fan {fan.id} has no fan curve data")
        self._put(BUCKET_FANS, fan.id, _encode(dict(data)))

    def load_fan_pwm_data(self, fan: Fan) -> Optional[Dict[int, float]]:
        """Load the stored fan curve data of the given fan."""
        return self._load(BUCKET_FANS, fan.id, _to_float, "fan")

    def delete_fan_pwm_data(self, fan: Fan) -> None:
        """Remove the stored fan curve data; a missing entry is not an error."""
        self._delete(BUCKET_FANS, fan.id)

    def save_fan_pwm_map(self, fan_id: str, pwm_map: Mapping[int, int]) -> None:
        """Store the 'requested pwm' -> 'actual pwm' map of a fan."""
        self._put(BUCKET_FAN_PWM_MAP, fan_id, _encode(dict(pwm_map)))

    def load_fan_pwm_map(self, fan_id: str) -> Optional[Dict[int, int]]:
        """Load the stored pwm map of a fan."""
        return self._load(BUCKET_FAN_PWM_MAP, fan_id, _to_int, "pwmMap")

    def delete_fan_pwm_map(self, fan_id: str) -> None:
        """Remove the stored pwm map; a missing entry is not an error."""
        self._delete(BUCKET_FAN_PWM_MAP, fan_id)