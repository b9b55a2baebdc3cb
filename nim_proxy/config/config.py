#!/usr/bin/env python3
"""
Environment access for the NIM reasoning proxy.

Every setting is a plain environment variable. A ``.env`` file next to the
project or in the working directory can seed variables that are not already
exported; exported values always win.
"""

from __future__ import annotations

import json
import os
import sys
import threading
from contextlib import contextmanager
from pathlib import Path
from types import MappingProxyType
from typing import Any, Callable, Iterator, Mapping, TypeVar

T = TypeVar("T")

TRUE_VALUES = frozenset({"1", "true", "yes", "on"})


def read_dotenv(path: Path) -> dict[str, str]:
    """Parse KEY=VALUE lines; comments, blanks and lines without '=' are skipped."""
    entries: dict[str, str] = {}
    for raw in path.read_text().splitlines():
        stripped = raw.strip()
        if stripped.startswith("#") or "=" not in stripped:
            continue
        name, _, value = stripped.partition("=")
        name = name.strip()
        if name:
            entries[name] = value.strip().strip("'\"")
    return entries


class RuntimeConfig:
    """Reads proxy settings from the environment, with an optional override layer.

    The override layer shadows the environment for lookups through this
    object; tests use it to build settings without touching ``os.environ``.
    """

    def __init__(self, overrides: Mapping[str, str] | None = None):
        self._overrides: Mapping[str, str] = MappingProxyType(dict(overrides or {}))
        self._dotenv_done = False
        self._dotenv_lock = threading.Lock()

    def ensure_loaded(self) -> None:
        """Apply .env files to the process environment, once. Skipped when SKIP_DOTENV is set."""
        with self._dotenv_lock:
            if self._dotenv_done:
                return
            self._dotenv_done = True
            if os.getenv("SKIP_DOTENV"):
                return
            for path in self._dotenv_candidates():
                self._apply_dotenv(path)

    @staticmethod
    def _dotenv_candidates() -> list[Path]:
        candidates = [Path(__file__).resolve().parents[2] / ".env", Path.cwd() / ".env"]
        return list(dict.fromkeys(candidates))

    @staticmethod
    def _apply_dotenv(path: Path) -> None:
        if not path.is_file():
            return
        try:
            entries = read_dotenv(path)
        except OSError as exc:
            print(f"WARNING: failed to load {path}: {exc}", file=sys.stderr)
            return
        for name, value in entries.items():
            os.environ.setdefault(name, value)

    def raw(self, key: str) -> str | None:
        if key in self._overrides:
            return self._overrides[key]
        return os.environ.get(key)

    def _convert(self, key: str, default: T, convert: Callable[[str], T]) -> T:
        value = self.raw(key)
        if value is None or not value.strip():
            return default
        return convert(value.strip())

    def get_str(self, key: str, default: str | None = None) -> str | None:
        value = self.raw(key)
        return default if value is None else value

    def get_int(self, key: str, default: int | None = None) -> int | None:
        """Integer setting; blank means default.

        Raises:
            ValueError: If the value is not an integer.
        """
        return self._convert(key, default, int)

    def get_float(self, key: str, default: float | None = None) -> float | None:
        """Float setting; blank means default.

        Raises:
            ValueError: If the value is not a number.
        """
        return self._convert(key, default, float)

    def get_bool(self, key: str, default: bool = False) -> bool:
        """True only for 1/true/yes/on (any case). An empty value is False."""
        value = self.raw(key)
        if value is None:
            return default
        return value.strip().lower() in TRUE_VALUES

    def get_list(self, key: str) -> list[str]:
        """Comma-separated values, trimmed, empties dropped."""
        return [item.strip() for item in (self.raw(key) or "").split(",") if item.strip()]

    def get_json(self, key: str, default: Any = None) -> Any:
        """Decoded JSON value; blank means default.

        Raises:
            json.JSONDecodeError: If the value is not valid JSON.
        """
        return self._convert(key, default, json.loads)

    @contextmanager
    def override(self, values: Mapping[str, str]) -> Iterator[None]:
        """Expose ``values`` through this object and ``os.environ`` until the block exits."""
        saved_layer = self._overrides
        saved_env = {key: os.environ.get(key) for key in values}
        self._overrides = MappingProxyType({**saved_layer, **values})
        os.environ.update(values)
        try:
            yield
        finally:
            self._overrides = saved_layer
            for key, previous in saved_env.items():
                if previous is None:
                    os.environ.pop(key, None)
                else:
                    os.environ[key] = previous


runtime_config = RuntimeConfig()
