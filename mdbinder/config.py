"""The whole book configuration, the in-memory form of ``book.toml``."""

from __future__ import annotations

import copy
import json
import logging
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Mapping, TypeVar

import tomli_w

from mdbinder.bookconfig import (
    BookConfig,
    BuildConfig,
    ConfigError,
    RustConfig,
    _insert_dotted,
    _to_plain,
)
from mdbinder.htmlconfig import HtmlConfig

VERSION = "0.4.43"

T = TypeVar("T")

_log = logging.getLogger(__name__)

_ENV_PREFIX = "MDBOOK_"

_LEGACY_ITEMS = (
    "title",
    "authors",
    "source",
    "description",
    "output.html.destination",
)

_LEGACY_WARNING = (
    "It looks like you are using the legacy book.toml format. "
    "It is parsed for now, but should be converted to the new format: "
    "move top level entries like `title`, `author` and `description` under a "
    "`[book]` table, and move `destination` from `[output.html]`, renamed to "
    "`build-dir`, under a `[build]` table."
)


def _read(table: Any, key: str) -> Any:
    """Look up a dotted key in nested tables, ``None`` when absent."""
    current = table
    for part in key.split("."):
        if not isinstance(current, dict) or part not in current:
            return None
        current = current[part]
    return current


def _delete(table: Any, key: str) -> Any:
    """Remove a dotted key from nested tables and return its value."""
    *parents, last = key.split(".")
    current = table
    for part in parents:
        if not isinstance(current, dict):
            return None
        current = current.get(part)
    if not isinstance(current, dict):
        return None
    return current.pop(last, None)


def _sorted(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _sorted(value[k]) for k in sorted(value)}
    if isinstance(value, list):
        return [_sorted(item) for item in value]
    return value


def _reject_constant(name: str) -> Any:
    raise ValueError(f"{name} is not valid JSON")


def _parse_env_value(value: str) -> Any:
    try:
        return json.loads(value, parse_constant=_reject_constant)
    except ValueError:
        return value


def parse_env(key: str) -> str | None:
    """Turn an ``MDBOOK_`` variable name into a dotted config key."""
    if not key.startswith(_ENV_PREFIX):
        return None
    return key[len(_ENV_PREFIX):].lower().replace("__", ".").replace("_", "-")


def is_legacy_format(table: Any) -> bool:
    """Whether the raw table uses the old top-level layout."""
    return any(_read(table, item) is not None for item in _LEGACY_ITEMS)


@dataclass
class Config:
    """A book's configuration: fixed tables plus arbitrary extra data."""

    book: BookConfig = field(default_factory=BookConfig)
    build: BuildConfig = field(default_factory=BuildConfig)
    rust: RustConfig = field(default_factory=RustConfig)
    _rest: dict = field(default_factory=dict, repr=False)

    @classmethod
    def from_str(cls, src: str) -> "Config":
        """Parse a configuration from TOML text."""
        try:
            return cls.from_value(tomllib.loads(src))
        except (tomllib.TOMLDecodeError, ConfigError) as exc:
            raise ConfigError(f"Invalid configuration file: {exc}") from exc

    @classmethod
    def from_disk(cls, config_file: str | os.PathLike) -> "Config":
        """Load a configuration file from disk."""
        try:
            text = Path(config_file).read_text(encoding="utf-8")
        except OSError as exc:
            raise ConfigError(f"Unable to open the configuration file: {exc}") from exc
        return cls.from_str(text)

    @classmethod
    def from_value(cls, value: Any) -> "Config":
        """Build a configuration from an already parsed TOML table."""
        if is_legacy_format(value):
            _log.warning(_LEGACY_WARNING)
            return cls._from_legacy(copy.deepcopy(value))
        if not isinstance(value, dict):
            raise ConfigError("A config file should always be a toml table")
        table = copy.deepcopy(value)
        book = table.pop("book", None)
        build = table.pop("build", None)
        rust = table.pop("rust", None)
        return cls(
            book=BookConfig() if book is None else BookConfig.from_value(book),
            build=BuildConfig() if build is None else BuildConfig.from_value(build),
            rust=RustConfig() if rust is None else RustConfig.from_value(rust),
            _rest=table,
        )

    @classmethod
    def _from_legacy(cls, table: dict) -> "Config":
        cfg = cls()

        def take(key: str, check: Callable[[Any], bool]) -> Any:
            value = table.pop(key, None)
            return value if value is not None and check(value) else None

        title = take("title", lambda v: isinstance(v, str))
        if title is not None:
            cfg.book.title = title
        authors = take(
            "authors", lambda v: isinstance(v, list) and all(isinstance(a, str) for a in v)
        )
        if authors is not None:
            cfg.book.authors = authors
        source = take("source", lambda v: isinstance(v, str))
        if source is not None:
            cfg.book.src = Path(source)
        description = take("description", lambda v: isinstance(v, str))
        if description is not None:
            cfg.book.description = description

        destination = _delete(table, "output.html.destination")
        if isinstance(destination, str):
            cfg.build.build_dir = Path(destination)

        cfg._rest = table
        return cfg

    def update_from_env(self, environ: Mapping[str, str] | None = None) -> None:
        """Apply overrides from ``MDBOOK_*`` environment variables.

        Values are parsed as JSON, falling back to plain strings.
        """
        _log.debug("Updating the config from environment variables")
        if environ is None:
            environ = os.environ
        for name, raw in list(environ.items()):
            key = parse_env(name)
            if key is None:
                continue
            _log.debug("%s => %s", key, raw)
            parsed = _parse_env_value(raw)
            if key in ("book", "build") and isinstance(parsed, dict):
                for sub_key, sub_value in parsed.items():
                    self.set(f"{key}.{sub_key}", sub_value)
                return
            self.set(key, parsed)

    def get(self, key: str) -> Any:
        """Fetch an item from the extra data by dotted key, ``None`` if absent."""
        return _read(self._rest, key)

    def get_deserialized_opt(
        self, name: str, convert: Callable[[Any], T] | None = None
    ) -> T | Any | None:
        """Fetch a copy of an item, optionally passed through ``convert``."""
        value = self.get(name)
        if value is None:
            return None
        value = copy.deepcopy(value)
        if convert is None:
            return value
        try:
            return convert(value)
        except (TypeError, ValueError, KeyError) as exc:
            raise ConfigError(f"Couldn't deserialize the value: {exc}") from exc

    def set(self, index: str, value: Any) -> None:
        """Set a dotted key, clobbering anything in the way."""
        try:
            plain = _to_plain(value)
        except ConfigError as exc:
            raise ConfigError(f"Unable to represent the item as a TOML value: {exc}") from exc
        if index.startswith("book."):
            self.book.update_value(index[len("book."):], plain)
        elif index.startswith("build."):
            self.build.update_value(index[len("build."):], plain)
        else:
            _insert_dotted(self._rest, index, plain)

    def html_config(self) -> HtmlConfig | None:
        """The ``[output.html]`` table, or ``None`` if absent or invalid."""
        value = self.get("output.html")
        if value is None:
            return None
        try:
            return HtmlConfig.from_value(value)
        except ConfigError as exc:
            _log.error("Parsing configuration [output.html]: %s", exc)
            return None

    def get_renderer(self, index: str) -> dict | None:
        """The table of the named renderer, if any."""
        value = self.get(f"output.{index}")
        return value if isinstance(value, dict) else None

    def get_preprocessor(self, index: str) -> dict | None:
        """The table of the named preprocessor, if any."""
        value = self.get(f"preprocessor.{index}")
        return value if isinstance(value, dict) else None

    def to_value(self) -> dict:
        """Plain table form; default build and rust tables are left out."""
        table = copy.deepcopy(self._rest)
        table["book"] = self.book.to_value()
        if self.build != BuildConfig():
            table["build"] = self.build.to_value()
        if self.rust != RustConfig():
            table["rust"] = self.rust.to_value()
        return table

    def to_toml(self) -> str:
        """Serialise to TOML text with keys in sorted order."""
        return tomli_w.dumps(_sorted(self.to_value()))