"""The ``[book]``, ``[build]`` and ``[rust]`` tables of a book configuration."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, fields
from pathlib import Path, PurePath
from typing import Any, Callable, TypeVar

T = TypeVar("T")

_RTL_LANGUAGES = frozenset(
    {
        "ar", "ara", "arc", "ae", "ave", "egy", "he", "heb", "nqo", "pal",
        "phn", "sam", "syc", "syr", "fa", "per", "fas", "ku", "kur", "ur",
        "urd", "pus", "ps", "yi", "yid",
    }
)


class ConfigError(ValueError):
    """Raised when configuration data has the wrong shape or type."""


class TextDirection(enum.Enum):
    """Direction of text in the rendered book."""

    LEFT_TO_RIGHT = "ltr"
    RIGHT_TO_LEFT = "rtl"

    @staticmethod
    def from_lang_code(code: str) -> "TextDirection":
        """Derive the text direction from a language code."""
        if code in _RTL_LANGUAGES:
            return TextDirection.RIGHT_TO_LEFT
        return TextDirection.LEFT_TO_RIGHT


class RustEdition(enum.Enum):
    """Rust edition used for code in the book."""

    E2024 = "2024"
    E2021 = "2021"
    E2018 = "2018"
    E2015 = "2015"


# --- value checking helpers -------------------------------------------------


def _table(value: Any, what: str) -> dict:
    if not isinstance(value, dict):
        raise ConfigError(f"invalid type for {what}: expected a table, got {value!r}")
    return value


def _string(value: Any, key: str) -> str:
    if not isinstance(value, str):
        raise ConfigError(f"invalid type for `{key}`: expected a string, got {value!r}")
    return value


def _boolean(value: Any, key: str) -> bool:
    if not isinstance(value, bool):
        raise ConfigError(f"invalid type for `{key}`: expected a boolean, got {value!r}")
    return value


def _path(value: Any, key: str) -> Path:
    if isinstance(value, PurePath):
        return Path(value)
    return Path(_string(value, key))


def _list_of(check: Callable[[Any, str], T]) -> Callable[[Any, str], list[T]]:
    def convert(value: Any, key: str) -> list[T]:
        if not isinstance(value, list):
            raise ConfigError(f"invalid type for `{key}`: expected an array, got {value!r}")
        return [check(item, key) for item in value]

    return convert


def _enum_of(kind: type[enum.Enum]) -> Callable[[Any, str], Any]:
    def convert(value: Any, key: str) -> Any:
        if isinstance(value, kind):
            return value
        try:
            return kind(_string(value, key))
        except ValueError:
            allowed = ", ".join(repr(member.value) for member in kind)
            raise ConfigError(
                f"unknown variant {value!r} for `{key}`, expected one of {allowed}"
            ) from None

    return convert


def _optional(check: Callable[[Any, str], T]) -> Callable[[Any, str], T | None]:
    def convert(value: Any, key: str) -> T | None:
        return None if value is None else check(value, key)

    return convert


def _field(table: dict, key: str, check: Callable[[Any, str], T], default: T) -> T:
    if key not in table:
        return default
    return check(table[key], key)


def _to_plain(value: Any) -> Any:
    """Convert a value to plain TOML-compatible data; ``None`` is not representable."""
    if value is None:
        raise ConfigError("None cannot be represented as a configuration value")
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, PurePath):
        return str(value)
    if isinstance(value, dict):
        return {str(k): _to_plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_plain(item) for item in value]
    return value


def _insert_dotted(table: dict, key: str, value: Any) -> None:
    *parents, last = key.split(".")
    current = table
    for part in parents:
        child = current.get(part)
        if not isinstance(child, dict):
            child = {}
            current[part] = child
        current = child
    current[last] = value


def _update(obj: Any, key: str, value: Any) -> None:
    """Update one field of ``obj`` by round-tripping it through plain data."""
    try:
        plain = _to_plain(value)
    except ConfigError:
        return
    raw = obj.to_value()
    _insert_dotted(raw, key, plain)
    try:
        updated = type(obj).from_value(raw)
    except ConfigError:
        return
    for f in fields(obj):
        setattr(obj, f.name, getattr(updated, f.name))


# --- tables -----------------------------------------------------------------


@dataclass
class BookConfig:
    """Metadata about the book, needed to load it from disk."""

    title: str | None = None
    authors: list[str] = field(default_factory=list)
    description: str | None = None
    src: Path = field(default_factory=lambda: Path("src"))
    multilingual: bool = False
    language: str | None = "en"
    text_direction: TextDirection | None = None

    @classmethod
    def from_value(cls, value: Any) -> "BookConfig":
        """Build from a ``[book]`` table; missing keys take their defaults."""
        table = _table(value, "[book]")
        default = cls()
        return cls(
            title=_field(table, "title", _optional(_string), default.title),
            authors=_field(table, "authors", _list_of(_string), default.authors),
            description=_field(table, "description", _optional(_string), default.description),
            src=_field(table, "src", _path, default.src),
            multilingual=_field(table, "multilingual", _boolean, default.multilingual),
            language=_field(table, "language", _optional(_string), default.language),
            text_direction=_field(
                table, "text-direction", _optional(_enum_of(TextDirection)), default.text_direction
            ),
        )

    def to_value(self) -> dict:
        """Plain table form; unset optional fields are left out."""
        out: dict[str, Any] = {}
        if self.title is not None:
            out["title"] = self.title
        out["authors"] = list(self.authors)
        if self.description is not None:
            out["description"] = self.description
        out["src"] = str(self.src)
        out["multilingual"] = self.multilingual
        if self.language is not None:
            out["language"] = self.language
        if self.text_direction is not None:
            out["text-direction"] = self.text_direction.value
        return out

    def update_value(self, key: str, value: Any) -> None:
        """Set a (possibly dotted) key; invalid updates are silently ignored."""
        _update(self, key, value)

    def realized_text_direction(self) -> TextDirection:
        """The explicit text direction, or the one derived from the language."""
        if self.text_direction is not None:
            return self.text_direction
        return TextDirection.from_lang_code(self.language or "")


@dataclass
class BuildConfig:
    """Configuration of the build procedure."""

    build_dir: Path = field(default_factory=lambda: Path("book"))
    create_missing: bool = True
    use_default_preprocessors: bool = True
    extra_watch_dirs: list[Path] = field(default_factory=list)

    @classmethod
    def from_value(cls, value: Any) -> "BuildConfig":
        """Build from a ``[build]`` table; missing keys take their defaults."""
        table = _table(value, "[build]")
        default = cls()
        return cls(
            build_dir=_field(table, "build-dir", _path, default.build_dir),
            create_missing=_field(table, "create-missing", _boolean, default.create_missing),
            use_default_preprocessors=_field(
                table, "use-default-preprocessors", _boolean, default.use_default_preprocessors
            ),
            extra_watch_dirs=_field(
                table, "extra-watch-dirs", _list_of(_path), default.extra_watch_dirs
            ),
        )

    def to_value(self) -> dict:
        """Plain table form."""
        return {
            "build-dir": str(self.build_dir),
            "create-missing": self.create_missing,
            "use-default-preprocessors": self.use_default_preprocessors,
            "extra-watch-dirs": [str(p) for p in self.extra_watch_dirs],
        }

    def update_value(self, key: str, value: Any) -> None:
        """Set a (possibly dotted) key; invalid updates are silently ignored."""
        _update(self, key, value)


@dataclass
class RustConfig:
    """Rust language support settings."""

    edition: RustEdition | None = None

    @classmethod
    def from_value(cls, value: Any) -> "RustConfig":
        """Build from a ``[rust]`` table."""
        table = _table(value, "[rust]")
        return cls(edition=_field(table, "edition", _optional(_enum_of(RustEdition)), None))

    def to_value(self) -> dict:
        """Plain table form; an unset edition is left out."""
        return {} if self.edition is None else {"edition": self.edition.value}