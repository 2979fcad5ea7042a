"""The ``[output.html]`` table of a book configuration."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

from mdbinder.bookconfig import (
    ConfigError,
    _boolean,
    _field,
    _list_of,
    _optional,
    _path,
    _string,
    _table,
)

_U8_MAX = 0xFF
_U32_MAX = 0xFFFF_FFFF


def _unsigned(limit: int) -> Callable[[Any, str], int]:
    def convert(value: Any, key: str) -> int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise ConfigError(f"invalid type for `{key}`: expected an integer, got {value!r}")
        if not 0 <= value <= limit:
            raise ConfigError(f"invalid value for `{key}`: {value} is not in 0..={limit}")
        return value

    return convert


_u8 = _unsigned(_U8_MAX)
_u32 = _unsigned(_U32_MAX)


def _string_map(value: Any, key: str) -> dict[str, str]:
    table = _table(value, f"`{key}`")
    return {str(k): _string(v, f"{key}.{k}") for k, v in table.items()}


def _nested(kind: Any) -> Callable[[Any, str], Any]:
    def convert(value: Any, key: str) -> Any:
        if isinstance(value, kind):
            return value
        return kind.from_value(value)

    return convert


def _put(out: dict, key: str, value: Any) -> None:
    if value is not None:
        out[key] = value


@dataclass
class Print:
    """Settings for the print page."""

    enable: bool = True
    page_break: bool = True

    @classmethod
    def from_value(cls, value: Any) -> "Print":
        """Build from a ``print`` table; missing keys take their defaults."""
        table = _table(value, "[output.html.print]")
        return cls(
            enable=_field(table, "enable", _boolean, True),
            page_break=_field(table, "page-break", _boolean, True),
        )

    def to_value(self) -> dict:
        """Plain table form."""
        return {"enable": self.enable, "page-break": self.page_break}


@dataclass
class Fold:
    """Settings for folding chapters in the sidebar."""

    enable: bool = False
    level: int = 0

    @classmethod
    def from_value(cls, value: Any) -> "Fold":
        """Build from a ``fold`` table; missing keys take their defaults."""
        table = _table(value, "[output.html.fold]")
        return cls(
            enable=_field(table, "enable", _boolean, False),
            level=_field(table, "level", _u8, 0),
        )

    def to_value(self) -> dict:
        """Plain table form."""
        return {"enable": self.enable, "level": self.level}


@dataclass
class Playground:
    """Settings for runnable code snippets."""

    editable: bool = False
    copyable: bool = True
    copy_js: bool = True
    line_numbers: bool = False
    runnable: bool = True

    @classmethod
    def from_value(cls, value: Any) -> "Playground":
        """Build from a ``playground`` table; missing keys take their defaults."""
        table = _table(value, "[output.html.playground]")
        return cls(
            editable=_field(table, "editable", _boolean, False),
            copyable=_field(table, "copyable", _boolean, True),
            copy_js=_field(table, "copy-js", _boolean, True),
            line_numbers=_field(table, "line-numbers", _boolean, False),
            runnable=_field(table, "runnable", _boolean, True),
        )

    def to_value(self) -> dict:
        """Plain table form."""
        return {
            "editable": self.editable,
            "copyable": self.copyable,
            "copy-js": self.copy_js,
            "line-numbers": self.line_numbers,
            "runnable": self.runnable,
        }


@dataclass
class Code:
    """Settings for code blocks."""

    hidelines: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_value(cls, value: Any) -> "Code":
        """Build from a ``code`` table."""
        table = _table(value, "[output.html.code]")
        return cls(hidelines=_field(table, "hidelines", _string_map, {}))

    def to_value(self) -> dict:
        """Plain table form."""
        return {"hidelines": dict(self.hidelines)}


@dataclass
class SearchChapterSettings:
    """Search settings for one chapter or directory."""

    enable: bool | None = None

    @classmethod
    def from_value(cls, value: Any) -> "SearchChapterSettings":
        """Build from a per-chapter search table."""
        table = _table(value, "search chapter settings")
        return cls(enable=_field(table, "enable", _optional(_boolean), None))

    def to_value(self) -> dict:
        """Plain table form; an unset flag is left out."""
        return {} if self.enable is None else {"enable": self.enable}


def _chapter_map(value: Any, key: str) -> dict[str, SearchChapterSettings]:
    table = _table(value, f"`{key}`")
    return {str(k): _nested(SearchChapterSettings)(v, k) for k, v in table.items()}


@dataclass
class Search:
    """Settings of the search feature."""

    enable: bool = True
    limit_results: int = 30
    teaser_word_count: int = 30
    use_boolean_and: bool = False
    boost_title: int = 2
    boost_hierarchy: int = 1
    boost_paragraph: int = 1
    expand: bool = True
    heading_split_level: int = 3
    copy_js: bool = True
    chapter: dict[str, SearchChapterSettings] = field(default_factory=dict)

    @classmethod
    def from_value(cls, value: Any) -> "Search":
        """Build from a ``search`` table; missing keys take their defaults."""
        table = _table(value, "[output.html.search]")
        d = cls()
        return cls(
            enable=_field(table, "enable", _boolean, d.enable),
            limit_results=_field(table, "limit-results", _u32, d.limit_results),
            teaser_word_count=_field(table, "teaser-word-count", _u32, d.teaser_word_count),
            use_boolean_and=_field(table, "use-boolean-and", _boolean, d.use_boolean_and),
            boost_title=_field(table, "boost-title", _u8, d.boost_title),
            boost_hierarchy=_field(table, "boost-hierarchy", _u8, d.boost_hierarchy),
            boost_paragraph=_field(table, "boost-paragraph", _u8, d.boost_paragraph),
            expand=_field(table, "expand", _boolean, d.expand),
            heading_split_level=_field(table, "heading-split-level", _u8, d.heading_split_level),
            copy_js=_field(table, "copy-js", _boolean, d.copy_js),
            chapter=_field(table, "chapter", _chapter_map, {}),
        )

    def to_value(self) -> dict:
        """Plain table form."""
        return {
            "enable": self.enable,
            "limit-results": self.limit_results,
            "teaser-word-count": self.teaser_word_count,
            "use-boolean-and": self.use_boolean_and,
            "boost-title": self.boost_title,
            "boost-hierarchy": self.boost_hierarchy,
            "boost-paragraph": self.boost_paragraph,
            "expand": self.expand,
            "heading-split-level": self.heading_split_level,
            "copy-js": self.copy_js,
            "chapter": {k: v.to_value() for k, v in self.chapter.items()},
        }


@dataclass
class HtmlConfig:
    """Configuration of the HTML renderer."""

    theme: Path | None = None
    default_theme: str | None = None
    preferred_dark_theme: str | None = None
    smart_punctuation: bool = False
    curly_quotes: bool = False
    mathjax_support: bool = False
    copy_fonts: bool = True
    google_analytics: str | None = None
    additional_css: list[Path] = field(default_factory=list)
    additional_js: list[Path] = field(default_factory=list)
    fold: Fold = field(default_factory=Fold)
    playground: Playground = field(default_factory=Playground)
    code: Code = field(default_factory=Code)
    print: Print = field(default_factory=Print)
    no_section_label: bool = False
    search: Search | None = None
    git_repository_url: str | None = None
    git_repository_icon: str | None = None
    input_404: str | None = None
    site_url: str | None = None
    cname: str | None = None
    edit_url_template: str | None = None
    live_reload_endpoint: str | None = None
    redirect: dict[str, str] = field(default_factory=dict)
    hash_files: bool = False

    @classmethod
    def from_value(cls, value: Any) -> "HtmlConfig":
        """Build from an ``[output.html]`` table; unknown keys are ignored."""
        table = _table(value, "[output.html]")
        if "playground" in table and "playpen" in table:
            raise ConfigError("duplicate field `playground`")
        playground_key = "playpen" if "playpen" in table else "playground"
        opt_str = _optional(_string)
        return cls(
            theme=_field(table, "theme", _optional(_path), None),
            default_theme=_field(table, "default-theme", opt_str, None),
            preferred_dark_theme=_field(table, "preferred-dark-theme", opt_str, None),
            smart_punctuation=_field(table, "smart-punctuation", _boolean, False),
            curly_quotes=_field(table, "curly-quotes", _boolean, False),
            mathjax_support=_field(table, "mathjax-support", _boolean, False),
            copy_fonts=_field(table, "copy-fonts", _boolean, True),
            google_analytics=_field(table, "google-analytics", opt_str, None),
            additional_css=_field(table, "additional-css", _list_of(_path), []),
            additional_js=_field(table, "additional-js", _list_of(_path), []),
            fold=_field(table, "fold", _nested(Fold), Fold()),
            playground=_field(table, playground_key, _nested(Playground), Playground()),
            code=_field(table, "code", _nested(Code), Code()),
            print=_field(table, "print", _nested(Print), Print()),
            no_section_label=_field(table, "no-section-label", _boolean, False),
            search=_field(table, "search", _optional(_nested(Search)), None),
            git_repository_url=_field(table, "git-repository-url", opt_str, None),
            git_repository_icon=_field(table, "git-repository-icon", opt_str, None),
            input_404=_field(table, "input-404", opt_str, None),
            site_url=_field(table, "site-url", opt_str, None),
            cname=_field(table, "cname", opt_str, None),
            edit_url_template=_field(table, "edit-url-template", opt_str, None),
            live_reload_endpoint=_field(table, "live-reload-endpoint", opt_str, None),
            redirect=_field(table, "redirect", _string_map, {}),
            hash_files=_field(table, "hash-files", _boolean, False),
        )

    def to_value(self) -> dict:
        """Plain table form; unset optional fields are left out."""
        out: dict[str, Any] = {}
        _put(out, "theme", None if self.theme is None else str(self.theme))
        _put(out, "default-theme", self.default_theme)
        _put(out, "preferred-dark-theme", self.preferred_dark_theme)
        out["smart-punctuation"] = self.smart_punctuation
        out["curly-quotes"] = self.curly_quotes
        out["mathjax-support"] = self.mathjax_support
        out["copy-fonts"] = self.copy_fonts
        _put(out, "google-analytics", self.google_analytics)
        out["additional-css"] = [str(p) for p in self.additional_css]
        out["additional-js"] = [str(p) for p in self.additional_js]
        out["fold"] = self.fold.to_value()
        out["playground"] = self.playground.to_value()
        out["code"] = self.code.to_value()
        out["print"] = self.print.to_value()
        out["no-section-label"] = self.no_section_label
        _put(out, "search", None if self.search is None else self.search.to_value())
        _put(out, "git-repository-url", self.git_repository_url)
        _put(out, "git-repository-icon", self.git_repository_icon)
        _put(out, "input-404", self.input_404)
        _put(out, "site-url", self.site_url)
        _put(out, "cname", self.cname)
        _put(out, "edit-url-template", self.edit_url_template)
        _put(out, "live-reload-endpoint", self.live_reload_endpoint)
        out["redirect"] = dict(self.redirect)
        out["hash-files"] = self.hash_files
        return out

    def theme_dir(self, root: str | Path) -> Path:
        """The theme directory under ``root``, ``theme`` when none is set."""
        root = Path(root)
        return root / (self.theme if self.theme is not None else "theme")

    def uses_smart_punctuation(self) -> bool:
        """Whether smart punctuation is on, through either of its settings."""
        return self.smart_punctuation or self.curly_quotes