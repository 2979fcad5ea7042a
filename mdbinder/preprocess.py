"""Book preprocessing: the context, the preprocessor interface and two preprocessors.

A book is handled in its JSON form: a mapping with a ``sections`` list whose
items are ``{"Chapter": {...}}`` tables, ``"Separator"`` or ``{"PartTitle": ...}``.
A chapter table holds ``name``, ``content``, ``path`` and ``sub_items``, among others.
"""

from __future__ import annotations

import json
import logging
import re
import shlex
import subprocess
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterator, TextIO

from mdbinder.bookconfig import ConfigError
from mdbinder.config import VERSION, Config

_log = logging.getLogger(__name__)

_README = re.compile(r"readme", re.IGNORECASE)


class PreprocessorError(RuntimeError):
    """Raised when a preprocessor cannot run or returns unusable output."""


def _chapters(book: Any) -> Iterator[dict]:
    """Yield every chapter table in the book, children before their parent."""

    def walk(items: Any) -> Iterator[dict]:
        for item in items or ():
            if isinstance(item, dict) and isinstance(item.get("Chapter"), dict):
                chapter = item["Chapter"]
                yield from walk(chapter.get("sub_items"))
                yield chapter

    sections = book.get("sections") if isinstance(book, dict) else None
    yield from walk(sections)


@dataclass
class PreprocessorContext:
    """Extra information given to a preprocessor while it processes a book."""

    root: Path
    config: Config
    renderer: str
    mdbook_version: str = VERSION
    chapter_titles: dict[str, str] = field(default_factory=dict, compare=False, repr=False)

    def __post_init__(self) -> None:
        self.root = Path(self.root)

    def to_value(self) -> dict:
        """Plain JSON-compatible form; chapter titles are not included."""
        return {
            "root": str(self.root),
            "config": self.config.to_value(),
            "renderer": self.renderer,
            "mdbook_version": self.mdbook_version,
        }

    @classmethod
    def from_value(cls, value: Any) -> "PreprocessorContext":
        """Build a context from its plain JSON form."""
        if not isinstance(value, dict):
            raise PreprocessorError("The preprocessor context should be an object")
        try:
            return cls(
                root=Path(value["root"]),
                config=Config.from_value(value["config"]),
                renderer=str(value["renderer"]),
                mdbook_version=str(value["mdbook_version"]),
            )
        except KeyError as exc:
            raise PreprocessorError(f"missing field {exc.args[0]!r} in the context") from exc
        except (ConfigError, TypeError) as exc:
            raise PreprocessorError(f"Invalid preprocessor context: {exc}") from exc


class Preprocessor(ABC):
    """An operation run on a loaded book before it is rendered."""

    name: str = ""

    @abstractmethod
    def run(self, ctx: PreprocessorContext, book: Any) -> Any:
        """Process the book and return the updated book."""

    def supports_renderer(self, renderer: str) -> bool:
        """Whether this preprocessor works with the given renderer; always true here."""
        return True


@dataclass
class CmdPreprocessor(Preprocessor):
    """A preprocessor that runs an external program.

    ``supports_renderer`` runs ``<cmd> supports <renderer>`` and treats exit
    status 0 as support. ``run`` writes ``[context, book]`` as JSON to the
    program's stdin and reads the processed book as JSON from its stdout.
    """

    name: str
    cmd: str

    @staticmethod
    def parse_input(reader: TextIO) -> tuple[PreprocessorContext, Any]:
        """Parse the ``[context, book]`` JSON written by :meth:`write_input`."""
        try:
            data = json.load(reader)
        except ValueError as exc:
            raise PreprocessorError(f"Unable to parse the input: {exc}") from exc
        if not isinstance(data, list) or len(data) != 2:
            raise PreprocessorError("Unable to parse the input: expected a pair")
        ctx_value, book = data
        return PreprocessorContext.from_value(ctx_value), book

    def write_input(self, writer: TextIO, book: Any, ctx: PreprocessorContext) -> None:
        """Write ``[context, book]`` as JSON to ``writer``."""
        json.dump([ctx.to_value(), book], writer)

    def command(self) -> list[str]:
        """The program and its arguments, split like a shell would."""
        try:
            words = shlex.split(self.cmd)
        except ValueError as exc:
            raise PreprocessorError(f"Invalid command string: {exc}") from exc
        if not words:
            raise PreprocessorError("Command string was empty")
        return words

    def run(self, ctx: PreprocessorContext, book: Any) -> Any:
        """Pipe the book through the external program and return its output."""
        args = self.command()
        payload = json.dumps([ctx.to_value(), book]).encode("utf-8")
        try:
            proc = subprocess.Popen(args, stdin=subprocess.PIPE, stdout=subprocess.PIPE)
        except OSError as exc:
            raise PreprocessorError(
                f'Unable to start the "{self.name}" preprocessor. Is it installed?'
            ) from exc
        try:
            stdout, _ = proc.communicate(input=payload)
        except OSError as exc:
            raise PreprocessorError(
                f'Error waiting for the "{self.name}" preprocessor to complete'
            ) from exc

        _log.debug("%s exited with status %s", self.cmd, proc.returncode)
        if proc.returncode != 0:
            raise PreprocessorError(
                f'The "{self.name}" preprocessor exited unsuccessfully '
                f"with {proc.returncode} status"
            )
        try:
            return json.loads(stdout)
        except ValueError as exc:
            raise PreprocessorError(
                f'Unable to parse the preprocessed book from "{self.name}" processor'
            ) from exc

    def supports_renderer(self, renderer: str) -> bool:
        """Ask the program whether it supports ``renderer``."""
        _log.debug('Checking if the "%s" preprocessor supports "%s"', self.name, renderer)
        try:
            args = self.command()
        except PreprocessorError as exc:
            _log.warning(
                'Unable to create the command for the "%s" preprocessor, %s', self.name, exc
            )
            return False
        try:
            result = subprocess.run([*args, "supports", renderer], stdin=subprocess.DEVNULL)
        except FileNotFoundError:
            _log.warning(
                'The command wasn\'t found, is the "%s" preprocessor installed?', self.name
            )
            _log.warning("\tCommand: %s", self.cmd)
            return False
        except OSError:
            return False
        return result.returncode == 0


def is_readme_file(path: str | Path) -> bool:
    """Whether the file stem is ``readme``, in any letter case."""
    return _README.fullmatch(Path(path).stem) is not None


def _warn_readme_name_conflict(readme_path: Path, index_path: Path) -> None:
    file_name = readme_path.name
    parent = index_path.parent
    _log.warning('It seems that there are both "%s" and index.md under "%s".', file_name, parent)
    _log.warning('mdbook converts "%s" into index.html by default. It may cause', file_name)
    _log.warning("unexpected behavior if putting both files under the same directory.")
    _log.warning("To solve the warning, try to rearrange the book structure or disable")
    _log.warning('"index" preprocessor to stop the conversion.')


class IndexPreprocessor(Preprocessor):
    """Renames chapters called ``README.md`` to ``index.md``."""

    name = "index"

    def run(self, ctx: PreprocessorContext, book: Any) -> Any:
        """Rewrite readme chapter paths in place and return the book."""
        source_dir = ctx.root / ctx.config.book.src
        for chapter in _chapters(book):
            path = chapter.get("path")
            if not path or not is_readme_file(path):
                continue
            renamed = Path(path).with_name("index.md")
            index_md = source_dir / renamed
            if index_md.exists():
                _warn_readme_name_conflict(Path(path), index_md)
            chapter["path"] = str(renamed)
        return book