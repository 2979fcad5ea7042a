import io
import logging
import shlex
import sys
from pathlib import Path

import pytest

from mdbinder.config import Config
from mdbinder.preprocess import (
    CmdPreprocessor,
    IndexPreprocessor,
    Preprocessor,
    PreprocessorContext,
    PreprocessorError,
    is_readme_file,
)


def chapter(name, path, sub_items=()):
    return {
        "Chapter": {
            "name": name,
            "content": f"# {name}\n",
            "number": None,
            "sub_items": list(sub_items),
            "path": path,
            "source_path": path,
            "parent_names": [],
        }
    }


def sample_book():
    return {
        "sections": [
            chapter("Intro", "README.md"),
            "Separator",
            chapter(
                "First",
                "first/index.md",
                [chapter("Nested", "first/Readme.md"), chapter("Other", "first/other.md")],
            ),
            {"PartTitle": "Part"},
            chapter("Draft", None),
        ],
        "__non_exhaustive": None,
    }


NOP_SCRIPT = """
import json
import sys

if len(sys.argv) > 1 and sys.argv[1] == "supports":
    sys.exit(1 if sys.argv[2] == "not-supported" else 0)

ctx, book = json.load(sys.stdin)
settings = ctx["config"].get("preprocessor", {}).get("nop-preprocessor", {})
if settings.get("blow-up"):
    sys.stderr.write("Boom!!1!")
    sys.exit(1)
book["renderer-seen"] = ctx["renderer"]
json.dump(book, sys.stdout)
"""


@pytest.fixture
def nop(tmp_path):
    script = tmp_path / "nop.py"
    script.write_text(NOP_SCRIPT, encoding="utf-8")
    return CmdPreprocessor("nop-preprocessor", shlex.join([sys.executable, str(script)]))


def make_ctx(root, config=None, renderer="html"):
    return PreprocessorContext(root, config or Config(), renderer)


# --- is_readme_file ----------------------------------------------------------


@pytest.mark.parametrize(
    "path",
    [
        "path/to/Readme.md",
        "path/to/README.md",
        "path/to/rEaDmE.md",
        "path/to/README.markdown",
        "path/to/README",
    ],
)
def test_file_stem_exactly_matches_readme_case_insensitively(path):
    assert is_readme_file(path) is True


def test_readme_prefix_is_not_readme():
    assert is_readme_file("path/to/README-README.md") is False


# --- IndexPreprocessor -------------------------------------------------------


def test_index_preprocessor_renames_readme_chapters(tmp_path):
    book = sample_book()
    out = IndexPreprocessor().run(make_ctx(tmp_path), book)
    sections = out["sections"]
    assert sections[0]["Chapter"]["path"] == str(Path("index.md"))
    nested = sections[2]["Chapter"]["sub_items"]
    assert nested[0]["Chapter"]["path"] == str(Path("first/index.md"))
    assert nested[1]["Chapter"]["path"] == "first/other.md"
    assert sections[4]["Chapter"]["path"] is None
    assert sections[1] == "Separator"


def test_index_preprocessor_warns_on_conflict(tmp_path, caplog):
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "index.md").write_text("# Index\n", encoding="utf-8")
    book = {"sections": [chapter("Intro", "README.md")]}
    with caplog.at_level(logging.WARNING, logger="mdbinder.preprocess"):
        IndexPreprocessor().run(make_ctx(tmp_path), book)
    assert any("both" in rec.getMessage() for rec in caplog.records)
    assert book["sections"][0]["Chapter"]["path"] == "index.md"


def test_index_preprocessor_name_and_support(tmp_path):
    pre = IndexPreprocessor()
    assert pre.name == "index"
    assert pre.supports_renderer("anything") is True


# --- PreprocessorContext -----------------------------------------------------


def test_context_value_round_trip(tmp_path):
    config = Config.from_str('[book]\ntitle = "Some Book"\n[output.html]\ntheme = "t"\n')
    ctx = make_ctx(tmp_path, config, "some-renderer")
    ctx.chapter_titles["a.md"] = "A"
    got = PreprocessorContext.from_value(ctx.to_value())
    assert got == ctx
    assert got.config.book.title == "Some Book"
    assert got.chapter_titles == {}


def test_context_from_value_missing_field():
    with pytest.raises(PreprocessorError):
        PreprocessorContext.from_value({"root": "/tmp"})


# --- CmdPreprocessor ---------------------------------------------------------


def test_round_trip_write_and_parse_input(tmp_path):
    cmd = CmdPreprocessor("test", "test")
    book = sample_book()
    ctx = make_ctx(tmp_path, Config(), "some-renderer")
    buffer = io.StringIO()
    cmd.write_input(buffer, book, ctx)
    buffer.seek(0)
    got_ctx, got_book = CmdPreprocessor.parse_input(buffer)
    assert got_book == book
    assert got_ctx == ctx


def test_parse_input_rejects_garbage():
    with pytest.raises(PreprocessorError, match="Unable to parse the input"):
        CmdPreprocessor.parse_input(io.StringIO("not json"))


def test_command_splits_words():
    cmd = CmdPreprocessor("x", "cargo run --example 'nop preprocessor' --")
    assert cmd.command() == ["cargo", "run", "--example", "nop preprocessor", "--"]


def test_empty_command_is_an_error():
    with pytest.raises(PreprocessorError, match="Command string was empty"):
        CmdPreprocessor("x", "   ").command()


def test_example_supports_whatever(nop):
    assert nop.supports_renderer("whatever") is True


def test_example_doesnt_support_not_supported(nop):
    assert nop.supports_renderer("not-supported") is False


def test_missing_program_is_not_supported():
    cmd = CmdPreprocessor("missing", "trduyvbhijnorgevfuhn")
    assert cmd.supports_renderer("html") is False


def test_empty_command_is_not_supported():
    assert CmdPreprocessor("empty", "").supports_renderer("html") is False


def test_process_the_book(nop, tmp_path):
    book = sample_book()
    got = nop.run(make_ctx(tmp_path), book)
    assert got["sections"] == book["sections"]
    assert got["renderer-seen"] == "html"


def test_ask_the_preprocessor_to_blow_up(nop, tmp_path):
    config = Config()
    config.set("preprocessor.nop-preprocessor.blow-up", True)
    with pytest.raises(PreprocessorError, match="exited unsuccessfully"):
        nop.run(make_ctx(tmp_path, config), sample_book())


def test_run_missing_program_raises(tmp_path):
    cmd = CmdPreprocessor("missing", "trduyvbhijnorgevfuhn")
    with pytest.raises(PreprocessorError, match="Is it installed"):
        cmd.run(make_ctx(tmp_path), sample_book())


def test_run_with_unparsable_output(tmp_path):
    script = tmp_path / "bad.py"
    script.write_text("import sys\nsys.stdin.read()\nprint('nope')\n", encoding="utf-8")
    cmd = CmdPreprocessor("bad", shlex.join([sys.executable, str(script)]))
    with pytest.raises(PreprocessorError, match="Unable to parse the preprocessed book"):
        cmd.run(make_ctx(tmp_path), sample_book())


# --- Preprocessor base -------------------------------------------------------


class Spy(Preprocessor):
    name = "dummy"

    def __init__(self):
        self.rendered_with = []

    def run(self, ctx, book):
        self.rendered_with.append(ctx.renderer)
        return book


def test_custom_preprocessor_defaults(tmp_path):
    spy = Spy()
    book = sample_book()
    assert spy.run(make_ctx(tmp_path), book) is book
    assert spy.rendered_with == ["html"]
    assert spy.supports_renderer("epub") is True


def test_base_class_is_abstract():
    with pytest.raises(TypeError):
        Preprocessor()