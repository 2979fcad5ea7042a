# mdbinder

Configuration handling and chapter preprocessing for books assembled from
markdown files.

## Installation

```
pip install mdbinder
```

## Configuration

A book is described by a `book.toml` file. `mdbinder.config.Config` loads it,
exposes the well-known `[book]`, `[build]` and `[rust]` tables as typed
objects (`BookConfig`, `BuildConfig` and `RustConfig` from
`mdbinder.bookconfig`), and keeps every other table available through dotted
keys.

```python
from mdbinder.config import Config

cfg = Config.from_str('''
[book]
title = "My Book"
authors = ["A. Writer"]

[other-table.foo]
bar = 123
''')

cfg.get("other-table.foo.bar")          # 123
cfg.set("output.html.theme", "./themes")
cfg.html_config().theme                 # Path("themes")
cfg.book.realized_text_direction()      # TextDirection.LEFT_TO_RIGHT
```

- `Config.from_str(text)` and `Config.from_disk(path)` parse TOML; invalid
  content raises `ConfigError` (from `mdbinder.bookconfig`).
- `Config.get(key)` returns a value from the extra tables, or `None`.
  `Config.get_deserialized_opt(key, convert)` returns a copy, optionally
  passed through `convert`.
- `Config.set(key, value)` sets a dotted key. Keys starting with `book.` or
  `build.` update the typed tables; updates that would give them a wrong type
  are ignored.
- `Config.html_config()` gives the `[output.html]` table as an
  `HtmlConfig` (from `mdbinder.htmlconfig`), or `None` when it is absent or
  invalid. `get_renderer(name)` and `get_preprocessor(name)` return the raw
  `output.<name>` and `preprocessor.<name>` tables.
- `Config.update_from_env(environ=None)` applies overrides from `MDBOOK_*`
  variables (by default from `os.environ`): `MDBOOK_BOOK__TITLE` sets
  `book.title`, while `MDBOOK_FOO_BAR` sets `foo-bar`. Values are parsed as
  JSON first and fall back to plain strings.
- `Config.to_value()` and `Config.to_toml()` write the configuration back out;
  `[build]` and `[rust]` are left out while they hold their defaults.

Files in the older layout, with `title`, `authors`, `source` and
`description` at the top level and `destination` under `[output.html]`, are
still accepted, with a logged warning.

## Preprocessors

`mdbinder.preprocess` works on a book in its JSON form: a mapping with a
`sections` list whose chapter items are `{"Chapter": {...}}` tables holding
`name`, `content`, `path` and `sub_items`.

- `PreprocessorContext` carries the book root, the `Config`, the renderer name
  and a version string.
- `Preprocessor` is the abstract base: `run(ctx, book)` returns the updated
  book, `supports_renderer(renderer)` returns `True` unless overridden.
- `IndexPreprocessor` renames chapters whose file stem is `readme` (any case)
  to `index.md`, warning when an `index.md` already exists beside them.
- `CmdPreprocessor(name, cmd)` hands `[context, book]` as JSON to an external
  program on its standard input and reads the processed book back from its
  standard output; a non-zero exit or unparsable output raises
  `PreprocessorError`. `supports_renderer(renderer)` runs
  `<cmd> supports <renderer>` and treats exit status 0 as support.
  `CmdPreprocessor.parse_input(reader)` reads that JSON input back, for use in
  such a program.

## What this package does not do

It does not expand `{{#include}}`, `{{#playground}}` or `{{#title}}`
directives in chapter text, does not load or parse books from a source
directory, does not render books to HTML, and has no command-line tool.

## Running the tests

```
pip install "mdbinder[test]"
pytest
```