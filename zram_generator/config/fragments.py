"""Locate and parse configuration fragments.

Fragments are searched in four base directories, in ascending priority::

    <root>/usr/lib/systemd/zram-generator.conf[.d/*.conf]
    <root>/usr/local/lib/systemd/zram-generator.conf[.d/*.conf]
    <root>/etc/systemd/zram-generator.conf[.d/*.conf]
    <root>/run/systemd/zram-generator.conf[.d/*.conf]

Only the highest-priority main file is used. Drop-ins are keyed by file name:
a drop-in in a higher-priority directory replaces the same-named drop-in
from a lower one. The main file comes first, followed by the drop-ins sorted
by file name, so later fragments override earlier ones. Hidden files in a
drop-in directory are skipped.
"""

from __future__ import annotations

import configparser
from dataclasses import dataclass, field
from pathlib import Path

from zram_generator.exceptions import FragmentError
from zram_generator.logging import LoggerFactory

from .settings import ResolutionSettings

# Keys before the first [section] are gathered under this name. Section
# headers cannot contain NUL, so no file can collide with it.
TOP_LEVEL_SECTION = "\0top-level"
_DEFAULT_SECTION = "\0defaults"

log = LoggerFactory.for_config()


@dataclass(frozen=True)
class Fragment:
    """One parsed configuration file.

    ``precedence`` is its position in application order (0 is applied first).
    """

    precedence: int
    path: Path
    sections: dict[str, dict[str, str]] = field(default_factory=dict)
    top_level: dict[str, str] = field(default_factory=dict)


def _list_dropins(directory: Path, suffix: str) -> list[Path]:
    try:
        entries = list(directory.iterdir())
    except (FileNotFoundError, NotADirectoryError):
        return []
    except OSError as error:
        raise FragmentError(directory, f"Failed to list drop-in directory: {error}") from error
    return [
        entry
        for entry in entries
        if not entry.name.startswith(".")
        and entry.name.endswith(suffix)
        and len(entry.name) > len(suffix)
        and not entry.is_dir()
    ]


def locate_fragments(settings: ResolutionSettings) -> list[Path]:
    """Return fragment paths in the order they must be applied."""
    main_file: Path | None = None
    dropins: dict[str, Path] = {}

    for base_dir in settings.base_dirs:
        candidate = settings.config_file(base_dir)
        if candidate.exists():
            main_file = candidate
        for dropin in _list_dropins(settings.dropin_dir(base_dir), settings.dropin_suffix):
            dropins[dropin.name] = dropin

    fragments = [main_file] if main_file is not None else []
    fragments.extend(dropins[name] for name in sorted(dropins))
    return fragments


def _new_parser() -> configparser.ConfigParser:
    parser = configparser.ConfigParser(
        delimiters=("=",),
        comment_prefixes=("#", ";"),
        inline_comment_prefixes=None,
        strict=False,
        empty_lines_in_values=False,
        interpolation=None,
        default_section=_DEFAULT_SECTION,
    )
    parser.optionxform = str  # keys are case-sensitive
    return parser


def parse_fragment_text(text: str, path: Path, precedence: int = 0) -> Fragment:
    """Parse INI text into a Fragment.

    Raises:
        FragmentError: If the text is not valid INI
    """
    # Values never span lines; an indented line is a key of its own.
    text = "\n".join(line.lstrip() for line in text.splitlines())
    parser = _new_parser()
    try:
        parser.read_string(f"[{TOP_LEVEL_SECTION}]\n{text}", source=str(path))
    except configparser.Error as error:
        raise FragmentError(path, str(error)) from error

    top_level: dict[str, str] = {}
    sections: dict[str, dict[str, str]] = {}
    for name in parser.sections():
        values = dict(parser.items(name, raw=True))
        if name == TOP_LEVEL_SECTION:
            top_level = values
        else:
            sections[name] = values
    return Fragment(precedence=precedence, path=path, sections=sections, top_level=top_level)


def load_fragment(path: Path, precedence: int = 0) -> Fragment:
    """Read and parse one fragment file.

    Raises:
        FragmentError: If the file cannot be read or parsed
    """
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as error:
        raise FragmentError(path, str(error)) from error
    log.debug(f"Parsing {path}")
    return parse_fragment_text(text, path, precedence)


def load_fragments(settings: ResolutionSettings) -> list[Fragment]:
    paths = locate_fragments(settings)
    if not paths:
        log.info("No configuration found.")
    for path in paths:
        log.info(f"Found configuration fragment {path}")
    return [load_fragment(path, precedence) for precedence, path in enumerate(paths)]
