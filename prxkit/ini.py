"""INI documents that keep their comments when read, edited and written back."""

from __future__ import annotations

import logging
import os
import re
import sys
from dataclasses import dataclass, field
from typing import Iterable, Iterator, Optional

MAX_LINE_LENGTH = 1024
MAX_KEY_LENGTH = 256
MAX_VALUE_LENGTH = 512
MAX_SECTION_LENGTH = 256
MAX_COMMENT_LENGTH = 512

_WHITESPACE = " \t\n\v\f\r"
_ESCAPED_QUOTE = re.compile(r"\\[\"']")
_ENCODING = "utf-8"
_ERRORS = "surrogateescape"

logger = logging.getLogger(__name__)


def _clip(text: str, limit: int) -> str:
    """Cut text to what fits a field of ``limit`` including its terminator."""
    return text[: limit - 1]


def _trim(text: str) -> str:
    return text.strip(_WHITESPACE)


def _split_comment(line: str, marker: str) -> tuple[str, Optional[str]]:
    """Split an inline comment off ``line`` unless its marker sits inside quotes."""
    pos = line.find(marker)
    if pos < 0:
        return line, None
    prefix = _ESCAPED_QUOTE.sub("", line[:pos])
    quotes = sum(1 for ch in prefix if ch in "\"'")
    if quotes % 2:
        return line, None
    return line[:pos], _trim(line[pos + 1 :])


def _extract_comment(line: str) -> tuple[str, Optional[str]]:
    body, comment = _split_comment(line, ";")
    if comment is None:
        body, comment = _split_comment(body, "#")
    return body, comment


def _read_lines(text: str) -> Iterator[str]:
    """Yield lines the way a fixed line buffer reads them, without line ends."""
    pieces = text.split("\n")
    physical = [piece + "\n" for piece in pieces[:-1]]
    if pieces[-1]:
        physical.append(pieces[-1])
    chunk = MAX_LINE_LENGTH - 1
    for line in physical:
        for start in range(0, len(line), chunk):
            yield re.split(r"[\r\n]", line[start : start + chunk], maxsplit=1)[0]


def _comment_lines(comments: Iterable[str]) -> Iterator[str]:
    for text in comments:
        yield f"; {text}\n" if text else "\n"


@dataclass
class KeyValue:
    """A key with its value, inline comment and the comment lines above it."""

    key: str
    value: str = ""
    comment: str = ""
    comments_before: list[str] = field(default_factory=list)


@dataclass
class Section:
    """A named section; keys are kept newest first."""

    name: str
    comment: str = ""
    comments_before: list[str] = field(default_factory=list)
    keys: list[KeyValue] = field(default_factory=list)

    def find(self, key: str) -> Optional[KeyValue]:
        return next((kv for kv in self.keys if kv.key == key), None)


@dataclass
class IniFile:
    """An INI document bound to a file name; sections are kept newest first."""

    filename: str
    sections: list[Section] = field(default_factory=list)
    header_comments: list[str] = field(default_factory=list)
    modified: bool = False

    def _find_section(self, name: str) -> Optional[Section]:
        return next((s for s in self.sections if s.name == name), None)

    def _require_section(self, name: str) -> Section:
        section = self._find_section(name)
        if section is None:
            raise KeyError(name)
        return section

    def _new_section(self, name: str) -> Section:
        section = Section(_clip(name, MAX_SECTION_LENGTH))
        self.sections.insert(0, section)
        return section

    def _parse(self, text: str) -> None:
        current: Optional[Section] = None
        pending = self.header_comments
        for line in _read_lines(text):
            trimmed = _trim(line)
            if trimmed[:1] in (";", "#") and trimmed:
                pending.append(_clip(_trim(trimmed[1:]), MAX_COMMENT_LENGTH))
            elif not trimmed:
                pending.append("")
            elif trimmed.startswith("["):
                body, comment = _extract_comment(line)
                end = body.find("]")
                if end < 0:
                    continue
                current = self._new_section(_trim(body[1:end]))
                # Comments gathered above a section header are not kept.
                pending.clear()
                pending = current.comments_before
                if comment:
                    current.comment = _clip(comment, MAX_COMMENT_LENGTH)
            elif "=" in line and current is not None:
                body, comment = _extract_comment(line)
                key, sep, value = body.partition("=")
                if not sep:
                    continue
                kv = KeyValue(
                    key=_clip(_trim(key), MAX_KEY_LENGTH),
                    value=_clip(_trim(value), MAX_VALUE_LENGTH),
                    comments_before=list(pending),
                )
                pending.clear()
                if comment:
                    kv.comment = _clip(comment, MAX_COMMENT_LENGTH)
                current.keys.insert(0, kv)

    def save(self) -> None:
        """Write the document to its file and mark it unmodified."""
        with open(self.filename, "w", encoding=_ENCODING, errors=_ERRORS, newline="") as handle:
            handle.write(self.render())
        self.modified = False

    def get(self, section: str, key: str) -> Optional[str]:
        """Return the value of ``key`` in ``section``, or None."""
        found = self._find_section(section)
        if found is None:
            return None
        kv = found.find(key)
        return None if kv is None else kv.value

    def set(self, section: str, key: str, value: str, comment: Optional[str] = None) -> None:
        """Set a value, creating the section and key when missing."""
        target = self._find_section(section) or self._new_section(section)
        kv = target.find(key)
        if kv is None:
            kv = KeyValue(_clip(key, MAX_KEY_LENGTH))
            target.keys.insert(0, kv)
        kv.value = _clip(value, MAX_VALUE_LENGTH)
        if comment is not None:
            kv.comment = _clip(comment, MAX_COMMENT_LENGTH)
        self.modified = True

    def delete_key(self, section: str, key: str) -> None:
        """Remove ``key`` from ``section``; KeyError when either is missing."""
        target = self._require_section(section)
        kv = target.find(key)
        if kv is None:
            raise KeyError(key)
        target.keys.remove(kv)
        self.modified = True

    def delete_section(self, section: str) -> None:
        """Remove a whole section; KeyError when it is missing."""
        self.sections.remove(self._require_section(section))
        self.modified = True

    def add_comment(self, section: Optional[str], text: str) -> None:
        """Add a comment line to the header, or above ``section``'s keys."""
        comments = self.header_comments if section is None else self._require_section(section).comments_before
        comments.append(_clip(text, MAX_COMMENT_LENGTH))
        self.modified = True

    def add_section_comment(self, section: str, text: str) -> None:
        """Set the inline comment written after a section header."""
        self._require_section(section).comment = _clip(text, MAX_COMMENT_LENGTH)
        self.modified = True

    def render(self) -> str:
        """Return the document as it is written to disk."""
        parts = list(_comment_lines(self.header_comments))
        for section in self.sections:
            parts.extend(_comment_lines(section.comments_before))
            if section.comment:
                parts.append(f"[{section.name}] ; {section.comment}\n")
            else:
                parts.append(f"[{section.name}]\n")
            for kv in section.keys:
                parts.extend(_comment_lines(kv.comments_before))
                if kv.comment:
                    parts.append(f"{kv.key} = {kv.value} ; {kv.comment}\n")
                else:
                    parts.append(f"{kv.key} = {kv.value}\n")
            parts.append("\n")
        return "".join(parts)

    def dump(self) -> str:
        """Write the file name, modification state and contents to stdout and return that text."""
        text = (
            f"INI File: {self.filename}\n"
            f"Modified: {'Yes' if self.modified else 'No'}\n\n"
            f"{self.render()}"
        )
        sys.stdout.write(text)
        return text


def load(filename: "str | os.PathLike[str]") -> IniFile:
    """Read an INI file; a file that cannot be opened gives an empty document."""
    ini = IniFile(filename=os.fspath(filename))
    try:
        with open(filename, encoding=_ENCODING, errors=_ERRORS, newline="") as handle:
            text = handle.read()
    except OSError:
        logger.warning("Could not open file '%s'. Creating new INI structure.", ini.filename)
        return ini
    ini._parse(text)
    return ini