from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Literal, Optional

OPEN_PREFIX = '<file path="'
OPEN_SUFFIX = '">'
CLOSE_TAG = "</file>"

FileEventType = Literal["file_started", "file_completed"]

_BLOCK_RE = re.compile(r'<file path="([^"]+)">([\s\S]*?)(?:</file>|(?=<file path=")|\Z)')


@dataclass
class FileEvent:
    type: FileEventType
    path: str
    content: str


@dataclass
class FileBlock:
    path: str
    content: str

    def to_dict(self) -> Dict[str, str]:
        return {"path": self.path, "content": self.content}


@dataclass
class _OpenBlock:
    path: str
    content_start: int
    scan_from: int


class StreamingFileParser:
    """Incrementally pulls ``<file path="...">...</file>`` blocks out of a
    growing generation buffer.

    Each path is reported as completed exactly once, no matter how the text
    is chunked. A block that is still open at the tail is reported as
    started, with its partial content, on every call until it closes.
    """

    def __init__(self, processed: Optional[Iterable[str]] = None) -> None:
        self._processed = set(processed or ())
        self._completed: Dict[str, str] = {}
        self._buffer = ""
        self._cursor = 0
        self._open: Optional[_OpenBlock] = None

    @property
    def buffer(self) -> str:
        return self._buffer

    @property
    def processed(self) -> frozenset:
        return frozenset(self._processed)

    @property
    def in_progress(self) -> Optional[str]:
        if self._open and self._open.path not in self._processed:
            return self._open.path
        return None

    def completed_files(self) -> Dict[str, str]:
        return dict(self._completed)

    def feed(self, chunk: str) -> List[FileEvent]:
        if chunk:
            self._buffer += chunk
        return self._advance()

    def update(self, full_text: str) -> List[FileEvent]:
        """Accept the whole accumulated text seen so far."""
        if full_text.startswith(self._buffer):
            return self.feed(full_text[len(self._buffer) :])
        # not an extension of what we have: rescan, keeping what was emitted
        self._buffer = full_text
        self._cursor = 0
        self._open = None
        return self._advance()

    def finish(self) -> Optional[str]:
        """Path of a block left unterminated at end of stream, if any."""
        return self.in_progress

    def _advance(self) -> List[FileEvent]:
        events: List[FileEvent] = []
        buf = self._buffer
        while True:
            if self._open is None:
                start = buf.find(OPEN_PREFIX, self._cursor)
                if start < 0:
                    # a tag may be split across chunks
                    self._cursor = max(self._cursor, len(buf) - len(OPEN_PREFIX) + 1)
                    break
                path_start = start + len(OPEN_PREFIX)
                quote = buf.find('"', path_start)
                if quote < 0 or quote + len(OPEN_SUFFIX) > len(buf):
                    self._cursor = start
                    break
                path = buf[path_start:quote]
                if not path or buf[quote : quote + len(OPEN_SUFFIX)] != OPEN_SUFFIX:
                    self._cursor = start + 1
                    continue
                content_start = quote + len(OPEN_SUFFIX)
                self._open = _OpenBlock(path=path, content_start=content_start, scan_from=content_start)
                self._cursor = content_start
                continue

            block = self._open
            close = buf.find(CLOSE_TAG, block.scan_from)
            if close < 0:
                block.scan_from = max(block.content_start, len(buf) - len(CLOSE_TAG) + 1)
                break
            if block.path not in self._processed:
                content = buf[block.content_start : close].strip()
                self._processed.add(block.path)
                self._completed[block.path] = content
                events.append(FileEvent(type="file_completed", path=block.path, content=content))
            self._open = None
            self._cursor = close + len(CLOSE_TAG)

        if self._open and self._open.path not in self._processed:
            events.append(
                FileEvent(
                    type="file_started",
                    path=self._open.path,
                    content=buf[self._open.content_start :],
                )
            )
        return events


def extract_file_blocks(text: str) -> List[FileBlock]:
    """Parse every file block in a complete generation.

    A block ends at ``</file>``, at the next opening tag, or at the end of
    the text.
    """
    return [FileBlock(path=m.group(1), content=(m.group(2) or "").strip()) for m in _BLOCK_RE.finditer(text or "")]
