from .parser import FileBlock, FileEvent, StreamingFileParser, extract_file_blocks
from .sse import format_sse, iter_sse_json

__all__ = [
    "FileBlock",
    "FileEvent",
    "StreamingFileParser",
    "extract_file_blocks",
    "format_sse",
    "iter_sse_json",
]
