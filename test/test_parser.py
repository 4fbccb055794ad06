from __future__ import annotations

from internal.streaming import StreamingFileParser, extract_file_blocks

GENERATION = (
    "Here is the change.\n"
    '<file path="src/App.tsx">\nexport default function App() { return null; }\n</file>\n'
    "some chatter\n"
    '<file path="src/api.ts">export const api = {};</file>'
)


def _completed(events):
    return [(e.path, e.content) for e in events if e.type == "file_completed"]


def test_whole_buffer_completes_each_file() -> None:
    parser = StreamingFileParser()
    events = parser.feed(GENERATION)

    assert _completed(events) == [
        ("src/App.tsx", "export default function App() { return null; }"),
        ("src/api.ts", "export const api = {};"),
    ]
    assert parser.in_progress is None
    assert parser.finish() is None
    assert parser.processed == frozenset({"src/App.tsx", "src/api.ts"})


def test_one_byte_chunks_match_whole_buffer() -> None:
    parser = StreamingFileParser()
    completed = []
    for ch in GENERATION:
        completed.extend(_completed(parser.feed(ch)))

    whole = StreamingFileParser()
    assert completed == _completed(whole.feed(GENERATION))
    assert parser.completed_files() == whole.completed_files()


def test_update_with_growing_buffer_emits_each_path_once() -> None:
    parser = StreamingFileParser()
    completed = []
    for end in range(0, len(GENERATION) + 1, 5):
        completed.extend(_completed(parser.update(GENERATION[:end])))
    completed.extend(_completed(parser.update(GENERATION)))
    completed.extend(_completed(parser.update(GENERATION)))

    assert [path for path, _ in completed] == ["src/App.tsx", "src/api.ts"]


def test_open_block_reports_partial_content() -> None:
    parser = StreamingFileParser()
    events = parser.feed('<file path="a.ts">const a')

    assert [(e.type, e.path, e.content) for e in events] == [("file_started", "a.ts", "const a")]
    assert parser.in_progress == "a.ts"

    events = parser.feed(" = 1;")
    assert [(e.type, e.content) for e in events] == [("file_started", "const a = 1;")]

    events = parser.feed("</file>")
    assert _completed(events) == [("a.ts", "const a = 1;")]
    assert parser.in_progress is None


def test_unterminated_block_is_never_completed() -> None:
    parser = StreamingFileParser()
    parser.feed('<file path="ok.ts">x</file><file path="broken.ts">half')

    assert parser.finish() == "broken.ts"
    assert "broken.ts" not in parser.completed_files()
    assert parser.completed_files() == {"ok.ts": "x"}


def test_split_open_and_close_tags() -> None:
    parser = StreamingFileParser()
    events = []
    for piece in ['<fi', 'le pa', 'th="x.', 'ts">bo', 'dy</f', 'ile>']:
        events.extend(parser.feed(piece))

    assert _completed(events) == [("x.ts", "body")]


def test_seeded_paths_are_not_reemitted() -> None:
    parser = StreamingFileParser(processed=["src/App.tsx"])
    events = parser.feed(GENERATION)

    assert [path for path, _ in _completed(events)] == ["src/api.ts"]


def test_rewritten_buffer_is_rescanned() -> None:
    parser = StreamingFileParser()
    parser.feed('<file path="a.ts">1</file>')
    events = parser.update('<file path="a.ts">2</file><file path="b.ts">3</file>')

    assert _completed(events) == [("b.ts", "3")]


def test_extract_file_blocks_handles_unclosed_blocks() -> None:
    text = '<file path="a.ts"> one </file><file path="b.ts">two<file path="c.ts">three'
    blocks = extract_file_blocks(text)

    assert [(b.path, b.content) for b in blocks] == [("a.ts", "one"), ("b.ts", "two"), ("c.ts", "three")]
    assert blocks[0].to_dict() == {"path": "a.ts", "content": "one"}


def test_extract_file_blocks_keeps_duplicates_in_order() -> None:
    blocks = extract_file_blocks('<file path="a.ts">1</file><file path="a.ts">2</file>')
    assert [b.content for b in blocks] == ["1", "2"]
    assert extract_file_blocks("") == []
