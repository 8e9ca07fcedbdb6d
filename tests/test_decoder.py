# tests/test_decoder.py
import logging

import pytest

from buildflow.core.decoder import EventStreamDecoder, decode_stream, decode_text
from buildflow.core.events import (
    Action, FileContent, Message, PlanRequest, RoutingDecision, SearchSources, TaskList,
    ToolCallEvent, UsageMetadata, parse_event,
)
from buildflow.core.exceptions import ProtocolError
from buildflow.core.models import ActionKind

from helpers import action, file_content, message, plan_request, script, task_list, tool_call

STREAM = script(
    {"type": "routing_decision", "data": {"phase": "build", "topic": "dark mode"}},
    task_list(("1", "Add toggle"), ("2", "Persist choice")),
    action("task_start", "1"),
    action("write", "src/Toggle.tsx"),
    file_content("src/Toggle.tsx", "export const Toggle = () => null;\n"),
    message("Adding a toggle."),
    tool_call("finish_task", summary="done"),
    {"type": "usage_metadata", "data": {"promptTokenCount": 10, "totalTokenCount": 42}},
)


def _chunked(text, size):
    return [text[i:i + size] for i in range(0, len(text), size)]


class TestParseEvent:
    def test_action_kind_is_case_insensitive(self):
        event = parse_event(action("write", "a.ts"))
        assert event == Action(ActionKind.WRITE, "a.ts")

    def test_numeric_task_target_becomes_string(self):
        event = parse_event({"type": "action", "data": {"type": "TASK_START", "target": 2}})
        assert event.target == "2"

    def test_task_list_accepts_wrapped_form(self):
        event = parse_event({"type": "task_list", "data": {"tasks": [{"id": 1, "description": "x"}]}})
        assert isinstance(event, TaskList)
        assert event.tasks[0].id == "1"

    def test_tool_call_with_null_args(self):
        event = parse_event({"type": "tool_call", "data": {"name": "list_files", "args": None}})
        assert isinstance(event, ToolCallEvent)
        assert event.call.args == {}

    def test_plan_request(self):
        assert parse_event(plan_request("a", "b")) == PlanRequest(("a", "b"))

    def test_search_sources(self):
        event = parse_event({"type": "search_sources", "data": [{"uri": "https://x.dev", "title": "X"}]})
        assert isinstance(event, SearchSources)
        assert event.sources[0].title == "X"

    @pytest.mark.parametrize("obj", [
        [],
        {"type": "nope", "data": {}},
        {"type": "action"},
        {"type": "action", "data": {"type": "DANCE"}},
        {"type": "file-content", "data": {"path": "a"}},
        {"type": "plan_request", "data": {"steps": "one"}},
        {"type": "tool_call", "data": {"name": "x", "args": []}},
    ])
    def test_invalid_objects_raise(self, obj):
        with pytest.raises(ProtocolError):
            parse_event(obj)

    def test_file_paths_are_normalized(self):
        assert parse_event(action("EDIT", "./src/a.ts")).target == "src/a.ts"
        assert parse_event(file_content("/src/a.ts", "x")).path == "src/a.ts"

    @pytest.mark.parametrize("obj", [
        action("WRITE", "/"),
        action("EDIT", "   "),
        file_content("./", "x"),
        file_content("  ", "x"),
    ])
    def test_unusable_file_paths_raise(self, obj):
        with pytest.raises(ProtocolError):
            parse_event(obj)


class TestDecoder:
    def test_decodes_every_event_type_in_order(self):
        events = list(decode_text([STREAM]))
        assert [type(e) for e in events] == [
            RoutingDecision, TaskList, Action, Action, FileContent, Message, ToolCallEvent, UsageMetadata,
        ]
        assert events[-1].total == 42

    @pytest.mark.parametrize("size", [1, 2, 3, 7, 64, 10_000])
    def test_chunk_boundaries_do_not_matter(self, size):
        assert list(decode_text(_chunked(STREAM, size))) == list(decode_text([STREAM]))

    def test_malformed_line_is_dropped_with_warning(self, caplog):
        text = script(message("before"), "{this is not json", "", message("after"))
        decoder = EventStreamDecoder()

        with caplog.at_level(logging.WARNING, logger="buildflow.core.decoder"):
            events = decoder.feed(text) + decoder.flush()

        assert [e.text for e in events] == ["before", "after"]
        assert decoder.dropped_lines == 1
        assert "Dropping malformed stream line" in caplog.text

    def test_unknown_event_type_counts_as_malformed(self):
        decoder = EventStreamDecoder()
        events = decoder.feed(script({"type": "telemetry", "data": {}}, message("ok")))
        assert [e.text for e in events] == ["ok"]
        assert decoder.dropped_lines == 1

    def test_final_line_without_newline_is_parsed_on_flush(self):
        decoder = EventStreamDecoder()
        assert decoder.feed('{"type": "message", "data": {"content": "tail"}}') == []
        assert decoder.flush() == [Message("tail")]

    def test_crlf_line_endings(self):
        text = script(message("a")).replace("\n", "\r\n") + script(message("b")).replace("\n", "\r\n")
        assert [e.text for e in decode_text([text])] == ["a", "b"]

    def test_feed_after_flush_is_an_error(self):
        decoder = EventStreamDecoder()
        decoder.flush()
        assert decoder.flush() == []
        with pytest.raises(RuntimeError):
            decoder.feed("x")


@pytest.mark.anyio
async def test_decode_stream_over_async_chunks():
    async def chunks():
        for piece in _chunked(STREAM, 5):
            yield piece

    events = [event async for event in decode_stream(chunks())]
    assert events == list(decode_text([STREAM]))
