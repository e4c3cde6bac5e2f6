from __future__ import annotations

import io
import json

import pytest

from adapters.output_sinks import BufferSink, StreamSink, build_sink
from core.domain.errors import OutputSinkError
from core.domain.models import OutputMode, RetryPolicy


class BrokenPipe(io.StringIO):
    def write(self, text: str) -> int:
        raise BrokenPipeError("broken pipe")


def test_stream_sink_writes_one_json_object_per_line() -> None:
    out = io.StringIO()
    sink = StreamSink(out)
    records = [{"groupKey": "g1", "memberKey": "m1", "result": True}, {"groupKey": "g1", "memberKey": "m2", "result": True}]

    for record in records:
        sink.write(record)
    sink.close()

    lines = out.getvalue().splitlines()
    assert [json.loads(line) for line in lines] == records


def test_buffer_sink_emits_single_array_on_close() -> None:
    out = io.StringIO()
    sink = BufferSink(out)
    sink.write({"a": 1})
    sink.write({"a": 2})
    assert out.getvalue() == ""

    sink.close()

    assert json.loads(out.getvalue()) == [{"a": 1}, {"a": 2}]
    assert "\n  " in out.getvalue()


def test_buffer_sink_compress() -> None:
    out = io.StringIO()
    sink = BufferSink(out, compress=True)
    sink.write({"a": 1})
    sink.close()
    assert out.getvalue() == '[{"a":1}]\n'


def test_buffer_sink_empty_result_is_an_empty_array() -> None:
    out = io.StringIO()
    BufferSink(out).close()
    assert json.loads(out.getvalue()) == []


def test_single_item_is_emitted_bare() -> None:
    out = io.StringIO()
    sink = BufferSink(out, single=True)
    sink.write({"userKey": "a@ex.com", "result": True})
    sink.close()
    assert json.loads(out.getvalue()) == {"userKey": "a@ex.com", "result": True}


def test_buffer_sink_emits_nothing_when_cancelled() -> None:
    out = io.StringIO()
    sink = BufferSink(out)
    sink.write({"a": 1})
    sink.close(cancelled=True)
    assert out.getvalue() == ""


def test_pydantic_records_are_dumped_as_json() -> None:
    out = io.StringIO()
    sink = StreamSink(out)
    sink.write(RetryPolicy())
    assert json.loads(out.getvalue())["max_attempts"] == 5


def test_write_failure_is_an_output_sink_error() -> None:
    with pytest.raises(OutputSinkError):
        StreamSink(BrokenPipe()).write({"a": 1})
    sink = BufferSink(BrokenPipe())
    sink.write({"a": 1})
    with pytest.raises(OutputSinkError):
        sink.close()


def test_build_sink_selects_by_mode() -> None:
    assert isinstance(build_sink(OutputMode.STREAM, out=io.StringIO()), StreamSink)
    assert isinstance(build_sink(OutputMode.BUFFER, out=io.StringIO()), BufferSink)


def test_sinks_satisfy_the_output_contract() -> None:
    from core.interfaces.output import OutputSink

    assert isinstance(StreamSink(io.StringIO()), OutputSink)
    assert isinstance(BufferSink(io.StringIO()), OutputSink)
