"""
Unit tests for BatchBuilder rendering and flush policy.
"""

import re

import pytest

from conftest import FakeEscaper, make_rows, mysql_unescape
from tablecopy.errors import EscapeError, SourceReadError
from tablecopy.pipeline import BatchBuilder, BatchConfig, Row

PREFIX = b"INSERT INTO `dst` VALUES\n"


def _tuples(payload) -> list[bytes]:
    body = payload.statement[len(PREFIX) :]
    return body.split(b",\n")


def test_empty_source_emits_nothing(escaper):
    builder = BatchBuilder("`dst`", escaper)
    assert list(builder.build([])) == []


def test_single_batch_layout(escaper):
    builder = BatchBuilder("`dst`", escaper)
    rows = [Row((b"1", b"a")), Row((b"2", None))]
    (payload,) = list(builder.build(rows))

    assert payload.statement == PREFIX + b"('1','a'),\n('2',NULL)"
    assert payload.row_count == 2
    assert payload.sequence == 0
    assert payload.size == len(payload.statement)


def test_null_renders_unquoted(escaper):
    builder = BatchBuilder("`dst`", escaper)
    assert builder.render_row(Row((None, b"NULL", None))) == b"(NULL,'NULL',NULL)"


def test_escaped_literal_round_trips(escaper):
    raw = b"it's a \\ back\nslash\x00\x1a\"q\""
    builder = BatchBuilder("`dst`", escaper)
    rendered = builder.render_row(Row((raw,)))

    assert rendered.startswith(b"('") and rendered.endswith(b"')")
    assert mysql_unescape(rendered[2:-2]) == raw


@pytest.mark.parametrize("n_rows,threshold", [(1, 10), (57, 200), (500, 1024), (1000, 1 << 20)])
def test_rows_preserved_and_threshold_respected(escaper, n_rows, threshold):
    rows = make_rows(n_rows)
    builder = BatchBuilder("`dst`", escaper, BatchConfig(flush_bytes=threshold))
    payloads = list(builder.build(rows))

    assert sum(p.row_count for p in payloads) == n_rows
    assert [p.sequence for p in payloads] == list(range(len(payloads)))
    for p in payloads[:-1]:
        assert p.size >= threshold

    rendered = [t for p in payloads for t in _tuples(p)]
    assert rendered == [builder.render_row(r) for r in rows]
    for p in payloads:
        assert p.statement.startswith(PREFIX)
        assert len(_tuples(p)) == p.row_count


def test_flush_happens_right_after_crossing_threshold(escaper):
    rows = make_rows(10, width=1, size=50)
    row_len = len(BatchBuilder("`dst`", escaper).render_row(rows[0]))
    # prefix + 2 rows + separator stays under, the third row crosses
    threshold = len(PREFIX) + 2 * row_len + 2 + 1
    payloads = list(BatchBuilder("`dst`", escaper, BatchConfig(flush_bytes=threshold)).build(rows))

    assert [p.row_count for p in payloads] == [3, 3, 3, 1]


def test_order_survives_odd_values(escaper):
    rows = [Row((str(i).encode(), None if i % 3 else b"x'y")) for i in range(100)]
    payloads = list(BatchBuilder("`dst`", escaper, BatchConfig(flush_bytes=64)).build(rows))
    ids = []
    for p in payloads:
        ids.extend(int(m) for m in re.findall(rb"\('(\d+)'", p.statement))
    assert ids == list(range(100))


def test_escape_failure_propagates_without_partial_payload():
    class BrokenEscaper(FakeEscaper):
        def escape(self, raw: bytes) -> bytes:
            if raw == b"bad":
                raise UnicodeError("cannot encode")
            return super().escape(raw)

    builder = BatchBuilder("`dst`", BrokenEscaper())
    produced = []
    with pytest.raises(EscapeError):
        for p in builder.build([Row((b"ok",)), Row((b"bad",)), Row((b"never",))]):
            produced.append(p)
    assert produced == []


def test_source_failure_is_source_read_error(escaper):
    def rows():
        yield Row((b"1",))
        raise ConnectionResetError("lost connection during query")

    builder = BatchBuilder("`dst`", escaper, BatchConfig(flush_bytes=1))
    produced = []
    with pytest.raises(SourceReadError, match="lost connection"):
        for p in builder.build(rows()):
            produced.append(p)
    # the row read before the failure was already flushed
    assert [p.row_count for p in produced] == [1]


def test_invalid_threshold(escaper):
    with pytest.raises(ValueError):
        BatchBuilder("`dst`", escaper, BatchConfig(flush_bytes=0))


def test_closing_the_builder_closes_the_source(escaper):
    state = {"read": 0, "closed": False}

    def rows():
        try:
            for r in make_rows(1000):
                state["read"] += 1
                yield r
        finally:
            state["closed"] = True

    payloads = BatchBuilder("`dst`", escaper, BatchConfig(flush_bytes=1)).build(rows())
    first = next(payloads)
    payloads.close()

    assert first.row_count == 1
    assert state["closed"]
    assert state["read"] == 1


def test_row_lengths_count_null_as_zero():
    row = Row((b"abc", None, b""))
    assert row.lengths == (3, 0, 0)
    assert len(row) == 3
