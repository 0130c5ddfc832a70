"""
Unit tests for the line framer.

Tests cover:
- LF, CR LF and bare CR terminators
- Chunk-boundary independence (including CR LF split across chunks)
- flush() of an unterminated fragment
- Strict decoding: bad lines are dropped and reported, framing continues
- feed/flush racing on two threads
"""

import threading

import pytest

from coretemp.framer import LineFramer


SAMPLE = b"seq1, 23.5 C, OK\r\nseq2, 23.6 C, OK\nold\rdevice\r\r\n\xe6\xb8\xa9\xe5\xba\xa6, 1 C, OK\npartial"


def _frame(chunks):
    out = []
    f = LineFramer(out.append)
    for c in chunks:
        f.feed(c)
    return out


class TestTerminators:

    def test_lf_lines_in_order(self, framer, lines):
        framer.feed(b"a,b\n")
        framer.feed(b"c,d\n")
        assert lines == ["a,b", "c,d"]

    def test_crlf_collapses_to_one_line(self, framer, lines):
        framer.feed(b"x\r\ny\n")
        assert lines == ["x", "y"]

    def test_bare_cr_is_a_terminator(self, framer, lines):
        framer.feed(b"x\ry\r")
        assert lines == ["x", "y"]

    def test_cr_flushes_before_lf_arrives(self, framer, lines):
        framer.feed(b"x\r")
        assert lines == ["x"]
        framer.feed(b"\n")
        assert lines == ["x"]

    def test_crlf_split_across_feeds_is_one_line(self, framer, lines):
        framer.feed(b"x\r")
        framer.feed(b"\ny\r")
        framer.feed(b"\n")
        assert lines == ["x", "y"]

    def test_double_cr_yields_empty_second_line(self, framer, lines):
        framer.feed(b"x\r\r")
        assert lines == ["x", ""]

    def test_blank_lf_lines_are_not_coalesced(self, framer, lines):
        framer.feed(b"\n\nx\n")
        assert lines == ["", "", "x"]

    def test_lf_after_cr_only_swallowed_once(self, framer, lines):
        framer.feed(b"x\r\n\n")
        assert lines == ["x", ""]

    def test_byte_between_cr_and_lf_clears_pairing(self, framer, lines):
        framer.feed(b"x\ra\n")
        assert lines == ["x", "a"]


class TestChunking:

    def test_every_single_split_matches_whole_feed(self):
        whole = _frame([SAMPLE])
        for cut in range(len(SAMPLE) + 1):
            assert _frame([SAMPLE[:cut], SAMPLE[cut:]]) == whole, cut

    def test_byte_at_a_time_matches_whole_feed(self):
        whole = _frame([SAMPLE])
        assert _frame([SAMPLE[i:i + 1] for i in range(len(SAMPLE))]) == whole

    def test_empty_chunk_is_a_no_op(self, framer, lines):
        framer.feed(b"")
        framer.feed(b"ab")
        framer.feed(b"")
        framer.feed(b"\n")
        assert lines == ["ab"]

    def test_multibyte_character_split_across_chunks(self, framer, lines):
        raw = "温度\n".encode("utf-8")
        framer.feed(raw[:2])
        framer.feed(raw[2:])
        assert lines == ["温度"]


class TestFlush:

    def test_partial_only_emitted_on_flush(self, framer, lines):
        framer.feed(b"partial")
        assert lines == []
        assert framer.pending == 7
        assert framer.flush() is True
        assert lines == ["partial"]
        assert framer.pending == 0

    def test_flush_with_empty_buffer_emits_nothing(self, framer, lines):
        framer.feed(b"x\n")
        assert framer.flush() is False
        assert lines == ["x"]

    def test_flush_after_cr_does_not_swallow_next_lf(self, framer, lines):
        framer.feed(b"x\r")
        framer.flush()
        framer.feed(b"\n")
        assert lines == ["x", ""]

    def test_reset_drops_partial(self, framer, lines):
        framer.feed(b"junk")
        framer.reset()
        framer.feed(b"ok\n")
        assert lines == ["ok"]


class TestDecoding:

    def test_invalid_line_dropped_and_reported(self):
        out, errors = [], []
        f = LineFramer(out.append, on_decode_error=lambda raw, exc: errors.append(raw))
        f.feed(b"good\n\xff\xfe bad\nnext\n")
        assert out == ["good", "next"]
        assert errors == [b"\xff\xfe bad"]
        assert f.decode_errors == 1
        assert f.lines_emitted == 2

    def test_decode_error_logged_once(self, caplog):
        f = LineFramer(lambda line: None)
        with caplog.at_level("WARNING", logger="coretemp.framer"):
            f.feed(b"\xff\n")
        assert [r.getMessage() for r in caplog.records] == ["line_decode_error"]

    def test_configured_encoding(self):
        out = []
        f = LineFramer(out.append, encoding="latin-1")
        f.feed(b"23.5 \xb0C\n")
        assert out == ["23.5 °C"]

    def test_unknown_encoding_rejected(self):
        with pytest.raises(LookupError):
            LineFramer(lambda line: None, encoding="no-such-codec")

    @pytest.mark.parametrize("encoding", ["utf-16-le", "utf-16", "utf-32"])
    def test_multibyte_terminator_encodings_rejected(self, encoding):
        with pytest.raises(ValueError, match="LF/CR"):
            LineFramer(lambda line: None, encoding=encoding)

    @pytest.mark.parametrize("encoding", ["utf-8", "ascii", "latin-1", "cp1252"])
    def test_single_byte_terminator_encodings_accepted(self, encoding):
        out = []
        f = LineFramer(out.append, encoding=encoding)
        f.feed("ab\ncd\r\n".encode(encoding))
        assert out == ["ab", "cd"]

    def test_decode_error_callback_runs_outside_the_lock(self):
        out, seen = [], []
        f = LineFramer(out.append)

        def on_bad(raw, exc):
            # re-entering the framer must not deadlock
            seen.append((raw, f.pending))
            f.flush()

        f.on_decode_error = on_bad
        done = threading.Event()
        t = threading.Thread(target=lambda: (f.feed(b"\xff\nnext\ntail"), done.set()))
        t.start()
        assert done.wait(2)
        assert seen == [(b"\xff", 4)]
        assert out == ["next", "tail"]

    def test_raising_decode_callback_does_not_lose_rest_of_chunk(self):
        out = []

        def on_bad(raw, exc):
            raise RuntimeError("handler bug")

        f = LineFramer(out.append, on_decode_error=on_bad)
        with pytest.raises(RuntimeError):
            f.feed(b"\xff\na\nb\n")
        assert out == ["a", "b"]


def test_feed_and_flush_from_two_threads_lose_nothing():
    out = []
    f = LineFramer(out.append)
    n = 2000
    go = threading.Event()

    def writer():
        go.wait()
        for i in range(n):
            f.feed(f"L{i}\n".encode())

    def flusher():
        go.wait()
        for _ in range(n):
            f.flush()

    ts = [threading.Thread(target=writer), threading.Thread(target=flusher)]
    for t in ts:
        t.start()
    go.set()
    for t in ts:
        t.join()
    f.flush()

    # a flush may split a line in two, but bytes never go missing or reorder
    assert "".join(out) == "".join(f"L{i}" for i in range(n))
