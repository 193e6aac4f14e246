"""Invocation unit tests.

Test coverage:
- Per-stream content preservation
- stdout-first ordering (pinned) and arrival ordering
- Line splitting (LF/CRLF, trailing whitespace)
- Decode errors end the sequence
- Exit status exposure
- Concurrent pulls
- Early close (no kill, no blocking)
- Spawn errors
"""

from __future__ import annotations

import gc
import subprocess
import sys
import threading
import time

import pytest

from conftest import fake_argv
from p4_cli.errors import SpawnError, StreamDecodeError
from p4_cli.runtime import (
    ArrivalOrderMerger,
    Invocation,
    InvocationState,
    StderrLine,
    StdoutLine,
    Stream,
)


def texts(records, stream: Stream) -> list[str]:
    return [r.text for r in records if r.stream == stream]


# =============================================================================
# Basic Execution Tests
# =============================================================================


class TestBasicExecution:
    """Test basic record production."""

    def test_help_first_record_is_stdout(self):
        """Usage text arrives on stdout, first."""
        records = list(Invocation(fake_argv("--help")))

        assert records
        assert isinstance(records[0], StdoutLine)
        assert "Usage:" in records[0].text

    def test_stdout_and_stderr_content_preserved(self):
        """No line is dropped, duplicated or mutated."""
        inv = Invocation(fake_argv(
            "--out", "a", "--err", "x", "--out", "b", "--err", "y", "--out", "c",
        ))
        records = list(inv)

        assert texts(records, Stream.STDOUT) == ["a", "b", "c"]
        assert texts(records, Stream.STDERR) == ["x", "y"]
        assert len(records) == 5

    def test_empty_output(self):
        """A silent child yields an empty sequence."""
        inv = Invocation(fake_argv())

        assert list(inv) == []
        assert inv.state == InvocationState.EXHAUSTED

    def test_large_output(self):
        """Many lines come through intact and in order."""
        records = list(Invocation(fake_argv("--lines", "2000")))

        assert [r.text for r in records] == [f"line{n}" for n in range(1, 2001)]

    def test_arguments_passed_verbatim(self):
        """Tokens with spaces and shell metacharacters are not interpreted."""
        token = "a b; echo $HOME | cat"
        records = list(Invocation(fake_argv("--out", token)))

        assert [r.text for r in records] == [token]

    def test_records_print_as_text(self):
        """str() of a record is its line, whichever stream it came from."""
        records = list(Invocation(fake_argv("--out", "hello", "--err", "oops")))

        assert [str(r) for r in records] == ["hello", "oops"]


# =============================================================================
# Ordering Tests
# =============================================================================


class TestStdoutFirstOrdering:
    """Pin the stdout-first merge order."""

    def test_interleaved_writes_drain_stdout_first(self):
        """Alternating flushed writes come out as all stdout, then all stderr."""
        records = list(Invocation(fake_argv("--interleave", "3")))

        assert [(r.stream.value, r.text) for r in records] == [
            ("stdout", "out1"),
            ("stdout", "out2"),
            ("stdout", "out3"),
            ("stderr", "err1"),
            ("stderr", "err2"),
            ("stderr", "err3"),
        ]

    def test_stderr_only(self):
        """With stdout empty, stderr lines come through in order."""
        records = list(Invocation(fake_argv("--err", "e1", "--err", "e2")))

        assert all(isinstance(r, StderrLine) for r in records)
        assert [r.text for r in records] == ["e1", "e2"]


class TestArrivalOrdering:
    """Arrival-order merge policy."""

    @pytest.mark.timeout(10)
    def test_interleaved_writes_keep_arrival_order(self):
        """With gaps between writes, records follow emission order."""
        inv = Invocation(fake_argv("--gap", "0.1", "--interleave", "3"), merge="arrival")
        records = list(inv)

        assert [r.text for r in records] == ["out1", "err1", "out2", "err2", "out3", "err3"]
        assert inv.returncode == 0

    @pytest.mark.timeout(10)
    def test_queue_is_bounded(self):
        """A slow consumer does not make the readers buffer everything."""

        class SmallQueueMerger(ArrivalOrderMerger):
            queue_size = 4

        inv = Invocation(fake_argv("--lines", "200"), merge=SmallQueueMerger)
        time.sleep(0.3)

        assert inv._merger._queue.qsize() <= 4
        assert [r.text for r in inv] == [f"line{n}" for n in range(1, 201)]
        assert inv.returncode == 0

    @pytest.mark.timeout(10)
    def test_close_with_full_queue_lets_child_finish(self):
        """After close the readers keep draining, so a chatty child still exits."""

        class SmallQueueMerger(ArrivalOrderMerger):
            queue_size = 4

        inv = Invocation(
            fake_argv("--lines", "20000", "--exit-code", "7"),
            merge=SmallQueueMerger,
        )
        assert next(inv).text == "line1"
        inv.close()

        assert inv.wait(timeout=5) == 7

    def test_merge_class_accepted(self):
        """A Merger subclass can be passed instead of a name."""
        records = list(Invocation(fake_argv("--out", "a", "--err", "b"), merge=ArrivalOrderMerger))

        assert sorted(r.text for r in records) == ["a", "b"]

    def test_unknown_policy_rejected(self):
        with pytest.raises(ValueError, match="Unknown merge policy"):
            Invocation(fake_argv(), merge="chronological")


# =============================================================================
# Line Splitting Tests
# =============================================================================


class TestLineSplitting:
    """Test line terminator handling."""

    def test_crlf_and_trailing_whitespace(self):
        """CRLF is removed, other trailing whitespace is kept."""
        records = list(Invocation(fake_argv("--crlf")))

        assert [r.text for r in records] == ["first", "second  ", "third\t"]

    def test_bad_utf8_is_fatal(self):
        """Malformed bytes end the sequence; earlier records stay valid."""
        inv = Invocation(fake_argv("--bad-utf8"))

        first = next(inv)
        assert first.text == "good line"

        with pytest.raises(StreamDecodeError) as exc_info:
            next(inv)
        assert exc_info.value.stream == "stdout"

        assert inv.pull() is None
        assert inv.state == InvocationState.CLOSED

    def test_other_encoding(self):
        """Bytes invalid in UTF-8 decode under latin-1."""
        records = list(Invocation(fake_argv("--bad-utf8"), encoding="latin-1"))

        assert len(records) == 3
        assert records[2].text == "never seen"

    @pytest.mark.parametrize("encoding", ["utf-16-le", "utf-16", "utf-32", "no-such-codec"])
    def test_encoding_without_single_byte_newline_rejected(self, encoding: str):
        """UTF-16 output would be cut mid code unit, so it is refused up front."""
        with pytest.raises(ValueError, match="cannot be split into lines"):
            Invocation(fake_argv("--out", "never spawned"), encoding=encoding)


# =============================================================================
# Exit Status Tests
# =============================================================================


class TestExitStatus:
    """Test returncode exposure."""

    def test_returncode_after_exhaustion(self):
        inv = Invocation(fake_argv("--out", "x", "--exit-code", "3"))

        assert inv.returncode is None
        list(inv)

        assert inv.returncode == 3
        assert inv.state == InvocationState.EXHAUSTED

    def test_silent_failure_is_visible(self):
        """A non-zero exit without stderr output is still reported."""
        inv = Invocation(fake_argv("--exit-code", "1"))

        assert list(inv) == []
        assert inv.returncode == 1

    def test_not_restartable(self):
        """An exhausted sequence stays exhausted."""
        inv = Invocation(fake_argv("--out", "once"))

        assert [r.text for r in inv] == ["once"]
        assert list(inv) == []
        assert inv.pull() is None


# =============================================================================
# Concurrency Tests
# =============================================================================


class TestConcurrentPulls:
    """Concurrent consumers share one invocation safely."""

    @pytest.mark.timeout(30)
    @pytest.mark.parametrize("merge", ["stdout-first", "arrival"])
    def test_each_line_delivered_once(self, merge: str):
        line_count = 3000
        inv = Invocation(fake_argv("--lines", str(line_count)), merge=merge)
        results: list[list[str]] = [[] for _ in range(4)]

        def consume(bucket: list[str]) -> None:
            while (record := inv.pull()) is not None:
                bucket.append(record.text)

        threads = [threading.Thread(target=consume, args=(b,)) for b in results]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        delivered = [text for bucket in results for text in bucket]
        assert len(delivered) == line_count
        assert set(delivered) == {f"line{n}" for n in range(1, line_count + 1)}
        # Each consumer sees its share in stream order
        for bucket in results:
            numbers = [int(text[4:]) for text in bucket]
            assert numbers == sorted(numbers)


# =============================================================================
# Close Tests
# =============================================================================


class TestClose:
    """Dropping a sequence early."""

    @pytest.mark.timeout(10)
    def test_close_does_not_block_or_kill(self):
        """close() returns at once; the child exits on its own schedule."""
        inv = Invocation(fake_argv("--sleep", "1.0", "--exit-code", "7"))

        started = time.monotonic()
        inv.close()
        assert time.monotonic() - started < 0.5

        assert inv.state == InvocationState.CLOSED
        assert inv.pull() is None
        # Not killed: the scripted exit status comes through
        assert inv.wait(timeout=5) == 7

    @pytest.mark.timeout(10)
    def test_drop_without_close_releases_pipes(self):
        """Garbage collection of an unfinished sequence closes the pipes only."""
        inv = Invocation(fake_argv("--sleep", "0.5", "--exit-code", "7"))
        process = inv._process

        del inv
        gc.collect()

        assert process.stdout.closed
        assert process.stderr.closed
        # Not killed: the scripted exit status comes through
        assert process.wait(timeout=5) == 7

    def test_close_is_idempotent(self):
        inv = Invocation(fake_argv("--out", "x"))
        inv.close()
        inv.close()

        assert inv.state == InvocationState.CLOSED

    @pytest.mark.timeout(10)
    def test_context_manager_closes(self):
        with Invocation(fake_argv("--lines", "10", "--sleep", "0.2")) as inv:
            assert next(inv).text == "line1"

        assert inv.state == InvocationState.CLOSED
        assert inv.wait(timeout=5) == 0

    def test_close_after_exhaustion_keeps_state(self):
        inv = Invocation(fake_argv("--out", "x"))
        list(inv)
        inv.close()

        assert inv.state == InvocationState.EXHAUSTED

    @pytest.mark.timeout(10)
    def test_wait_timeout(self):
        inv = Invocation(fake_argv("--sleep", "2"))
        try:
            with pytest.raises(subprocess.TimeoutExpired):
                inv.wait(timeout=0.1)
        finally:
            inv.close()


# =============================================================================
# Edge Cases
# =============================================================================


class TestEdgeCases:
    """Test spawn failures."""

    def test_nonexistent_executable(self, tmp_path):
        missing = tmp_path / "no_such_p4"

        with pytest.raises(SpawnError) as exc_info:
            Invocation([missing, "--help"])
        assert exc_info.value.argv[0] == str(missing)
        assert isinstance(exc_info.value.__cause__, OSError)

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX permission bits")
    def test_not_executable(self, tmp_path):
        script = tmp_path / "p4_binary"
        script.write_text("#!/bin/sh\necho hi\n")
        script.chmod(0o644)

        with pytest.raises(SpawnError):
            Invocation([script])
