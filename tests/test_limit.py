import io
import math

import pytest

from relayutil.limit import LimitedReader, LimitedWriter, RateLimiter


class FakeTime:
    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def clock(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


class RecordingWriter:
    def __init__(self):
        self.chunks = []

    def write(self, data):
        self.chunks.append(data)
        return len(data)


def make_limiter(rate, burst, fake):
    return RateLimiter(rate, burst, clock=fake.clock, sleep=fake.sleep)


def test_limiter_starts_full_then_waits():
    fake = FakeTime()
    limiter = make_limiter(10.0, 5, fake)
    limiter.wait_n(5)
    assert fake.sleeps == []
    limiter.wait_n(5)
    assert fake.sleeps == [pytest.approx(5 / 10.0)]


def test_limiter_refills_over_time():
    fake = FakeTime()
    limiter = make_limiter(10.0, 5, fake)
    limiter.wait_n(5)
    fake.now += 1.0
    limiter.wait_n(5)
    assert fake.sleeps == []


def test_limiter_rejects_more_than_burst():
    fake = FakeTime()
    limiter = make_limiter(10.0, 5, fake)
    with pytest.raises(ValueError, match="exceeds limiter's burst"):
        limiter.wait_n(6)


def test_infinite_rate_never_waits():
    fake = FakeTime()
    limiter = make_limiter(math.inf, 2, fake)
    for _ in range(10):
        limiter.wait_n(100)
    assert fake.sleeps == []


def test_reader_caps_read_at_burst():
    fake = FakeTime()
    limiter = make_limiter(1000.0, 3, fake)
    reader = LimitedReader(io.BytesIO(b"abcdefgh"), limiter)
    assert reader.read(100) == b"abc"
    assert reader.read(2) == b"de"


def test_reader_reads_whole_stream():
    fake = FakeTime()
    data = b"the quick brown fox"
    limiter = make_limiter(1000.0, 4, fake)
    reader = LimitedReader(io.BytesIO(data), limiter)
    chunks = []
    while chunk := reader.read():
        assert len(chunk) <= limiter.burst()
        chunks.append(chunk)
    assert b"".join(chunks) == data


def test_writer_splits_into_burst_chunks():
    fake = FakeTime()
    limiter = make_limiter(1000.0, 4, fake)
    sink = RecordingWriter()
    writer = LimitedWriter(sink, limiter)
    data = b"x" * 10
    assert writer.write(data) == len(data)
    assert [len(c) for c in sink.chunks] == [4, 4, 2]
    assert b"".join(sink.chunks) == data


def test_writer_throttles():
    fake = FakeTime()
    limiter = make_limiter(4.0, 4, fake)
    writer = LimitedWriter(io.BytesIO(), limiter)
    writer.write(b"y" * 8)
    assert sum(fake.sleeps) == pytest.approx(4 / 4.0)


def test_writer_empty_data():
    fake = FakeTime()
    limiter = make_limiter(1.0, 4, fake)
    sink = RecordingWriter()
    assert LimitedWriter(sink, limiter).write(b"") == 0
    assert sink.chunks == []