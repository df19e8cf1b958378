"""Tests for the binary job/result framing."""

from __future__ import annotations

import multiprocessing
import os
import struct

import pytest

from charsplit._internal.errors import MalformedJobError, TransportError
from charsplit.engine.channel import ConnectionChannel
from charsplit.engine.protocol import (
    CHAR_FIELD,
    SIZE_FIELD,
    JobDescriptor,
    ResultMessage,
    receive_job,
    receive_result,
    send_job,
    send_result,
)


def _raw_job(path: bytes, block_length: int, char: bytes, offset: int) -> bytes:
    return (
        struct.pack("@N", len(path))
        + path
        + struct.pack("@N", block_length)
        + char
        + struct.pack("@N", offset)
    )


class TestWireLayout:
    def test_size_field_is_native_size_t(self):
        assert SIZE_FIELD.size == struct.calcsize("@N")
        assert CHAR_FIELD.size == 1

    def test_job_bytes_are_native_fields_in_order(self, pipe_channels):
        coordinator, worker = pipe_channels
        job = JobDescriptor(
            file_path=b"/tmp/data.txt", block_length=4, target_char=b"a", start_offset=3
        )
        send_job(coordinator, job)
        expected = _raw_job(b"/tmp/data.txt", 4, b"a", 3)
        assert os.read(worker.read_fd, 1024) == expected

    def test_path_is_not_null_terminated(self, pipe_channels):
        coordinator, worker = pipe_channels
        send_job(coordinator, JobDescriptor(b"ab", 1, b"x", 0))
        raw = os.read(worker.read_fd, 1024)
        assert len(raw) == 3 * SIZE_FIELD.size + 2 + CHAR_FIELD.size
        assert raw[SIZE_FIELD.size : SIZE_FIELD.size + 2] == b"ab"

    def test_result_is_single_size_t(self, pipe_channels):
        coordinator, worker = pipe_channels
        send_result(worker, ResultMessage(count=42))
        assert os.read(coordinator.read_fd, 64) == struct.pack("@N", 42)

    def test_connection_transport_frames_each_field(self):
        left, right = multiprocessing.Pipe(duplex=True)
        coordinator = ConnectionChannel(left)
        send_job(coordinator, JobDescriptor(b"in.txt", 4, b"a", 3))
        messages = [right.recv_bytes() for _ in range(5)]
        assert messages == [
            SIZE_FIELD.pack(6),
            b"in.txt",
            SIZE_FIELD.pack(4),
            b"a",
            SIZE_FIELD.pack(3),
        ]
        assert not right.poll()
        coordinator.close()
        right.close()


class TestJobExchange:
    def test_worker_receives_what_coordinator_sent(self, pipe_channels):
        coordinator, worker = pipe_channels
        job = JobDescriptor.for_path(
            "/var/data/input.bin", block_length=1024, target_char=b"z", start_offset=4096
        )
        send_job(coordinator, job)
        received = receive_job(worker)
        assert received == job
        assert received.path == "/var/data/input.bin"
        assert received.file_path_length == len(b"/var/data/input.bin")

    def test_coordinator_receives_count(self, pipe_channels):
        coordinator, worker = pipe_channels
        send_result(worker, ResultMessage(count=7))
        assert receive_result(coordinator) == ResultMessage(count=7)


class TestMalformedJobs:
    def test_empty_path_rejected_before_reading_path(self, pipe_channels):
        coordinator, worker = pipe_channels
        coordinator.write_all(SIZE_FIELD.pack(0))
        with pytest.raises(MalformedJobError, match="empty file path"):
            receive_job(worker)

    def test_empty_block_rejected(self, pipe_channels):
        coordinator, worker = pipe_channels
        coordinator.write_all(_raw_job(b"f.txt", 0, b"a", 0))
        with pytest.raises(MalformedJobError, match="empty block"):
            receive_job(worker)

    def test_nul_target_rejected(self, pipe_channels):
        coordinator, worker = pipe_channels
        coordinator.write_all(_raw_job(b"f.txt", 3, b"\x00", 0))
        with pytest.raises(MalformedJobError, match="NUL"):
            receive_job(worker)


class TestTruncatedMessages:
    def test_truncated_job_is_transport_failure(self, pipe_channels):
        coordinator, worker = pipe_channels
        raw = _raw_job(b"file.txt", 10, b"q", 0)
        coordinator.write_all(raw[:-3])
        coordinator.close()
        with pytest.raises(TransportError):
            receive_job(worker)

    def test_missing_result_is_transport_failure(self, pipe_channels):
        coordinator, worker = pipe_channels
        worker.close()
        with pytest.raises(TransportError, match=f"0 of {SIZE_FIELD.size}"):
            receive_result(coordinator)
