"""Tests for splitting a file into worker blocks."""

from __future__ import annotations

import logging

import pytest

from charsplit._internal.errors import InvalidInputError
from charsplit.engine.partition import Block, plan_blocks


def _assert_exact_cover(blocks: tuple[Block, ...], file_size: int) -> None:
    position = 0
    for i, block in enumerate(blocks):
        assert block.index == i
        assert block.offset == position
        assert block.length >= 1
        position = block.end
    assert position == file_size


class TestPlanBlocks:
    def test_seven_bytes_two_workers(self):
        plan = plan_blocks(7, 2)
        assert plan.blocks == (
            Block(index=0, offset=0, length=3),
            Block(index=1, offset=3, length=4),
        )
        assert not plan.clamped

    def test_single_worker_covers_whole_file(self):
        plan = plan_blocks(2, 1)
        assert plan.blocks == (Block(index=0, offset=0, length=2),)
        assert plan.effective_workers == 1

    def test_remainder_goes_to_last_block(self):
        plan = plan_blocks(103, 10)
        lengths = [b.length for b in plan.blocks]
        assert lengths[:-1] == [10] * 9
        assert lengths[-1] == 13
        assert plan.block_size == 10

    def test_clamps_to_half_the_file_size(self):
        plan = plan_blocks(50, 1000)
        assert plan.requested_workers == 1000
        assert plan.effective_workers == 25
        assert plan.clamped
        assert len(plan.blocks) == 25
        assert all(b.length == 2 for b in plan.blocks)

    def test_clamp_emits_warning(
        self, caplog: pytest.LogCaptureFixture, monkeypatch: pytest.MonkeyPatch
    ):
        monkeypatch.setattr(logging.getLogger("charsplit"), "propagate", True)
        with caplog.at_level(logging.WARNING, logger="charsplit.engine.partition"):
            plan_blocks(10, 6)
        assert any("reducing to 5" in r.getMessage() for r in caplog.records)

    def test_describe_clamp_mentions_both_counts(self):
        plan = plan_blocks(50, 1000)
        text = plan.describe_clamp()
        assert "(1000)" in text
        assert "(25)" in text
        assert "reduced" in text

    def test_exact_cover_for_every_worker_count(self):
        for file_size in (2, 3, 7, 64, 101):
            for requested in range(1, file_size + 3):
                plan = plan_blocks(file_size, requested)
                assert plan.effective_workers == min(requested, file_size // 2)
                assert len(plan.blocks) == plan.effective_workers
                _assert_exact_cover(plan.blocks, file_size)

    def test_last_block_never_smaller(self):
        for file_size in (5, 17, 99):
            for requested in range(2, file_size // 2 + 1):
                plan = plan_blocks(file_size, requested)
                assert plan.blocks[-1].length >= plan.block_size

    @pytest.mark.parametrize("file_size", [0, 1])
    def test_rejects_tiny_files(self, file_size: int):
        with pytest.raises(InvalidInputError, match="too little symbols"):
            plan_blocks(file_size, 1)

    @pytest.mark.parametrize("requested", [0, -3])
    def test_rejects_non_positive_worker_count(self, requested: int):
        with pytest.raises(InvalidInputError, match="must be >= 1"):
            plan_blocks(10, requested)


class TestBlock:
    def test_end(self):
        assert Block(index=2, offset=6, length=4).end == 10

    def test_frozen(self):
        block = Block(index=0, offset=0, length=1)
        with pytest.raises(AttributeError):
            block.length = 5  # type: ignore[misc]
