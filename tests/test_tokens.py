"""Tests for token counters."""

from __future__ import annotations

import pytest

from statecraft.tokens import HeuristicTokenCounter, TiktokenCounter, TokenCounter


class TestHeuristicTokenCounter:

    def test_empty(self):
        assert HeuristicTokenCounter().count_text("") == 0

    def test_estimate(self):
        # 20 chars / 4 * 1.1 = 5.5, rounded up
        assert HeuristicTokenCounter().count_text("x" * 20) == 6
        assert HeuristicTokenCounter().count_text("abc") == 1

    def test_protocol(self):
        assert isinstance(HeuristicTokenCounter(), TokenCounter)


class TestTiktokenCounter:

    @pytest.fixture(scope="class")
    def counter(self):
        pytest.importorskip("tiktoken")
        try:
            return TiktokenCounter(encoding_name="o200k_base")
        except Exception as exc:  # encoding files are downloaded on first use
            pytest.skip(f"tiktoken encoding unavailable: {exc}")

    def test_counts_tokens(self, counter):
        assert counter.count_text("") == 0
        assert counter.count_text("hello world") > 0
        assert counter.encoding_name == "o200k_base"

    def test_protocol(self, counter):
        assert isinstance(counter, TokenCounter)
