"""Tests for bostrade.repos.trade_journal — NDJSON trade journal."""

import json

from bostrade.repos.trade_journal import TradeJournal


def test_append_writes_one_line_per_record(tmp_path):
    path = tmp_path / "logs" / "trades.ndjson"
    journal = TradeJournal(str(path))

    journal.append({"event": "ENTRY", "price": 100.0})
    journal.append({"event": "EXIT", "price": 101.0})

    lines = path.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 2
    assert json.loads(lines[0])["event"] == "ENTRY"
    assert "recorded_at" in json.loads(lines[1])


def test_read_all_missing_file(tmp_path):
    assert TradeJournal(str(tmp_path / "none.ndjson")).read_all() == []


def test_read_all_with_limit(tmp_path):
    journal = TradeJournal(str(tmp_path / "trades.ndjson"))
    for i in range(5):
        journal.append({"n": i})
    assert [r["n"] for r in journal.read_all(limit=2)] == [3, 4]
    assert [r["n"] for r in journal.read_all()] == [0, 1, 2, 3, 4]


def test_malformed_lines_skipped(tmp_path):
    path = tmp_path / "trades.ndjson"
    path.write_text('{"n": 1}\nnot json\n\n{"n": 2}\n', encoding="utf-8")
    assert [r["n"] for r in TradeJournal(str(path)).read_all()] == [1, 2]


def test_entry_and_exit_records(tmp_path):
    journal = TradeJournal(str(tmp_path / "trades.ndjson"))
    journal.record_entry({"type": "LONG", "entry_price": 98.75}, "123", test_mode=True)
    journal.record_exit("LONG", 0.01, "Bearish MACD cross while LONG", pnl=1.5)

    entry, exit_ = journal.read_all()
    assert entry["event"] == "ENTRY"
    assert entry["order_id"] == "123"
    assert entry["entry_price"] == 98.75
    assert entry["test_mode"] is True
    assert exit_["event"] == "EXIT"
    assert exit_["side"] == "LONG"
    assert exit_["pnl"] == 1.5
