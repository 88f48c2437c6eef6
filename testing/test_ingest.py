# test_ingest.py
import logging

import numpy as np
import numpy.testing as npt
import pytest

from config import COLORS, EXPORT_TEXT_LINES, MAX_TEXT_LINES
from varplot.Fake_Serial import fake_stream
from varplot.Line_Tokenizer import LineKind
from varplot.Qingest_helper import QLineIngestor


@pytest.fixture
def ingestor():
    return QLineIngestor()


def lengths(ingestor):
    return {name: len(data) for name, data in ingestor.get_series_snapshot().items()}

# ─── schema growth ─────

def test_keyed_lines_create_variables_once(ingestor):
    ingestor.process_line("d: 1\tl: 2\tp: 3")
    assert [v["name"] for v in ingestor.get_variable_config()] == ["d", "l", "p"]
    ingestor.process_line("d: 4\tl: 5\tp: 6")
    assert len(ingestor.get_variable_config()) == 3
    snap = ingestor.get_series_snapshot()
    npt.assert_array_equal(snap["d"], [1., 4.])
    npt.assert_array_equal(snap["l"], [2., 5.])
    npt.assert_array_equal(snap["p"], [3., 6.])


def test_new_variables_take_consecutive_colors(ingestor):
    ingestor.process_line("a:1 b:2")
    ingestor.process_line("c:3")
    assert [v["color"] for v in ingestor.get_variable_config()] == COLORS[:3]


def test_auto_update_off_creates_nothing():
    ingestor = QLineIngestor(auto_update=False)
    ingestor.process_lines(["a:1 b:2", "23.5 65.2", "{x: 1}"])
    assert ingestor.get_variable_config() == []
    assert ingestor.get_series_snapshot() == {}


def test_auto_update_off_keeps_known_variables(ingestor):
    ingestor.process_line("a:1")
    ingestor.set_auto_variable_update(False)
    ingestor.process_line("a:2 b:3")
    assert ingestor.get_variable_config()[0]["name"] == "a"
    assert lengths(ingestor) == {"a": 2}
    ingestor.on_autoVariableUpdate(True)
    assert ingestor.auto_update
    ingestor.process_line("a:4 b:5")
    assert lengths(ingestor) == {"a": 3, "b": 1}


def test_absent_variables_are_not_padded(ingestor):
    ingestor.process_line("a:1 b:2")
    ingestor.process_line("a:3")
    assert lengths(ingestor) == {"a": 2, "b": 1}
    padded = ingestor.get_padded_snapshot()
    npt.assert_array_equal(padded["b"], [np.nan, 2.])


def test_duplicate_name_in_line_takes_last_value(ingestor):
    ingestor.process_line("a:1 b:2 a:3")
    assert [v["name"] for v in ingestor.get_variable_config()] == ["a", "b"]
    npt.assert_array_equal(ingestor.get_series_snapshot()["a"], [3.])

# ─── positional columns ─────

def test_plain_columns_are_named_by_position(ingestor):
    ingestor.process_line("23.5 65.2 1013.25")
    assert [v["name"] for v in ingestor.get_variable_config()] == ["line1", "line2", "line3"]
    ingestor.process_line("24 66 1012")
    npt.assert_array_equal(ingestor.get_series_snapshot()["line3"], [1013.25, 1012.])


def test_plain_columns_follow_existing_variables(ingestor):
    ingestor.process_line("header t h")
    ingestor.process_line("1 2 3")
    assert [v["name"] for v in ingestor.get_variable_config()] == ["t", "h", "line3"]
    snap = ingestor.get_series_snapshot()
    npt.assert_array_equal(snap["t"], [1.])
    npt.assert_array_equal(snap["h"], [2.])
    npt.assert_array_equal(snap["line3"], [3.])


def test_plain_column_does_not_overwrite_declared_positional_name(ingestor):
    ingestor.process_line("header line2")
    ingestor.process_line("7 8")
    assert [v["name"] for v in ingestor.get_variable_config()] == ["line2", "line3"]
    snap = ingestor.get_series_snapshot()
    npt.assert_array_equal(snap["line2"], [7.])
    npt.assert_array_equal(snap["line3"], [8.])


def test_plain_columns_after_deleting_a_column(ingestor):
    ingestor.process_line("1 2 3")
    ingestor.delete_variable("line2")
    ingestor.process_line("4 5 6")
    assert [v["name"] for v in ingestor.get_variable_config()] == ["line1", "line3", "line4"]
    snap = ingestor.get_series_snapshot()
    npt.assert_array_equal(snap["line1"], [1., 4.])
    npt.assert_array_equal(snap["line3"], [3., 5.])
    npt.assert_array_equal(snap["line4"], [6.])


def test_keyed_and_plain_lines_share_registry(ingestor):
    ingestor.process_line("a:1 b:2")
    ingestor.process_line("5, 6")
    snap = ingestor.get_series_snapshot()
    npt.assert_array_equal(snap["a"], [1., 5.])
    npt.assert_array_equal(snap["b"], [2., 6.])


def test_implicit_pairs_are_not_positional(ingestor):
    ingestor.process_line("voltage 3.3, current 0.125")
    assert [v["name"] for v in ingestor.get_variable_config()] == ["voltage", "current"]


def test_line_with_colon_but_no_pairs_is_ignored(ingestor):
    assert ingestor.process_line("status: ok") is LineKind.DATA
    assert ingestor.get_variable_config() == []

# ─── header directives ─────

def test_header_replaces_schema(ingestor):
    ingestor.process_line("x:1")
    ingestor.process_line("header a:'red' b:'#00ff00'")
    assert ingestor.get_variable_config() == [
        {"name": "a", "display_name": "a", "color": "red"},
        {"name": "b", "display_name": "b", "color": "#00ff00"},
    ]
    assert lengths(ingestor) == {"a": 0, "b": 0}


def test_header_is_idempotent(ingestor):
    line = "header a:'red' b c:rgb(1, 2, 3)"
    ingestor.process_line(line)
    first = ingestor.get_variable_config()
    ingestor.process_line("a:1 b:2 c:3")
    ingestor.process_line(line)
    assert ingestor.get_variable_config() == first
    assert lengths(ingestor) == {"a": 0, "b": 0, "c": 0}


def test_header_applies_with_auto_update_off():
    ingestor = QLineIngestor(auto_update=False)
    ingestor.process_line("header a b")
    ingestor.process_line("a:1 b:2 c:3")
    assert lengths(ingestor) == {"a": 1, "b": 1}


def test_header_keyword_without_directive_is_noop(ingestor):
    ingestor.process_line("a:1")
    assert ingestor.process_line("header: temperature, pressure") is LineKind.SKIP
    assert ingestor.process_line("header") is LineKind.SKIP
    assert [v["name"] for v in ingestor.get_variable_config()] == ["a"]
    assert lengths(ingestor) == {"a": 1}

# ─── input forms ─────

def test_bytes_and_timestamps(ingestor):
    assert ingestor.process_line(b"[12:00:00.000] temp:1\r\n") is LineKind.DATA
    assert ingestor.process_line(bytearray(b"temp:2\xff")) is LineKind.DATA
    npt.assert_array_equal(ingestor.get_series_snapshot()["temp"], [1.])


def test_skipped_lines(ingestor):
    for line in ("", "   ", "Connecting ...", "hello world"):
        ingestor.process_line(line)
    assert ingestor.get_variable_config() == []


def test_received_text_is_split_into_lines(ingestor):
    ingestor.on_receivedText("a:1\nb:2\r\na:3")
    assert lengths(ingestor) == {"a": 2, "b": 1}
    assert ingestor.process_text(b"a:4\n") == 1


def test_malformed_input_never_raises(ingestor):
    for line in ("::::", "a:b:c:d", "{}[]()", "1e999 2e999", "x: nan", "\x00\x01", "header \x00"):
        ingestor.process_line(line)

# ─── signals ─────

def test_batch_emits_once(ingestor, recorder):
    changed, updated = recorder(), recorder()
    ingestor.variablesChanged.connect(changed)
    ingestor.seriesUpdated.connect(updated)
    assert ingestor.on_receivedLines(["a:1", "a:2", "b:3", "noise"]) is None
    assert len(changed) == 1
    assert [v["name"] for v in changed.last[0]] == ["a", "b"]
    assert len(updated) == 1


def test_process_lines_counts_data_lines(ingestor):
    assert ingestor.process_lines(["header a", "a:1", "noise", "a:2"]) == 2


def test_no_schema_signal_without_new_variables(ingestor, recorder):
    ingestor.process_line("a:1")
    changed, updated = recorder(), recorder()
    ingestor.variablesChanged.connect(changed)
    ingestor.seriesUpdated.connect(updated)
    ingestor.process_line("a:2")
    ingestor.process_line("Connecting")
    assert len(changed) == 0
    assert len(updated) == 1


def test_header_logs_and_announces(ingestor, recorder):
    changed, logs = recorder(), recorder()
    ingestor.variablesChanged.connect(changed)
    ingestor.logSignal.connect(logs)
    ingestor.process_line("header a b")
    assert len(changed) == 1
    assert any(level == logging.INFO for level, _ in logs.calls)

# ─── memory ceiling ─────

def test_memory_ceiling(recorder):
    ingestor = QLineIngestor(max_bytes=80)
    exceeded, logs = recorder(), recorder()
    ingestor.samplesExceeded.connect(exceeded)
    ingestor.logSignal.connect(logs)
    for i in range(20):
        ingestor.process_line(f"a:{i} b:{i}")
        assert ingestor.store.current_byte_size() <= 80
    assert ingestor.samples_exceeded
    assert exceeded.calls == [(True,)]
    assert sum(1 for level, _ in logs.calls if level == logging.WARNING) == 1
    npt.assert_array_equal(ingestor.get_series_snapshot()["a"], np.arange(15, 20, dtype=np.float64))
    ingestor.on_resetBuffer()
    assert not ingestor.samples_exceeded
    assert exceeded.calls == [(True,), (False,)]

# ─── user overrides ─────

def test_user_overrides(ingestor, recorder):
    ingestor.process_line("a:1 b:2 c:3")
    changed, logs = recorder(), recorder()
    ingestor.variablesChanged.connect(changed)
    ingestor.logSignal.connect(logs)

    assert ingestor.set_display_name("a", "Alpha")
    assert ingestor.set_color("b", "orange")
    config = ingestor.get_variable_config()
    assert config[0]["display_name"] == "Alpha"
    assert config[1]["color"] == "orange"
    assert [v["name"] for v in config] == ["a", "b", "c"]

    assert ingestor.delete_variable("b")
    assert list(ingestor.get_series_snapshot()) == ["a", "c"]
    assert len(changed) == 3

    assert not ingestor.set_display_name("zz", "x")
    assert not ingestor.set_color("zz", "red")
    assert not ingestor.delete_variable("zz")
    assert [level for level, _ in logs.calls] == [logging.WARNING] * 3
    assert not ingestor.set_display_name("a", "  ")


def test_deleted_variable_comes_back_at_the_end(ingestor):
    ingestor.process_line("a:1 b:2")
    ingestor.delete_variable("a")
    ingestor.process_line("a:3 b:4")
    assert [v["name"] for v in ingestor.get_variable_config()] == ["b", "a"]
    npt.assert_array_equal(ingestor.get_series_snapshot()["a"], [3.])

# ─── session ─────

def test_stop_and_start(ingestor):
    ingestor.process_lines(["a:1", "a:2"])
    ingestor.stop()
    assert ingestor.process_line("a:3") is LineKind.SKIP
    assert lengths(ingestor) == {"a": 2}
    ingestor.start()
    assert ingestor.running
    assert lengths(ingestor) == {"a": 0}
    assert len(ingestor.raw_lines) == 0
    ingestor.process_line("a:4")
    npt.assert_array_equal(ingestor.get_series_snapshot()["a"], [4.])


def test_dispose(ingestor):
    ingestor.process_line("a:1")
    ingestor.dispose()
    assert not ingestor.running
    assert ingestor.get_variable_config() == []
    assert ingestor.get_series_snapshot() == {}
    assert ingestor.export_csv() == ""


def test_dispose_clears_exceeded_flag(recorder):
    ingestor = QLineIngestor(max_bytes=80)
    exceeded = recorder()
    ingestor.samplesExceeded.connect(exceeded)
    for i in range(20):
        ingestor.process_line(f"a:{i} b:{i}")
    ingestor.dispose()
    assert not ingestor.samples_exceeded
    assert exceeded.calls == [(True,), (False,)]


def test_reset_all_keeps_running(ingestor):
    ingestor.process_line("a:1")
    ingestor.reset_all()
    assert ingestor.get_variable_config() == []
    ingestor.process_line("b:1")
    assert lengths(ingestor) == {"b": 1}

# ─── queries ─────

def test_statistics(ingestor):
    ingestor.process_lines(["a:1", "a:5", "a:3", "header_free:2"])
    stats = ingestor.get_statistics()
    assert stats[0] == {"name": "a", "display_name": "a", "color": COLORS[0],
                        "min": 1.0, "max": 5.0, "current": 3.0}
    assert ingestor.get_statistics(window=1)[0]["min"] == 3.0


def test_statistics_without_samples(ingestor):
    ingestor.process_line("header a")
    assert ingestor.get_statistics()[0]["current"] is None


def test_snapshot_is_read_only(ingestor):
    ingestor.process_line("a:1")
    snap = ingestor.get_series_snapshot()
    with pytest.raises(ValueError):
        snap["a"][0] = 0.0


def test_raw_lines_and_csv(ingestor, tmp_path):
    ingestor.process_lines(["Connecting ...", "header a", "", "\x1b[32ma:1\x1b[0m", "a:2"])
    assert ingestor.raw_lines.lines == ["Connecting ...", "header a", "\x1b[32ma:1\x1b[0m", "a:2"]
    text = ingestor.export_csv(tmp_path / "dump.csv")
    assert text == "Connecting ...\nheader a\na:1\na:2"
    assert (tmp_path / "dump.csv").read_text(encoding="utf-8") == text


def test_csv_export_keeps_whole_session(ingestor):
    assert ingestor.raw_lines.max_lines == EXPORT_TEXT_LINES
    assert EXPORT_TEXT_LINES > MAX_TEXT_LINES
    ingestor.process_lines(f"a:{i}" for i in range(MAX_TEXT_LINES + 10))
    assert len(ingestor.raw_lines) == MAX_TEXT_LINES + 10
    assert ingestor.export_csv().splitlines()[0] == "a:0"


def test_csv_export_bound():
    ingestor = QLineIngestor(max_lines=3)
    ingestor.process_lines(["a:1", "a:2", "a:3", "a:4"])
    assert ingestor.export_csv() == "a:2\na:3\na:4"

# ─── simulated source ─────

def test_simulated_session(ingestor):
    ingestor.process_lines(fake_stream(250, header_every=100))
    config = ingestor.get_variable_config()
    assert [v["name"] for v in config] == ["sin1", "sin2", "sin3"]
    assert [v["color"] for v in config] == COLORS[:3]
    assert lengths(ingestor) == {"sin1": 50, "sin2": 50, "sin3": 50}
    stats = ingestor.get_statistics()
    assert all(-1.0 <= s["min"] <= s["max"] <= 1.0 for s in stats)


def test_profiling_report(ingestor, recorder):
    logs = recorder()
    ingestor.logSignal.connect(logs)
    ingestor.on_mtocRequest()
    assert logs.last[0] == -1
    assert "mtoc_process_lines" in logs.last[1]


def test_invalid_arguments():
    with pytest.raises(ValueError):
        QLineIngestor(max_bytes=0)
    with pytest.raises(ValueError):
        QLineIngestor(palette=[])
