# test_serialvarplot.py
from SerialVarPlot import format_statistics, main, varPlotter


def test_format_statistics():
    table = format_statistics([
        {"name": "a", "display_name": "Alpha", "color": "red", "min": 1.0, "max": 2.5, "current": 2.0},
        {"name": "b", "display_name": "b", "color": "#00ff00", "min": None, "max": None, "current": None},
    ])
    rows = table.splitlines()
    assert len(rows) == 3
    assert rows[1].split() == ["Alpha", "red", "1", "2.5", "2"]
    assert rows[2].split() == ["b", "#00ff00", "-", "-", "-"]


def test_replay_file(tmp_path, capsys):
    data = tmp_path / "session.txt"
    data.write_text(
        "Connecting ...\n"
        "[10:00:00.000] header temp:'red' hum\n"
        "[10:00:00.100] temp:20 hum:50\n"
        "[10:00:00.200] 21 55\n",
        encoding="utf-8",
    )
    assert main([str(data), "--log", "WARNING"]) == 0
    out = capsys.readouterr().out.splitlines()
    assert out[1].split()[:5] == ["temp", "red", "20", "21", "21"]
    assert out[2].split()[2:] == ["50", "55", "55"]


def test_replay_missing_file(tmp_path):
    assert main([str(tmp_path / "missing.txt"), "--log", "ERROR"]) == 1


def test_plotter_replay_without_auto_update(tmp_path):
    data = tmp_path / "session.txt"
    data.write_text("a:1\nb:2\n", encoding="utf-8")
    plotter = varPlotter(auto_update=False)
    table = plotter.replay(data)
    assert len(table.splitlines()) == 1
    assert plotter.ingestor.get_variable_config() == []
