import pytest

import uptime_display
from uptime_display import _parse_args, load_settings, main


def test_command_line_overrides_environment(monkeypatch) -> None:
    monkeypatch.setenv("UPTIME_BASE_URL", "http://env.example:1")
    monkeypatch.setenv("UPTIME_RECONNECT", "7")
    args = _parse_args(["--base-url", "http://cli.example:2", "--units", "s"])

    settings = load_settings(args)

    assert settings.stream_url == "http://cli.example:2/uptime?units=s"
    assert settings.reconnection_time == 7.0


def test_invalid_setting_exits_with_2(monkeypatch, capsys) -> None:
    monkeypatch.setenv("UPTIME_RECONNECT", "soon")
    assert main([]) == 2
    assert "Error:" in capsys.readouterr().err


def test_unknown_units_rejected_by_parser() -> None:
    with pytest.raises(SystemExit):
        _parse_args(["--units", "h"])


def test_interrupt_exits_cleanly(monkeypatch) -> None:
    calls = []

    def fake_run(func, settings, display):
        calls.append((settings.stream_url, type(display).__name__))
        raise KeyboardInterrupt

    monkeypatch.delenv("UPTIME_BASE_URL", raising=False)
    monkeypatch.setattr(uptime_display.anyio, "run", fake_run)

    assert main(["--log-level", "warning"]) == 0
    assert calls == [("http://localhost:8088/uptime", "ConsoleDisplay")]


def test_unwritable_html_file_exits_with_2(tmp_path, capsys) -> None:
    page = tmp_path / "missing" / "uptime.html"

    assert main(["--html", str(page)]) == 2

    assert "Error:" in capsys.readouterr().err
    assert not page.exists()
