"""
Unit Tests for the jobwatch command line.
"""

from unittest.mock import MagicMock, patch

import pytest

from jobwatch.cli import build_parser, main
from jobwatch.config import ConfigError
from jobwatch.monitor.exceptions import CollectionError
from jobwatch.monitor.storage import SeriesRecord, SeriesWriter

CONFIG_YAML = """
prometheus:
  listen_address: "127.0.0.1:9100"
slack:
  webhook_url: "https://hooks.example/T000"
thresholds:
  cpu_percent: 80
  mem_percent: 80
output_file: "{output}"
"""


@pytest.fixture(autouse=True)
def no_dotenv():
    with patch("jobwatch.cli.load_dotenv"):
        yield


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(CONFIG_YAML.format(output=tmp_path / "data" / "jobs.csv"), encoding="utf-8")
    return path


class TestParser:
    def test_monitor_defaults(self):
        args = build_parser().parse_args(["monitor"])

        assert args.command == "monitor"
        assert args.config == "config.yaml"
        assert args.output is None
        assert args.log_file is None

    def test_analyze_args(self):
        args = build_parser().parse_args(["analyze", "jobs.csv", "-n", "3"])

        assert args.file == "jobs.csv"
        assert args.top == 3

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc:
            build_parser().parse_args(["--version"])

        assert exc.value.code == 0
        assert "jobwatch" in capsys.readouterr().out


class TestMain:
    """Tests for main() dispatch."""

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 1
        assert "usage" in capsys.readouterr().out.lower()

    def test_keyboard_interrupt(self):
        with patch("jobwatch.cli.JobwatchCLI.analyze", side_effect=KeyboardInterrupt):
            assert main(["analyze", "jobs.csv"]) == 130

    def test_unexpected_error(self, capsys):
        with patch("jobwatch.cli.JobwatchCLI.analyze", side_effect=RuntimeError("kaput")):
            assert main(["analyze", "jobs.csv"]) == 1

        assert "kaput" in capsys.readouterr().err


class TestMonitorCommand:
    """Tests for `jobwatch monitor`."""

    def test_invalid_config(self, tmp_path):
        fake_console = MagicMock()

        with patch("jobwatch.cli.console", fake_console):
            assert main(["monitor", "--config", str(tmp_path / "missing.yaml")]) == 1

        assert "failed to read" in fake_console.print.call_args.args[0]

    def test_runs_loop(self, config_file, tmp_path):
        with (
            patch("jobwatch.cli.GaugeSink.serve") as serve,
            patch("jobwatch.cli.MonitorLoop") as loop_cls,
        ):
            assert main(["monitor", "--config", str(config_file)]) == 0

        serve.assert_called_once_with("127.0.0.1:9100")
        kwargs = loop_cls.call_args.kwargs
        assert kwargs["writer"].path == tmp_path / "data" / "jobs.csv"
        assert kwargs["thresholds"].cpu_percent == 80.0
        assert kwargs["interval"] == 30.0
        loop_cls.return_value.run.assert_called_once()

    def test_output_flag_overrides_config(self, config_file, tmp_path):
        override = tmp_path / "other.csv"
        with patch("jobwatch.cli.GaugeSink.serve"), patch("jobwatch.cli.MonitorLoop") as loop_cls:
            main(["monitor", "--config", str(config_file), "--output", str(override)])

        assert loop_cls.call_args.kwargs["writer"].path == override

    def test_disable_collection(self, config_file):
        config_file.write_text(config_file.read_text() + "disable_collection: true\n")

        with patch("jobwatch.cli.GaugeSink.serve"), patch("jobwatch.cli.MonitorLoop") as loop_cls:
            assert main(["monitor", "--config", str(config_file)]) == 0

        assert loop_cls.call_args.kwargs["writer"] is None

    def test_metrics_server_failure(self, config_file):
        with (
            patch("jobwatch.cli.GaugeSink.serve", side_effect=OSError("address in use")),
            patch("jobwatch.cli.MonitorLoop") as loop_cls,
        ):
            assert main(["monitor", "--config", str(config_file)]) == 1

        loop_cls.assert_not_called()

    def test_fatal_storage_error(self, config_file):
        with patch("jobwatch.cli.GaugeSink.serve"), patch("jobwatch.cli.MonitorLoop") as loop_cls:
            loop_cls.return_value.run.side_effect = PermissionError("read-only")

            assert main(["monitor", "--config", str(config_file)]) == 1

    def test_load_config_error_message(self, capsys):
        with patch("jobwatch.cli.load_config", side_effect=ConfigError("slack webhook_url is required")):
            assert main(["monitor"]) == 1

        assert "webhook_url is required" in capsys.readouterr().out


class TestListCommand:
    def test_lists_processes(self, make_sample):
        with (
            patch("jobwatch.cli.collect_job_processes", return_value=[make_sample()]),
            patch("jobwatch.cli.print_job_processes") as printer,
        ):
            assert main(["list"]) == 0

        assert printer.call_args.args[0][0].job_name == "build_app"

    def test_collection_failure(self):
        with patch("jobwatch.cli.collect_job_processes", side_effect=CollectionError("denied")):
            assert main(["list"]) == 1


class TestAnalyzeCommand:
    def test_analyze_file(self, tmp_path, capsys):
        path = tmp_path / "jobs.csv"
        writer = SeriesWriter(path)
        writer.open()
        writer.append([SeriesRecord("2024-05-01T12:00:00Z", 1, 42.0, 10.0, "build_app")])
        writer.close()

        with patch("jobwatch.cli.print_analysis") as printer:
            assert main(["analyze", str(path), "--top", "1"]) == 0

        result = printer.call_args.args[0]
        assert result.record_count == 1
        assert result.cpu_peaks[0].job_name == "build_app"

    def test_missing_file(self, tmp_path):
        assert main(["analyze", str(tmp_path / "missing.csv")]) == 1

    def test_empty_file_reports_no_data(self, tmp_path):
        path = tmp_path / "jobs.csv"
        path.write_text("timestamp,pid,cpu,mem,build_path\n", encoding="utf-8")
        fake_console = MagicMock()

        with patch("jobwatch.cli.console", fake_console):
            assert main(["analyze", str(path)]) == 0

        fake_console.print.assert_called_once_with("No data to analyze.")
