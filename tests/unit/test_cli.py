"""Tests for the loom-window command line interface."""

import io
import json

import pytest
from opentelemetry import trace
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

import loom_window.strategies as strategies
import loom_window.tracing as tracing
from loom_window.cli import main


@pytest.fixture
def conversation_file(tmp_path):
    """Conversation JSON with a system message and ten short user turns."""
    messages = [{"role": "system", "content": "Be brief"}] + [
        {"role": "user", "content": f"question {i}"} for i in range(1, 11)
    ]
    path = tmp_path / "conversation.json"
    path.write_text(json.dumps({"messages": messages}))
    return path


@pytest.fixture
def no_config(tmp_path):
    """Arguments pointing at a config file that does not exist."""
    return ["--config", str(tmp_path / "missing.toml")]


class InstalledTracer:
    """Tracer that opens spans on the most recently installed provider."""

    def __init__(self, installed):
        self.installed = installed

    def start_as_current_span(self, *args, **kwargs):
        return self.installed[-1].get_tracer("test").start_as_current_span(*args, **kwargs)


def run(argv, capsys):
    main(argv)
    return capsys.readouterr().out


class TestCount:
    """Tests for the count command."""

    def test_count(self, conversation_file, no_config, capsys):
        """Test the token count is printed."""
        # "Be brief" -> 2 + 4; "question N" -> 2 + 4 each
        out = run(no_config + ["count", str(conversation_file)], capsys)
        assert out.strip() == "66"

    def test_count_stdin(self, no_config, monkeypatch, capsys):
        """Test reading the conversation from stdin."""
        monkeypatch.setattr("sys.stdin", io.StringIO('[{"role": "user", "content": "hi"}]'))
        out = run(no_config + ["count", "-"], capsys)
        assert out.strip() == "5"


class TestTruncate:
    """Tests for the truncate command."""

    def test_keep_bookends(self, conversation_file, no_config, capsys):
        """Test truncation output is a messages document."""
        out = run(
            no_config
            + [
                "truncate",
                str(conversation_file),
                "--budget",
                "1000",
                "--strategy",
                "keep_bookends",
                "--count",
                "2",
            ],
            capsys,
        )

        data = json.loads(out)
        assert [m["content"] for m in data["messages"]] == [
            "Be brief",
            "question 9",
            "question 10",
        ]

    def test_budget_fitting(self, conversation_file, no_config, capsys):
        """Test the default strategy fits the budget."""
        out = run(no_config + ["truncate", str(conversation_file), "--budget", "18"], capsys)

        data = json.loads(out)
        assert len(data["messages"]) == 3

    def test_no_preserve_first(self, conversation_file, no_config, capsys):
        """Test disabling first user preservation for smart_truncate."""
        out = run(
            no_config
            + [
                "truncate",
                str(conversation_file),
                "--budget",
                "12",
                "--strategy",
                "smart_truncate",
                "--no-preserve-first",
            ],
            capsys,
        )

        data = json.loads(out)
        assert [m["content"] for m in data["messages"]] == ["Be brief", "question 10"]

    def test_invalid_overlap_exits(self, conversation_file, no_config, capsys):
        """Test strategy errors exit 1 with the error kind."""
        with pytest.raises(SystemExit) as excinfo:
            main(
                no_config
                + [
                    "truncate",
                    str(conversation_file),
                    "--budget",
                    "100",
                    "--strategy",
                    "sliding_window",
                    "--count",
                    "3",
                    "--overlap",
                    "3",
                ]
            )

        assert excinfo.value.code == 1
        assert "invalid_overlap" in capsys.readouterr().err

    def test_unknown_strategy_exits(self, conversation_file, no_config, capsys):
        """Test unknown strategies exit 1."""
        with pytest.raises(SystemExit) as excinfo:
            main(
                no_config
                + ["truncate", str(conversation_file), "--budget", "10", "--strategy", "bogus"]
            )

        assert excinfo.value.code == 1
        assert "unknown_strategy" in capsys.readouterr().err

    def test_negative_count_exits(self, conversation_file, no_config, capsys):
        """Test invalid option values exit 2."""
        with pytest.raises(SystemExit) as excinfo:
            main(no_config + ["truncate", str(conversation_file), "--budget", "10", "--count", "-1"])

        assert excinfo.value.code == 2

    def test_invalid_input_exits(self, tmp_path, no_config, capsys):
        """Test malformed conversations exit 2."""
        bad = tmp_path / "bad.json"
        bad.write_text('[{"role": "wizard", "content": "x"}]')

        with pytest.raises(SystemExit) as excinfo:
            main(no_config + ["truncate", str(bad), "--budget", "10"])

        assert excinfo.value.code == 2
        assert "Invalid conversation" in capsys.readouterr().err

    def test_missing_file_exits(self, tmp_path, no_config):
        """Test unreadable files exit 2."""
        with pytest.raises(SystemExit) as excinfo:
            main(no_config + ["truncate", str(tmp_path / "nope.json"), "--budget", "10"])

        assert excinfo.value.code == 2

    def test_config_defaults(self, conversation_file, tmp_path, capsys):
        """Test strategy defaults are read from the config file."""
        config_file = tmp_path / "loom-window.toml"
        config_file.write_text('[window]\nstrategy = "keep_bookends"\ncount = 1\n')

        out = run(
            ["--config", str(config_file), "truncate", str(conversation_file), "--budget", "5"],
            capsys,
        )

        data = json.loads(out)
        assert [m["content"] for m in data["messages"]] == ["Be brief", "question 10"]


class TestCheck:
    """Tests for the check command."""

    def test_check_fit(self, conversation_file, no_config, capsys):
        """Test fit information for an explicit context length."""
        out = run(
            no_config
            + [
                "check",
                str(conversation_file),
                "--context-length",
                "100",
                "--max-completion",
                "20",
            ],
            capsys,
        )

        assert json.loads(out) == {"tokens": 66, "limit": 80, "fits": True, "available": 14}

    def test_check_reserve(self, conversation_file, no_config, capsys):
        """Test a completion reservation lowers the limit."""
        out = run(
            no_config
            + [
                "check",
                str(conversation_file),
                "--context-length",
                "100",
                "--reserve-completion",
                "50",
            ],
            capsys,
        )

        info = json.loads(out)
        assert info["limit"] == 50
        assert info["fits"] is False
        assert info["available"] == 0

    def test_check_configured_model(self, conversation_file, tmp_path, capsys):
        """Test limits of a model defined in the config file."""
        config_file = tmp_path / "loom-window.toml"
        config_file.write_text(
            '[models.small]\nprovider = "openai"\ncontext_length = 60\nmax_completion_tokens = 10\n'
        )

        out = run(
            ["--config", str(config_file), "check", str(conversation_file), "--model", "small"],
            capsys,
        )

        info = json.loads(out)
        assert info["limit"] == 50
        assert info["fits"] is False

    def test_check_unknown_model(self, conversation_file, no_config, capsys):
        """Test unknown model aliases exit 2."""
        with pytest.raises(SystemExit) as excinfo:
            main(no_config + ["check", str(conversation_file), "--model", "ghost"])

        assert excinfo.value.code == 2
        assert "Unknown model" in capsys.readouterr().err

    def test_check_completion_without_context_length(self, conversation_file, no_config, capsys):
        """Test --max-completion alone is rejected."""
        with pytest.raises(SystemExit) as excinfo:
            main(no_config + ["check", str(conversation_file), "--max-completion", "20"])

        assert excinfo.value.code == 2
        assert "--max-completion requires --context-length" in capsys.readouterr().err


class TestConfigErrors:
    """Tests for invalid configuration files."""

    @pytest.mark.parametrize(
        "toml_text",
        [
            '[window]\noverlap = "two"\n',
            '[window]\ncount = "many"\n',
            '[models.bad]\ncontext_length = "huge"\n',
            "[window\n",
        ],
    )
    def test_invalid_config_exits(self, conversation_file, tmp_path, capsys, toml_text):
        """Test unusable config values exit 2 instead of raising."""
        config_file = tmp_path / "loom-window.toml"
        config_file.write_text(toml_text)

        with pytest.raises(SystemExit) as excinfo:
            main(["--config", str(config_file), "truncate", str(conversation_file), "--budget", "5"])

        assert excinfo.value.code == 2
        assert "Invalid configuration" in capsys.readouterr().err


class TestTrace:
    """Tests for the --trace flag."""

    def test_trace_exports_spans(self, conversation_file, tmp_path, monkeypatch, capsys):
        """Test --trace configures telemetry from the config file and flushes on exit."""
        config_file = tmp_path / "loom-window.toml"
        config_file.write_text(
            '[telemetry]\nservice_name = "cli-test"\notlp_endpoint = "http://collector:4317"\n'
        )

        exporter = InMemorySpanExporter()
        endpoints = []
        installed = []

        def fake_exporter(endpoint, insecure):
            endpoints.append(endpoint)
            return exporter

        monkeypatch.setattr(tracing, "OTLPSpanExporter", fake_exporter)
        monkeypatch.setattr(trace, "set_tracer_provider", installed.append)
        monkeypatch.setattr(strategies, "tracer", InstalledTracer(installed))

        out = run(
            ["--config", str(config_file), "--trace", "truncate", str(conversation_file), "--budget", "12"],
            capsys,
        )

        assert len(json.loads(out)["messages"]) == 2
        assert endpoints == ["http://collector:4317"]
        (provider,) = installed
        assert provider.resource.attributes["service.name"] == "cli-test"
        assert [span.name for span in exporter.get_finished_spans()] == ["window.truncate"]
        assert tracing._provider is None
