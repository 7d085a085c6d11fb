"""
Tests for the command-line entry point
"""

import json

import pytest

from merge_gate.__main__ import main, parse_args, parse_states
from merge_gate.main import CheckState, ConfigurationError

FAST = [
    "--source", "static",
    "--no-publish",
    "--max-wait-ms", "200",
    "--poll-interval-ms", "50",
    "--fetch-timeout-ms", "25",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "GATE_REQUIRED_CHECKS",
        "GATE_OPTIONAL_CHECKS",
        "GATE_MAX_WAIT_MS",
        "GATE_POLL_INTERVAL_MS",
        "GATE_FETCH_TIMEOUT_MS",
        "GITHUB_REPOSITORY",
        "GITHUB_SHA",
        "GATE_REF",
    ):
        monkeypatch.delenv(name, raising=False)


class TestRunCommand:
    """Exit codes of `merge-gate run`"""

    def test_success(self, capsys):
        code = main([
            "--no-color", "run", *FAST,
            "--checks", "build,scan",
            "--state", "build=success", "--state", "scan=success",
        ])
        assert code == 0
        assert "MERGE GATE SUCCEEDED" in capsys.readouterr().out

    def test_failure(self, capsys):
        code = main([
            "--no-color", "run", *FAST,
            "--checks", "build,scan",
            "--state", "build=failure", "--state", "scan=pending",
        ])
        assert code == 1
        assert "1 of 2 required checks failed: build" in capsys.readouterr().out

    def test_timeout(self, capsys):
        code = main([
            "--no-color", "run", *FAST,
            "--checks", "build,scan",
            "--state", "build=success", "--state", "scan=in_progress",
        ])
        assert code == 2
        assert "MERGE GATE TIMED_OUT" in capsys.readouterr().out

    def test_empty_checks_is_configuration_error(self, capsys):
        code = main(["run", *FAST, "--checks", ""])
        assert code == 3
        assert "Configuration error" in capsys.readouterr().err

    def test_fetch_timeout_longer_than_interval(self):
        code = main([
            "run", "--source", "static", "--no-publish", "--checks", "build",
            "--poll-interval-ms", "100", "--fetch-timeout-ms", "500",
        ])
        assert code == 3

    def test_github_source_requires_repository(self):
        code = main(["run", "--no-publish", "--checks", "build", "--ref", "abc123"])
        assert code == 3

    def test_publish_requires_sha(self):
        code = main([
            "run", "--source", "static", "--checks", "build",
            "--repository", "acme/widgets", "--state", "build=success",
        ])
        assert code == 3

    def test_config_file(self, tmp_path):
        path = tmp_path / "gate.yaml"
        path.write_text(
            "required_checks: [build]\n"
            "max_wait_ms: 200\n"
            "poll_interval_ms: 50\n"
            "fetch_timeout_ms: 25\n"
        )
        code = main([
            "--config", str(path), "run", "--source", "static", "--no-publish",
            "--state", "build=success",
        ])
        assert code == 0

    def test_missing_config_file(self, tmp_path):
        code = main(["--config", str(tmp_path / "nope.yaml"), "run", *FAST, "--checks", "build"])
        assert code == 3

    def test_malformed_config_file(self, tmp_path, capsys):
        """Should exit with the configuration error code, not the FAILED code"""
        path = tmp_path / "gate.yaml"
        path.write_text("required_checks: [build\n")
        code = main(["--config", str(path), "run", "--source", "static", "--no-publish"])
        assert code == 3
        assert "Configuration error" in capsys.readouterr().err


class TestStepCommand:
    """Exit codes of `merge-gate step`"""

    def test_step_until_verdict(self, tmp_path):
        checkpoint = str(tmp_path / "checkpoint.json")
        base = [
            "step", "--source", "static", "--no-publish",
            "--checks", "build,scan", "--checkpoint", checkpoint,
            "--max-wait-ms", "600000", "--poll-interval-ms", "1000", "--fetch-timeout-ms", "500",
        ]

        assert main([*base, "--state", "build=success", "--state", "scan=pending"]) == 75
        assert main([*base, "--state", "build=success", "--state", "scan=success"]) == 0
        # Already reported: the stored verdict is returned again
        assert main([*base, "--state", "build=failure", "--state", "scan=success"]) == 0

        data = json.loads((tmp_path / "checkpoint.json").read_text())
        assert data["reported"] is True
        assert data["verdict"] == "success"
        assert data["ticks"] == 2

    def test_reset_starts_fresh_run(self, tmp_path):
        checkpoint = str(tmp_path / "checkpoint.json")
        base = [
            "step", "--source", "static", "--no-publish",
            "--checks", "build", "--checkpoint", checkpoint,
            "--max-wait-ms", "600000", "--poll-interval-ms", "1000", "--fetch-timeout-ms", "500",
        ]

        assert main([*base, "--state", "build=failure"]) == 1
        assert main([*base, "--reset", "--state", "build=success"]) == 0

    def test_corrupt_checkpoint(self, tmp_path):
        path = tmp_path / "checkpoint.json"
        path.write_text("not json")
        code = main([
            "step", *FAST, "--checks", "build", "--checkpoint", str(path),
            "--state", "build=success",
        ])
        assert code == 3


class TestConfigCommand:
    def test_show_config(self, capsys):
        code = main(["config", "--show", "--checks", "build,scan", "--max-wait-ms", "60000"])
        assert code == 0
        data = json.loads(capsys.readouterr().out)
        assert data["required_checks"] == ["build", "scan"]
        assert data["max_wait_ms"] == 60000
        assert "token" not in data


class TestHelpers:
    def test_parse_states(self):
        assert parse_states(["build=SUCCESS", "scan = in_progress"]) == {
            "build": CheckState.SUCCESS,
            "scan": CheckState.IN_PROGRESS,
        }

    @pytest.mark.parametrize("pair", ["build", "=success", "build=green"])
    def test_parse_states_rejects_bad_pairs(self, pair):
        with pytest.raises(ConfigurationError):
            parse_states([pair])

    def test_parse_args_defaults(self):
        args = parse_args(["run", "--checks", "build"])
        assert args.command == "run"
        assert args.source == "github"
        assert args.no_publish is False
