"""
Tests for CLI commands — plan/check/apply, inline install and state queries.
"""

import json
import logging
import textwrap
from pathlib import Path

import pytest
from click.testing import CliRunner

from dek.main import cli


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def _config(tmp_path: Path, content: str) -> Path:
    path = tmp_path / "dek.yml"
    path.write_text(textwrap.dedent(content))
    return path


class TestCLIGlobal:
    def test_help(self):
        result = CliRunner().invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "declarative environment configuration" in result.output
        for command in ("plan", "check", "apply", "install", "state"):
            assert command in result.output

    def test_version(self):
        result = CliRunner().invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output

    def test_no_config(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.chdir(tmp_path)
        result = CliRunner().invoke(cli, ["check"])
        assert result.exit_code == 1
        assert "No dek.yml" in result.output

    def test_invalid_config(self, tmp_path: Path):
        path = _config(tmp_path, "service:\n  - enabled: true\n")
        result = CliRunner().invoke(cli, ["-C", str(path), "plan"])
        assert result.exit_code == 1
        assert "Invalid configuration" in result.output


# ── Plan / check / apply ─────────────────────────────────────────────


class TestReconcile:
    def _project(self, tmp_path: Path) -> Path:
        marker = tmp_path / "marker"
        return _config(tmp_path, f"""\
            alias:
              ll: ls -la
            command:
              - name: make-marker
                check: test -f {marker}
                apply: touch {marker}
              - name: gated
                check: "false"
                apply: "false"
                run_if: "false"
        """)

    def test_plan(self, tmp_path: Path, home: Path):
        path = self._project(tmp_path)
        result = CliRunner().invoke(cli, ["-C", str(path), "plan"])
        assert result.exit_code == 0
        assert "Plan: 2 items, 1 skipped" in result.output
        assert not (home / ".dek_aliases").exists()

    def test_check_then_apply_then_check(self, tmp_path: Path, home: Path):
        path = self._project(tmp_path)
        runner = CliRunner()

        result = runner.invoke(cli, ["-C", str(path), "check"])
        assert result.exit_code == 0
        assert "Check: 2 total, 0 satisfied, 2 missing, 1 skipped" in result.output

        result = runner.invoke(cli, ["-C", str(path), "apply"])
        assert result.exit_code == 0
        assert "Summary: 2 total, 1 skipped, 2 changed, 0 failed, 0 issues" in result.output
        assert (tmp_path / "marker").exists()
        assert "alias ll='ls -la'" in (home / ".dek_aliases").read_text()

        result = runner.invoke(cli, ["-C", str(path), "check"])
        assert "Check: 2 total, 2 satisfied, 0 missing, 1 skipped" in result.output

    def test_failed_item_exits_one(self, tmp_path: Path):
        marker = tmp_path / "after"
        path = _config(tmp_path, f"""\
            command:
              - name: broken
                check: "false"
                apply: exit 7
              - name: after
                check: test -f {marker}
                apply: touch {marker}
        """)
        result = CliRunner().invoke(cli, ["-C", str(path), "apply"])
        assert result.exit_code == 1
        assert "exit 7" in result.output
        assert "1 changed, 1 failed" in result.output
        assert marker.exists()

    def test_assertion_is_issue_not_failure(self, tmp_path: Path):
        path = _config(tmp_path, """\
            assert:
              - check: "false"
                message: swap is disabled
        """)
        result = CliRunner().invoke(cli, ["-C", str(path), "apply"])
        assert result.exit_code == 0
        assert "swap is disabled" in result.output
        assert "Summary: 1 total, 0 skipped, 0 changed, 0 failed, 1 issues" in result.output

    def test_quiet_hides_satisfied(self, tmp_path: Path):
        path = _config(tmp_path, """\
            command:
              - name: fine
                check: "true"
                apply: "true"
        """)
        result = CliRunner().invoke(cli, ["-q", "-C", str(path), "apply"])
        assert result.exit_code == 0
        assert "[command] fine" not in result.output

    def test_directory_with_selection(self, tmp_path: Path, home: Path):
        d = tmp_path / "dek"
        d.mkdir()
        (d / "base.yml").write_text("alias:\n  a: echo a\n")
        (d / "work.yml").write_text("alias:\n  w: echo w\n")
        result = CliRunner().invoke(cli, ["-C", str(d), "apply", "work"])
        assert result.exit_code == 0
        content = (home / ".dek_aliases").read_text()
        assert "alias w='echo w'" in content
        assert "alias a=" not in content

    def test_empty_config(self, tmp_path: Path):
        path = _config(tmp_path, "")
        result = CliRunner().invoke(cli, ["-C", str(path), "apply"])
        assert result.exit_code == 0
        assert "No items" in result.output


class TestInstall:
    def test_invalid_spec(self):
        result = CliRunner().invoke(cli, ["install", "htop"])
        assert result.exit_code == 1
        assert "Invalid spec" in result.output

    def test_unknown_provider(self):
        result = CliRunner().invoke(cli, ["install", "brew.htop"])
        assert result.exit_code == 1
        assert "Unknown provider 'brew'" in result.output

    def test_requires_spec(self):
        result = CliRunner().invoke(cli, ["install"])
        assert result.exit_code == 2


# ── State ────────────────────────────────────────────────────────────


class TestState:
    def _project(self, tmp_path: Path) -> Path:
        return _config(tmp_path, """\
            state:
              - name: os
                command: echo Linux
                rewrite:
                  - pattern: "^Linux$"
                    value: linux
                templates:
                  pretty: "{{ original }} box"
              - name: shell
                command: echo zsh
        """)

    def _invoke(self, tmp_path: Path, *args: str):
        path = self._project(tmp_path)
        return CliRunner().invoke(cli, ["-C", str(path), "state", *args])

    def test_all(self, tmp_path: Path):
        result = self._invoke(tmp_path)
        assert result.exit_code == 0
        assert "os" in result.output
        assert "linux" in result.output
        assert "zsh" in result.output

    def test_single_value(self, tmp_path: Path):
        result = self._invoke(tmp_path, "os.pretty")
        assert result.exit_code == 0
        assert result.output == "Linux box\n"

    def test_original(self, tmp_path: Path):
        assert self._invoke(tmp_path, "os.original").output == "Linux\n"

    def test_is(self, tmp_path: Path):
        assert self._invoke(tmp_path, "os", "is", "linux").exit_code == 0
        assert self._invoke(tmp_path, "os", "is", "macos").exit_code == 1
        assert self._invoke(tmp_path, "os", "isnot", "macos").exit_code == 0

    def test_get(self, tmp_path: Path):
        result = self._invoke(tmp_path, "shell", "get", "bash", "fish", "sh")
        assert result.exit_code == 0
        assert result.output == "sh"

    def test_json(self, tmp_path: Path):
        result = self._invoke(tmp_path, "--json")
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["os"] == {"raw": "linux", "original": "Linux", "pretty": "Linux box"}
        assert data["shell"] == {"raw": "zsh"}

    def test_json_selected(self, tmp_path: Path):
        result = self._invoke(tmp_path, "--json", "os", "shell")
        assert json.loads(result.output) == {"os": "linux", "shell": "zsh"}

    def test_unknown_probe(self, tmp_path: Path):
        result = self._invoke(tmp_path, "kernel")
        assert result.exit_code == 1
        assert "Unknown state probe: kernel" in result.output

    def test_no_probes(self, tmp_path: Path):
        path = _config(tmp_path, "alias:\n  a: b\n")
        result = CliRunner().invoke(cli, ["-C", str(path), "state"])
        assert result.exit_code == 1
        assert "No state probes" in result.output
