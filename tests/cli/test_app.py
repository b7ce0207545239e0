import logging
import textwrap
from pathlib import Path

import pytest
import yaml
from typer.testing import CliRunner

import bootplan.cli.app as cli_app
from bootplan.cli.app import app
from bootplan.cloudinit import registry
from bootplan.errors import RenderError

runner = CliRunner()


@pytest.fixture(autouse=True)
def _isolated(monkeypatch, tmp_path: Path):
    monkeypatch.setenv("BOOTPLAN_LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.setenv("BOOTPLAN_LOCK_DIR", str(tmp_path / "locks"))
    monkeypatch.setenv("BOOTPLAN_LOCK_BACKEND", "file")
    monkeypatch.delenv("BOOTPLAN_LOCK_NAMESPACE", raising=False)
    yield
    # init_logging binds handlers to the runner's streams
    logger = logging.getLogger("bootplan")
    for h in list(logger.handlers):
        h.close()
        logger.removeHandler(h)
    logger.propagate = True


def _intent_file(tmp_path: Path, token: str = "a" * 32) -> Path:
    p = tmp_path / "cp0.yaml"
    p.write_text(textwrap.dedent(f"""
        cluster: {{name: demo}}
        machine: demo-cp-0
        intent:
          kind: init-control-plane
          kubernetes_version: v1.25.2
          token: "{token}"
          token_ttl: 10000
    """))
    return p


def test_render_to_stdout(tmp_path: Path):
    result = runner.invoke(app, ["render", str(_intent_file(tmp_path))])
    assert result.exit_code == 0, result.output
    assert result.stdout.startswith("#cloud-config\n")
    doc = yaml.safe_load(result.stdout)
    assert doc["runcmd"][0] == "set -x"


def test_render_to_file_and_event_log(tmp_path: Path):
    out = tmp_path / "cp0.cloud-config"
    result = runner.invoke(app, ["render", str(_intent_file(tmp_path)), "--out", str(out)])
    assert result.exit_code == 0, result.output
    assert out.read_bytes().startswith(b"#cloud-config\n")
    events = list((tmp_path / "logs").glob("*.jsonl"))
    assert events and "PlanCompiled" in events[0].read_text()


def test_render_validation_error_exit_code(tmp_path: Path):
    result = runner.invoke(app, ["render", str(_intent_file(tmp_path, token="short"))])
    assert result.exit_code == 2


def test_render_schema_error_exit_code(tmp_path: Path):
    p = tmp_path / "bad.yaml"
    p.write_text("cluster: {name: demo}\nmachine: m\nintent: {kind: nope}\n")
    result = runner.invoke(app, ["render", str(p)])
    assert result.exit_code == 2


def test_lock_lifecycle():
    result = runner.invoke(app, ["lock", "acquire", "demo", "cp-0"])
    assert result.exit_code == 0, result.output
    assert "cp-0 holds the init lock for default/demo" in result.stdout

    assert runner.invoke(app, ["lock", "acquire", "demo", "cp-0"]).exit_code == 0
    assert runner.invoke(app, ["lock", "acquire", "default/demo", "cp-1"]).exit_code == 1

    status = runner.invoke(app, ["lock", "status", "demo"])
    assert status.exit_code == 0
    assert "default/demo: locked by cp-0" in status.stdout

    assert runner.invoke(app, ["lock", "release", "demo"]).exit_code == 0
    status = runner.invoke(app, ["lock", "status", "demo"])
    assert "default/demo: unlocked" in status.stdout
    assert runner.invoke(app, ["lock", "acquire", "demo", "cp-1"]).exit_code == 0


def test_lock_namespace_from_env(monkeypatch):
    monkeypatch.setenv("BOOTPLAN_LOCK_NAMESPACE", "capi")
    result = runner.invoke(app, ["lock", "acquire", "demo", "cp-0"])
    assert "capi/demo" in result.stdout


def test_lock_store_unavailable_exit_code(monkeypatch, tmp_path: Path):
    blocker = tmp_path / "blocker"
    blocker.write_text("")
    monkeypatch.setenv("BOOTPLAN_LOCK_DIR", str(blocker / "locks"))
    result = runner.invoke(app, ["lock", "acquire", "demo", "cp-0"])
    assert result.exit_code == 3


def test_scripts_verify():
    result = runner.invoke(app, ["scripts", "verify"])
    assert result.exit_code == 0, result.output
    assert "15 step payloads verified" in result.stdout


def test_missing_step_payload_is_a_broken_install(monkeypatch, tmp_path: Path):
    monkeypatch.setattr(registry, "SCRIPTS_DIR", tmp_path / "empty")
    result = runner.invoke(app, ["render", str(_intent_file(tmp_path))])
    assert result.exit_code == 4
    assert "broken install" in result.output
    assert runner.invoke(app, ["lock", "acquire", "demo", "cp-0"]).exit_code == 4


def test_render_failure_exit_code(monkeypatch, tmp_path: Path):
    def boom(plan, bus=None, run_ctx=None):
        raise RenderError("cannot dump cloud-config")

    monkeypatch.setattr(cli_app, "render_cloud_config", boom)
    result = runner.invoke(app, ["render", str(_intent_file(tmp_path))])
    assert result.exit_code == 4
    assert "cannot dump cloud-config" in result.output


def test_token_generate():
    result = runner.invoke(app, ["token", "generate", "demo"])
    assert result.exit_code == 0, result.output
    lines = dict(line.split(": ", 1) for line in result.stdout.splitlines())
    assert len(lines["demo-jointoken"]) == 32
    assert lines["demo-jointoken"].isalpha()
    assert "demo-capi-auth-token" in lines
