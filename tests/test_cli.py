import asyncio
import os
import signal

import pytest

from cursor_wsl_iso import cli
from cursor_wsl_iso.environments.binding import ResourceBinder
from cursor_wsl_iso.environments.namespace import resolve

SESSION_VARS = (
    "CURSOR_ENV_ID", "CURSOR_ENV_BASE", "ENV_ROOT", "ISOLATED_HOME",
    "ISOLATED_CACHE", "ISOLATED_CONFIG", "ISOLATED_DATA", "CURSOR_ENV_RUNTIME",
)


@pytest.fixture
def host_env(monkeypatch, tmp_path):
    """Point the real process environment at temporary locations"""
    monkeypatch.setenv("HOME", str(tmp_path / "host-home"))
    monkeypatch.setenv("CURSOR_ENV_CONFIG", str(tmp_path / "config.toml"))
    monkeypatch.setenv("CURSOR_ENV_BASE_DIR", str(tmp_path / "envs"))
    monkeypatch.setenv("CURSOR_ENV_REQUIRE_WSL", "0")
    monkeypatch.setenv("CURSOR_ENV_SHELL", "true")
    for var in SESSION_VARS:
        monkeypatch.delenv(var, raising=False)
    return tmp_path


def test_parse_args():
    args = cli.parse_args(["3", "node20"])
    assert args.env_id == "3"
    assert args.project_type == "node20"
    assert cli.parse_args(["1"]).project_type is None


def test_parse_args_rejects_extra_arguments():
    with pytest.raises(SystemExit):
        cli.parse_args(["1", "python311", "extra"])


def test_main_invalid_id(host_env, capsys):
    assert cli.main(["zero"]) == 2
    err = capsys.readouterr().err
    assert "fatal: Invalid environment id 'zero'" in err
    assert not (host_env / "envs").exists()


def test_main_precondition_failure(host_env, monkeypatch, capsys):
    monkeypatch.setenv("CURSOR_ENV_REQUIRE_WSL", "1")
    monkeypatch.setattr("cursor_wsl_iso.host.PROC_VERSION", host_env / "no-proc-version")

    assert cli.main(["1"]) == 1
    assert "fatal: This tool must be run in WSL" in capsys.readouterr().err
    assert not (host_env / "envs").exists()


def test_main_runs_session_and_restores(host_env, capsys):
    before = dict(os.environ)

    assert cli.main(["1", "python311"]) == 0

    assert dict(os.environ) == before
    assert (host_env / "envs" / "1" / "home").is_dir()
    out = capsys.readouterr().out
    assert "Isolated development environment 1 (python311) loaded" in out
    assert "cursor-env info" in out


def test_main_missing_shell(host_env, monkeypatch, capsys):
    monkeypatch.setenv("CURSOR_ENV_SHELL", "definitely-not-a-shell-4821")
    before = dict(os.environ)

    assert cli.main(["1"]) == 1

    assert dict(os.environ) == before
    assert "fatal: Cannot start shell" in capsys.readouterr().err


def test_env_main_outside_session(host_env, capsys):
    assert cli.env_main(["info"]) == 1
    assert "Not inside an isolated environment" in capsys.readouterr().err


def test_env_main_requires_command():
    with pytest.raises(SystemExit):
        cli.parse_env_args([])


@pytest.fixture
def inside_session(host_env, monkeypatch):
    """Bind environment 7 into the process environment like a running session"""
    ns = resolve(7, "fullstack", host_env / "envs")
    binder = ResourceBinder(os.environ)
    saved = binder.bind(ns)
    binder.set(saved, "CURSOR_ENV_RUNTIME", "disabled")
    yield ns
    binder.unbind(saved)


def test_env_main_info(inside_session, capsys):
    assert cli.env_main(["info", "--json"]) == 0
    out = capsys.readouterr().out
    assert '"env_id": 7' in out
    assert '"status": "unavailable"' in out


def test_env_main_backup_and_clean(inside_session, capsys):
    assert cli.env_main(["backup", "snap"]) == 0
    assert (inside_session.base / "7-snap.tar.gz").is_file()

    assert cli.env_main(["clean"]) == 0
    assert not inside_session.root.exists()
    assert "Environment 7 cleaned" in capsys.readouterr().out


def test_env_main_tampered_id(inside_session, capsys):
    os.environ["CURSOR_ENV_ID"] = "one"

    assert cli.env_main(["info"]) == 2
    assert "fatal: Invalid environment id 'one'" in capsys.readouterr().err


def test_main_ctrl_c_during_banner(host_env, monkeypatch):
    before = dict(os.environ)

    async def interrupted_banner(session):
        signal.raise_signal(signal.SIGINT)
        await asyncio.sleep(30)

    monkeypatch.setattr(cli, "welcome", interrupted_banner)

    assert cli.main(["1"]) == 130
    assert dict(os.environ) == before


def test_main_keyboard_interrupt(host_env, monkeypatch):
    class InterruptedController:
        def __init__(self, settings):
            pass

        async def run(self, env_id, project_type=None, on_ready=None):
            raise KeyboardInterrupt

    monkeypatch.setattr(cli, "SessionController", InterruptedController)

    assert cli.main(["1"]) == 130
