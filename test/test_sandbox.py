from __future__ import annotations

import tempfile
from types import SimpleNamespace

import e2b
import pytest
from e2b import NotFoundException

from internal.config import Config
from internal.sandbox import (
    E2BProvider,
    LocalProvider,
    SandboxError,
    SandboxFactory,
    SandboxFileNotFound,
    SandboxNotActive,
    SandboxNotRegistered,
    SandboxRegistry,
)
from internal.sandbox.shell import list_files_command


def _temp_dir() -> str:
    return tempfile.mkdtemp(prefix="ticketforge-")


def test_local_provider_file_roundtrip_and_listing() -> None:
    provider = LocalProvider(_temp_dir())
    info = provider.create()

    assert info.provider == "local"
    assert info.sandbox_id.startswith("sbx_")
    assert provider.info() == info

    provider.write_file("src/App.tsx", "export {}")
    provider.write_file("/package.json", "{}")
    provider.write_file("node_modules/dep/index.js", "x")

    assert provider.read_file("src/App.tsx") == "export {}"
    assert provider.list_files() == ["package.json", "src/App.tsx"]
    assert provider.list_files("src") == ["App.tsx"]
    assert provider.list_files("missing") == []


def test_local_provider_commands_report_exit_codes() -> None:
    provider = LocalProvider(_temp_dir())
    provider.create()

    ok = provider.run_command("echo hello && pwd -P")
    assert ok.success
    assert ok.exit_code == 0
    lines = ok.stdout.splitlines()
    assert "hello" in lines
    assert str(provider.workdir.resolve()) in lines

    bad = provider.run_command("echo oops >&2; exit 3")
    assert not bad.success
    assert bad.exit_code == 3
    assert "oops" in bad.stderr


def test_local_provider_errors() -> None:
    provider = LocalProvider(_temp_dir())
    with pytest.raises(SandboxNotActive):
        provider.run_command("true")
    assert not provider.check_health().healthy

    provider.create()
    with pytest.raises(SandboxFileNotFound):
        provider.read_file("nope.txt")
    with pytest.raises(SandboxError):
        provider.write_file("../escape.txt", "x")
    with pytest.raises(SandboxError):
        provider.restart_dev_server()
    assert provider.install_packages([]).success


def test_local_provider_terminate_removes_workdir() -> None:
    provider = LocalProvider(_temp_dir())
    provider.create()
    workdir = provider.workdir
    assert provider.check_health().healthy

    provider.terminate()

    assert not workdir.exists()
    assert provider.info() is None
    assert provider.check_health().error == "No sandbox instance"


class CommandFailed(Exception):
    def __init__(self) -> None:
        super().__init__("command exited with 2")
        self.exit_code = 2
        self.stdout = "partial"
        self.stderr = "bad things"


class FakeCommands:
    def __init__(self) -> None:
        self.calls = []
        self.stdout = "out"
        self.fail = None

    def run(self, cmd, cwd=None, timeout=None, background=False):
        self.calls.append({"cmd": cmd, "cwd": cwd, "timeout": timeout, "background": background})
        if self.fail is not None:
            raise self.fail
        return SimpleNamespace(stdout=self.stdout, stderr="", exit_code=0)


class FakeFiles:
    def __init__(self) -> None:
        self.data = {}

    def write(self, path, content):
        self.data[path] = content

    def read(self, path):
        if path not in self.data:
            raise NotFoundException(f"{path} not found")
        return self.data[path]


class FakeSandbox:
    sandbox_id = "e2b-sbx-1"

    def __init__(self) -> None:
        self.commands = FakeCommands()
        self.files = FakeFiles()
        self.killed = False
        self.running = True

    def get_host(self, port):
        return f"{port}-e2b-sbx-1.e2b.app"

    def is_running(self, request_timeout=None):
        return self.running

    def kill(self):
        self.killed = True


def test_e2b_provider_commands_and_files() -> None:
    sandbox = FakeSandbox()
    provider = E2BProvider("key", sandbox=sandbox)

    info = provider.info()
    assert info.sandbox_id == "e2b-sbx-1"
    assert info.url == "https://5173-e2b-sbx-1.e2b.app"
    assert info.provider == "e2b"

    res = provider.run_command("ls -la")
    assert res.success
    assert res.stdout == "out"
    call = sandbox.commands.calls[-1]
    assert call["cmd"] == "sh -c 'ls -la'"
    assert call["cwd"] == "/app"

    provider.write_file("src/a.ts", "A")
    assert sandbox.files.data == {"/app/src/a.ts": "A"}
    assert provider.read_file("src/a.ts") == "A"
    with pytest.raises(SandboxFileNotFound):
        provider.read_file("src/missing.ts")


def test_e2b_provider_folds_command_exceptions() -> None:
    sandbox = FakeSandbox()
    sandbox.commands.fail = CommandFailed()
    provider = E2BProvider("key", sandbox=sandbox)

    res = provider.run_command("npm test")

    assert not res.success
    assert res.exit_code == 2
    assert res.stdout == "partial"
    assert res.stderr == "bad things"


def test_e2b_provider_lists_and_installs() -> None:
    sandbox = FakeSandbox()
    sandbox.commands.stdout = "/app/src/a.ts\n/app/package.json\n"
    provider = E2BProvider("key", sandbox=sandbox)

    assert provider.list_files() == ["package.json", "src/a.ts"]
    assert "node_modules" in sandbox.commands.calls[-1]["cmd"]

    assert provider.install_packages([]).success
    provider.install_packages(["react-router-dom", "zod"])
    assert "npm install" in sandbox.commands.calls[-1]["cmd"]
    assert "react-router-dom zod" in sandbox.commands.calls[-1]["cmd"]


def test_e2b_provider_health_and_terminate() -> None:
    sandbox = FakeSandbox()
    provider = E2BProvider("key", sandbox=sandbox)
    assert provider.check_health().healthy

    sandbox.running = False
    assert provider.check_health().error == "SANDBOX_STOPPED"

    provider.terminate()
    assert sandbox.killed
    assert provider.info() is None
    with pytest.raises(SandboxNotActive):
        provider.run_command("true")


def test_e2b_provider_requires_api_key() -> None:
    with pytest.raises(ValueError):
        E2BProvider("").create()


def test_factory_selection() -> None:
    root = _temp_dir()
    local_only = SandboxFactory(Config(sandbox_root=root))
    assert isinstance(local_only.create(), LocalProvider)
    assert local_only.available_providers() == ["local"]
    assert isinstance(local_only.create("e2b"), LocalProvider)

    with_key = SandboxFactory(Config(sandbox_root=root, e2b_api_key="k"))
    assert isinstance(with_key.create(), E2BProvider)
    assert isinstance(with_key.create("local"), LocalProvider)
    assert with_key.available_providers() == ["e2b", "local"]

    pinned = SandboxFactory(Config(sandbox_root=root, e2b_api_key="k", sandbox_provider="local"))
    assert isinstance(pinned.create(), LocalProvider)


def test_registry_tracks_live_sandboxes() -> None:
    registry = SandboxRegistry(SandboxFactory(Config(sandbox_root=_temp_dir(), sandbox_provider="local")))
    info = registry.create()

    assert registry.get(info.sandbox_id).info() == info
    assert [i.sandbox_id for i in registry.list()] == [info.sandbox_id]

    registry.terminate(info.sandbox_id)
    with pytest.raises(SandboxNotRegistered):
        registry.get(info.sandbox_id)
    with pytest.raises(SandboxNotRegistered):
        registry.terminate(info.sandbox_id)


def test_list_files_command_quotes_patterns() -> None:
    cmd = list_files_command("/app/")
    assert cmd.startswith("find /app -type f")
    assert "'*/.git/*'" in cmd


def test_registry_reconnects_unknown_e2b_sandbox(monkeypatch) -> None:
    connected = []

    def fake_connect(sandbox_id, api_key=None, **kwargs):
        connected.append((sandbox_id, api_key))
        if sandbox_id != "e2b-sbx-1":
            raise NotFoundException(f"sandbox {sandbox_id} not found")
        return FakeSandbox()

    monkeypatch.setattr(e2b.Sandbox, "connect", fake_connect)
    registry = SandboxRegistry(SandboxFactory(Config(sandbox_root=_temp_dir(), e2b_api_key="k")))

    provider = registry.get("e2b-sbx-1")
    assert isinstance(provider, E2BProvider)
    assert provider.info().sandbox_id == "e2b-sbx-1"
    assert registry.get("e2b-sbx-1") is provider
    assert [i.sandbox_id for i in registry.list()] == ["e2b-sbx-1"]

    with pytest.raises(SandboxNotRegistered):
        registry.get("e2b-gone")
    assert connected == [("e2b-sbx-1", "k"), ("e2b-gone", "k")]


def test_registry_terminates_reconnected_sandbox(monkeypatch) -> None:
    sandbox = FakeSandbox()
    monkeypatch.setattr(e2b.Sandbox, "connect", lambda sandbox_id, api_key=None, **kwargs: sandbox)
    registry = SandboxRegistry(SandboxFactory(Config(sandbox_root=_temp_dir(), e2b_api_key="k")))

    registry.terminate("e2b-sbx-1")

    assert sandbox.killed
    assert registry.list() == []


def test_registry_does_not_reconnect_without_e2b_key(monkeypatch) -> None:
    calls = []
    monkeypatch.setattr(e2b.Sandbox, "connect", lambda *args, **kwargs: calls.append(args))
    registry = SandboxRegistry(SandboxFactory(Config(sandbox_root=_temp_dir())))

    with pytest.raises(SandboxNotRegistered):
        registry.get("e2b-sbx-1")
    assert calls == []
