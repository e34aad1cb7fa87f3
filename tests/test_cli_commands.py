import json
import sys
from pathlib import Path

import pytest
from loguru import logger
from typer.testing import CliRunner

from transformator_client.cli.commands import CliTarget, app, resolve_connect_string
from transformator_client.core.protocol import TransformRequest
from transformator_client.utils.exceptions import ConfigError

runner = CliRunner()


@pytest.fixture(autouse=True)
def _restore_loguru():
    yield
    logger.remove()
    logger.add(sys.stderr)


@pytest.fixture
def empty_config(tmp_path: Path) -> str:
    return str(tmp_path / "missing-config.json")


def _jade(request: TransformRequest):
    if request.engine == "list":
        return {"result": ["jade", "minify_css"]}
    if request.engine == "jade":
        return {"result": f"<span>Hi {request.data.get('name')}!</span>"}
    return {"error": f"no engine {request.engine}"}


def test_transform_from_file_prints_result(sync_stub_service, tmp_path: Path, empty_config: str):
    source = tmp_path / "hello.jade"
    source.write_text("span\n  | Hi #{name}!\n", encoding="utf-8")
    with sync_stub_service(_jade) as service:
        result = runner.invoke(
            app,
            ["--config", empty_config, "--socket", service.connect, "transform", "jade", str(source), "--var", "name=Peter"],
        )
    assert result.exit_code == 0, result.output
    assert result.stdout == "<span>Hi Peter!</span>"
    assert service.requests[0].input == "span\n  | Hi #{name}!\n"


def test_transform_reads_stdin_and_data_file(sync_stub_service, tmp_path: Path, empty_config: str):
    data_file = tmp_path / "vars.json"
    data_file.write_text(json.dumps({"name": "Ann", "n": 1}), encoding="utf-8")
    with sync_stub_service(_jade) as service:
        result = runner.invoke(
            app,
            ["--config", empty_config, "--connect", service.connect, "transform", "jade", "--data-file", str(data_file)],
            input="p hello",
        )
    assert result.exit_code == 0, result.output
    assert result.stdout == "<span>Hi Ann!</span>"
    assert service.requests[0] == TransformRequest("jade", "p hello", {"name": "Ann", "n": 1})


def test_service_error_exits_non_zero(sync_stub_service, empty_config: str):
    with sync_stub_service(_jade) as service:
        result = runner.invoke(
            app, ["--config", empty_config, "--socket", service.connect, "transform", "sass"], input="a"
        )
    assert result.exit_code == 1
    assert "Service error: no engine sass" in result.output


def test_list_prints_engine_names(sync_stub_service, empty_config: str):
    with sync_stub_service(_jade) as service:
        result = runner.invoke(app, ["--config", empty_config, "--socket", service.connect, "list"])
    assert result.exit_code == 0, result.output
    assert result.stdout.splitlines() == ["jade", "minify_css"]
    assert service.requests[0].engine == "list"


def test_connect_target_from_config_file(sync_stub_service, tmp_path: Path):
    with sync_stub_service(_jade) as service:
        config_path = tmp_path / "config.json"
        config_path.write_text(json.dumps({"connect": service.connect}), encoding="utf-8")
        result = runner.invoke(app, ["--config", str(config_path), "list"])
    assert result.exit_code == 0, result.output
    assert "jade" in result.stdout


def test_unreachable_service_exits_non_zero(tmp_path: Path, empty_config: str):
    result = runner.invoke(
        app, ["--config", empty_config, "--socket", str(tmp_path / "none.sock"), "transform", "jade"], input="p"
    )
    assert result.exit_code == 1
    assert "Connect to" in result.output


def test_missing_target_exits_with_usage_error(empty_config: str, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.delenv("TRANSFORMATOR_CONNECT", raising=False)
    result = runner.invoke(app, ["--config", empty_config, "transform", "jade"], input="p")
    assert result.exit_code == 2
    assert "No service target" in result.output


def test_bad_var_assignment_exits_non_zero(empty_config: str):
    result = runner.invoke(app, ["--config", empty_config, "--port", "1", "transform", "jade", "--var", "oops"], input="p")
    assert result.exit_code == 1
    assert "key=value" in result.output


def test_standalone_flag_spawns_private_server(ready_server_bin: Path, empty_config: str):
    result = runner.invoke(
        app,
        ["--config", empty_config, "--standalone", "--binary", str(ready_server_bin), "transform", "upper"],
        input="shout",
    )
    assert result.exit_code == 0, result.output
    assert result.stdout == "SHOUT"


def test_version_flag():
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert "transformator-client v" in result.stdout


def test_resolve_connect_string_precedence():
    assert resolve_connect_string(CliTarget(socket="/tmp/s", port=1, connect="9"), "8") == "unix/:/tmp/s"
    assert resolve_connect_string(CliTarget(host="example.org", port=4000, connect="9"), "8") == "example.org:4000"
    assert resolve_connect_string(CliTarget(port=4000), None) == "localhost:4000"
    assert resolve_connect_string(CliTarget(host="::1", port=4000), None) == "[::1]:4000"
    assert resolve_connect_string(CliTarget(connect="9"), "8") == "9"
    assert resolve_connect_string(CliTarget(), "8") == "8"
    assert resolve_connect_string(CliTarget(), None) is None


def test_host_without_port_is_config_error():
    with pytest.raises(ConfigError):
        resolve_connect_string(CliTarget(host="example.org"), None)


def test_binary_input_file_is_sent_as_bytes(sync_stub_service, tmp_path: Path, empty_config: str):
    source = tmp_path / "blob.bin"
    source.write_bytes(b"\xff\xfe\x00binary")
    with sync_stub_service(lambda req: {"result": len(req.input)}) as service:
        result = runner.invoke(
            app, ["--config", empty_config, "--socket", service.connect, "transform", "minify_js", str(source)]
        )
    assert result.exit_code == 0, result.output
    assert result.stdout.strip() == "9"
    assert service.requests[0].input == b"\xff\xfe\x00binary"


def test_unreadable_input_file_exits_non_zero(tmp_path: Path, empty_config: str):
    result = runner.invoke(
        app, ["--config", empty_config, "--port", "1", "transform", "jade", str(tmp_path / "missing.jade")]
    )
    assert result.exit_code == 1
    assert "Cannot read input" in result.output
