import io
import json
from pathlib import Path

import pytest

from quotabar.__main__ import _parse_listen_address, main
from quotabar.cli import parse_args


@pytest.fixture(autouse=True)
def _home(tmp_path: "Path", monkeypatch: "pytest.MonkeyPatch") -> "Path":
    monkeypatch.setenv("HOME", str(tmp_path))
    for var in ("MINIMAX_TOKEN", "MINIMAX_GROUP_ID"):
        monkeypatch.delenv(var, raising=False)
    return tmp_path


class TestParseArgs:
    def test_status_options(self) -> "None":
        args, config = parse_args(
            ["--log.level", "debug", "status", "--watch", "--refresh.interval", "10"]
        )
        assert args.command == "status"
        assert args.watch is True
        assert args.compact is False
        assert config.log_level == "debug"
        assert config.refresh_interval == 10

    def test_command_is_required(self) -> "None":
        with pytest.raises(SystemExit):
            parse_args([])

    def test_refresh_interval_belongs_to_status(self) -> "None":
        with pytest.raises(SystemExit):
            parse_args(["--refresh.interval", "10", "status"])

    def test_refresh_interval_defaults_to_config(self) -> "None":
        _, config = parse_args(["status"])
        assert config.refresh_interval == 30


class TestParseListenAddress:
    def test_formats(self) -> "None":
        assert _parse_listen_address(":9186") == ("0.0.0.0", 9186)
        assert _parse_listen_address("127.0.0.1:9000") == ("127.0.0.1", 9000)


class TestMain:
    def test_auth_saves_credentials(self, _home: "Path") -> "None":
        with pytest.raises(SystemExit) as exc:
            main(["auth", "tok", "grp"])

        assert exc.value.code == 0
        saved = json.loads((_home / ".minimax-config.json").read_text())
        assert saved == {"token": "tok", "groupId": "grp"}

    def test_auth_overseas(self, _home: "Path") -> "None":
        with pytest.raises(SystemExit):
            main(["auth", "tok", "grp"])
        with pytest.raises(SystemExit):
            main(["auth", "--overseas", "otok", "ogrp"])

        saved = json.loads((_home / ".minimax-config.json").read_text())
        assert saved["overseasToken"] == "otok"
        assert saved["token"] == "tok"

    def test_statusline_without_credentials_prints_error(
        self,
        monkeypatch: "pytest.MonkeyPatch",
        capsys: "pytest.CaptureFixture[str]",
    ) -> "None":
        monkeypatch.setattr("sys.stdin", io.StringIO("{}"))

        with pytest.raises(SystemExit) as exc:
            main(["statusline"])

        assert exc.value.code == 0
        assert "❌ MiniMax error: Missing credentials" in capsys.readouterr().out

    def test_status_without_credentials_fails(
        self,
        capsys: "pytest.CaptureFixture[str]",
    ) -> "None":
        with pytest.raises(SystemExit) as exc:
            main(["status"])

        assert exc.value.code == 1
        assert "Missing credentials" in capsys.readouterr().err
