import json

import pytest
from aiohttp import web

from allscreenshots.cli import build_parser, main, run
from allscreenshots.config import ClientSettings


def test_show_config_masks_api_key(monkeypatch, capsys):
    monkeypatch.setenv("ALLSCREENSHOTS_API_KEY", "sk_live_1234567890")

    assert main(["--show-config"]) == 0

    shown = json.loads(capsys.readouterr().out)
    assert shown["api_key"] == "sk_l...7890"
    assert shown["base_url"] == "https://api.allscreenshots.com"
    assert shown["retry"]["max_retries"] == 3


def test_missing_api_key_exits_with_configuration_error(capsys):
    assert main(["usage"]) == 2
    assert "API key is required" in capsys.readouterr().err


@pytest.mark.parametrize("argv", [["usage"], ["--show-config"]])
def test_malformed_environment_exits_with_configuration_error(monkeypatch, capsys, argv):
    monkeypatch.setenv("ALLSCREENSHOTS_TIMEOUT_MS", "abc")

    assert main(argv) == 2
    assert "timeout_ms" in capsys.readouterr().err


def test_no_command_prints_help(capsys):
    assert main([]) == 2
    assert "usage:" in capsys.readouterr().out


def test_capture_arguments():
    args = build_parser().parse_args(
        ["--no-retry", "capture", "https://github.com", "-o", "gh.png", "--full-page"]
    )
    assert args.command == "capture"
    assert args.no_retry is True
    assert args.full_page is True
    assert args.dark_mode is False
    assert str(args.output) == "gh.png"


@pytest.mark.asyncio
async def test_capture_writes_image(fake_api, tmp_path, capsys):
    fake_api.on("POST", "/v1/screenshots", lambda: web.Response(body=b"PNGDATA"))
    output = tmp_path / "shot.png"
    args = build_parser().parse_args(
        [
            "--api-key", "k",
            "--base-url", fake_api.base_url,
            "capture", "https://github.com",
            "-o", str(output),
            "--dark-mode",
        ]
    )

    assert await run(args, ClientSettings()) == 0

    assert output.read_bytes() == b"PNGDATA"
    assert json.loads(fake_api.requests[0].body) == {
        "url": "https://github.com",
        "darkMode": True,
    }
    assert "Saved 7 bytes" in capsys.readouterr().out


@pytest.mark.asyncio
async def test_quota_prints_raw_payload(fake_api, capsys):
    payload = {"tier": "PRO", "periodEnds": "2026-11-01"}
    fake_api.on("GET", "/v1/usage/quota", lambda: web.json_response(payload))
    args = build_parser().parse_args(["--api-key", "k", "--base-url", fake_api.base_url, "quota"])

    assert await run(args, ClientSettings()) == 0
    assert json.loads(capsys.readouterr().out) == payload
