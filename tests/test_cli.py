import json

from typer.testing import CliRunner

from taskrelay import __version__
from taskrelay.cli import app

runner = CliRunner()

MAINNET = "SP2J6ZY48GV1EZ5V2V5RB9MP66SW86PYKKNRV9EJ7"


def test_version() -> None:
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert result.stdout.strip() == __version__


def test_convert_address_round_trip() -> None:
    testnet = runner.invoke(app, ["convert-address", MAINNET, "--network", "testnet"])
    assert testnet.exit_code == 0
    address = testnet.stdout.strip()
    assert address.startswith("ST")

    back = runner.invoke(app, ["convert-address", address, "--network", "mainnet"])
    assert back.stdout.strip() == MAINNET


def test_convert_address_rejects_garbage() -> None:
    result = runner.invoke(app, ["convert-address", "not-an-address"])
    assert result.exit_code == 1


def test_wallets_lists_both_networks(tmp_path) -> None:
    (tmp_path / "alpha.json").write_text(json.dumps({"address": MAINNET, "privateKey": "k", "label": "Alpha"}))
    result = runner.invoke(app, ["wallets", "--dir", str(tmp_path)])
    assert result.exit_code == 0
    assert "alpha.json  Alpha" in result.stdout
    assert f"mainnet: {MAINNET}" in result.stdout


def test_wallets_empty_dir(tmp_path) -> None:
    result = runner.invoke(app, ["wallets", "--dir", str(tmp_path)])
    assert result.exit_code == 0
    assert "No wallets found" in result.stdout
