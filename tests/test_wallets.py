import json

from taskrelay.core.wallets import list_wallet_filenames, load_agent_wallets, read_wallets

MAINNET = "SP2J6ZY48GV1EZ5V2V5RB9MP66SW86PYKKNRV9EJ7"


def _write(path, data) -> None:
    path.write_text(json.dumps(data) if not isinstance(data, str) else data, encoding="utf-8")


def test_missing_directory_is_empty(tmp_path) -> None:
    assert list_wallet_filenames(str(tmp_path / "nope")) == []
    assert read_wallets(str(tmp_path / "nope")) == []
    assert load_agent_wallets(str(tmp_path / "nope")) == set()


def test_read_wallets_derives_both_networks(tmp_path) -> None:
    _write(tmp_path / "wallet-a.json", {
        "label": "LOBSTER",
        "network": "stacks-mainnet",
        "address": MAINNET,
        "privateKey": "secret",
    })
    wallets = read_wallets(str(tmp_path))
    assert len(wallets) == 1
    info = wallets[0].to_dict()
    assert info["filename"] == "wallet-a.json"
    assert info["label"] == "LOBSTER"
    assert info["mainnetAddress"] == MAINNET
    assert info["testnetAddress"].startswith("ST")


def test_read_wallets_skips_malformed_and_keyless(tmp_path) -> None:
    _write(tmp_path / "broken.json", "{not json")
    _write(tmp_path / "nokey.json", {"address": MAINNET})
    _write(tmp_path / "list.json", [1, 2])
    _write(tmp_path / "notes.txt", "ignored")
    assert read_wallets(str(tmp_path)) == []
    assert list_wallet_filenames(str(tmp_path)) == ["broken.json", "list.json", "nokey.json"]


def test_undecodable_address_falls_back(tmp_path) -> None:
    _write(tmp_path / "odd.json", {"address": "not-an-address", "privateKey": "k"})
    info = read_wallets(str(tmp_path))[0]
    assert info.testnet_address == "not-an-address"
    assert info.mainnet_address == "not-an-address"


def test_load_agent_wallets_collects_variants(tmp_path) -> None:
    _write(tmp_path / "a.json", {"address": MAINNET})
    _write(tmp_path / "b.json", "garbage")
    addresses = load_agent_wallets(str(tmp_path))
    assert MAINNET in addresses
    assert len(addresses) == 2
    assert any(a.startswith("ST") for a in addresses)
