from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from typing import Optional

from taskrelay.core.c32 import C32Error, address_variants

logger = logging.getLogger("taskrelay.wallets")


@dataclass
class WalletInfo:
    filename: str
    label: Optional[str]
    address: str
    network: Optional[str]
    testnet_address: str
    mainnet_address: str

    def to_dict(self) -> dict:
        return {
            "filename": self.filename,
            "label": self.label,
            "address": self.address,
            "network": self.network,
            "testnetAddress": self.testnet_address,
            "mainnetAddress": self.mainnet_address,
        }


def list_wallet_filenames(wallets_dir: str) -> list[str]:
    """Return the sorted ``*.json`` filenames in *wallets_dir* (empty if missing)."""
    if not os.path.isdir(wallets_dir):
        return []
    return sorted(f for f in os.listdir(wallets_dir) if f.endswith(".json"))


def _read_wallet(path: str) -> Optional[dict]:
    try:
        with open(path, "r", encoding="utf-8") as handle:
            data = json.load(handle)
    except (OSError, ValueError) as exc:
        logger.debug("Skipping unreadable wallet file %s: %s", path, exc)
        return None
    if not isinstance(data, dict):
        logger.debug("Skipping wallet file %s: not a JSON object", path)
        return None
    return data


def read_wallets(wallets_dir: str) -> list[WalletInfo]:
    """Read wallet files that carry both an address and a private key.

    Malformed files are skipped. When an address cannot be decoded both
    derived encodings fall back to the stored address.
    """
    wallets: list[WalletInfo] = []
    for filename in list_wallet_filenames(wallets_dir):
        data = _read_wallet(os.path.join(wallets_dir, filename))
        if not data or not data.get("address") or not data.get("privateKey"):
            continue
        address = data["address"]
        try:
            testnet, mainnet = address_variants(address)
        except C32Error:
            testnet = mainnet = address
        wallets.append(
            WalletInfo(
                filename=filename,
                label=data.get("label"),
                address=address,
                network=data.get("network"),
                testnet_address=testnet,
                mainnet_address=mainnet,
            )
        )
    return wallets


def load_agent_wallets(wallets_dir: str) -> set[str]:
    """Collect every local wallet address in its stored, testnet and mainnet forms."""
    addresses: set[str] = set()
    filenames = list_wallet_filenames(wallets_dir)
    if not filenames:
        logger.info("No wallet files found in %s", wallets_dir)
        return addresses
    for filename in filenames:
        data = _read_wallet(os.path.join(wallets_dir, filename))
        if not data or not data.get("address"):
            continue
        address = data["address"]
        addresses.add(address)
        try:
            addresses.update(address_variants(address))
        except C32Error as exc:
            logger.debug("Cannot derive network variants for %s: %s", address, exc)
    logger.info("Loaded %d agent wallet addresses", len(addresses))
    return addresses
