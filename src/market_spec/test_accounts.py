"""Deterministic test identities.

Each address is the first 20 bytes of BLAKE3("market-spec/account/" + name).
"""

from __future__ import annotations

from blake3 import blake3

from .config import ADDRESS_SIZE


def derive_address(name: str) -> bytes:
    return blake3(f"market-spec/account/{name}".encode()).digest()[:ADDRESS_SIZE]


OWNER = derive_address("Owner")
SELLER = derive_address("Seller")
BUYER = derive_address("Buyer")
AGENT = derive_address("Agent")
CAROL = derive_address("Carol")
DAVE = derive_address("Dave")
EVE = derive_address("Eve")
