from __future__ import annotations

import re
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional

from .errors import ConfigurationError

_WORD_RE = re.compile(r"[a-z0-9]+")
_SPACE_RE = re.compile(r"[\s_\-]+")


def _norm(text: str) -> str:
    candidate = (text or "").strip().lower()
    candidate = _SPACE_RE.sub(" ", candidate)
    candidate = " ".join(_WORD_RE.findall(candidate))
    return candidate


def _slug(text: str) -> str:
    return _norm(text).replace(" ", "-")


@dataclass(frozen=True)
class ChainInfo:
    name: str
    chain_id: int
    rpc_url: str
    native_symbol: str
    native_decimals: int
    explorer_url: str
    explorer_api_url: Optional[str]
    multicall_address: Optional[str]
    supports_aggregate3: bool
    testnet: bool

    @property
    def canonical_label(self) -> str:
        return _slug(self.name)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "label": self.canonical_label,
            "chain_id": self.chain_id,
            "rpc_url": self.rpc_url,
            "native_currency": {
                "symbol": self.native_symbol,
                "decimals": self.native_decimals,
            },
            "explorer_url": self.explorer_url,
            "explorer_api_url": self.explorer_api_url,
            "multicall_address": self.multicall_address,
            "supports_aggregate3": self.supports_aggregate3,
            "testnet": self.testnet,
        }


SOMNIA_MAINNET = ChainInfo(
    name="Somnia Mainnet",
    chain_id=5031,
    rpc_url="https://api.infra.mainnet.somnia.network",
    native_symbol="SOMI",
    native_decimals=18,
    explorer_url="https://explorer.somnia.network",
    explorer_api_url="https://explorer.somnia.network/api",
    multicall_address="0x1B0F6590d21dc02B92ad3A7D00F8884dC4f1aed9",
    supports_aggregate3=True,
    testnet=False,
)

SOMNIA_TESTNET = ChainInfo(
    name="Somnia Testnet",
    chain_id=50312,
    rpc_url="https://dream-rpc.somnia.network",
    native_symbol="STT",
    native_decimals=18,
    explorer_url="https://shannon-explorer.somnia.network",
    explorer_api_url="https://shannon-explorer.somnia.network/api",
    multicall_address="0x841b8199E6d3Db3C6f264f6C2bd8848b3cA64223",
    supports_aggregate3=True,
    testnet=True,
)

DEFAULT_CHAINS = (SOMNIA_MAINNET, SOMNIA_TESTNET)


class ChainRegistry:
    """
    Static network registry.
    - Resolves network input by chain id, display name, slug or alias.
    - An RPC override only applies to the default network.
    """

    def __init__(
        self,
        chains: Optional[List[ChainInfo]] = None,
        default_network: str = SOMNIA_TESTNET.name,
        rpc_url_override: Optional[str] = None,
    ) -> None:
        self._chains: Dict[int, ChainInfo] = {}
        for info in chains or DEFAULT_CHAINS:
            self._chains[info.chain_id] = info

        self._alias: Dict[str, str] = {
            "mainnet": "somnia mainnet",
            "somnia": "somnia mainnet",
            "somi": "somnia mainnet",
            "testnet": "somnia testnet",
            "shannon": "somnia testnet",
            "dream": "somnia testnet",
            "stt": "somnia testnet",
        }
        self._index: Dict[str, int] = {}
        self._rebuild_index()

        default = self.resolve(default_network)
        if rpc_url_override:
            default = replace(default, rpc_url=rpc_url_override)
            self._chains[default.chain_id] = default
        self._default = default

    def _rebuild_index(self) -> None:
        idx: Dict[str, int] = {}
        for cid, info in self._chains.items():
            idx[str(cid)] = cid
            idx[_norm(info.name)] = cid
            idx[_norm(info.canonical_label)] = cid
        self._index = idx

    @property
    def default(self) -> ChainInfo:
        return self._default

    def list_chains(self) -> List[Dict[str, Any]]:
        return [info.as_dict() for _, info in sorted(self._chains.items())]

    def resolve(self, network: Optional[Any]) -> ChainInfo:
        if network is None:
            return self._default

        raw = str(network).strip()
        if not raw:
            return self._default

        q = _norm(raw)
        q = _norm(self._alias.get(q, q))
        cid = self._index.get(q)
        if cid is None:
            supported = ", ".join(f"{info.name} ({info.chain_id})" for info in self._chains.values())
            raise ConfigurationError(f"Chain '{raw}' not found or is not supported. Supported: {supported}.")
        return self._chains[cid]
