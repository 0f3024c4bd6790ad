import logging
from typing import Any, Dict, Optional

from eth_abi.exceptions import DecodingError

from .client import ChainClient, normalize_address
from .errors import PreconditionError, TransportError, ValidationError

log = logging.getLogger(__name__)

ERC20_ABI = [
    {"constant": True, "inputs": [], "name": "name",
     "outputs": [{"name": "", "type": "string"}], "type": "function"},
    {"constant": True, "inputs": [], "name": "symbol",
     "outputs": [{"name": "", "type": "string"}], "type": "function"},
    {"constant": True, "inputs": [], "name": "decimals",
     "outputs": [{"name": "", "type": "uint8"}], "type": "function"},
    {"constant": True, "inputs": [], "name": "totalSupply",
     "outputs": [{"name": "", "type": "uint256"}], "type": "function"},
    {"constant": True, "inputs": [{"name": "owner", "type": "address"}],
     "name": "balanceOf", "outputs": [{"name": "balance", "type": "uint256"}], "type": "function"},
    {"constant": False, "inputs": [{"name": "to", "type": "address"}, {"name": "value", "type": "uint256"}],
     "name": "transfer", "outputs": [{"name": "", "type": "bool"}], "type": "function"},
    {"anonymous": False, "inputs": [
        {"indexed": True, "name": "from", "type": "address"},
        {"indexed": True, "name": "to", "type": "address"},
        {"indexed": False, "name": "value", "type": "uint256"},
    ], "name": "Transfer", "type": "event"},
]

ERC721_ABI = [
    {"constant": True, "inputs": [], "name": "name",
     "outputs": [{"name": "", "type": "string"}], "type": "function"},
    {"constant": True, "inputs": [], "name": "symbol",
     "outputs": [{"name": "", "type": "string"}], "type": "function"},
    {"constant": True, "inputs": [{"name": "tokenId", "type": "uint256"}], "name": "tokenURI",
     "outputs": [{"name": "", "type": "string"}], "type": "function"},
    {"constant": True, "inputs": [{"name": "tokenId", "type": "uint256"}], "name": "ownerOf",
     "outputs": [{"name": "", "type": "address"}], "type": "function"},
    {"constant": True, "inputs": [{"name": "owner", "type": "address"}], "name": "balanceOf",
     "outputs": [{"name": "", "type": "uint256"}], "type": "function"},
]

# reverts, empty return data and undecodable results from optional views
READ_FAILURES = (TransportError, ValidationError, PreconditionError, DecodingError)


class TokenGateway:
    """ERC20 reads with symbol/decimals fallbacks for non-compliant tokens."""

    def __init__(
        self,
        client: ChainClient,
        token_address: str,
        symbol_fallback: str = "TOKEN",
        decimals_fallback: int = 18,
    ) -> None:
        self.client = client
        self.address = normalize_address(token_address, "token address")
        self._symbol_fallback = symbol_fallback
        self._decimals_fallback = decimals_fallback

    def _read(self, function_name: str, *args: Any) -> Any:
        return self.client.read_contract(self.address, ERC20_ABI, function_name, list(args))

    def name(self) -> Optional[str]:
        try:
            return self._read("name")
        except READ_FAILURES as exc:
            log.debug("name() failed for %s: %s", self.address, exc)
            return None

    def symbol(self) -> str:
        try:
            return self._read("symbol")
        except READ_FAILURES as exc:
            log.debug("symbol() failed for %s: %s", self.address, exc)
            return self._symbol_fallback

    def decimals(self) -> int:
        try:
            return int(self._read("decimals"))
        except READ_FAILURES as exc:
            log.debug("decimals() failed for %s: %s", self.address, exc)
            return self._decimals_fallback

    def total_supply(self) -> Optional[int]:
        try:
            return int(self._read("totalSupply"))
        except READ_FAILURES as exc:
            log.debug("totalSupply() failed for %s: %s", self.address, exc)
            return None

    def balance_of(self, owner: str) -> int:
        return int(self._read("balanceOf", normalize_address(owner, "owner address")))

    def metadata(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "name": self.name(),
            "symbol": self.symbol(),
            "decimals": self.decimals(),
            "total_supply": self.total_supply(),
        }


class NftGateway:
    def __init__(self, client: ChainClient, token_address: str) -> None:
        self.client = client
        self.address = normalize_address(token_address, "token address")

    def _read(self, function_name: str, *args: Any) -> Any:
        return self.client.read_contract(self.address, ERC721_ABI, function_name, list(args))

    def _safe(self, function_name: str, *args: Any) -> Any:
        try:
            return self._read(function_name, *args)
        except READ_FAILURES as exc:
            log.debug("%s() failed for %s: %s", function_name, self.address, exc)
            return None

    def owner_of(self, token_id: int) -> str:
        return self._read("ownerOf", token_id)

    def balance_of(self, owner: str) -> int:
        return int(self._read("balanceOf", normalize_address(owner, "owner address")))

    def info(self, token_id: int) -> Dict[str, Any]:
        return {
            "address": self.address,
            "token_id": str(token_id),
            "name": self._safe("name"),
            "symbol": self._safe("symbol"),
            "token_uri": self._safe("tokenURI", token_id),
            "owner": self._safe("ownerOf", token_id),
        }
