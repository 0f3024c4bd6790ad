import pytest

from somnia_mcp.chains import SOMNIA_MAINNET, SOMNIA_TESTNET, ChainRegistry
from somnia_mcp.config import load_config
from somnia_mcp.errors import ConfigurationError

_ENV = [
    "NETWORK", "PRIVATE_KEY", "RPC_URL", "REQUEST_TIMEOUT", "REQUEST_RETRIES",
    "REQUEST_BACKOFF_SECONDS", "LOG_BLOCK_SPAN", "MONITOR_POLL_SECONDS", "LOG_LEVEL", "LOG_FILE",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in _ENV:
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    cfg = load_config()
    assert cfg.network == "Somnia Testnet"
    assert cfg.private_key is None
    assert cfg.request_timeout == 10
    assert cfg.max_retries == 3
    assert cfg.log_block_span == 1000
    assert cfg.monitor_poll_seconds == 2.0
    assert cfg.log_level == "INFO"


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("NETWORK", "mainnet")
    monkeypatch.setenv("PRIVATE_KEY", "  0xabc  ")
    monkeypatch.setenv("LOG_BLOCK_SPAN", "500")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    cfg = load_config()
    assert cfg.network == "mainnet"
    assert cfg.private_key == "0xabc"
    assert cfg.log_block_span == 500
    assert cfg.log_level == "DEBUG"


@pytest.mark.parametrize("name,value", [("REQUEST_TIMEOUT", "soon"), ("REQUEST_RETRIES", "-1"), ("LOG_BLOCK_SPAN", "0")])
def test_invalid_numbers(monkeypatch, name, value):
    monkeypatch.setenv(name, value)
    with pytest.raises(ConfigurationError):
        load_config()


@pytest.mark.parametrize(
    "query,expected",
    [
        ("Somnia Mainnet", SOMNIA_MAINNET),
        ("somnia-mainnet", SOMNIA_MAINNET),
        ("SOMNIA_TESTNET", SOMNIA_TESTNET),
        ("5031", SOMNIA_MAINNET),
        (50312, SOMNIA_TESTNET),
        ("somi", SOMNIA_MAINNET),
        ("shannon", SOMNIA_TESTNET),
        ("stt", SOMNIA_TESTNET),
    ],
)
def test_resolve(query, expected):
    assert ChainRegistry().resolve(query) == expected


def test_resolve_default_and_unknown():
    registry = ChainRegistry(default_network="mainnet")
    assert registry.resolve(None) == SOMNIA_MAINNET
    assert registry.resolve("  ") == SOMNIA_MAINNET
    with pytest.raises(ConfigurationError) as excinfo:
        registry.resolve("goerli")
    assert "Somnia Testnet (50312)" in str(excinfo.value)


def test_rpc_override_only_touches_default():
    registry = ChainRegistry(default_network="testnet", rpc_url_override="http://localhost:8545")
    assert registry.resolve("testnet").rpc_url == "http://localhost:8545"
    assert registry.resolve("mainnet").rpc_url == SOMNIA_MAINNET.rpc_url
