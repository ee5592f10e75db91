"""
ShadowTrade Node Configuration
"""

from __future__ import annotations
import json
import logging
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import List, Optional

from shadowtrade.constants import (
    DEFAULT_API_PORT,
    DEFAULT_PAYMENT_SYMBOL,
    DEFAULT_RELAYER_URL,
    DEFAULT_REWARD_AMOUNT,
    PAYMENT_DECIMALS,
    RELAYER_POLL_INTERVAL_SEC,
    RELAYER_TIMEOUT_SEC,
)
from shadowtrade.core.types import Address

logger = logging.getLogger(__name__)


@dataclass
class ProtocolConfig:
    """Protocol deployment parameters. Addresses are 0x-prefixed hex."""
    owner: Optional[str] = None
    oracle: Optional[str] = None
    treasury: Optional[str] = None
    contract_address: Optional[str] = None
    default_reward_amount: int = DEFAULT_REWARD_AMOUNT
    payment_symbol: str = DEFAULT_PAYMENT_SYMBOL
    payment_decimals: int = PAYMENT_DECIMALS

    def address(self, name: str) -> Address:
        return Address.from_hex(getattr(self, name))


@dataclass
class StorageConfig:
    """Storage configuration."""
    data_dir: str = "./data"
    db_name: str = "shadowtrade_state.db"


@dataclass
class APIConfig:
    """API server configuration."""
    enabled: bool = True
    host: str = "127.0.0.1"
    port: int = DEFAULT_API_PORT
    cors_origins: List[str] = field(default_factory=list)
    max_batch_size: int = 100
    # Stand-in ledger and local toolkit methods; test networks only
    dev_methods: bool = False


@dataclass
class RelayerConfig:
    """Remote decryption relayer."""
    enabled: bool = False
    url: str = DEFAULT_RELAYER_URL
    poll_interval_sec: float = RELAYER_POLL_INTERVAL_SEC
    timeout_sec: float = RELAYER_TIMEOUT_SEC


@dataclass
class LogConfig:
    """Logging configuration."""
    level: str = "INFO"
    file: Optional[str] = None
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    max_size_mb: int = 100
    backup_count: int = 5


@dataclass
class NodeConfig:
    """
    Complete node configuration.

    All settings for running a ShadowTrade protocol node.
    """
    name: str = "shadowtrade-node"

    # Sub-configurations
    protocol: ProtocolConfig = field(default_factory=ProtocolConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    api: APIConfig = field(default_factory=APIConfig)
    relayer: RelayerConfig = field(default_factory=RelayerConfig)
    log: LogConfig = field(default_factory=LogConfig)

    # Local toolkit key (32 raw bytes); generated on first start if missing
    toolkit_keyfile: Optional[str] = None

    @property
    def data_path(self) -> Path:
        return Path(self.storage.data_dir)

    @property
    def db_path(self) -> Path:
        return self.data_path / self.storage.db_name

    def validate(self) -> List[str]:
        """
        Validate configuration.

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []

        for name in ("owner", "oracle", "treasury", "contract_address"):
            value = getattr(self.protocol, name)
            if not value:
                errors.append(f"protocol.{name} is required")
                continue
            try:
                address = Address.from_hex(value)
            except ValueError:
                errors.append(f"protocol.{name} is not a valid address: {value}")
                continue
            if address.is_zero():
                errors.append(f"protocol.{name} cannot be the zero address")

        if self.protocol.default_reward_amount <= 0:
            errors.append("default_reward_amount must be positive")

        if not self.storage.data_dir:
            errors.append("data_dir cannot be empty")

        if self.api.enabled:
            if self.api.port < 1 or self.api.port > 65535:
                errors.append(f"Invalid API port: {self.api.port}")
            if self.api.max_batch_size < 1:
                errors.append("max_batch_size must be at least 1")

        if self.relayer.enabled:
            if not self.relayer.url.startswith(("http://", "https://")):
                errors.append(f"Invalid relayer URL: {self.relayer.url}")
            if self.relayer.poll_interval_sec <= 0:
                errors.append("poll_interval_sec must be positive")

        return errors

    def save(self, path: str) -> None:
        """Save configuration to file."""
        with open(path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)

        logger.info(f"Configuration saved to {path}")

    @classmethod
    def load(cls, path: str) -> "NodeConfig":
        """Load configuration from file."""
        with open(path, 'r') as f:
            data = json.load(f)

        config = cls(
            name=data.get("name", "shadowtrade-node"),
            toolkit_keyfile=data.get("toolkit_keyfile"),
        )

        if "protocol" in data:
            config.protocol = ProtocolConfig(**data["protocol"])

        if "storage" in data:
            config.storage = StorageConfig(**data["storage"])

        if "api" in data:
            config.api = APIConfig(**data["api"])

        if "relayer" in data:
            config.relayer = RelayerConfig(**data["relayer"])

        if "log" in data:
            config.log = LogConfig(**data["log"])

        logger.info(f"Configuration loaded from {path}")
        return config

    @classmethod
    def default_testnet(cls) -> "NodeConfig":
        """Create default local test-network configuration."""
        config = cls(name="shadowtrade-testnet-node")

        config.protocol.owner = "0x" + "00" * 18 + "a0a0"
        config.protocol.oracle = "0x" + "00" * 18 + "0c0c"
        config.protocol.treasury = "0x" + "00" * 18 + "7e7e"
        config.protocol.contract_address = "0x" + "00" * 18 + "5d5d"

        config.api.dev_methods = True
        config.storage.data_dir = "./data-testnet"
        config.toolkit_keyfile = "./data-testnet/toolkit.key"

        return config

    def to_dict(self) -> dict:
        """Export configuration as dictionary."""
        return {
            "name": self.name,
            "toolkit_keyfile": self.toolkit_keyfile,
            "protocol": asdict(self.protocol),
            "storage": asdict(self.storage),
            "api": asdict(self.api),
            "relayer": asdict(self.relayer),
            "log": asdict(self.log),
        }


def setup_logging(config: LogConfig) -> None:
    """Configure logging based on config."""
    level = getattr(logging, config.level.upper(), logging.INFO)

    handlers = [logging.StreamHandler()]

    if config.file:
        from logging.handlers import RotatingFileHandler
        file_handler = RotatingFileHandler(
            config.file,
            maxBytes=config.max_size_mb * 1024 * 1024,
            backupCount=config.backup_count,
        )
        handlers.append(file_handler)

    logging.basicConfig(
        level=level,
        format=config.format,
        handlers=handlers,
        force=True,
    )
