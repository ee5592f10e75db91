"""
ShadowTrade Protocol Node
Main node orchestrator.
"""

from __future__ import annotations
import argparse
import asyncio
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional

from shadowtrade import __version__
from shadowtrade.api.server import APIServer
from shadowtrade.constants import PROTOCOL_VERSION, TOOLKIT_KEY_SIZE
from shadowtrade.crypto.toolkit import LocalToolkit
from shadowtrade.node.config import NodeConfig, setup_logging
from shadowtrade.oracle.mock import MockOracle
from shadowtrade.oracle.relayer import RelayerBridge, RelayerClient
from shadowtrade.protocol.tokens import TokenLedger
from shadowtrade.state.machine import ShadowProtocol
from shadowtrade.state.storage import ProtocolStorage

logger = logging.getLogger(__name__)


def load_toolkit(keyfile: Optional[str]) -> LocalToolkit:
    """Load the toolkit key from keyfile, creating it on first use."""
    if not keyfile:
        logger.info("No toolkit keyfile configured, using a temporary key")
        return LocalToolkit()

    path = Path(keyfile)
    if path.exists():
        key = path.read_bytes()
        if len(key) != TOOLKIT_KEY_SIZE:
            raise ValueError(f"Toolkit keyfile {path} holds {len(key)} bytes, expected {TOOLKIT_KEY_SIZE}")
        logger.info(f"Loaded toolkit key from {path}")
        return LocalToolkit(key)

    toolkit = LocalToolkit()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(toolkit.master_key)
    path.chmod(0o600)
    logger.info(f"Generated toolkit key at {path}")
    return toolkit


@dataclass
class ProtocolNode:
    """
    ShadowTrade protocol node.

    Coordinates:
    - the protocol state machine
    - SQLite persistence (snapshot after every state change)
    - the JSON-RPC API server
    - the oracle side: remote relayer bridge, or the in-process oracle
      when no relayer is configured
    """
    config: NodeConfig
    toolkit: Optional[LocalToolkit] = None
    clock: Optional[Callable[[], int]] = None

    protocol: Optional[ShadowProtocol] = None
    storage: Optional[ProtocolStorage] = None
    api_server: Optional[APIServer] = None
    bridge: Optional[RelayerBridge] = None
    local_oracle: Optional[MockOracle] = None

    _tasks: List[asyncio.Task] = field(default_factory=list)
    _running: bool = False
    _start_time: float = 0.0

    def __post_init__(self):
        errors = self.config.validate()
        if errors:
            raise ValueError("Invalid configuration: " + "; ".join(errors))

        if self.toolkit is None:
            self.toolkit = load_toolkit(self.config.toolkit_keyfile)

        pc = self.config.protocol
        self.protocol = ShadowProtocol(
            owner=pc.address("owner"),
            toolkit=self.toolkit,
            contract_address=pc.address("contract_address"),
            treasury=pc.address("treasury"),
            oracles={pc.address("oracle")},
            payment=TokenLedger(symbol=pc.payment_symbol, decimals=pc.payment_decimals),
            clock=self.clock,
            default_reward_amount=pc.default_reward_amount,
        )
        self._tasks = []

    async def start(self) -> None:
        """Start the node."""
        if self._running:
            return

        setup_logging(self.config.log)
        logger.info(f"Starting ShadowTrade node: {self.config.name}")
        logger.info(f"Protocol version: {PROTOCOL_VERSION}")

        self.config.data_path.mkdir(parents=True, exist_ok=True)
        self.storage = ProtocolStorage(str(self.config.db_path))
        self.storage.connect()

        if self.storage.load(self.protocol):
            logger.info(f"Restored state: {self.protocol.get_status()}")
        else:
            logger.info("No stored state, starting fresh")
            self.storage.save(self.protocol)

        restored = self.storage.load_ciphertexts(self.toolkit)
        if restored:
            logger.info(f"Restored {restored} toolkit ciphertexts")

        oracle_account = self.config.protocol.address("oracle")
        if self.config.relayer.enabled:
            self.bridge = RelayerBridge(
                self.protocol,
                RelayerClient(self.config.relayer.url, self.config.relayer.timeout_sec),
                oracle_account,
                self.config.relayer.poll_interval_sec,
            )
            await self.bridge.start()
        else:
            self.local_oracle = MockOracle(self.protocol, self.toolkit, oracle_account)
            self._tasks.append(asyncio.create_task(self._local_oracle_loop()))

        if self.config.api.enabled:
            self.api_server = APIServer(
                self,
                host=self.config.api.host,
                port=self.config.api.port,
                cors_origins=list(self.config.api.cors_origins),
                max_batch_size=self.config.api.max_batch_size,
                dev_methods=self.config.api.dev_methods,
            )
            await self.api_server.start()

        self._running = True
        self._start_time = time.time()
        logger.info("Node started successfully")

    async def stop(self) -> None:
        """Stop the node."""
        if not self._running:
            return

        logger.info("Stopping node...")
        self._running = False

        for task in self._tasks:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._tasks = []

        if self.api_server:
            await self.api_server.stop()

        if self.bridge:
            await self.bridge.stop()

        if self.storage:
            logger.info("Saving state...")
            self.storage.save(self.protocol)
            self.storage.save_ciphertexts(self.toolkit)
            self.storage.close()

        logger.info("Node stopped")

    async def _local_oracle_loop(self) -> None:
        """Answer queued oracle requests with the in-process oracle."""
        while self._running:
            try:
                if len(self.protocol.outbox):
                    accepted = self.local_oracle.pump()
                    if accepted:
                        self.on_state_change()
                await asyncio.sleep(self.config.relayer.poll_interval_sec)
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Local oracle loop error: {e}")
                await asyncio.sleep(self.config.relayer.poll_interval_sec)

    def on_state_change(self) -> None:
        """Persist the protocol after a successful mutating call."""
        if self.storage is not None:
            self.storage.save(self.protocol)
            self.storage.save_ciphertexts(self.toolkit)

    def get_status(self) -> dict:
        """Get node status."""
        status = self.protocol.get_status()
        status.update({
            "node": self.config.name,
            "started": self._running,
            "uptime_seconds": int(time.time() - self._start_time) if self._running else 0,
            "version": PROTOCOL_VERSION,
            "oracle_mode": "relayer" if self.config.relayer.enabled else "local",
        })
        return status


# ============================================================================
# MAIN
# ============================================================================

async def _run(node: ProtocolNode) -> None:
    await node.start()
    try:
        while True:
            await asyncio.sleep(3600)
    finally:
        await node.stop()


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="ShadowTrade protocol node")
    parser.add_argument("--config", metavar="PATH", help="Load node configuration from JSON file")
    parser.add_argument("--init-config", metavar="PATH", help="Write a default test-network configuration and exit")
    parser.add_argument("--testnet", action="store_true", help="Use the default test-network configuration")
    parser.add_argument("--log-level", metavar="LEVEL", help="Override the configured log level")
    parser.add_argument("--version", action="version", version=f"shadowtrade {__version__}")
    args = parser.parse_args(argv)

    if args.init_config:
        NodeConfig.default_testnet().save(args.init_config)
        print(f"Configuration written to {args.init_config}")
        return 0

    if args.config:
        config = NodeConfig.load(args.config)
    elif args.testnet:
        config = NodeConfig.default_testnet()
    else:
        parser.error("one of --config, --testnet or --init-config is required")

    if args.log_level:
        config.log.level = args.log_level

    errors = config.validate()
    if errors:
        for error in errors:
            print(f"config error: {error}")
        return 1

    node = ProtocolNode(config)
    try:
        asyncio.run(_run(node))
    except KeyboardInterrupt:
        print("\nShutting down...")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
