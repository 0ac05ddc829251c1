"""Worker entry point: connects to the node and follows new blocks"""

import asyncio
import signal
import sys
from typing import Optional

from dotenv import load_dotenv

from chain_worker.chains.blockchain_service import BlockchainService
from chain_worker.chains.web3_provider import Web3JsonRpcProvider
from chain_worker.config.models import Settings
from chain_worker.monitoring.metrics import start_metrics_server
from chain_worker.utils.logging import get_logger, setup_logging

# Load environment variables
load_dotenv()

# Configure structured logging; the level is refined once settings are loaded
setup_logging()

logger = get_logger()


class Application:
    """Worker application orchestrator"""

    def __init__(self):
        """Initialize application components"""
        self.settings: Optional[Settings] = None
        self.provider: Optional[Web3JsonRpcProvider] = None
        self.blockchain_service: Optional[BlockchainService] = None

        # Shutdown flag
        self._shutdown_event = asyncio.Event()

        self._logger = logger.bind(component="application")

    async def initialize(self) -> None:
        """Load settings, connect to the node and initialize the blockchain service"""
        # Load settings from environment variables
        self.settings = Settings()
        setup_logging(self.settings.log_level)

        self._logger.info("application_initializing", log_level=self.settings.log_level)

        try:
            self.provider = Web3JsonRpcProvider(
                self.settings.blockchain_rpc_url,
                polling_interval=self.settings.get_polling_interval_seconds(),
            )
            await self.provider.connect()

            retry_policy = self.settings.get_retry_policy()
            self.blockchain_service = BlockchainService(self.provider, retry_policy)
            await self.blockchain_service.initialize()

            self._logger.info(
                "application_initialized",
                quick_retry_timeout=retry_policy.quick_retry_timeout,
                default_retry_timeout=retry_policy.default_retry_timeout,
            )
        except Exception as e:
            self._logger.error(
                "application_initialization_failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            raise

    async def start(self) -> None:
        """Start the metrics server and subscribe to new blocks"""
        self._logger.info("starting_metrics_server", port=self.settings.prometheus_port)
        start_metrics_server(port=self.settings.prometheus_port)

        self.blockchain_service.on("block", self._on_block)
        self._logger.info("application_started")

    async def stop(self) -> None:
        """Stop the provider gracefully"""
        self._logger.info("application_stopping")
        if self.provider:
            await self.provider.disconnect()
        self._logger.info("application_stopped")

    def _on_block(self, block_number: int) -> None:
        self._logger.info("new_block", block_number=block_number)

    def setup_signal_handlers(self) -> None:
        """Setup signal handlers for graceful shutdown"""
        loop = asyncio.get_running_loop()

        def signal_handler(signum: int) -> None:
            self._logger.info("shutdown_signal_received", signal=signal.Signals(signum).name)
            self._shutdown_event.set()

        for signum in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(signum, signal_handler, signum)

    async def wait_for_shutdown(self) -> None:
        """Wait for shutdown signal"""
        await self._shutdown_event.wait()


async def main() -> None:
    """Main application entry point"""
    app = Application()

    try:
        await app.initialize()
        app.setup_signal_handlers()
        await app.start()
        await app.wait_for_shutdown()
        await app.stop()
        logger.info("application_shutdown_complete")
    except Exception as e:
        logger.error(
            "application_error",
            error=str(e),
            error_type=type(e).__name__,
        )
        await app.stop()
        sys.exit(1)


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("application_terminated")
