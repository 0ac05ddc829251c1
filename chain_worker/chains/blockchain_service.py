"""Blockchain service: named chain queries executed through the RPC call invoker"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import structlog

from chain_worker.chains.invoker import RpcCallInvoker
from chain_worker.chains.provider import (
    BATCH_TIMESTAMP_FIELDS,
    BlockTag,
    BridgeAddresses,
    JsonRpcProviderBase,
    Listener,
)
from chain_worker.chains.token_contract import TokenContractCaller, TokenMetadata
from chain_worker.config.models import RetryPolicy
from chain_worker.monitoring.metrics import DurationMetric

logger = structlog.get_logger()

EPOCH = datetime.fromtimestamp(0, tz=timezone.utc)


@dataclass
class TraceTransactionResult:
    """Top-level result of a callTracer transaction trace"""

    type: str
    from_address: str
    to: str
    error: Optional[str] = None
    revert_reason: Optional[str] = None

    @classmethod
    def from_rpc(cls, trace: Optional[Dict[str, Any]]) -> Optional["TraceTransactionResult"]:
        if trace is None:
            return None
        return cls(
            type=trace.get("type", ""),
            from_address=trace.get("from", ""),
            to=trace.get("to", ""),
            error=trace.get("error"),
            revert_reason=trace.get("revertReason"),
        )


class BlockchainService:
    """
    Chain queries for the indexing worker.

    Every query is a single named call through RpcCallInvoker, so callers
    only ever see a result: provider failures are retried, never raised.
    """

    def __init__(
        self,
        provider: JsonRpcProviderBase,
        retry_policy: RetryPolicy,
        duration_metric: Optional[DurationMetric] = None,
        invoker: Optional[RpcCallInvoker] = None,
    ):
        """
        Initialize blockchain service.

        Args:
            provider: Chain provider implementation
            retry_policy: Retry timeouts for failed RPC calls
            duration_metric: Optional timer sink for call durations
            invoker: Optional preconfigured invoker (overrides policy and metric)
        """
        self.provider = provider
        self.invoker = invoker or RpcCallInvoker(
            retry_policy,
            duration_metric=duration_metric,
            connection_state=provider.get_state,
        )
        self.tokens = TokenContractCaller(provider, self.invoker)
        self.bridge_addresses: Optional[BridgeAddresses] = None

        self._logger = logger.bind(component="blockchain_service")

    async def initialize(self) -> None:
        """Load the default bridge addresses"""
        bridge_addresses = await self.get_default_bridge_addresses()

        self.bridge_addresses = BridgeAddresses(
            erc20_l1=bridge_addresses.erc20_l1.lower(),
            erc20_l2=bridge_addresses.erc20_l2.lower(),
        )

        self._logger.debug(
            "bridge_addresses_loaded",
            l2_erc20_default_bridge=self.bridge_addresses.erc20_l2,
        )

    async def get_l1_batch_number(self) -> int:
        return await self.invoker.call(self.provider.get_l1_batch_number, "getL1BatchNumber")

    async def get_l1_batch_details(self, batch_number: int) -> Optional[Dict[str, Any]]:
        """
        Get batch details.

        Batch 0 is the genesis batch and has no real timestamps, so its
        committed, proven and executed times are reported as the epoch.
        """

        async def action() -> Optional[Dict[str, Any]]:
            batch_details = await self.provider.get_l1_batch_details(batch_number)
            if batch_details and batch_number == 0:
                batch_details = dict(batch_details)
                for field in BATCH_TIMESTAMP_FIELDS:
                    batch_details[field] = EPOCH
            return batch_details

        return await self.invoker.call(action, "getL1BatchDetails")

    async def get_block(self, block_hash_or_tag: BlockTag) -> Dict[str, Any]:
        return await self.invoker.call(
            lambda: self.provider.get_block(block_hash_or_tag),
            "getBlock",
        )

    async def get_block_number(self) -> int:
        return await self.invoker.call(self.provider.get_block_number, "getBlockNumber")

    async def get_block_details(self, block_number: int) -> Optional[Dict[str, Any]]:
        return await self.invoker.call(
            lambda: self.provider.get_block_details(block_number),
            "getBlockDetails",
        )

    async def get_transaction(self, transaction_hash: str) -> Optional[Dict[str, Any]]:
        return await self.invoker.call(
            lambda: self.provider.get_transaction(transaction_hash),
            "getTransaction",
        )

    async def get_transaction_details(self, transaction_hash: str) -> Optional[Dict[str, Any]]:
        return await self.invoker.call(
            lambda: self.provider.get_transaction_details(transaction_hash),
            "getTransactionDetails",
        )

    async def get_transaction_receipt(self, transaction_hash: str) -> Optional[Dict[str, Any]]:
        return await self.invoker.call(
            lambda: self.provider.get_transaction_receipt(transaction_hash),
            "getTransactionReceipt",
        )

    async def get_logs(self, from_block: int, to_block: int) -> List[Dict[str, Any]]:
        """Get all logs emitted in the inclusive block range"""
        event_filter = {"fromBlock": from_block, "toBlock": to_block}
        return await self.invoker.call(
            lambda: self.provider.get_logs(event_filter),
            "getLogs",
        )

    async def get_code(self, address: str) -> bytes:
        return await self.invoker.call(lambda: self.provider.get_code(address), "getCode")

    async def get_default_bridge_addresses(self) -> BridgeAddresses:
        return await self.invoker.call(
            self.provider.get_default_bridge_addresses,
            "getDefaultBridgeAddresses",
        )

    async def debug_trace_transaction(
        self, tx_hash: str, only_top_call: bool = False
    ) -> Optional[TraceTransactionResult]:
        """
        Trace a transaction with the node's callTracer.

        An unknown or pruned transaction hash yields None.
        """

        async def action() -> Optional[TraceTransactionResult]:
            trace = await self.provider.send(
                "debug_traceTransaction",
                [
                    tx_hash,
                    {
                        "tracer": "callTracer",
                        "tracerConfig": {"onlyTopCall": only_top_call},
                    },
                ],
            )
            return TraceTransactionResult.from_rpc(trace)

        return await self.invoker.call(action, "debugTraceTransaction")

    def on(self, event_name: str, listener: Listener) -> None:
        """Register a listener for provider events such as new blocks"""
        self.provider.subscribe(event_name, listener)

    async def get_token_metadata(self, contract_address: str) -> TokenMetadata:
        return await self.tokens.get_token_metadata(contract_address)

    async def get_balance(
        self, address: str, block_number: Optional[int], token_address: str
    ) -> int:
        return await self.tokens.get_balance(address, block_number, token_address)
