"""JSON-RPC chain provider backed by web3's async HTTP transport"""

import asyncio
import inspect
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

import structlog
from pydantic import TypeAdapter
from web3 import AsyncHTTPProvider, AsyncWeb3, Web3
from web3.exceptions import BlockNotFound, TransactionNotFound

from chain_worker.chains.provider import (
    BATCH_TIMESTAMP_FIELDS,
    TRANSACTION_TIMESTAMP_FIELDS,
    BlockTag,
    BridgeAddresses,
    JsonRpcProviderBase,
    Listener,
    ProviderState,
)

logger = structlog.get_logger()

BLOCK_EVENT = "block"


class ProviderError(Exception):
    """JSON-RPC error object returned by the node"""

    def __init__(self, message: str, code: Optional[Any] = None, data: Any = None):
        super().__init__(message)
        self.code = code
        self.data = data


class ProviderNotConnectedError(ConnectionError):
    """Node did not answer the connection check"""

    code = "NETWORK_ERROR"


_datetime_adapter = TypeAdapter(datetime)


def _to_dict(value: Any) -> Optional[Dict[str, Any]]:
    if value is None:
        return None
    return dict(value)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an RFC 3339 timestamp from the node into an aware UTC datetime"""
    if value is None:
        return None
    parsed = _datetime_adapter.validate_python(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _parse_timestamp_fields(
    details: Optional[Dict[str, Any]], fields: Sequence[str]
) -> Optional[Dict[str, Any]]:
    if details is None:
        return None
    details = dict(details)
    for field in fields:
        if field in details:
            details[field] = parse_timestamp(details[field])
    return details


class Web3JsonRpcProvider(JsonRpcProviderBase):
    """
    Chain provider talking to a node over HTTP JSON-RPC.

    Standard ``eth_*`` queries go through ``AsyncWeb3.eth``; node specific
    methods (``zks_*``, ``debug_*``) are sent as raw requests. New block
    events are produced by polling the block number.
    """

    def __init__(self, rpc_url: str, polling_interval: float = 1.0):
        """
        Initialize provider.

        Args:
            rpc_url: HTTP(S) JSON-RPC endpoint
            polling_interval: Seconds between block number polls for subscribers
        """
        self.rpc_url = rpc_url
        self.polling_interval = polling_interval
        self.w3 = AsyncWeb3(AsyncHTTPProvider(rpc_url))

        self._state = ProviderState.CONNECTING
        self._listeners: Dict[str, List[Listener]] = {}
        self._polling_task: Optional[asyncio.Task] = None
        self._last_block_number: Optional[int] = None

        self._logger = logger.bind(component="web3_provider", rpc_url=rpc_url)

    def get_state(self) -> ProviderState:
        return self._state

    async def connect(self) -> None:
        """Check the node is reachable and mark the provider open"""
        self._state = ProviderState.CONNECTING
        try:
            connected = await self.w3.is_connected()
        except Exception as e:
            self._state = ProviderState.CLOSED
            self._logger.error("rpc_connection_failed", error=str(e))
            raise ProviderNotConnectedError(f"Failed to connect to {self.rpc_url}") from e

        if not connected:
            self._state = ProviderState.CLOSED
            self._logger.error("rpc_connection_failed", error="node is not reachable")
            raise ProviderNotConnectedError(f"Failed to connect to {self.rpc_url}")

        self._state = ProviderState.OPEN
        self._logger.info("rpc_connected")

    async def disconnect(self) -> None:
        """Stop block polling and mark the provider closed"""
        if self._polling_task:
            self._polling_task.cancel()
            try:
                await self._polling_task
            except asyncio.CancelledError:
                pass
            self._polling_task = None

        self._state = ProviderState.CLOSED
        self._logger.info("rpc_disconnected")

    async def send(self, method: str, params: Sequence[Any]) -> Any:
        response = await self.w3.provider.make_request(method, list(params))
        error = response.get("error")
        if error:
            if isinstance(error, dict):
                raise ProviderError(
                    error.get("message", "JSON-RPC error"),
                    code=error.get("code"),
                    data=error.get("data"),
                )
            raise ProviderError(str(error))
        return response.get("result")

    async def get_block_number(self) -> int:
        return await self.w3.eth.block_number

    async def get_block(self, block_hash_or_tag: BlockTag) -> Optional[Dict[str, Any]]:
        try:
            block = await self.w3.eth.get_block(block_hash_or_tag)
        except BlockNotFound:
            return None
        return _to_dict(block)

    async def get_block_details(self, block_number: int) -> Optional[Dict[str, Any]]:
        details = await self.send("zks_getBlockDetails", [block_number])
        return _parse_timestamp_fields(details, BATCH_TIMESTAMP_FIELDS)

    async def get_l1_batch_number(self) -> int:
        result = await self.send("zks_L1BatchNumber", [])
        return int(result, 16) if isinstance(result, str) else result

    async def get_l1_batch_details(self, batch_number: int) -> Optional[Dict[str, Any]]:
        details = await self.send("zks_getL1BatchDetails", [batch_number])
        return _parse_timestamp_fields(details, BATCH_TIMESTAMP_FIELDS)

    async def get_transaction(self, transaction_hash: str) -> Optional[Dict[str, Any]]:
        try:
            transaction = await self.w3.eth.get_transaction(transaction_hash)
        except TransactionNotFound:
            return None
        return _to_dict(transaction)

    async def get_transaction_receipt(self, transaction_hash: str) -> Optional[Dict[str, Any]]:
        try:
            receipt = await self.w3.eth.get_transaction_receipt(transaction_hash)
        except TransactionNotFound:
            return None
        return _to_dict(receipt)

    async def get_transaction_details(self, transaction_hash: str) -> Optional[Dict[str, Any]]:
        details = await self.send("zks_getTransactionDetails", [transaction_hash])
        return _parse_timestamp_fields(details, TRANSACTION_TIMESTAMP_FIELDS)

    async def get_logs(self, event_filter: Dict[str, Any]) -> List[Dict[str, Any]]:
        logs = await self.w3.eth.get_logs(event_filter)
        return [dict(log) for log in logs]

    async def get_code(self, address: str) -> bytes:
        code = await self.w3.eth.get_code(Web3.to_checksum_address(address))
        return bytes(code)

    async def get_balance(self, address: str, block_tag: BlockTag) -> int:
        return await self.w3.eth.get_balance(
            Web3.to_checksum_address(address),
            block_identifier=block_tag,
        )

    async def get_default_bridge_addresses(self) -> BridgeAddresses:
        contracts = await self.send("zks_getBridgeContracts", [])
        return BridgeAddresses(
            erc20_l1=contracts["l1Erc20DefaultBridge"],
            erc20_l2=contracts["l2Erc20DefaultBridge"],
        )

    async def call_contract(
        self,
        address: str,
        abi: List[Dict[str, Any]],
        function_name: str,
        args: Sequence[Any] = (),
        block_tag: BlockTag = "latest",
    ) -> Any:
        contract = self.w3.eth.contract(address=Web3.to_checksum_address(address), abi=abi)
        contract_function = getattr(contract.functions, function_name)
        return await contract_function(*args).call(block_identifier=block_tag)

    def subscribe(self, event_name: str, listener: Listener) -> None:
        if event_name != BLOCK_EVENT:
            raise ValueError(f"Unsupported provider event: {event_name}")

        self._listeners.setdefault(event_name, []).append(listener)

        if self._polling_task is None or self._polling_task.done():
            self._polling_task = asyncio.create_task(self._poll_blocks())

    async def _poll_blocks(self) -> None:
        """Emit a block event for every new block number observed"""
        while True:
            try:
                block_number = await self.get_block_number()
            except Exception as e:
                self._logger.warning("block_polling_failed", error=str(e))
            else:
                await self._emit_new_blocks(block_number)

            await asyncio.sleep(self.polling_interval)

    async def _emit_new_blocks(self, block_number: int) -> None:
        if self._last_block_number is None:
            new_blocks = [block_number]
        else:
            new_blocks = list(range(self._last_block_number + 1, block_number + 1))

        for number in new_blocks:
            self._last_block_number = number
            for listener in list(self._listeners.get(BLOCK_EVENT, [])):
                try:
                    result = listener(number)
                    if inspect.isawaitable(result):
                        await result
                except Exception as e:
                    self._logger.error(
                        "block_listener_failed",
                        block_number=number,
                        error=str(e),
                        exc_info=e,
                    )
