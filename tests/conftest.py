"""Shared fixtures: in-memory chain provider and recording metric"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Sequence, Tuple
from unittest.mock import MagicMock

import pytest

from chain_worker.chains.invoker import RpcCallInvoker
from chain_worker.chains.provider import BridgeAddresses, JsonRpcProviderBase, ProviderState
from chain_worker.config.models import RetryPolicy


class InMemoryProvider(JsonRpcProviderBase):
    """
    Provider double answering from canned results.

    ``failures[method]`` holds exceptions raised, in order, before the method
    starts answering. Contract calls are keyed by function name in
    ``contract_results`` and ``contract_failures``.
    """

    def __init__(self):
        self.state = ProviderState.OPEN
        self.calls: List[Tuple[str, Tuple[Any, ...]]] = []
        self.failures: Dict[str, List[Exception]] = {}
        self.results: Dict[str, Any] = {
            "get_block_number": 100,
            "get_block": {"number": 16, "hash": "0xabc", "transactions": []},
            "get_block_details": {"number": 16, "l1BatchNumber": 3},
            "get_l1_batch_number": 10,
            "get_l1_batch_details": {
                "number": 3,
                "committedAt": datetime(2024, 1, 1, 0, 0, tzinfo=timezone.utc),
                "provenAt": datetime(2024, 1, 1, 0, 10, tzinfo=timezone.utc),
                "executedAt": datetime(2024, 1, 1, 0, 20, tzinfo=timezone.utc),
            },
            "get_transaction": {"hash": "0x123", "blockNumber": 16},
            "get_transaction_receipt": {"transactionHash": "0x123", "status": 1},
            "get_transaction_details": {"isL1Originated": False, "status": "included"},
            "get_logs": [{"logIndex": 0, "blockNumber": 16}],
            "get_code": b"\x60\x80",
            "get_balance": 10**18,
            "get_default_bridge_addresses": BridgeAddresses(
                erc20_l1="0xAbCdEf0000000000000000000000000000000001",
                erc20_l2="0xAbCdEf0000000000000000000000000000000002",
            ),
            "send": {"type": "CALL", "from": "0x01", "to": "0x02"},
        }
        self.contract_results: Dict[str, Any] = {
            "symbol": "USDC",
            "decimals": 6,
            "name": "USD Coin",
            "balanceOf": 500,
        }
        self.contract_failures: Dict[str, List[Exception]] = {}
        self.listeners: Dict[str, List[Any]] = {}

    async def _respond(self, method: str, *args: Any) -> Any:
        self.calls.append((method, args))
        pending = self.failures.get(method)
        if pending:
            raise pending.pop(0)
        return self.results[method]

    def called(self, method: str) -> List[Tuple[Any, ...]]:
        return [args for name, args in self.calls if name == method]

    def get_state(self) -> ProviderState:
        return self.state

    async def get_block_number(self) -> int:
        return await self._respond("get_block_number")

    async def get_block(self, block_hash_or_tag):
        return await self._respond("get_block", block_hash_or_tag)

    async def get_block_details(self, block_number):
        return await self._respond("get_block_details", block_number)

    async def get_l1_batch_number(self):
        return await self._respond("get_l1_batch_number")

    async def get_l1_batch_details(self, batch_number):
        return await self._respond("get_l1_batch_details", batch_number)

    async def get_transaction(self, transaction_hash):
        return await self._respond("get_transaction", transaction_hash)

    async def get_transaction_receipt(self, transaction_hash):
        return await self._respond("get_transaction_receipt", transaction_hash)

    async def get_transaction_details(self, transaction_hash):
        return await self._respond("get_transaction_details", transaction_hash)

    async def get_logs(self, event_filter):
        return await self._respond("get_logs", event_filter)

    async def get_code(self, address):
        return await self._respond("get_code", address)

    async def get_balance(self, address, block_tag):
        return await self._respond("get_balance", address, block_tag)

    async def get_default_bridge_addresses(self):
        return await self._respond("get_default_bridge_addresses")

    async def call_contract(self, address, abi, function_name, args=(), block_tag="latest"):
        self.calls.append(("call_contract", (address, function_name, tuple(args), block_tag)))
        pending = self.contract_failures.get(function_name)
        if pending:
            raise pending.pop(0)
        return self.contract_results[function_name]

    async def send(self, method: str, params: Sequence[Any]):
        return await self._respond("send", method, params)

    def subscribe(self, event_name, listener):
        self.listeners.setdefault(event_name, []).append(listener)


class RecordingDurationMetric:
    """DurationMetric double remembering started timers and stop labels"""

    def __init__(self):
        self.started = 0
        self.observations: List[Dict[str, str]] = []

    def start_timer(self):
        self.started += 1

        def stop(labels: Dict[str, str]) -> float:
            self.observations.append(dict(labels))
            return 0.0

        return stop


@pytest.fixture
def provider():
    """In-memory chain provider"""
    return InMemoryProvider()


@pytest.fixture
def duration_metric():
    """Recording duration metric"""
    return RecordingDurationMetric()


@pytest.fixture
def retry_policy():
    """Retry policy without waiting, so retries run back to back"""
    return RetryPolicy(quick_retry_timeout=0, default_retry_timeout=0)


@pytest.fixture
def mock_log():
    """Mock structured logger"""
    return MagicMock()


@pytest.fixture
def invoker(retry_policy, duration_metric, mock_log, provider):
    """Invoker wired to the in-memory provider state"""
    return RpcCallInvoker(
        retry_policy,
        duration_metric=duration_metric,
        log=mock_log,
        connection_state=provider.get_state,
    )
