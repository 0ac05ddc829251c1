"""Abstract chain provider capability used by the blockchain service"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

BlockTag = Union[str, int]
Listener = Callable[..., Any]

BATCH_TIMESTAMP_FIELDS = ("committedAt", "provenAt", "executedAt")
TRANSACTION_TIMESTAMP_FIELDS = ("receivedAt",)


class ProviderState(Enum):
    """Provider connection states"""

    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


@dataclass(frozen=True)
class BridgeAddresses:
    """Default ERC20 bridge contract addresses on both layers"""

    erc20_l1: str
    erc20_l2: str


class JsonRpcProviderBase(ABC):
    """
    Capability surface a chain provider must implement.

    Every remote operation may raise. Providers never retry internally; retry
    belongs to RpcCallInvoker. Connection state is owned by the provider and
    only read by callers.

    Timestamps in block, batch and transaction details are timezone-aware
    ``datetime`` values (or ``None`` while a stage has not happened yet).
    """

    @abstractmethod
    def get_state(self) -> ProviderState:
        """Current connection state"""

    @abstractmethod
    async def get_block_number(self) -> int:
        pass

    @abstractmethod
    async def get_block(self, block_hash_or_tag: BlockTag) -> Dict[str, Any]:
        pass

    @abstractmethod
    async def get_block_details(self, block_number: int) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    async def get_l1_batch_number(self) -> int:
        pass

    @abstractmethod
    async def get_l1_batch_details(self, batch_number: int) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    async def get_transaction(self, transaction_hash: str) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    async def get_transaction_receipt(self, transaction_hash: str) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    async def get_transaction_details(self, transaction_hash: str) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    async def get_logs(self, event_filter: Dict[str, Any]) -> List[Dict[str, Any]]:
        pass

    @abstractmethod
    async def get_code(self, address: str) -> bytes:
        pass

    @abstractmethod
    async def get_balance(self, address: str, block_tag: BlockTag) -> int:
        pass

    @abstractmethod
    async def get_default_bridge_addresses(self) -> BridgeAddresses:
        pass

    @abstractmethod
    async def call_contract(
        self,
        address: str,
        abi: List[Dict[str, Any]],
        function_name: str,
        args: Sequence[Any] = (),
        block_tag: BlockTag = "latest",
    ) -> Any:
        """Execute a read-only contract function (eth_call) and return its decoded output"""

    @abstractmethod
    async def send(self, method: str, params: Sequence[Any]) -> Any:
        """Issue an arbitrary JSON-RPC method, for node-specific calls"""

    @abstractmethod
    def subscribe(self, event_name: str, listener: Listener) -> None:
        """Register a listener for provider-level events (e.g. "block")"""

    def format_block_tag(self, block_number: Optional[BlockTag]) -> str:
        """
        Normalize a block number or tag into a JSON-RPC block tag.

        None resolves to "latest", integers to hex quantities and named tags
        ("latest", "earliest", "pending", ...) or hex strings pass through.
        """
        if block_number is None:
            return "latest"
        if isinstance(block_number, bool):
            raise TypeError("block tag must not be a boolean")
        if isinstance(block_number, int):
            if block_number < 0:
                raise ValueError(f"Invalid block number: {block_number}")
            return hex(block_number)
        return block_number
