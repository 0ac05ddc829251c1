"""Read-only ERC20 contract calls executed through the RPC call invoker"""

import asyncio
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import structlog
from web3 import Web3

from chain_worker.chains.invoker import RpcCallInvoker
from chain_worker.chains.provider import BlockTag, JsonRpcProviderBase

logger = structlog.get_logger()

ETH_ADDRESS = "0x0000000000000000000000000000000000000000"
L2_ETH_TOKEN_ADDRESS = "0x000000000000000000000000000000000000800a"

NATIVE_TOKEN_ADDRESSES = frozenset({ETH_ADDRESS, L2_ETH_TOKEN_ADDRESS})


def is_native_token(token_address: str) -> bool:
    """Check whether the address denotes the chain's native asset"""
    return token_address.lower() in NATIVE_TOKEN_ADDRESSES


# Minimal ERC20 ABI (read functions only)
ERC20_ABI = [
    {
        "constant": True,
        "inputs": [],
        "name": "symbol",
        "outputs": [{"name": "", "type": "string"}],
        "payable": False,
        "stateMutability": "view",
        "type": "function",
    },
    {
        "constant": True,
        "inputs": [],
        "name": "decimals",
        "outputs": [{"name": "", "type": "uint8"}],
        "payable": False,
        "stateMutability": "view",
        "type": "function",
    },
    {
        "constant": True,
        "inputs": [],
        "name": "name",
        "outputs": [{"name": "", "type": "string"}],
        "payable": False,
        "stateMutability": "view",
        "type": "function",
    },
    {
        "constant": True,
        "inputs": [{"name": "_owner", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"name": "balance", "type": "uint256"}],
        "payable": False,
        "stateMutability": "view",
        "type": "function",
    },
]


@dataclass
class TokenMetadata:
    """ERC20 token metadata"""

    symbol: str
    decimals: int
    name: str


class RetryableContract:
    """Contract bound to an address whose read calls retry until they succeed"""

    def __init__(
        self,
        address: str,
        abi: List[Dict[str, Any]],
        provider: JsonRpcProviderBase,
        invoker: RpcCallInvoker,
    ):
        self.address = Web3.to_checksum_address(address)
        self.abi = abi
        self.provider = provider
        self.invoker = invoker

    async def call(
        self,
        function_name: str,
        *args: Any,
        block_tag: BlockTag = "latest",
    ) -> Any:
        """Execute one contract read call, retried under the invoker's policy"""
        return await self.invoker.call(
            lambda: self.provider.call_contract(
                self.address, self.abi, function_name, args, block_tag
            ),
            function_name,
        )


class TokenContractCaller:
    """ERC20 metadata and balance queries with the RPC retry policy"""

    def __init__(self, provider: JsonRpcProviderBase, invoker: RpcCallInvoker):
        self.provider = provider
        self.invoker = invoker
        self._logger = logger.bind(component="token_contract_caller")

    async def get_token_metadata(self, contract_address: str) -> TokenMetadata:
        """
        Fetch symbol, decimals and name concurrently.

        All three calls must succeed; there is no partial result.
        """
        contract = RetryableContract(contract_address, ERC20_ABI, self.provider, self.invoker)
        symbol, decimals, name = await asyncio.gather(
            contract.call("symbol"),
            contract.call("decimals"),
            contract.call("name"),
        )
        self._logger.debug(
            "token_metadata_fetched",
            contract_address=contract.address,
            symbol=symbol,
            decimals=decimals,
        )
        return TokenMetadata(symbol=symbol, decimals=decimals, name=name)

    async def get_balance(
        self,
        address: str,
        block_number: Optional[int],
        token_address: str,
    ) -> int:
        """
        Get the balance of ``address`` at ``block_number``.

        The native asset is read with the provider's balance query, any other
        token through its ``balanceOf`` function.
        """
        block_tag = self.provider.format_block_tag(block_number)

        if is_native_token(token_address):
            return await self.invoker.call(
                lambda: self.provider.get_balance(address, block_tag),
                "getBalance",
            )

        contract = RetryableContract(token_address, ERC20_ABI, self.provider, self.invoker)
        return await contract.call(
            "balanceOf",
            Web3.to_checksum_address(address),
            block_tag=block_tag,
        )
