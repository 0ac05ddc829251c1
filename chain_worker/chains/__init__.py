"""Blockchain interaction layer"""

from chain_worker.chains.blockchain_service import BlockchainService, TraceTransactionResult
from chain_worker.chains.invoker import RpcCallInvoker
from chain_worker.chains.provider import BridgeAddresses, JsonRpcProviderBase, ProviderState
from chain_worker.chains.retry import RetryClass, classify_failure, failure_code
from chain_worker.chains.token_contract import TokenContractCaller, TokenMetadata, is_native_token
from chain_worker.chains.web3_provider import ProviderError, Web3JsonRpcProvider

__all__ = [
    "BlockchainService",
    "BridgeAddresses",
    "JsonRpcProviderBase",
    "ProviderError",
    "ProviderState",
    "RetryClass",
    "RpcCallInvoker",
    "TokenContractCaller",
    "TokenMetadata",
    "TraceTransactionResult",
    "Web3JsonRpcProvider",
    "classify_failure",
    "failure_code",
    "is_native_token",
]
