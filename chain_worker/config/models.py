"""Configuration models for RPC access and retry policy"""

from typing import FrozenSet

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

QUICK_RETRY_ERROR_CODES: FrozenSet[str] = frozenset(
    {"NETWORK_ERROR", "ECONNRESET", "ECONNREFUSED", "TIMEOUT"}
)


class RetryPolicy(BaseModel):
    """Retry timeouts (in seconds) applied by the RPC call invoker"""

    quick_retry_timeout: float = Field(default=5.0, ge=0)
    default_retry_timeout: float = Field(default=30.0, ge=0)
    quick_retry_error_codes: FrozenSet[str] = QUICK_RETRY_ERROR_CODES

    model_config = ConfigDict(frozen=True)


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Upstream node
    blockchain_rpc_url: str = Field(alias="BLOCKCHAIN_RPC_URL")
    rpc_polling_interval: int = Field(default=1000, alias="RPC_POLLING_INTERVAL")

    # Retry timeouts, milliseconds
    rpc_calls_default_retry_timeout: int = Field(
        default=30000, ge=0, alias="RPC_CALLS_DEFAULT_RETRY_TIMEOUT"
    )
    rpc_calls_quick_retry_timeout: int = Field(
        default=5000, ge=0, alias="RPC_CALLS_QUICK_RETRY_TIMEOUT"
    )

    # Monitoring
    prometheus_port: int = Field(default=9090, alias="PROMETHEUS_PORT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    def get_retry_policy(self) -> RetryPolicy:
        """Build the retry policy, converting millisecond settings to seconds"""
        return RetryPolicy(
            quick_retry_timeout=self.rpc_calls_quick_retry_timeout / 1000,
            default_retry_timeout=self.rpc_calls_default_retry_timeout / 1000,
        )

    def get_polling_interval_seconds(self) -> float:
        """Block subscription polling interval in seconds"""
        return self.rpc_polling_interval / 1000
