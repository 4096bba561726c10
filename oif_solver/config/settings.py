from typing import Any, Dict, Optional, Tuple, Type

import os
import yaml
from eth_utils import is_address
from pydantic import Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

# Anvil's first development key; never use outside local chains
DEV_PRIVATE_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
ZERO_ADDRESS = "0x" + "00" * 20


class YamlConfigSettingsSource(PydanticBaseSettingsSource):
    """
    A simple settings source that loads variables from a YAML file,
    config/config.yaml unless CONFIG_FILE points elsewhere.
    """
    def get_field_value(self, field: Any, field_name: str) -> Tuple[Any, str, bool]:
        pass

    def __call__(self) -> Dict[str, Any]:
        config_file = os.getenv("CONFIG_FILE", "config/config.yaml")
        if os.path.exists(config_file):
            with open(config_file) as f:
                return yaml.safe_load(f) or {}
        return {}


class Config(BaseSettings):
    # Environment
    env: str = Field("development", description="Environment: development, staging, production")
    debug: bool = False

    # HTTP server
    server_host: str = "0.0.0.0"
    server_port: int = 3000

    # Solver
    solver_private_key: str = DEV_PRIVATE_KEY
    solver_address: Optional[str] = None  # Derived from the key when unset

    # Chains
    origin_rpc_url: str = "http://localhost:8545"
    origin_chain_id: int = 31337
    destination_rpc_url: str = "http://localhost:8546"
    destination_chain_id: int = 31338

    # Contracts
    the_compact_address: str = ZERO_ADDRESS
    settler_compact_address: str = ZERO_ADDRESS
    coin_filler_address: str = ZERO_ADDRESS

    # Execution
    execution_backend: str = Field("direct", description="direct, relayer or hybrid")
    confirm_transactions: bool = True
    confirmation_timeout_seconds: float = 120.0
    fill_gas_limit: int = 360_000
    fill_gas_price: int = 50_000_000_000       # 50 gwei
    finalize_gas_limit: int = 650_000
    finalize_gas_price: int = 1_178_761_408
    operation_timeout_seconds: float = 300.0   # Async completion wait per operation
    critical_expiry_window_seconds: int = 300  # Orders expiring sooner get top priority

    # Relayer
    relayer_api_url: Optional[str] = "http://localhost:8080/api/v1"
    relayer_api_key: Optional[str] = None
    relayer_use_async: bool = False
    relayer_timeout_seconds: float = 300.0
    relayer_poll_interval_seconds: float = 5.0
    relayer_chain_endpoints: Dict[int, str] = {
        31337: "anvil-origin-relayer",
        31338: "anvil-destination-relayer",
    }

    # Monitoring
    monitoring_enabled: bool = True
    monitoring_interval_seconds: float = 60.0
    auto_finalize: bool = True
    finalization_delay_seconds: float = 30.0
    max_concurrent_operations: int = 4
    event_buffer_size: int = 256

    # Persistence
    persistence_enabled: bool = True
    persistence_file: str = "data/orders.json"
    fail_processing_on_load: bool = False  # Mark orders left in processing as failed at startup

    # Submission
    verify_signatures: bool = False  # Recover the maker from the signature

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = "logs/solver.log"

    def validate_execution(self) -> tuple[bool, str]:
        """
        Validate configuration for the selected execution backend.

        Returns:
            Tuple of (is_valid, error_message)
        """
        backend = self.execution_backend.lower()
        if backend not in ("direct", "relayer", "hybrid"):
            return False, f"EXECUTION_BACKEND must be direct, relayer or hybrid, got {backend!r}"

        if not self.solver_private_key.startswith("0x"):
            return False, "SOLVER_PRIVATE_KEY must start with 0x"

        if len(self.solver_private_key) != 66:  # 0x + 64 hex chars
            return False, "SOLVER_PRIVATE_KEY must be 66 characters (0x + 64 hex)"

        for name in ("settler_compact_address", "coin_filler_address"):
            value = getattr(self, name)
            if not is_address(value):
                return False, f"{name.upper()} is not a valid address"
            if value == ZERO_ADDRESS:
                return False, f"{name.upper()} is not set"

        if backend == "relayer":
            if not self.relayer_api_url or not self.relayer_api_key:
                return False, "RELAYER_API_URL and RELAYER_API_KEY are required for relayer execution"
            for chain_id in (self.origin_chain_id, self.destination_chain_id):
                if chain_id not in self.relayer_chain_endpoints:
                    return False, f"No relayer endpoint configured for chain {chain_id}"

        if backend == "direct" and self.env == "production" and self.solver_private_key == DEV_PRIVATE_KEY:
            return False, "Refusing to use the development key in production"

        return True, f"Configuration valid for {backend} execution"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls),
            file_secret_settings,
        )
