"""Configuration management using Pydantic settings."""

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

SCENARIOS = ("melbourne", "convoy", "combat", "custom")

# Fixed ceiling; not exposed as a setting
MAX_RECONNECT_ATTEMPTS = 5


class Settings(BaseSettings):
    """Simulator settings loaded from environment variables (EWAM_*)."""

    model_config = SettingsConfigDict(
        env_prefix="EWAM_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Target / listen address
    host: str = "localhost"
    port: int = 12345

    # Simulation
    scenario: str = "melbourne"
    interval_ms: int = 1000            # simulation tick interval

    # Client reconnect policy
    reconnect_enabled: bool = True
    reconnect_interval_ms: int = 5000

    # Modes
    server_mode: bool = False
    test_mode: bool = False
    test_message: str = "Hello World"
    serve_scenario: str | None = None  # server mode: also broadcast a scenario

    verbose: bool = False

    @field_validator("port")
    @classmethod
    def _check_port(cls, v: int) -> int:
        if not 0 < v < 65536:
            raise ValueError(f"port must be in 1-65535, got {v}")
        return v

    @field_validator("interval_ms", "reconnect_interval_ms")
    @classmethod
    def _check_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError(f"interval must be positive, got {v}")
        return v

    @field_validator("scenario")
    @classmethod
    def _check_scenario(cls, v: str) -> str:
        if v not in SCENARIOS:
            raise ValueError(
                f"Invalid scenario. Valid options are: {', '.join(SCENARIOS)}"
            )
        return v

    @field_validator("serve_scenario")
    @classmethod
    def _check_serve_scenario(cls, v: str | None) -> str | None:
        if v is not None and v not in SCENARIOS:
            raise ValueError(
                f"Invalid scenario. Valid options are: {', '.join(SCENARIOS)}"
            )
        return v
