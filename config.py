from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import Optional
from functools import lru_cache


class Settings(BaseSettings):
    # Application settings
    app_name: str = "Transfer Workload Generator"
    app_version: str = "1.0.0"
    debug: bool = False

    # Server settings
    host: str = "0.0.0.0"
    port: int = 8000

    # Logging settings
    log_level: str = "INFO"
    log_format: str = "json"  # json or console

    # Account roster
    account_count: int = 1000
    initial_balance: int = 1_000_000_000
    account_prefix: str = "user_"
    roster_file: Optional[str] = None  # JSON list of {account_id, balance}

    # Workload settings
    max_amount: int = Field(100, ge=1, le=100)  # exclusive upper bound for transfer amounts
    contract_name: str = "dagtransfer"
    output_dir: Optional[str] = None  # where raw transaction files are written
    total_workers: int = Field(1, ge=1)
    random_seed: Optional[int] = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Environment-specific configurations
class DevelopmentSettings(Settings):
    debug: bool = True
    log_level: str = "DEBUG"
    log_format: str = "console"
    account_count: int = 10


class ProductionSettings(Settings):
    debug: bool = False
    log_level: str = "INFO"


class TestingSettings(Settings):
    __test__ = False  # not a pytest test class

    debug: bool = True
    log_level: str = "WARNING"  # Reduce noise in tests
    account_count: int = 4
    initial_balance: int = 100
    random_seed: Optional[int] = 42


def get_settings_for_environment(env: str = "development") -> Settings:
    """Get settings for specific environment."""
    settings_map = {
        "development": DevelopmentSettings,
        "production": ProductionSettings,
        "testing": TestingSettings,
    }

    settings_class = settings_map.get(env.lower(), Settings)
    return settings_class()
