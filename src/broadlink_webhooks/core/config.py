from pathlib import Path
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from dotenv import load_dotenv

load_dotenv()

_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class Settings(BaseSettings):
    # Logging Configuration
    LOG_LEVEL: str = Field(default="INFO", description="Console log level")
    LOG_DIR: str = Field(default="logs", description="Directory for rotating JSON log files")

    # Automation Configuration
    AUTOMATION_CONFIG_PATH: str = Field(
        default="config/automation.yaml",
        description="YAML file with wait budgets, retry budgets and executor bounds"
    )
    KEEP_BROWSER_OPEN_ON_ERROR: bool = Field(
        default=False,
        description="Leave a visible browser window open when a run ends in error"
    )

    # Output Configuration
    OUTPUT_DIR: Optional[str] = Field(
        default=None,
        description="Where generated files are saved (defaults to the Desktop)"
    )

    # Prompt pre-filling
    IFTTT_USERNAME: Optional[str] = Field(default=None, description="Default IFTTT username for the login prompt")

    @field_validator('LOG_LEVEL')
    @classmethod
    def validate_log_level(cls, v):
        """Validate that LOG_LEVEL is a standard logging level name."""
        if v.upper() not in _LOG_LEVELS:
            raise ValueError(f"LOG_LEVEL must be one of {', '.join(_LOG_LEVELS)}, got '{v}'")
        return v.upper()

    @field_validator('OUTPUT_DIR')
    @classmethod
    def validate_output_dir(cls, v):
        """Expand a user-relative OUTPUT_DIR."""
        if v:
            return str(Path(v).expanduser())
        return v

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding='utf-8',
        extra='allow'  # Allow extra fields from .env file
    )


settings = Settings()
