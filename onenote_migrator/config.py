"""Configuration loader for the OneNote migrator."""

import os
from pathlib import Path
from typing import Literal

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field


class AppInfo(BaseModel):
    """Application metadata."""

    name: str = "OneNote Migrator"
    version: str = "0.1.0"


class NotionSettings(BaseModel):
    """Notion API access and throttling configuration."""

    api_url: str = "https://api.notion.com/v1"
    api_version: str = "2022-06-28"
    token: str | None = None
    parent_page_id: str | None = None
    database_id: str | None = None
    rate_limit_delay: float = 1.0
    max_retries: int = 3
    backoff_multiplier: float = 2.0
    max_backoff: float = 30.0
    request_timeout: float = 60.0
    blocks_per_request: int = 100


class ParsingSettings(BaseModel):
    """Section parsing configuration."""

    include_metadata: bool = True
    extract_images: bool = True
    preserve_formatting: bool = True
    fallback_on_error: bool = True
    scratch_dir: str | None = None
    direct_text_limit: int = 65536
    min_text_run: int = 10
    max_scan_bytes: int = 1024 * 1024


class ConversionSettings(BaseModel):
    """Default content conversion options."""

    output_format: Literal["markdown", "docx"] = "markdown"
    performance_mode: Literal["fast", "balanced", "thorough"] = "balanced"
    preserve_formatting: bool = True
    include_images: bool = True
    image_output_path: str | None = None
    preserve_tables: bool = True
    preserve_code_blocks: bool = True
    handle_attachments: bool = True
    convert_tags: bool = True
    include_metadata: bool = False


class MappingSettings(BaseModel):
    """Hierarchy mapping configuration."""

    max_depth: int = 10
    create_databases: bool = False


class ExportSettings(BaseModel):
    """Local export configuration."""

    output_directory: str = "./exported"


class StorageSettings(BaseModel):
    """Storage paths configuration."""

    sqlite_path: str = "./db/imports.db"


class LoggingSettings(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    file: str | None = None


class AppConfig(BaseModel):
    """Root application configuration."""

    app: AppInfo = Field(default_factory=AppInfo)
    notion: NotionSettings = Field(default_factory=NotionSettings)
    parsing: ParsingSettings = Field(default_factory=ParsingSettings)
    conversion: ConversionSettings = Field(default_factory=ConversionSettings)
    mapping: MappingSettings = Field(default_factory=MappingSettings)
    export: ExportSettings = Field(default_factory=ExportSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


def load_config(config_path: str | Path = "config.yaml") -> AppConfig:
    """Load configuration from YAML file and environment variables.

    Args:
        config_path: Path to the YAML configuration file.

    Returns:
        Fully populated AppConfig instance.
    """
    load_dotenv()

    yaml_data: dict = {}
    config_file = Path(config_path)
    if config_file.exists():
        with open(config_file) as f:
            yaml_data = yaml.safe_load(f) or {}

    config = AppConfig(**yaml_data)

    # Secrets and targets come from the environment when set
    config.notion.token = os.getenv("NOTION_TOKEN") or config.notion.token
    config.notion.parent_page_id = (
        os.getenv("NOTION_PARENT_ID") or config.notion.parent_page_id
    )
    config.notion.database_id = (
        os.getenv("NOTION_DATABASE_ID") or config.notion.database_id
    )
    config.logging.level = os.getenv("LOG_LEVEL") or config.logging.level

    return config
