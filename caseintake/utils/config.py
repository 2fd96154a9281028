"""Configuration management for the case intake service."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from dotenv import load_dotenv

from .errors import ConfigurationError

load_dotenv()


@dataclass
class CompressionConfig:
    """Image compression parameters."""
    max_dimension: int = 800
    quality: float = 0.8
    max_workers: int = 4


@dataclass
class StorageConfig:
    """Case image store configuration."""
    backend: str = "memory"
    max_files: int = 20
    max_file_size_mb: int = 15


@dataclass
class NotificationConfig:
    """Notification delivery configuration."""
    provider: str = "log"
    sender: str = "Case Intake <onboarding@resend.dev>"
    recipients: List[str] = field(default_factory=lambda: ["intake@example.com"])
    subject_prefix: str = ""
    resend_api_key: str = ""
    resend_api_url: str = "https://api.resend.com/emails"
    aws_region: str = "us-east-1"
    timeout_seconds: float = 20.0


@dataclass
class ServerConfig:
    """HTTP boundary configuration."""
    public_base_url: str = ""
    case_id_prefix: str = "REG"


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - [%(case_id)s] %(message)s"
    file: str = ""


@dataclass
class Config:
    """Main configuration class."""
    compression: CompressionConfig
    storage: StorageConfig
    notification: NotificationConfig
    server: ServerConfig
    logging: LoggingConfig

    @classmethod
    def default(cls) -> "Config":
        return cls(
            compression=CompressionConfig(),
            storage=StorageConfig(),
            notification=NotificationConfig(),
            server=ServerConfig(),
            logging=LoggingConfig(),
        )

    @classmethod
    def load(cls, config_path: str = "config.yaml") -> "Config":
        """
        Load configuration from file and environment variables.

        Environment variables override config file values:
        - MAX_IMAGE_DIMENSION, IMAGE_QUALITY
        - MAX_FILES, MAX_FILE_SIZE_MB
        - NOTIFY_PROVIDER, NOTIFY_SENDER, NOTIFY_RECIPIENTS
        - RESEND_API_KEY, AWS_REGION
        - PUBLIC_BASE_URL, CASE_ID_PREFIX
        - LOG_LEVEL

        A missing config file is not an error; built-in defaults apply.

        Args:
            config_path: Path to YAML configuration file

        Returns:
            Config instance with loaded settings
        """
        config_data: Dict[str, Any] = {}
        if Path(config_path).exists():
            with open(config_path, 'r') as f:
                config_data = yaml.safe_load(f) or {}

        defaults = cls.default()

        compression_data = config_data.get("compression", {}) or {}
        compression_config = CompressionConfig(
            max_dimension=int(os.getenv(
                "MAX_IMAGE_DIMENSION",
                compression_data.get("max_dimension", defaults.compression.max_dimension)
            )),
            quality=float(os.getenv(
                "IMAGE_QUALITY",
                compression_data.get("quality", defaults.compression.quality)
            )),
            max_workers=int(compression_data.get("max_workers", defaults.compression.max_workers))
        )
        if compression_config.max_dimension <= 0:
            raise ConfigurationError.invalid("compression.max_dimension", compression_config.max_dimension)
        if not 0 < compression_config.quality <= 1:
            raise ConfigurationError.invalid("compression.quality", compression_config.quality)

        storage_data = config_data.get("storage", {}) or {}
        storage_config = StorageConfig(
            backend=storage_data.get("backend", defaults.storage.backend),
            max_files=int(os.getenv("MAX_FILES", storage_data.get("max_files", defaults.storage.max_files))),
            max_file_size_mb=int(os.getenv(
                "MAX_FILE_SIZE_MB",
                storage_data.get("max_file_size_mb", defaults.storage.max_file_size_mb)
            ))
        )

        notify_data = config_data.get("notification", {}) or {}
        recipients = os.getenv("NOTIFY_RECIPIENTS")
        notification_config = NotificationConfig(
            provider=os.getenv("NOTIFY_PROVIDER", notify_data.get("provider", defaults.notification.provider)),
            sender=os.getenv("NOTIFY_SENDER", notify_data.get("sender", defaults.notification.sender)),
            recipients=(
                _split_recipients(recipients)
                if recipients
                else list(notify_data.get("recipients") or defaults.notification.recipients)
            ),
            subject_prefix=notify_data.get("subject_prefix", defaults.notification.subject_prefix),
            resend_api_key=os.getenv("RESEND_API_KEY", notify_data.get("resend_api_key", "")) or "",
            resend_api_url=notify_data.get("resend_api_url", defaults.notification.resend_api_url),
            aws_region=os.getenv("AWS_REGION", notify_data.get("aws_region", defaults.notification.aws_region)),
            timeout_seconds=float(notify_data.get("timeout_seconds", defaults.notification.timeout_seconds))
        )

        server_data = config_data.get("server", {}) or {}
        server_config = ServerConfig(
            public_base_url=os.getenv("PUBLIC_BASE_URL", server_data.get("public_base_url", "")) or "",
            case_id_prefix=os.getenv(
                "CASE_ID_PREFIX",
                server_data.get("case_id_prefix", defaults.server.case_id_prefix)
            )
        )

        logging_data = config_data.get("logging", {}) or {}
        logging_config = LoggingConfig(
            level=os.getenv("LOG_LEVEL", logging_data.get("level", defaults.logging.level)),
            format=logging_data.get("format", defaults.logging.format),
            file=logging_data.get("file", "") or ""
        )

        return cls(
            compression=compression_config,
            storage=storage_config,
            notification=notification_config,
            server=server_config,
            logging=logging_config,
        )


def _split_recipients(value: Optional[str]) -> List[str]:
    return [item.strip() for item in (value or "").split(",") if item.strip()]
