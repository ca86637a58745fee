"""
Configuration management for m365-offboard
"""
import os
from typing import Optional
from dataclasses import dataclass

from dotenv import load_dotenv

# Load environment variables from shared secrets and project .env
load_dotenv('/opt/shared-secrets/api-secrets.env')
load_dotenv()


@dataclass
class M365Config:
    """Microsoft 365 tenant and endpoint configuration"""
    tenant_id: str
    client_id: str
    client_secret: Optional[str] = None
    authority_host: str = "https://login.microsoftonline.com"
    graph_url: str = "https://graph.microsoft.com/v1.0"
    exchange_url: str = "https://outlook.office365.com"
    timeout: int = 30

    @property
    def authority(self) -> str:
        return f"{self.authority_host.rstrip('/')}/{self.tenant_id}"

    @property
    def app_only(self) -> bool:
        """App-only (client credentials) auth when a client secret is configured."""
        return bool(self.client_secret)


@dataclass
class AppConfig:
    """Application configuration"""
    debug: bool = False
    log_level: str = "INFO"
    log_format: str = "console"


class Config:
    """Main configuration class"""

    def __init__(self):
        self.m365 = M365Config(
            tenant_id=os.getenv("M365_TENANT_ID", ""),
            client_id=os.getenv("M365_CLIENT_ID", ""),
            client_secret=os.getenv("M365_CLIENT_SECRET") or None,
            authority_host=os.getenv("M365_AUTHORITY_HOST", "https://login.microsoftonline.com"),
            graph_url=os.getenv("M365_GRAPH_URL", "https://graph.microsoft.com/v1.0"),
            exchange_url=os.getenv("M365_EXCHANGE_URL", "https://outlook.office365.com"),
            timeout=int(os.getenv("M365_TIMEOUT", "30")),
        )

        self.app = AppConfig(
            debug=os.getenv("DEBUG", "false").lower() == "true",
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "console").lower(),
        )

    def validate(self) -> None:
        """Validate required configuration"""
        if not self.m365.tenant_id:
            raise ValueError("M365_TENANT_ID is required")

        if not self.m365.client_id:
            raise ValueError("M365_CLIENT_ID is required")

        if self.app.log_format not in ("console", "json"):
            raise ValueError(f"LOG_FORMAT must be 'console' or 'json', got: {self.app.log_format}")


# Global config instance
config = Config()
