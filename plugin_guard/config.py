from pathlib import Path
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from .utils.host_config import get_hostname_settings_file

PLACEHOLDER_API_KEY = "sk_live_or_test_key_here"


class Settings(BaseSettings):
    # Remote service
    api_key: str = ""
    api_base_url: str = "https://api.safeturned.com"
    request_timeout_seconds: float = 60.0
    fetch_remote_config: bool = True

    # Paths
    server_root: str = "."  # Relative watch paths resolve against this
    data_directory: str = "data"  # hashes.json, ratelimit.json, pending.json

    # Scanning
    scan_interval_seconds: int = 300
    watch_paths: List[str] = Field(
        default_factory=lambda: [
            "Modules",
            "Servers/*/Rocket/Plugins",
            "Servers/*/OpenMod/plugins",
        ]
    )
    include_patterns: List[str] = Field(default_factory=lambda: ["*.dll"])
    exclude_patterns: List[str] = Field(default_factory=list)

    # Uploads
    force_analyze: bool = False
    max_concurrent_uploads: int = 3
    max_upload_attempts: int = 3

    # Retry queue limits
    pending_max_items: int = 100
    pending_max_total_mb: int = 50

    # Diagnostics
    report_errors: bool = True

    # Logging konfiguration
    log_level: str = "INFO"
    log_file_path: str = "logs/plugin_guard.log"
    log_retention_days: int = 30

    model_config = SettingsConfigDict(env_file=get_hostname_settings_file())

    @property
    def log_directory(self) -> Path:
        return Path(self.log_file_path).parent

    @property
    def data_path(self) -> Path:
        return Path(self.data_directory)

    @property
    def hash_cache_file(self) -> Path:
        return self.data_path / "hashes.json"

    @property
    def rate_limit_file(self) -> Path:
        return self.data_path / "ratelimit.json"

    @property
    def pending_uploads_file(self) -> Path:
        return self.data_path / "pending.json"

    @property
    def exception_queue_file(self) -> Path:
        return self.data_path / "exceptions.json"

    @property
    def pending_max_total_bytes(self) -> int:
        return self.pending_max_total_mb * 1024 * 1024

    @property
    def has_valid_api_key(self) -> bool:
        key = self.api_key.strip()
        return bool(key) and key != PLACEHOLDER_API_KEY

    @property
    def config_file_info(self) -> dict:
        """Return information about which configuration file is being used."""
        from .utils.host_config import get_hostname, list_all_settings_files

        return {
            "hostname": get_hostname(),
            "active_config_file": get_hostname_settings_file(),
            "all_available_configs": list_all_settings_files(),
        }
