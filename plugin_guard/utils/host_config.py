"""
Host-specific configuration management utility.

Every server host gets its own env file so one checkout can guard several
machines with different API keys and watch paths.
"""

import logging
import shutil
import socket
from pathlib import Path

BASE_SETTINGS_FILE = "plugin_guard.env"


def get_hostname() -> str:
    """Get the current hostname (without domain)."""
    return socket.gethostname().split(".")[0]


def get_hostname_settings_file() -> str:
    """
    Get the settings file for this host.

    Uses ``{hostname}-plugin_guard.env`` and creates it from
    ``plugin_guard.env`` on first run. Falls back to the base file when
    neither exists or the copy fails.
    """
    try:
        hostname = get_hostname()
        base_settings = Path(BASE_SETTINGS_FILE)
        host_settings = Path(f"{hostname}-{BASE_SETTINGS_FILE}")

        if host_settings.exists():
            logging.debug(f"Using existing host-specific configuration: {host_settings}")
            return str(host_settings)

        if not base_settings.exists():
            logging.debug(f"{BASE_SETTINGS_FILE} not found, using environment only")
            return BASE_SETTINGS_FILE

        shutil.copy2(base_settings, host_settings)
        content = host_settings.read_text(encoding="utf-8")
        host_header = (
            f"# Host-specific configuration for: {hostname}\n"
            f"# Auto-generated from {BASE_SETTINGS_FILE}\n\n"
        )
        host_settings.write_text(host_header + content, encoding="utf-8")
        logging.info(f"Created host-specific configuration: {host_settings}")
        return str(host_settings)

    except OSError as e:
        logging.error(f"Error handling host-specific settings: {e}")
        return BASE_SETTINGS_FILE


def list_all_settings_files() -> list[str]:
    """List all available settings files (base + host-specific)."""
    settings_files = []

    if Path(BASE_SETTINGS_FILE).exists():
        settings_files.append(BASE_SETTINGS_FILE)

    for file_path in Path(".").glob(f"*-{BASE_SETTINGS_FILE}"):
        settings_files.append(str(file_path))

    return settings_files
