import logging
from typing import Optional

import httpx

from plugin_guard import __version__
from plugin_guard.config import Settings

INSTALLER_METADATA_PATH = "/v1.0/plugin-installer"


def pack_version(version: Optional[str]) -> int:
    """Pack "major.minor.patch" into one comparable integer. Bad parts count as 0."""
    if not version or not version.strip():
        return 0
    parts = version.strip().split(".")

    def _part(index: int) -> int:
        if index >= len(parts):
            return 0
        try:
            return max(0, int(parts[index]))
        except ValueError:
            return 0

    return (_part(0) << 16) | (_part(1) << 8) | _part(2)


async def check_for_updates(
    settings: Settings, http_client: Optional[httpx.AsyncClient] = None
) -> dict:
    """
    Compare the installed version with the latest published module build.

    Read-only: nothing is downloaded. Failures give ``update_check:
    "unavailable"`` instead of raising.
    """
    result = {
        "module_version": __version__,
        "packed_version": pack_version(__version__),
        "update_check": "unavailable",
    }

    url = f"{settings.api_base_url.rstrip('/')}{INSTALLER_METADATA_PATH}"
    client = http_client or httpx.AsyncClient(timeout=settings.request_timeout_seconds)
    try:
        response = await client.get(url, params={"framework": "module"})
        response.raise_for_status()
        metadata = response.json()
    except (httpx.HTTPError, ValueError) as e:
        logging.info(f"Could not check for updates (API unavailable): {e}")
        return result
    finally:
        if http_client is None:
            await client.aclose()

    if not isinstance(metadata, dict):
        return result
    latest = metadata.get("version")
    if not isinstance(latest, str) or not latest.strip():
        return result

    remote_packed = metadata.get("packedVersion")
    if not isinstance(remote_packed, int) or remote_packed <= 0:
        remote_packed = pack_version(latest)

    result["latest_version"] = latest
    result["latest_packed_version"] = remote_packed

    if remote_packed > result["packed_version"]:
        result["update_check"] = "update_available"
        logging.info(f"UPDATE AVAILABLE: version {latest} is available (installed {__version__})")
    elif remote_packed == result["packed_version"]:
        result["update_check"] = "up_to_date"
        logging.info("You are running the latest version")
    else:
        result["update_check"] = "ahead_of_published"

    return result
