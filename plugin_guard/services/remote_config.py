import logging
from typing import Iterable, List, Optional

import httpx

from plugin_guard.config import Settings

REMOTE_CONFIG_PATH = "/v1.0/frameworks/module/config"


def merge_lists(target: List[str], source: Optional[Iterable[str]]) -> int:
    """Append trimmed, non-blank items not already present (case-insensitive)."""
    if not source:
        return 0
    existing = {item.strip().casefold() for item in target if item}
    added = 0
    for item in source:
        if not isinstance(item, str):
            continue
        trimmed = item.strip()
        if not trimmed or trimmed.casefold() in existing:
            continue
        target.append(trimmed)
        existing.add(trimmed.casefold())
        added += 1
    return added


async def fetch_and_merge_remote_config(
    settings: Settings, http_client: Optional[httpx.AsyncClient] = None
) -> bool:
    """
    Merge the service's default watch/include/exclude lists into settings.

    Local entries always win; remote ones are only appended. Failures are
    logged and leave settings unchanged.
    """
    url = f"{settings.api_base_url.rstrip('/')}{REMOTE_CONFIG_PATH}"
    client = http_client or httpx.AsyncClient(timeout=settings.request_timeout_seconds)
    try:
        response = await client.get(url)
        response.raise_for_status()
        remote = response.json()
    except httpx.HTTPError as e:
        logging.error(f"Failed to fetch remote config: {e}")
        return False
    except ValueError:
        logging.error("Failed to parse remote config")
        return False
    finally:
        if http_client is None:
            await client.aclose()

    if not isinstance(remote, dict):
        logging.error("Failed to parse remote config")
        return False

    added = merge_lists(settings.watch_paths, remote.get("watchPaths"))
    added += merge_lists(settings.include_patterns, remote.get("includePatterns"))
    added += merge_lists(settings.exclude_patterns, remote.get("excludePatterns"))
    logging.info(f"Merged remote config defaults ({added} new entries)")
    return True
