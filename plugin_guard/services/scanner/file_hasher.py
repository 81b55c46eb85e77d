import base64
import hashlib

import aiofiles

HASH_CHUNK_SIZE = 1024 * 1024


async def compute_file_hash(file_path: str) -> str:
    """SHA-256 of the file's full contents, base64 encoded."""
    digest = hashlib.sha256()
    async with aiofiles.open(file_path, "rb") as f:
        while True:
            chunk = await f.read(HASH_CHUNK_SIZE)
            if not chunk:
                break
            digest.update(chunk)
    return base64.b64encode(digest.digest()).decode("ascii")
