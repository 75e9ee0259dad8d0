"""Base cloud image cache."""

import hashlib
import os
from pathlib import Path
from typing import Callable

import httpx

from ..api.exceptions import DownloadError
from ..models.config import ImageConfig

ProgressCallback = Callable[[int, int | None], None]

_CHUNK_SIZE = 1024 * 1024


def verify_checksum(path: Path, checksum: str) -> None:
    """Compare a file against an ``algo:hexdigest`` checksum.

    Raises:
        DownloadError: If the digest differs
    """
    algorithm, expected = checksum.split(":", 1)
    digest = hashlib.new(algorithm)
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(_CHUNK_SIZE), b""):
            digest.update(chunk)
    if digest.hexdigest().lower() != expected.lower():
        raise DownloadError(
            f"Checksum mismatch for {path.name}: expected {algorithm} {expected}, "
            f"got {digest.hexdigest()}"
        )


async def download_image(
    image: ImageConfig,
    client: httpx.AsyncClient,
    on_progress: ProgressCallback | None = None,
) -> Path:
    """Download the base image into the cache with a single attempt.

    The file is streamed to a ``.part`` sibling and only renamed into place
    once complete (and verified, if a checksum is configured).

    Raises:
        DownloadError: On HTTP, network, cache write or checksum failure
    """
    target = image.cache_path
    partial = target.with_name(target.name + ".part")
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        async with client.stream("GET", image.url, follow_redirects=True) as response:
            if response.status_code >= 400:
                raise DownloadError(f"Failed to download {image.url}: HTTP {response.status_code}")
            total = int(response.headers["Content-Length"]) if "Content-Length" in response.headers else None
            done = 0
            with open(partial, "wb") as f:
                async for chunk in response.aiter_bytes(_CHUNK_SIZE):
                    f.write(chunk)
                    done += len(chunk)
                    if on_progress:
                        on_progress(done, total)
        if image.checksum:
            verify_checksum(partial, image.checksum)
        os.replace(partial, target)
    except httpx.HTTPError as e:
        raise DownloadError(f"Failed to download {image.url}: {e}")
    except OSError as e:
        raise DownloadError(f"Cannot store {image.filename} in {target.parent}: {e}")
    finally:
        if partial.exists():
            partial.unlink()
    return target


async def ensure_image(
    image: ImageConfig,
    client: httpx.AsyncClient | None = None,
    on_progress: ProgressCallback | None = None,
) -> tuple[Path, bool]:
    """Make sure the base image is in the local cache.

    Args:
        image: Image source and cache location
        client: HTTP client (a default one is created if omitted)
        on_progress: Called with (bytes_done, bytes_total) while downloading

    Returns:
        (cached path, whether a download happened)
    """
    if image.cache_path.is_file():
        return image.cache_path, False

    if client is not None:
        return await download_image(image, client, on_progress), True

    async with httpx.AsyncClient(timeout=httpx.Timeout(30.0, read=300.0)) as default_client:
        return await download_image(image, default_client, on_progress), True
