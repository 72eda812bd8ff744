"""
Artifact storage for regenerated pass bundles.
"""
import asyncio
import logging
from pathlib import Path

logger = logging.getLogger(__name__)


def pkpass_path(pass_id: str, serial_number: str) -> str:
    return f"passes/{pass_id}/pass-{serial_number}.pkpass"


class LocalArtifactStorage:
    """Writes artifacts under a directory served at a public base URL."""

    def __init__(self, base_dir: str, public_base_url: str):
        self.base_dir = Path(base_dir)
        self.public_base_url = public_base_url.rstrip("/")

    def public_url(self, path: str) -> str:
        return f"{self.public_base_url}/{path}"

    def _write(self, path: str, data: bytes) -> None:
        target = self.base_dir / path
        target.parent.mkdir(parents=True, exist_ok=True)
        tmp = target.with_suffix(target.suffix + ".tmp")
        tmp.write_bytes(data)
        tmp.replace(target)

    async def upload(self, path: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        """
        Store data at path, replacing any existing artifact.

        Returns:
            Public URL of the stored artifact
        """
        if ".." in Path(path).parts:
            raise ValueError(f"Invalid artifact path: {path}")
        await asyncio.to_thread(self._write, path, data)
        logger.info(f"Stored artifact {path} ({content_type}, {len(data)} bytes)")
        return self.public_url(path)
