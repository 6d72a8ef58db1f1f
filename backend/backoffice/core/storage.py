"""
Filename-based asset storage for product images.

Callers only ever pass bare filenames; this module owns the directory they
live in and the public URL prefix they are served under.
"""
from __future__ import annotations

from pathlib import Path
from typing import Iterable, Optional

from loguru import logger

from backoffice.core.config import settings
from backoffice.core.errors import ValidationError


class LocalAssetStorage:
    """Stores assets as files under a single root directory."""

    def __init__(self, root: str | Path, url_prefix: str) -> None:
        self.root = Path(root)
        self.url_prefix = url_prefix.rstrip("/")
        self.root.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def _clean(name: str) -> str:
        clean = Path(name or "").name
        if not clean or clean in (".", ".."):
            raise ValidationError(f"Invalid asset name: {name!r}")
        return clean

    def path_for(self, name: str) -> Path:
        return self.root / self._clean(name)

    def save_asset(self, name: str, data: bytes) -> str:
        """Write ``data`` under ``name`` and return the stored filename."""
        path = self.path_for(name)
        path.write_bytes(data)
        logger.info(f"storage: saved asset {path.name} ({len(data)} bytes)")
        return path.name

    def delete_asset(self, name: Optional[str]) -> None:
        if not name:
            return
        path = self.path_for(name)
        if path.exists():
            path.unlink()
            logger.info(f"storage: deleted asset {path.name}")
        else:
            logger.debug(f"storage: asset {path.name} already absent")

    def delete_assets(self, names: Iterable[Optional[str]]) -> None:
        for name in names:
            self.delete_asset(name)

    def url_for(self, name: Optional[str]) -> Optional[str]:
        if not name:
            return None
        return f"{self.url_prefix}/{self._clean(name)}"


storage = LocalAssetStorage(settings.UPLOAD_DIR, settings.ASSET_URL_PREFIX)


def get_storage() -> LocalAssetStorage:
    """FastAPI dependency: the configured asset storage."""
    return storage
