"""Image storage: save optimized originals and thumbnails, resolve references safely.

Images are stored per organization: {base_dir}/{organization_id}/{name}, with
thumbnails under {base_dir}/{organization_id}/thumbnails/. Files are
Fernet-encrypted at rest with a .enc suffix when a key is configured.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
from datetime import datetime, timezone
from pathlib import Path

from cryptography.fernet import InvalidToken

from riskaudit.config import ImageDefaultsConfig
from riskaudit.errors import ImageStoreError, PathTraversalError
from riskaudit.models.organization import OrganizationSettings
from riskaudit.services import image_optimizer
from riskaudit.services.encryption import decrypt_bytes, encrypt_bytes

logger = logging.getLogger(__name__)

FILES_PREFIX = "/api/v1/files/images/"
UPLOADS_PREFIX = "/uploads/"
THUMBNAIL_DIR = "thumbnails"


def _generated_name(data: bytes) -> str:
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")
    digest = hashlib.sha256(data).hexdigest()[:8]
    return f"{stamp}_{digest}.jpg"


def _sanitize_name(name: str | None) -> str | None:
    if not name:
        return None
    bare = Path(name.replace("\\", "/")).name
    if bare in ("", ".", ".."):
        return None
    return bare


class LocalImageStore:
    """Filesystem-backed image store scoped per organization."""

    def __init__(self, base_dir: str | Path, fernet_key: str = "", defaults: ImageDefaultsConfig | None = None):
        self.base_dir = Path(base_dir)
        self.fernet_key = fernet_key or ""
        self.defaults = defaults or ImageDefaultsConfig()

    # ── paths ────────────────────────────────────────────

    def _org_root(self, organization_id: str | None) -> Path:
        base = self.base_dir.resolve()
        if not organization_id:
            return base
        root = (base / organization_id).resolve()
        if root == base or not root.is_relative_to(base):
            raise PathTraversalError(f"Invalid organization id: {organization_id!r}")
        return root

    def resolve_path(self, organization_id: str | None, relative_name: str) -> Path:
        """Canonicalize ``relative_name`` under the organization's directory.

        Raises PathTraversalError if the result would escape it.
        """
        root = self._org_root(organization_id)
        candidate = (root / relative_name).resolve()
        if candidate == root or not candidate.is_relative_to(root):
            raise PathTraversalError(f"Path escapes image store: {relative_name!r}")
        return candidate

    def _reference(self, organization_id: str | None, relative_name: str) -> str:
        if organization_id:
            return f"{FILES_PREFIX}{organization_id}/{relative_name}"
        return f"{UPLOADS_PREFIX}{relative_name}"

    def _parse_reference(self, ref: str) -> tuple[str | None, str]:
        if ref.startswith(FILES_PREFIX):
            rest = ref[len(FILES_PREFIX):]
            org_id, _, relative = rest.partition("/")
            if not org_id or not relative:
                raise ImageStoreError(f"Malformed image reference: {ref!r}")
            return org_id, relative
        if ref.startswith(UPLOADS_PREFIX):
            return None, ref[len(UPLOADS_PREFIX):]
        raise ImageStoreError(f"Unknown image reference: {ref!r}")

    # ── sync workers ─────────────────────────────────────

    def _write_sync(self, path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        if self.fernet_key:
            Path(f"{path}.enc").write_bytes(encrypt_bytes(data, self.fernet_key))
        else:
            path.write_bytes(data)

    def read_path_sync(self, path: Path) -> bytes:
        """Read a resolved path, decrypting the .enc variant if present."""
        if path.suffix == ".enc" and path.exists():
            return decrypt_bytes(path.read_bytes(), self.fernet_key)
        enc_path = Path(f"{path}.enc")
        if enc_path.exists():
            return decrypt_bytes(enc_path.read_bytes(), self.fernet_key)
        if path.exists():
            return path.read_bytes()
        raise FileNotFoundError(f"Image not found: {path}")

    def _delete_sync(self, path: Path) -> bool:
        deleted = False
        for p in (path, Path(f"{path}.enc")):
            if p.exists():
                p.unlink()
                deleted = True
        return deleted

    # ── public API ───────────────────────────────────────

    async def save_image(
        self, data: bytes, suggested_name: str | None = None, organization_id: str | None = None,
    ) -> str:
        """Store ``data`` and return its reference."""
        if not data:
            raise ImageStoreError("Cannot store an empty image")
        name = _sanitize_name(suggested_name) or _generated_name(data)
        path = self.resolve_path(organization_id, name)
        await asyncio.to_thread(self._write_sync, path, data)
        logger.info("Image saved: %s (%d bytes)", path, len(data))
        return self._reference(organization_id, name)

    async def save_thumbnail(
        self, data: bytes, original_name: str, organization_id: str | None = None,
    ) -> str:
        if not data:
            raise ImageStoreError("Cannot store an empty thumbnail")
        original = Path(_sanitize_name(original_name) or _generated_name(data))
        relative = f"{THUMBNAIL_DIR}/thumb_{original.stem}{original.suffix or '.jpg'}"
        path = self.resolve_path(organization_id, relative)
        await asyncio.to_thread(self._write_sync, path, data)
        return self._reference(organization_id, relative)

    async def save_photo(
        self, data: bytes, settings: OrganizationSettings | None, organization_id: str | None,
    ) -> tuple[str, str | None]:
        """Apply the organization's optimization policy, then save image and thumbnail.

        Returns (image_ref, thumbnail_ref). Thumbnails belong to the optimization
        policy: the thumbnail is None when optimization or thumbnails are
        disabled, or when it could not be generated.
        """
        optimize = True if settings is None else settings.enable_image_optimization
        max_width = settings.max_image_width if settings else self.defaults.max_image_width
        quality = settings.image_quality if settings else self.defaults.image_quality
        thumbs = True if settings is None else settings.generate_thumbnails
        thumb_width = settings.thumbnail_width if settings else self.defaults.thumbnail_width
        thumb_quality = settings.thumbnail_quality if settings else self.defaults.thumbnail_quality

        if optimize:
            data = await asyncio.to_thread(image_optimizer.optimize_image, data, max_width, quality)

        name = _generated_name(data)
        image_ref = await self.save_image(data, name, organization_id)

        thumb_ref = None
        if optimize and thumbs:
            thumb = await asyncio.to_thread(image_optimizer.make_thumbnail, data, thumb_width, thumb_quality)
            if thumb:
                thumb_ref = await self.save_thumbnail(thumb, name, organization_id)
        return image_ref, thumb_ref

    async def read_image(self, ref: str) -> bytes | None:
        """Return the stored bytes for ``ref``, or None if it is missing, invalid or unreadable."""
        if not ref:
            return None
        try:
            org_id, relative = self._parse_reference(ref)
            path = self.resolve_path(org_id, relative)
            return await asyncio.to_thread(self.read_path_sync, path)
        except FileNotFoundError:
            logger.warning("Image not found for reference %s", ref)
        except ImageStoreError as e:
            logger.warning("Rejected image reference %s: %s", ref, e)
        except InvalidToken:
            logger.error("Could not decrypt image %s", ref)
        except (OSError, RuntimeError) as e:
            logger.error("Could not read image %s: %s", ref, e)
        return None

    async def delete_image(self, ref: str) -> bool:
        try:
            org_id, relative = self._parse_reference(ref)
            path = self.resolve_path(org_id, relative)
        except ImageStoreError as e:
            logger.warning("Refusing to delete %s: %s", ref, e)
            return False
        return await asyncio.to_thread(self._delete_sync, path)

    async def delete_file(self, organization_id: str, relative_name: str) -> bool:
        """Delete a file addressed by organization and relative path.

        Raises PathTraversalError if the path escapes the organization's directory.
        """
        path = self.resolve_path(organization_id, relative_name)
        deleted = await asyncio.to_thread(self._delete_sync, path)
        if deleted:
            logger.info("Image deleted: %s", path)
        return deleted
