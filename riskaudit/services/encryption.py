"""Fernet symmetric encryption for images stored at rest."""

from __future__ import annotations

from cryptography.fernet import Fernet


def _get_fernet(key: str) -> Fernet:
    if not key:
        raise RuntimeError("Image encryption key not set. Generate one with: python -c \"from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())\"")
    return Fernet(key.encode("utf-8"))


def encrypt_bytes(data: bytes, key: str) -> bytes:
    if not data:
        return b""
    return _get_fernet(key).encrypt(data)


def decrypt_bytes(data: bytes, key: str) -> bytes:
    if not data:
        return b""
    return _get_fernet(key).decrypt(data)
