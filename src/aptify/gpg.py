"""Key generation and signing functions.

Implements:
- `create_priv_key`: Create the repository signing key pair.
- `load_signing_key`: Load the persisted key for the duration of a build.
- `SigningKey`: Clear-sign and detach-sign buffers, export the public key.
- `verify_signed`: Check a cleartext-signed document against a public key.
"""

from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING

import gnupg

from aptify.temp import temporary_directory

if TYPE_CHECKING:
    from collections.abc import Generator

    from aptify.utils import StrPath

logger = logging.getLogger("aptify")

PRIVATE_KEY_NAME = "aptify_private.asc"
PUBLIC_KEY_NAME = "aptify_public.asc"
DIGEST_ARGS = ["--digest-algo", "SHA512"]


class KeyCreationError(Exception):
    """Key creation failed."""


class SigningError(Exception):
    """Signing failed."""


class MissingKeyError(FileNotFoundError):
    """No signing key has been initialized."""


class GPG2(gnupg.GPG):
    """GPG class with additional methods."""

    def import_priv_key(self, path: StrPath) -> str:
        """Import an armored key file and return its fingerprint."""
        result = self.import_keys(Path(path).expanduser().read_text("utf-8"))
        if not result.fingerprints:
            raise SigningError(f"No key could be imported from {path}: {result.stderr}")
        return str(result.fingerprints[0])

    def export_key(self, fingerprint: str, secret: bool = False) -> str:
        """Export an armored key."""
        exported = self.export_keys(
            fingerprint, secret=secret, armor=True, expect_passphrase=False
        )
        if not exported:
            raise KeyCreationError(f"GPG exported nothing for {fingerprint}.")
        return str(exported)

    def sign_bytes(
        self, data: bytes, fingerprint: str, clearsign: bool = True
    ) -> bytes:
        """Sign `data` with the key `fingerprint`.

        Args:
            data: The buffer to sign.
            fingerprint: The signing key.
            clearsign: Produce a cleartext signature (`InRelease`) when True,
                an armored detached signature (`Release.gpg`) otherwise.
        """
        signed = self.sign(
            data,
            keyid=fingerprint,
            clearsign=clearsign,
            detach=not clearsign,
            binary=False,
            extra_args=DIGEST_ARGS,
        )
        if not signed or not signed.data:
            raise SigningError(f"GPG failed to sign: {signed.status} {signed.stderr}")
        return bytes(signed.data)


@contextmanager
def temp_gpg(tmp: StrPath | None = None) -> Generator[GPG2]:
    """Yield a `GPG2` working in a throwaway home directory under `tmp`."""
    with temporary_directory("aptify_gpg_", tmp) as path:
        home = path / "gnupg"
        home.mkdir(mode=0o700)
        yield GPG2(gnupghome=str(home))


class SigningKey:
    """The repository signing key, imported into a build-scoped keyring.

    Attributes:
        fingerprint: The fingerprint of the key.
    """

    def __init__(self, gpg: GPG2, fingerprint: str) -> None:
        self._gpg = gpg
        self.fingerprint = fingerprint

    def clearsign(self, data: bytes) -> bytes:
        """Return `data` wrapped in an OpenPGP cleartext signature."""
        return self._gpg.sign_bytes(data, self.fingerprint, clearsign=True)

    def detach_sign(self, data: bytes) -> bytes:
        """Return an armored detached signature of `data`."""
        return self._gpg.sign_bytes(data, self.fingerprint, clearsign=False)

    def export_public(self) -> str:
        """Return the armored public half of the key."""
        return self._gpg.export_key(self.fingerprint)


def create_priv_key(
    config_dir: StrPath,
    name: str | None = None,
    comment: str | None = None,
    email: str | None = None,
    key_length: int = 4096,
    tmp: StrPath | None = None,
) -> tuple[Path, Path]:
    """Create a PGP key pair for signing releases.

    Args:
        config_dir: Directory receiving the private and public key files.
        name: Name of the key owner.
        comment: Comment added to the user id.
        email: Email address of the key owner.
        key_length: RSA key size in bits. Defaults to 4096.
        tmp: The temporary directory path. Defaults to None.

    Returns:
        The private and the public key file.

    Raises:
        FileExistsError: If the private key file already exists.
        KeyCreationError: If the key creation failed.
    """
    config_dir = Path(config_dir)
    priv_file = config_dir / PRIVATE_KEY_NAME
    pub_file = config_dir / PUBLIC_KEY_NAME
    if priv_file.exists():
        raise FileExistsError(f"{priv_file} already exists.")

    with temp_gpg(tmp) as gpg:
        params: dict[str, str | int | bool] = {
            "Key_Type": "RSA",
            "Key_Length": key_length,
            "Expire_Date": 0,
            "no_protection": True,
        }
        if name:
            params["Name_Real"] = name
        if comment:
            params["Name_Comment"] = comment
        if email:
            params["Name_Email"] = email

        logger.info("Generating RSA key")
        key = gpg.gen_key(gpg.gen_key_input(**params))
        if not key or not key.fingerprint:
            raise KeyCreationError(f"GPG returned no key: {key.stderr}")

        private = gpg.export_key(str(key.fingerprint), secret=True)
        public = gpg.export_key(str(key.fingerprint))

    logger.info("Saving key pair to %s", config_dir)
    config_dir.mkdir(mode=0o700, parents=True, exist_ok=True)
    fd = os.open(priv_file, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as f:
        f.write(private)
    pub_file.write_text(public, "utf-8")

    if not priv_file.stat().st_size:
        priv_file.unlink()
        raise KeyCreationError(f"File at {priv_file} is empty.")

    logger.warning("Created key file at %s", priv_file)
    return priv_file, pub_file


@contextmanager
def load_signing_key(
    priv_file: StrPath, tmp: StrPath | None = None
) -> Generator[SigningKey]:
    """Import the private key into a temporary keyring for the build.

    Raises:
        MissingKeyError: If no key has been created yet.
    """
    priv_file = Path(priv_file)
    if not priv_file.is_file():
        raise MissingKeyError(
            f"private key not found at {priv_file}; "
            "run 'aptify init-keys' to generate one"
        )

    with temp_gpg(tmp) as gpg:
        fingerprint = gpg.import_priv_key(priv_file)
        logger.debug("Loaded signing key %s", fingerprint)
        yield SigningKey(gpg, fingerprint)


def verify_signed(data: bytes, public_key: str, tmp: StrPath | None = None) -> bool:
    """Verify a cleartext-signed document against an armored public key."""
    with temp_gpg(tmp) as gpg:
        imported = gpg.import_keys(public_key)
        if not imported.fingerprints:
            raise SigningError(f"No public key could be imported: {imported.stderr}")
        verified = gpg.verify(data)
        logger.debug("Signature status: %s", verified.status)
        return bool(verified.valid)


__all__ = [
    "GPG2",
    "PRIVATE_KEY_NAME",
    "PUBLIC_KEY_NAME",
    "KeyCreationError",
    "MissingKeyError",
    "SigningError",
    "SigningKey",
    "temp_gpg",
    "create_priv_key",
    "load_signing_key",
    "verify_signed",
]
