"""
Apple Wallet pass bundle generation and signing.
"""
import base64
import binascii
import hashlib
import io
import json
import logging
import os
import secrets
import time
import zipfile
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.serialization import pkcs7

from walletsync.core.config import Settings
from walletsync.exceptions import ConfigurationError, PassSigningError
from walletsync.schemas.wallets import SignedBundle
from walletsync.services.apple_pass_fields import build_pass_fields, hex_to_rgb, pass_style

logger = logging.getLogger(__name__)

PKPASS_MEDIA_TYPE = "application/vnd.apple.pkpass"
IMAGE_SLOTS = ("logo", "icon", "thumbnail", "strip", "background")


def read_key_material(value: str, name: str) -> bytes:
    """
    Resolve a certificate or key given as PEM text, a file path or base64.

    Raises:
        ConfigurationError: The value is empty or cannot be decoded
    """
    if not value:
        raise ConfigurationError(f"{name} is not set")
    if "-----BEGIN" in value:
        return value.replace("\\n", "\n").encode("utf-8")
    if os.path.isfile(value):
        with open(value, "rb") as material_file:
            return material_file.read()
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ConfigurationError(f"{name} is neither PEM, a readable file nor base64") from e


def load_certificate(data: bytes, name: str) -> x509.Certificate:
    try:
        if b"-----BEGIN" in data:
            return x509.load_pem_x509_certificate(data)
        return x509.load_der_x509_certificate(data)
    except ValueError as e:
        raise ConfigurationError(f"{name} is not a valid certificate: {e}") from e


def load_private_key(data: bytes, password: Optional[bytes], name: str):
    try:
        if b"-----BEGIN" in data:
            return serialization.load_pem_private_key(data, password=password)
        return serialization.load_der_private_key(data, password=password)
    except (ValueError, TypeError) as e:
        raise ConfigurationError(f"{name} could not be loaded: {e}") from e


class AppleWalletService:
    """Service for building signed Apple Wallet bundles."""

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient, clock: Callable[[], float] = time.time):
        self.settings = settings
        self.http_client = http_client
        self.clock = clock

    def generate_serial_number(self) -> str:
        """Generate a unique serial number for a new pass."""
        return f"PASS-{int(self.clock() * 1000)}-{secrets.token_hex(4)}"

    def load_signing_material(self) -> Tuple[x509.Certificate, Any, List[x509.Certificate]]:
        """Load signer certificate, private key and optional WWDR chain from settings."""
        missing = [
            name for name in ("APPLE_TEAM_ID", "APPLE_PASS_TYPE_ID", "APPLE_PASS_CERTIFICATE", "APPLE_PASS_PRIVATE_KEY")
            if not getattr(self.settings, name)
        ]
        if missing:
            raise ConfigurationError(f"Apple Wallet configuration is incomplete: {', '.join(missing)} not set")

        certificate = load_certificate(
            read_key_material(self.settings.APPLE_PASS_CERTIFICATE, "APPLE_PASS_CERTIFICATE"),
            "APPLE_PASS_CERTIFICATE",
        )
        private_key = load_private_key(
            read_key_material(self.settings.APPLE_PASS_PRIVATE_KEY, "APPLE_PASS_PRIVATE_KEY"),
            self.settings.key_passphrase,
            "APPLE_PASS_PRIVATE_KEY",
        )
        chain = []
        if self.settings.APPLE_WWDR_CERTIFICATE:
            chain.append(load_certificate(
                read_key_material(self.settings.APPLE_WWDR_CERTIFICATE, "APPLE_WWDR_CERTIFICATE"),
                "APPLE_WWDR_CERTIFICATE",
            ))
        return certificate, private_key, chain

    def build_pass_json(self, pass_data: Dict[str, Any], serial_number: str) -> Dict[str, Any]:
        """Create the pass.json document for a pass."""
        pass_json: Dict[str, Any] = {
            "formatVersion": 1,
            "passTypeIdentifier": self.settings.APPLE_PASS_TYPE_ID,
            "serialNumber": serial_number,
            "teamIdentifier": self.settings.APPLE_TEAM_ID,
            "organizationName": pass_data.get("organizationName") or self.settings.APPLE_ORGANIZATION_NAME,
            "description": pass_data.get("description") or pass_data.get("title") or "Wallet pass",
        }

        for color in ("backgroundColor", "foregroundColor", "labelColor"):
            if pass_data.get(color):
                try:
                    pass_json[color] = hex_to_rgb(pass_data[color])
                except ValueError:
                    logger.warning(f"Ignoring invalid {color} {pass_data[color]!r}")

        if pass_data.get("barcodeValue"):
            barcode = {
                "format": pass_data.get("barcodeFormat") or "PKBarcodeFormatQR",
                "message": pass_data["barcodeValue"],
                "messageEncoding": "iso-8859-1",
            }
            if pass_data.get("barcodeMessage"):
                barcode["altText"] = pass_data["barcodeMessage"]
            pass_json["barcodes"] = [barcode]

        if self.settings.APPLE_WEB_SERVICE_URL and self.settings.APPLE_PASS_AUTH_TOKEN:
            pass_json["webServiceURL"] = self.settings.APPLE_WEB_SERVICE_URL
            pass_json["authenticationToken"] = self.settings.APPLE_PASS_AUTH_TOKEN

        pass_json[pass_style(pass_data.get("passType"))] = build_pass_fields(pass_data)
        return pass_json

    async def download_image(self, url: str) -> Optional[bytes]:
        """Fetch an image, returning None when it cannot be downloaded."""
        if url.startswith("/"):
            url = f"{self.settings.PUBLIC_BASE_URL.rstrip('/')}{url}"
        try:
            response = await self.http_client.get(url, timeout=self.settings.HTTP_TIMEOUT_SECONDS)
            response.raise_for_status()
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning(f"Failed to download image from {url}: {e}")
            return None
        return response.content or None

    async def collect_images(self, pass_data: Dict[str, Any]) -> Dict[str, bytes]:
        images = {}
        for slot in IMAGE_SLOTS:
            url = pass_data.get("backgroundImage") if slot == "background" else pass_data.get(slot)
            if not url:
                continue
            content = await self.download_image(url)
            if not content:
                logger.warning(f"Skipping {slot} image for pass")
                continue
            images[f"{slot}.png"] = content
            images[f"{slot}@2x.png"] = content
        return images

    @staticmethod
    def create_manifest(files: Dict[str, bytes]) -> Dict[str, str]:
        return {name: hashlib.sha1(content).hexdigest() for name, content in files.items()}

    @staticmethod
    def sign_manifest(manifest_bytes: bytes, certificate, private_key, chain: List[x509.Certificate]) -> bytes:
        """Create the detached DER PKCS#7 signature over manifest.json."""
        try:
            builder = (
                pkcs7.PKCS7SignatureBuilder()
                .set_data(manifest_bytes)
                .add_signer(certificate, private_key, hashes.SHA256())
            )
            for extra in chain:
                builder = builder.add_certificate(extra)
            return builder.sign(
                serialization.Encoding.DER,
                [pkcs7.PKCS7Options.DetachedSignature, pkcs7.PKCS7Options.Binary],
            )
        except (TypeError, ValueError) as e:
            raise PassSigningError(f"Failed to sign pass manifest: {e}") from e

    async def create_pass(self, pass_data: Dict[str, Any], serial_number: Optional[str] = None) -> SignedBundle:
        """
        Build a complete signed .pkpass bundle.

        Signing material is loaded before any image is fetched, so a
        misconfigured signer fails without network traffic.

        Raises:
            ConfigurationError: Signing keys or identifiers are missing
            PassSigningError: The manifest could not be signed
        """
        certificate, private_key, chain = self.load_signing_material()

        serial_number = serial_number or pass_data.get("serialNumber") or self.generate_serial_number()
        pass_json = self.build_pass_json(pass_data, serial_number)
        logger.info(f"Creating Apple Wallet pass {serial_number} ({pass_json.get('description')})")

        files: Dict[str, bytes] = {"pass.json": json.dumps(pass_json, indent=2).encode("utf-8")}
        files.update(await self.collect_images(pass_data))

        manifest_bytes = json.dumps(self.create_manifest(files), sort_keys=True).encode("utf-8")
        files["manifest.json"] = manifest_bytes
        files["signature"] = self.sign_manifest(manifest_bytes, certificate, private_key, chain)

        bundle = io.BytesIO()
        with zipfile.ZipFile(bundle, "w", zipfile.ZIP_DEFLATED) as zip_file:
            for filename, content in files.items():
                zip_file.writestr(filename, content)

        return SignedBundle(
            serial_number=serial_number,
            data=bundle.getvalue(),
            files=files,
            media_type=PKPASS_MEDIA_TYPE,
        )
