"""
QR code URLs for wallet save links.
"""
import logging
from urllib.parse import urlencode

import httpx

from walletsync.core.config import Settings
from walletsync.schemas.wallets import QRCodeResult

logger = logging.getLogger(__name__)


class QRCodeService:
    """Shortens save links and renders them through hosted QR image endpoints."""

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient):
        self.settings = settings
        self.http_client = http_client

    async def shorten_url(self, long_url: str) -> str:
        """
        Shorten a URL with the TinyURL API.

        Raises:
            httpx.HTTPError: The shortener could not be reached or refused
            ValueError: The shortener answered with something that is not a short URL
        """
        response = await self.http_client.get(
            self.settings.URL_SHORTENER_ENDPOINT,
            params={"url": long_url},
            timeout=self.settings.HTTP_TIMEOUT_SECONDS,
        )
        response.raise_for_status()
        short_url = response.text.strip()
        if not short_url.startswith("http"):
            raise ValueError(f"Invalid shortener response: {short_url[:100]}")
        return short_url

    def primary_qr_url(self, data: str, ecc: str = "M") -> str:
        query = urlencode({"size": "400x400", "data": data, "format": "png", "ecc": ecc, "margin": 5})
        return f"{self.settings.QR_PRIMARY_ENDPOINT}?{query}"

    def fallback_qr_url(self, data: str) -> str:
        query = urlencode({"text": data, "size": 400, "ecLevel": "M", "format": "png"})
        return f"{self.settings.QR_FALLBACK_ENDPOINT}?{query}"

    async def wallet_qr_codes(self, save_url: str) -> QRCodeResult:
        """
        Build QR image URLs for a save link.

        The link is shortened first so the QR stays scannable. When shortening
        fails the original URL is rendered at a lower error-correction level.
        """
        try:
            short_url = await self.shorten_url(save_url)
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"URL shortening failed, rendering original URL: {e}")
            simple_qr = self.primary_qr_url(save_url, ecc="L")
            return QRCodeResult(
                primary=simple_qr,
                fallback=simple_qr,
                recommended=simple_qr,
                short_url=save_url,
                original_url=save_url,
                shortened=False,
            )

        primary = self.primary_qr_url(short_url)
        logger.info(f"QR codes generated for shortened URL {short_url}")
        return QRCodeResult(
            primary=primary,
            fallback=self.fallback_qr_url(short_url),
            recommended=primary,
            short_url=short_url,
            original_url=save_url,
            shortened=True,
        )

    def selection_qr_codes(self, selection_url: str) -> QRCodeResult:
        """QR codes for the wallet-selection page; the URL is short enough as is."""
        primary = self.primary_qr_url(selection_url)
        return QRCodeResult(
            primary=primary,
            fallback=self.fallback_qr_url(selection_url),
            recommended=primary,
            short_url=selection_url,
            original_url=selection_url,
        )
