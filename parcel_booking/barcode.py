# ============================================================
# barcode.py — Barcode Issuer Client
# ------------------------------------------------------------
# Mints a tracking barcode for a letter through the DMS
# endpoint /dms/api/get-barcode/. One attempt per call, no
# retry; the caller decides what a failure means.
# ============================================================
from typing import Optional

import httpx
import structlog

from parcel_booking.errors import ExternalServiceError

logger = structlog.get_logger()

SUCCESS_CODES = (200, 201)


class BarcodeIssuer:
    def __init__(self, base_url: str, timeout: float = 10.0, http: Optional[httpx.Client] = None):
        self.url = f"{base_url.rstrip('/')}/dms/api/get-barcode/"
        self.timeout = timeout
        self.http = http or httpx.Client()

    def issue(self, authorization: str) -> str:
        """Return a fresh barcode; the Authorization header is forwarded verbatim."""
        try:
            r = self.http.post(
                self.url,
                json={"service_type": "letter"},
                headers={"Authorization": authorization},
                timeout=self.timeout,
            )
        except httpx.TimeoutException as exc:
            raise ExternalServiceError(f"barcode API timed out: {exc}") from exc
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise ExternalServiceError(f"failed to call barcode API: {exc}") from exc

        if r.status_code not in SUCCESS_CODES:
            raise ExternalServiceError(
                f"barcode API returned status {r.status_code}: {r.text}",
                upstream_status=r.status_code,
                upstream_body=r.text,
            )

        try:
            body = r.json()
        except ValueError as exc:
            raise ExternalServiceError(
                f"failed to parse barcode response: {exc}",
                upstream_status=r.status_code,
                upstream_body=r.text,
            ) from exc

        barcode = body.get("barcode") if isinstance(body, dict) else None
        if not isinstance(barcode, str) or not barcode:
            raise ExternalServiceError(
                "barcode missing in response",
                upstream_status=r.status_code,
                upstream_body=r.text,
            )

        logger.info("barcode issued", barcode=barcode)
        return barcode

    def close(self) -> None:
        self.http.close()
