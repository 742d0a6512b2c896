"""
Google Sheets Client
Thin async wrapper over the Sheets API v4 values endpoints
FILE: timed_quiz/db/sheets.py
"""
import asyncio
import json
import logging
from typing import Any, List, Optional

import httpx
import google.auth.transport.requests
from google.oauth2 import service_account

logger = logging.getLogger(__name__)

SHEETS_API_URL = "https://sheets.googleapis.com/v4/spreadsheets"
SHEETS_SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]
DEFAULT_TIMEOUT = 15.0  # seconds


class SheetsError(Exception):
    """Raised when the Sheets API is unreachable or rejects a request"""
    pass


class ServiceAccountTokenProvider:
    """Issues OAuth access tokens from a service account JSON document"""

    def __init__(self, service_account_json: str):
        try:
            info = json.loads(service_account_json)
        except json.JSONDecodeError as e:
            raise SheetsError(f"GOOGLE_SERVICE_ACCOUNT is not valid JSON: {e}")

        self._credentials = service_account.Credentials.from_service_account_info(
            info, scopes=SHEETS_SCOPES
        )
        self._lock = asyncio.Lock()

    async def get_token(self) -> str:
        async with self._lock:
            if not self._credentials.valid:
                # google-auth refreshes synchronously through requests
                request = google.auth.transport.requests.Request()
                try:
                    await asyncio.to_thread(self._credentials.refresh, request)
                except Exception as e:
                    logger.error(f"❌ Service account token refresh failed: {e}")
                    raise SheetsError(f"Token refresh failed: {e}")
                logger.info("✅ Refreshed Google service account token")
            return self._credentials.token


class SheetsClient:
    """Reads and appends rows of a single spreadsheet"""

    def __init__(
        self,
        spreadsheet_id: str,
        token_provider,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Args:
            spreadsheet_id: ID from the spreadsheet URL
            token_provider: Object with an async get_token() method
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests inject a mock)
        """
        self.spreadsheet_id = spreadsheet_id
        self.token_provider = token_provider
        self.timeout = timeout
        self.transport = transport

    async def _request(self, method: str, url: str, **kwargs) -> dict:
        token = await self.token_provider.get_token()
        headers = {"Authorization": f"Bearer {token}"}

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.request(method, url, headers=headers, **kwargs)
                response.raise_for_status()
                return response.json()

        except httpx.TimeoutException as e:
            logger.error(f"❌ Sheets request timed out after {self.timeout}s")
            raise SheetsError(f"Sheets request timed out: {e}")

        except httpx.HTTPStatusError as e:
            logger.error(f"❌ Sheets API error: {e.response.status_code} {e.response.text}")
            raise SheetsError(f"Sheets API error: {e.response.status_code}")

        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"❌ Sheets request failed: {e}")
            raise SheetsError(f"Sheets request failed: {e}")

    async def get_values(self, range_: str) -> List[List[Any]]:
        """
        Read a range

        Returns:
            Rows as lists of cell values (empty list for an empty range)
        """
        url = f"{SHEETS_API_URL}/{self.spreadsheet_id}/values/{range_}"
        data = await self._request("GET", url)
        rows = data.get("values", [])
        logger.debug(f"Read {len(rows)} rows from {range_}")
        return rows

    async def append_values(
        self,
        range_: str,
        rows: List[List[Any]],
        value_input_option: str = "USER_ENTERED"
    ) -> dict:
        """
        Append rows after the last row of a table

        Args:
            range_: A1 range of the table, e.g. "Sheet1!A:I"
            rows: Row values
            value_input_option: "USER_ENTERED" lets Sheets parse dates and
                numbers, "RAW" stores strings verbatim
        """
        url = f"{SHEETS_API_URL}/{self.spreadsheet_id}/values/{range_}:append"
        data = await self._request(
            "POST",
            url,
            params={"valueInputOption": value_input_option, "insertDataOption": "INSERT_ROWS"},
            json={"values": rows}
        )
        logger.info(f"✅ Appended {len(rows)} rows to {range_}")
        return data
