"""
StarkNet feeder gateway HTTP client
Reads transaction status without going through the starknet CLI
"""
import asyncio
import aiohttp
import logging
from typing import Optional

from ...contract.status import StatusQuery, TransactionRecord
from ...utils.exceptions import StatusQueryFailed

LOG = logging.getLogger(__name__)

TX_STATUS_PATH = "/feeder_gateway/get_transaction_status"


class FeederGatewayClient(StatusQuery):
    """Feeder gateway HTTP API client"""

    def __init__(self, timeout: float = 30.0, session: Optional[aiohttp.ClientSession] = None):
        """
        Initialize HTTP client

        Args:
            timeout: Request timeout (seconds)
            session: Existing session to reuse; a short-lived one is opened
                per request otherwise
        """
        self.timeout = timeout
        self.session = session
        self._owns_session = False

    async def __aenter__(self):
        """Async context manager entry"""
        if self.session is None:
            self.session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
            self._owns_session = True
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit"""
        if self.session and self._owns_session:
            await self.session.close()
            self.session = None
            self._owns_session = False

    async def query_status(self, tx: TransactionRecord) -> str:
        """
        Get the raw JSON status text of tx from its feeder gateway

        Raises:
            StatusQueryFailed: Request failed, timed out or returned a non-200 status
        """
        tx_hash = tx.tx_hash
        url = f"{tx.feeder_gateway_url.rstrip('/')}{TX_STATUS_PATH}"
        LOG.debug(f"Getting status of {tx_hash} from {url}")

        if self.session is not None:
            return await self._request(self.session, url, tx_hash)

        async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout)) as session:
            return await self._request(session, url, tx_hash)

    async def _request(self, session: aiohttp.ClientSession, url: str, tx_hash: str) -> str:
        try:
            async with session.get(url, params={"transactionHash": tx_hash}) as resp:
                text = await resp.text()
                if resp.status != 200:
                    raise StatusQueryFailed(
                        f"Failed to get status of {tx_hash}: {resp.status} - {text}",
                        details={"tx_hash": tx_hash, "http_status": resp.status}
                    )
                return text
        except aiohttp.ClientError as e:
            raise StatusQueryFailed(f"HTTP request failed: {e}", details={"tx_hash": tx_hash}, cause=e)
        except asyncio.TimeoutError as e:
            raise StatusQueryFailed(
                f"HTTP request timed out after {self.timeout}s",
                details={"tx_hash": tx_hash, "timeout": self.timeout},
                cause=e
            )
