"""
Chain JSON-RPC client

Thin async client over httpx for the three calls the listener needs:
eth_blockNumber, eth_getLogs and eth_getBlockByNumber. Transport failures,
timeouts and 5xx/429 responses become TransientRPCError; node errors are
classified by code and message.
"""
import itertools
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

import httpx

from .errors import RPCError, RangeTooLarge, TransientRPCError
from ..utils.hex_utils import parse_int, to_hex_quantity

logger = logging.getLogger(__name__)

# JSON-RPC codes that will not improve on retry
PERMANENT_CODES = {-32600, -32601, -32602}

# Substrings nodes use when an eth_getLogs range is too wide
RANGE_TOO_LARGE_MARKERS = (
    "query returned more than",
    "too many",
    "block range",
    "range is too large",
    "exceed maximum block range",
)


class ChainRPCClient:
    """
    Async JSON-RPC client

    Example:
        async with ChainRPCClient("http://127.0.0.1:8545") as rpc:
            head = await rpc.block_number()
            logs = await rpc.get_logs(100, 120, ["0xabc..."])
    """

    def __init__(
        self,
        rpc_url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.rpc_url = rpc_url
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._ids = itertools.count(1)

    async def connect(self):
        """Open the underlying HTTP client"""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
                headers={'Content-Type': 'application/json'},
            )

    async def close(self):
        """Close the underlying HTTP client"""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> 'ChainRPCClient':
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    # =========================================================================
    # RAW CALL
    # =========================================================================

    async def call(self, method: str, params: Sequence[Any]) -> Any:
        """
        Issue one JSON-RPC request.

        Raises:
            TransientRPCError: timeouts, transport errors, 5xx/429, server-side errors
            RangeTooLarge: eth_getLogs range rejected by the node
            RPCError: invalid request/params or unknown method
        """
        await self.connect()
        payload = {
            'jsonrpc': '2.0',
            'id': next(self._ids),
            'method': method,
            'params': list(params),
        }

        try:
            response = await self._client.post(self.rpc_url, json=payload)
        except httpx.TimeoutException as e:
            raise TransientRPCError(f"{method} timed out after {self.timeout}s") from e
        except httpx.TransportError as e:
            raise TransientRPCError(f"{method} transport error: {e}") from e

        if response.status_code == 429 or response.status_code >= 500:
            raise TransientRPCError(f"{method} HTTP {response.status_code}")
        if response.status_code >= 400:
            raise RPCError(f"{method} HTTP {response.status_code}: {response.text[:200]}")

        try:
            body = response.json()
        except ValueError as e:
            raise TransientRPCError(f"{method} returned non-JSON body") from e

        error = body.get('error')
        if error:
            raise self._classify_error(method, error)

        return body.get('result')

    @staticmethod
    def _classify_error(method: str, error: Dict[str, Any]) -> RPCError:
        code = error.get('code')
        message = str(error.get('message', ''))
        lowered = message.lower()

        if method == 'eth_getLogs' and any(m in lowered for m in RANGE_TOO_LARGE_MARKERS):
            return RangeTooLarge(f"{method}: {message}", code=code)
        if code in PERMANENT_CODES:
            return RPCError(f"{method}: {message}", code=code)
        return TransientRPCError(f"{method}: {message}", code=code)

    # =========================================================================
    # TYPED CALLS
    # =========================================================================

    async def block_number(self) -> int:
        """Current chain head"""
        return parse_int(await self.call('eth_blockNumber', []))

    async def get_logs(
        self,
        from_block: int,
        to_block: int,
        addresses: Sequence[str],
        topics: Optional[Sequence[Any]] = None,
    ) -> List[Dict[str, Any]]:
        """
        Logs for an inclusive block range.

        Args:
            from_block: First block (inclusive)
            to_block: Last block (inclusive)
            addresses: Contract addresses to filter on
            topics: Optional topic filter, e.g. [[topic0_a, topic0_b]]
        """
        query: Dict[str, Any] = {
            'fromBlock': to_hex_quantity(from_block),
            'toBlock': to_hex_quantity(to_block),
            'address': list(addresses),
        }
        if topics:
            query['topics'] = list(topics)

        result = await self.call('eth_getLogs', [query])
        if result is None:
            raise TransientRPCError("eth_getLogs returned null")
        return result

    async def get_block_timestamp(self, block_number: int) -> datetime:
        """UTC timestamp of a block"""
        block = await self.call('eth_getBlockByNumber', [to_hex_quantity(block_number), False])
        if not block:
            # Node has not caught up to a block it reported; try again later
            raise TransientRPCError(f"block {block_number} not available")
        return datetime.fromtimestamp(parse_int(block['timestamp']), tz=timezone.utc)
