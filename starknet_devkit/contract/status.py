"""
Transaction status polling

StarkNet has no subscription primitive, so settling a transaction means
asking for its status until it is accepted or rejected.

Each poll cycle:
1. query the status (collaborator failure ends the wait)
2. parse the JSON status object (garbage ends the wait)
3. PENDING / ACCEPTED_ONCHAIN with a real block hash: accepted
4. REJECTED: rejected
5. anything else: sleep for the poll interval and go again

Cycles of one wait never overlap. Waits are unbounded by default;
PollingOptions adds an attempt limit or a deadline, and a wait can be
stopped by cancelling its task or setting its cancel event.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Optional, Union

from ..core.wrapper import StarknetWrapper
from ..utils.async_retry import AsyncRetry
from ..utils.exceptions import (
    PollingCancelled,
    PollingTimeout,
    StatusParseError,
    StatusQueryFailed,
    TransactionRejected,
)

LOG = logging.getLogger(__name__)

# Block hash reported while the block is still being built
PENDING_BLOCK_HASH = "pending"
DEFAULT_POLL_INTERVAL = 1.0


class TxStatus(str, Enum):
    """Transaction status as reported by `starknet tx_status`"""

    # The transaction has not been received yet (i.e., not written to storage)
    NOT_RECEIVED = "NOT_RECEIVED"
    # The transaction was received by the operator
    RECEIVED = "RECEIVED"
    # The transaction passed the validation and is waiting to be sent on-chain
    PENDING = "PENDING"
    # The transaction failed validation and thus was skipped
    REJECTED = "REJECTED"
    # The transaction was accepted on-chain
    ACCEPTED_ONCHAIN = "ACCEPTED_ONCHAIN"


ACCEPTABLE_STATUSES = (TxStatus.PENDING, TxStatus.ACCEPTED_ONCHAIN)
UNACCEPTABLE_STATUSES = (TxStatus.REJECTED,)


class PollState(str, Enum):
    QUERYING = "QUERYING"
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    PARSE_ERROR = "PARSE_ERROR"


@dataclass(frozen=True)
class TransactionRecord:
    """A submitted transaction and the endpoints it was sent to"""
    tx_hash: str
    gateway_url: str
    feeder_gateway_url: str


@dataclass
class StatusObject:
    """One status observation"""
    tx_status: Union[TxStatus, str]
    block_hash: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Any) -> "StatusObject":
        if not isinstance(data, dict) or not isinstance(data.get("tx_status"), str):
            raise StatusParseError(
                f"Status response has no tx_status: {data!r}",
                details={"response": data}
            )
        raw_status = data["tx_status"]
        try:
            tx_status: Union[TxStatus, str] = TxStatus(raw_status)
        except ValueError:
            tx_status = raw_status
        extra = {k: v for k, v in data.items() if k not in ("tx_status", "block_hash")}
        return cls(tx_status=tx_status, block_hash=data.get("block_hash"), extra=extra)

    @classmethod
    def parse(cls, response: str) -> "StatusObject":
        try:
            data = json.loads(response)
        except json.JSONDecodeError as e:
            raise StatusParseError(
                f"Cannot interpret the following: {response}",
                details={"response": response},
                cause=e
            )
        return cls.from_dict(data)

    @property
    def failure_reason(self) -> Optional[Any]:
        return self.extra.get("tx_failure_reason")


def is_tx_accepted(status: StatusObject) -> bool:
    return (
        status.tx_status in ACCEPTABLE_STATUSES
        and bool(status.block_hash)
        and status.block_hash != PENDING_BLOCK_HASH
    )


def is_tx_rejected(status: StatusObject) -> bool:
    return status.tx_status in UNACCEPTABLE_STATUSES


def classify_status(status: StatusObject) -> PollState:
    """Map a status observation to the poller state it leads to"""
    if is_tx_accepted(status):
        return PollState.ACCEPTED
    if is_tx_rejected(status):
        return PollState.REJECTED
    return PollState.PENDING


class StatusQuery:
    """Fetches the raw status text of a transaction"""

    async def query_status(self, tx: TransactionRecord) -> str:
        raise NotImplementedError


class CliStatusQuery(StatusQuery):
    """Reads the status with `starknet tx_status`"""

    def __init__(self, wrapper: StarknetWrapper):
        self.wrapper = wrapper

    async def query_status(self, tx: TransactionRecord) -> str:
        executed = await self.wrapper.run_command("starknet", [
            "tx_status",
            "--hash", tx.tx_hash,
            "--gateway_url", self.wrapper.adapt_url(tx.gateway_url),
            "--feeder_gateway_url", self.wrapper.adapt_url(tx.feeder_gateway_url),
        ])
        if executed.status_code:
            raise StatusQueryFailed(
                executed.stderr or f"tx_status exited with status {executed.status_code}",
                details={"tx_hash": tx.tx_hash, "status_code": executed.status_code}
            )
        return executed.stdout


@dataclass
class PollingOptions:
    """Options for waiting on a transaction"""
    interval: float = DEFAULT_POLL_INTERVAL
    max_attempts: Optional[int] = None
    timeout: Optional[float] = None


StateCallback = Callable[[PollState, Optional[StatusObject]], None]


class _StillPending(Exception):
    """Signals the retry loop that another poll cycle is needed"""

    def __init__(self, status: StatusObject):
        self.status = status
        super().__init__(f"status {status.tx_status}, block {status.block_hash}")


class TransactionStatusPoller:
    """
    Waits for transactions to settle.

    Usage:
        poller = TransactionStatusPoller(CliStatusQuery(wrapper))
        status = await poller.wait(tx)
    """

    def __init__(self, status_query: StatusQuery, options: Optional[PollingOptions] = None):
        self.status_query = status_query
        self.options = options or PollingOptions()

    async def check_status(self, tx: TransactionRecord) -> StatusObject:
        """Query and parse the current status, without classifying it"""
        response = await self.status_query.query_status(tx)
        return StatusObject.parse(response)

    async def wait(
        self,
        tx: TransactionRecord,
        options: Optional[PollingOptions] = None,
        cancel_event: Optional[asyncio.Event] = None,
        on_state: Optional[StateCallback] = None
    ) -> StatusObject:
        """
        Poll until tx is accepted or rejected.

        Args:
            tx: The transaction to follow
            options: Overrides the poller's default options
            cancel_event: Checked before every cycle
            on_state: Called with every state the wait enters, and the
                status observation that led to it

        Returns:
            The accepting StatusObject

        Raises:
            TransactionRejected: The network rejected tx
            StatusQueryFailed, StatusParseError: A cycle could not get a status
            PollingTimeout: max_attempts or timeout was exceeded
            PollingCancelled: cancel_event was set
        """
        opts = options or self.options
        retry = AsyncRetry(
            interval=opts.interval,
            max_retries=opts.max_attempts,
            retry_on=(_StillPending,)
        )

        LOG.info(f"Waiting for transaction {tx.tx_hash}")
        loop = self._retry_until_settled(retry, tx, opts, cancel_event, on_state)
        if opts.timeout is None:
            return await loop

        try:
            return await asyncio.wait_for(loop, opts.timeout)
        except asyncio.TimeoutError:
            raise PollingTimeout(
                f"Transaction {tx.tx_hash} not settled within {opts.timeout}s",
                tx_hash=tx.tx_hash
            )

    async def _retry_until_settled(
        self,
        retry: AsyncRetry,
        tx: TransactionRecord,
        opts: PollingOptions,
        cancel_event: Optional[asyncio.Event],
        on_state: Optional[StateCallback]
    ) -> StatusObject:
        try:
            return await retry.execute(self._poll_cycle, tx, cancel_event, on_state)
        except _StillPending as e:
            raise PollingTimeout(
                f"Transaction {tx.tx_hash} still {e.status.tx_status} after {opts.max_attempts} status checks",
                tx_hash=tx.tx_hash,
                attempts=opts.max_attempts
            )

    async def _poll_cycle(
        self,
        tx: TransactionRecord,
        cancel_event: Optional[asyncio.Event],
        on_state: Optional[StateCallback]
    ) -> StatusObject:
        if cancel_event is not None and cancel_event.is_set():
            raise PollingCancelled(f"Stopped waiting for transaction {tx.tx_hash}", tx_hash=tx.tx_hash)

        notify = on_state or (lambda state, status: None)
        notify(PollState.QUERYING, None)
        try:
            status = await self.check_status(tx)
        except (StatusQueryFailed, StatusParseError):
            notify(PollState.PARSE_ERROR, None)
            raise
        except asyncio.TimeoutError as e:
            notify(PollState.PARSE_ERROR, None)
            raise StatusQueryFailed(f"Status query for {tx.tx_hash} timed out", details={"tx_hash": tx.tx_hash}, cause=e)

        state = classify_status(status)
        notify(state, status)
        LOG.debug(f"Transaction {tx.tx_hash}: {status.tx_status} (block {status.block_hash}) -> {state.value}")

        if state is PollState.ACCEPTED:
            LOG.info(f"Transaction {tx.tx_hash} accepted in block {status.block_hash}")
            return status

        if state is PollState.REJECTED:
            details = {}
            if status.failure_reason is not None:
                details["tx_failure_reason"] = status.failure_reason
            raise TransactionRejected("Transaction rejected.", tx_hash=tx.tx_hash, details=details)

        if not isinstance(status.tx_status, TxStatus):
            LOG.warning(f"Unrecognised status {status.tx_status!r} for {tx.tx_hash}, still waiting")
        raise _StillPending(status)
