import asyncio
import logging
import secrets
import time
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Awaitable, Callable, Optional

from chain.entrypoint import InclusionResult, inclusion_from_receipt
from core.base_types import Address, bytes_to_hex
from core.clock import Clock, WallClock
from core.config import get_env, get_float_env, get_int_env
from core.errors import (
    AttemptCancelledError,
    ChainRpcError,
    EstimationError,
    ExpiredError,
    ExternalTimeoutError,
    FeeExceedsMinOutError,
    InclusionTimeoutError,
    SignatureInvalidatedError,
    SubmissionError,
    SwapError,
    UserOperationRevertedError,
    ValidationError,
)
from pricing.fees import (
    CONSERVATIVE_GAS_GUESS,
    DEFAULT_FEE_MARGIN_BPS,
    PAYMASTER_POST_OP_GAS_LIMIT,
    PAYMASTER_VERIFICATION_GAS_LIMIT,
    GasEstimate,
    SponsorPolicy,
    fee_for_gas,
)
from quotes.models import QuoteRecord
from userop.authorization import sign_authorization
from userop.builder import OperationContext, build_sponsored_operation
from userop.calldata import build_factory_data
from userop.models import UnpackedUserOperation
from userop.packing import pack
from userop.signatures import user_op_hash

from .failover import RelayEndpoint, network_fees, rank_relays

logger = logging.getLogger(__name__)


class SwapState(Enum):
    QUOTE_REQUESTED = auto()
    QUOTE_RECEIVED = auto()
    BUILDING_USEROP = auto()
    AWAITING_SIGNATURE = auto()
    SUBMITTED = auto()
    BUNDLER_FAILOVER = auto()
    INCLUDED_ON_CHAIN = auto()
    SUCCEEDED = auto()
    FAILED = auto()


# States in which the operation has left the process and cannot be recalled.
_SUBMITTED_STATES = {
    SwapState.SUBMITTED,
    SwapState.BUNDLER_FAILOVER,
    SwapState.INCLUDED_ON_CHAIN,
    SwapState.SUCCEEDED,
}


@dataclass(frozen=True)
class SwapIntent:
    token_in: str
    token_out: str
    amount_in: int
    sender: Address
    slippage_bps: Optional[int] = None


@dataclass
class SwapAttempt:
    attempt_id: str
    intent: SwapIntent
    state: SwapState = SwapState.QUOTE_REQUESTED
    history: list[SwapState] = field(default_factory=list)

    quote: Optional[QuoteRecord] = None
    quote_rebuilds: int = 0
    fee_amount: Optional[int] = None
    gas: Optional[GasEstimate] = None
    user_operation: Optional[UnpackedUserOperation] = None
    user_op_hash: Optional[bytes] = None
    signed_quote_fingerprint: Optional[bytes] = None

    accepted_by: Optional[str] = None
    submitted_to: list[str] = field(default_factory=list)
    inclusion: Optional[InclusionResult] = None

    started_at: float = field(default_factory=time.time)
    finished_at: Optional[float] = None
    error: Optional[SwapError] = None

    @property
    def reason(self) -> Optional[str]:
        return self.error.reason if self.error is not None else None

    @property
    def is_submitted(self) -> bool:
        return self.state in _SUBMITTED_STATES or bool(self.submitted_to)


@dataclass
class ExecutorConfig:
    call_timeout: float = 10.0
    signature_timeout: float = 300.0
    quote_retries: int = 3
    quote_retry_backoff: float = 0.5
    max_quote_rebuilds: int = 2

    gas_guess: GasEstimate = CONSERVATIVE_GAS_GUESS
    fee_margin_bps: int = DEFAULT_FEE_MARGIN_BPS
    base_fee_buffer_bps: int = 10_000
    paymaster_verification_gas_limit: int = PAYMASTER_VERIFICATION_GAS_LIMIT
    paymaster_post_op_gas_limit: int = PAYMASTER_POST_OP_GAS_LIMIT
    account_salt: int = 0

    resend_interval: float = 10.0
    inclusion_timeout: float = 60.0
    poll_interval: float = 0.9

    use_eip7702: bool = False
    eip7702_nonce: int = 0

    def __post_init__(self) -> None:
        if self.quote_retries < 1:
            raise ValidationError("quote_retries must be >= 1")
        if self.max_quote_rebuilds < 0:
            raise ValidationError("max_quote_rebuilds must be >= 0")
        if self.call_timeout <= 0 or self.signature_timeout <= 0:
            raise ValidationError("timeouts must be positive")

    @classmethod
    def from_env(cls) -> "ExecutorConfig":
        return cls(
            call_timeout=get_float_env("CALL_TIMEOUT_SEC", 10.0),
            signature_timeout=get_float_env("SIGNATURE_TIMEOUT_SEC", 300.0),
            quote_retries=get_int_env("QUOTE_RETRIES", 3),
            max_quote_rebuilds=get_int_env("MAX_QUOTE_REBUILDS", 2),
            resend_interval=get_float_env("RESEND_INTERVAL_SEC", 10.0),
            inclusion_timeout=get_float_env("INCLUSION_TIMEOUT_SEC", 60.0),
            poll_interval=get_float_env("POLL_INTERVAL_SEC", 0.9),
            use_eip7702=(get_env("USE_EIP7702", "false") or "").lower() in ("1", "true", "yes"),
        )


class SwapExecutor:
    """
    Drives one gasless swap from quote to inclusion with a single user signature.

    Collaborators:
    - ``quote_service``: ``create_quote(token_in, token_out, amount_in, sender, slippage_bps)``
    - ``chain``: an :class:`chain.entrypoint.EntryPointReader`
    - ``relays``: :class:`RelayEndpoint` list used for estimation, submission
      and failover
    - ``signer``: ``address`` plus ``sign_user_op_hash``; ``sign_digest`` is
      only needed in EIP-7702 mode

    Every blocking collaborator call runs in a worker thread under
    ``config.call_timeout``; a timeout is reported as ``ExternalTimeoutError``.
    """

    def __init__(
        self,
        quote_service,
        chain,
        relays: list[RelayEndpoint],
        signer,
        config: Optional[ExecutorConfig] = None,
        clock: Optional[Clock] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.quote_service = quote_service
        self.chain = chain
        self.relays = relays
        self.signer = signer
        self.config = config or ExecutorConfig()
        self._clock = clock or WallClock()
        self._sleep = sleep

    async def execute(
        self,
        intent: SwapIntent,
        quote: Optional[QuoteRecord] = None,
        preferred_relay: Optional[str] = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> SwapAttempt:
        attempt = SwapAttempt(attempt_id=secrets.token_hex(8), intent=intent)
        attempt.history.append(attempt.state)
        logger.info("attempt %s: started for sender %s", attempt.attempt_id, intent.sender)
        try:
            await self._run(attempt, quote, preferred_relay, cancel)
        except SwapError as exc:
            self._fail(attempt, exc)
        except asyncio.CancelledError:
            if not attempt.is_submitted:
                self._fail(attempt, AttemptCancelledError("Attempt cancelled before submission"))
            raise
        finally:
            attempt.finished_at = time.time()
        return attempt

    async def _run(
        self,
        attempt: SwapAttempt,
        quote: Optional[QuoteRecord],
        preferred_relay: Optional[str],
        cancel: Optional[asyncio.Event],
    ) -> None:
        relays = rank_relays(self.relays, preferred_relay)
        if not relays:
            raise ValidationError("No relays available")

        # Quote
        if quote is None or quote.is_expired(self._clock()):
            quote = await self._request_quote(attempt.intent)
        attempt.quote = quote
        self._transition(attempt, SwapState.QUOTE_RECEIVED)
        self._check_cancelled(attempt, cancel)

        # Build + estimate (free to rebuild: nothing is signed yet)
        self._transition(attempt, SwapState.BUILDING_USEROP)
        context, policy = await self._load_context(attempt, relays)
        op = await self._estimate_and_price(attempt, context, policy, relays, cancel)

        if self.config.use_eip7702:
            op.eip7702_auth = await self._call(
                sign_authorization,
                self.signer,
                self.chain.deployments.chain_id,
                self.chain.deployments.simple_account_factory,
                self.config.eip7702_nonce,
                timeout=self.config.signature_timeout,
            )

        # Sign
        self._transition(attempt, SwapState.AWAITING_SIGNATURE)
        packed = pack(op)
        op_hash = user_op_hash(
            packed, self.chain.entry_point, self.chain.deployments.chain_id
        )
        attempt.user_op_hash = op_hash
        attempt.signed_quote_fingerprint = attempt.quote.fingerprint()
        signature = await self._call(
            self.signer.sign_user_op_hash, op_hash, timeout=self.config.signature_timeout
        )
        op.signature = signature
        attempt.user_operation = op
        logger.info("attempt %s: signed userOpHash %s", attempt.attempt_id, bytes_to_hex(op_hash))

        self._check_signed_quote(attempt)
        self._check_cancelled(attempt, cancel)

        # Submit
        start_block = await self._call(self.chain.inclusion_start_block)
        await self._submit(attempt, relays)
        await self._await_inclusion(attempt, relays, start_block, cancel)

    async def _request_quote(self, intent: SwapIntent) -> QuoteRecord:
        """createQuote with bounded retries on retriable chain errors."""
        attempt_no = 1
        while True:
            try:
                return await self._call(
                    self.quote_service.create_quote,
                    intent.token_in,
                    intent.token_out,
                    intent.amount_in,
                    intent.sender,
                    intent.slippage_bps,
                )
            except ChainRpcError as exc:
                if not exc.retriable or attempt_no >= self.config.quote_retries:
                    raise
                logger.warning(
                    "quote build failed (attempt %s/%s): %s",
                    attempt_no,
                    self.config.quote_retries,
                    exc,
                )
                await self._sleep(self.config.quote_retry_backoff * (2 ** (attempt_no - 1)))
                attempt_no += 1

    async def _load_context(
        self, attempt: SwapAttempt, relays: list[RelayEndpoint]
    ) -> tuple[OperationContext, SponsorPolicy]:
        deployments = self.chain.deployments
        sender = attempt.intent.sender
        policy = await self._call(self.chain.sponsor_policy)
        nonce = await self._call(self.chain.get_nonce, sender)
        needs_deployment = await self._call(self.chain.needs_deployment, sender)
        gas_price = await self._call(self.chain.get_gas_price)
        max_fee, priority_fee = network_fees(gas_price, relays, self.config.base_fee_buffer_bps)

        factory = None
        factory_data = b""
        if needs_deployment and not self.config.use_eip7702:
            factory = deployments.simple_account_factory
            factory_data = build_factory_data(self.signer.address, self.config.account_salt)

        context = OperationContext(
            sender=sender,
            nonce=nonce,
            max_fee_per_gas=max_fee,
            max_priority_fee_per_gas=priority_fee,
            paymaster=deployments.paymaster,
            paymaster_verification_gas_limit=self.config.paymaster_verification_gas_limit,
            paymaster_post_op_gas_limit=self.config.paymaster_post_op_gas_limit,
            factory=factory,
            factory_data=factory_data,
        )
        logger.info(
            "attempt %s: nonce=%s deploy=%s maxFee=%s priority=%s",
            attempt.attempt_id,
            nonce,
            factory is not None,
            max_fee,
            priority_fee,
        )
        return context, policy

    async def _estimate_and_price(
        self,
        attempt: SwapAttempt,
        context: OperationContext,
        policy: SponsorPolicy,
        relays: list[RelayEndpoint],
        cancel: Optional[asyncio.Event],
    ) -> UnpackedUserOperation:
        """
        Two fee passes before any signature exists.

        The first uses a conservative gas guess because the paymaster checks
        the fee even during estimation; the second re-prices from the first
        estimate. A quote that expires meanwhile is rebuilt silently.
        """
        for _ in range(self.config.max_quote_rebuilds + 1):
            quote = attempt.quote
            if quote.is_expired(self._clock()):
                await self._rebuild_quote(attempt)
                quote = attempt.quote

            fee_guess = self._fee(self.config.gas_guess, context, policy)
            gas = await self._estimate_with_failover(
                build_sponsored_operation(quote, fee_guess, self.config.gas_guess, context),
                relays,
            )
            fee_amount = self._fee(gas, context, policy)
            try:
                gas = await self._estimate_with_failover(
                    build_sponsored_operation(quote, fee_amount, gas, context), relays
                )
                fee_amount = self._fee(gas, context, policy)
            except (EstimationError, ExternalTimeoutError) as exc:
                logger.warning(
                    "attempt %s: refinement estimate skipped: %s", attempt.attempt_id, exc
                )
            self._check_cancelled(attempt, cancel)

            if not quote.is_expired(self._clock()):
                break
        else:
            raise ExpiredError(
                f"Quote kept expiring during estimation after "
                f"{self.config.max_quote_rebuilds} rebuilds"
            )

        if quote.min_out < fee_amount:
            raise FeeExceedsMinOutError(quote.min_out, fee_amount)

        attempt.gas = gas
        attempt.fee_amount = fee_amount
        logger.info(
            "attempt %s: fee=%s minOut=%s gas=%s",
            attempt.attempt_id,
            fee_amount,
            quote.min_out,
            gas,
        )
        return build_sponsored_operation(quote, fee_amount, gas, context)

    async def _rebuild_quote(self, attempt: SwapAttempt) -> None:
        if attempt.quote_rebuilds >= self.config.max_quote_rebuilds:
            raise ExpiredError(
                f"Quote expired and the rebuild limit ({self.config.max_quote_rebuilds}) is reached"
            )
        attempt.quote_rebuilds += 1
        logger.info(
            "attempt %s: quote %s expired before signing, rebuilding",
            attempt.attempt_id,
            attempt.quote.quote_id,
        )
        attempt.quote = await self._request_quote(attempt.intent)

    def _fee(self, gas: GasEstimate, context: OperationContext, policy: SponsorPolicy) -> int:
        return fee_for_gas(
            gas,
            context.max_fee_per_gas,
            policy,
            self.config.fee_margin_bps,
            context.paymaster_verification_gas_limit,
            context.paymaster_post_op_gas_limit,
        )

    async def _estimate_with_failover(
        self, op: UnpackedUserOperation, relays: list[RelayEndpoint]
    ) -> GasEstimate:
        failures: list[str] = []
        payload = op.to_rpc()
        for relay in relays:
            try:
                return await self._call(
                    relay.client.estimate_user_operation_gas, payload, self.chain.entry_point
                )
            except SwapError as exc:
                logger.warning("estimation via %s failed: %s", relay.name, exc)
                failures.append(f"{relay.name}: {exc}")
        raise EstimationError(failures)

    async def _submit(self, attempt: SwapAttempt, relays: list[RelayEndpoint]) -> None:
        failures: list[str] = []
        payload = attempt.user_operation.to_rpc()
        for relay in relays:
            try:
                await self._call(
                    relay.client.send_user_operation, payload, self.chain.entry_point
                )
            except SwapError as exc:
                logger.warning("submission to %s failed: %s", relay.name, exc)
                failures.append(f"{relay.name}: {exc}")
                continue
            attempt.accepted_by = relay.id
            attempt.submitted_to.append(relay.id)
            self._transition(attempt, SwapState.SUBMITTED)
            return
        raise SubmissionError(failures)

    async def _await_inclusion(
        self,
        attempt: SwapAttempt,
        relays: list[RelayEndpoint],
        start_block: int,
        cancel: Optional[asyncio.Event],
    ) -> None:
        resend_queue = [r for r in relays if r.id != attempt.accepted_by]
        payload = attempt.user_operation.to_rpc()
        started = self._clock()
        next_resend = started + self.config.resend_interval

        while True:
            # An inclusion found after the deadline still counts: the
            # deadline only guards operations that are not on-chain yet.
            inclusion = await self._find_inclusion(attempt, relays, start_block)
            if inclusion is not None:
                attempt.inclusion = inclusion
                self._transition(attempt, SwapState.INCLUDED_ON_CHAIN)
                if not inclusion.success:
                    raise UserOperationRevertedError(
                        f"UserOperation reverted in tx {inclusion.transaction_hash}"
                    )
                self._transition(attempt, SwapState.SUCCEEDED)
                return

            now = self._clock()
            self._check_signed_quote(attempt, now)
            if now - started > self.config.inclusion_timeout:
                raise InclusionTimeoutError(
                    f"Not included within {self.config.inclusion_timeout}s",
                    remediation="Try again or switch relay.",
                )

            stop_failover = cancel is not None and cancel.is_set()
            if not stop_failover and resend_queue and now >= next_resend:
                relay = resend_queue.pop(0)
                next_resend += self.config.resend_interval
                await self._resend(attempt, relay, payload)

            await self._sleep(self.config.poll_interval)

    async def _resend(self, attempt: SwapAttempt, relay: RelayEndpoint, payload: dict) -> None:
        """Same signed operation to another relay; never re-signed."""
        self._transition(attempt, SwapState.BUNDLER_FAILOVER)
        logger.info("attempt %s: no inclusion yet, resubmitting to %s", attempt.attempt_id, relay.name)
        try:
            await self._call(relay.client.send_user_operation, payload, self.chain.entry_point)
        except SwapError as exc:
            logger.warning("failover resubmission to %s failed: %s", relay.name, exc)
            return
        attempt.submitted_to.append(relay.id)

    async def _find_inclusion(
        self, attempt: SwapAttempt, relays: list[RelayEndpoint], start_block: int
    ) -> Optional[InclusionResult]:
        try:
            found = await self._call(
                self.chain.find_user_operation_event, attempt.user_op_hash, start_block
            )
        except (ChainRpcError, ExternalTimeoutError) as exc:
            logger.warning("attempt %s: log poll failed: %s", attempt.attempt_id, exc)
            found = None
        if found is not None:
            return found

        op_hash = bytes_to_hex(attempt.user_op_hash)
        for relay in relays:
            if relay.id not in attempt.submitted_to:
                continue
            try:
                receipt = await self._call(relay.client.get_user_operation_receipt, op_hash)
            except (ChainRpcError, ExternalTimeoutError) as exc:
                logger.warning("receipt lookup via %s failed: %s", relay.name, exc)
                continue
            if receipt:
                return inclusion_from_receipt(receipt)
        return None

    def _check_signed_quote(self, attempt: SwapAttempt, now: Optional[float] = None) -> None:
        """After signing, the quote may not change or expire."""
        quote = attempt.quote
        if quote.fingerprint() != attempt.signed_quote_fingerprint:
            raise SignatureInvalidatedError("Quote changed after the operation was signed")
        if quote.is_expired(self._clock() if now is None else now):
            raise SignatureInvalidatedError(
                "Quote expired after the operation was signed; the deadline is part of the signed payload"
            )

    def _check_cancelled(self, attempt: SwapAttempt, cancel: Optional[asyncio.Event]) -> None:
        if cancel is not None and cancel.is_set() and not attempt.is_submitted:
            raise AttemptCancelledError("Attempt cancelled before submission")

    async def _call(self, fn: Callable[..., Any], *args: Any, timeout: Optional[float] = None) -> Any:
        limit = self.config.call_timeout if timeout is None else timeout
        try:
            return await asyncio.wait_for(asyncio.to_thread(fn, *args), timeout=limit)
        except asyncio.TimeoutError as exc:
            name = getattr(fn, "__qualname__", repr(fn))
            raise ExternalTimeoutError(f"{name} timed out after {limit}s") from exc

    def _transition(self, attempt: SwapAttempt, state: SwapState) -> None:
        logger.info("attempt %s: %s -> %s", attempt.attempt_id, attempt.state.name, state.name)
        attempt.state = state
        attempt.history.append(state)

    def _fail(self, attempt: SwapAttempt, error: SwapError) -> None:
        attempt.error = error
        self._transition(attempt, SwapState.FAILED)
        logger.error(
            "attempt %s failed [%s]: %s", attempt.attempt_id, error.reason, error
        )
