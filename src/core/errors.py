"""Error taxonomy shared by the quote, encoding and orchestration layers.

Every error carries a stable ``reason`` code so a UI can map it to a specific
remediation, plus the HTTP status a facade would answer with.
"""

from __future__ import annotations

from typing import Optional


class SwapError(Exception):
    """Base class for gasless-swap errors."""

    reason = "swap_error"
    http_status = 500
    retriable = False

    def __init__(self, message: str, remediation: Optional[str] = None):
        self.remediation = remediation
        super().__init__(message)

    def to_dict(self) -> dict:
        payload: dict[str, object] = {"reason": self.reason, "error": str(self)}
        if self.remediation:
            payload["remediation"] = self.remediation
        return payload


class ValidationError(SwapError, ValueError):
    """Malformed address, amount or out-of-range parameter."""

    reason = "invalid_params"
    http_status = 400


class UnsupportedPairError(SwapError):
    """Token pair is not in the configured supported set."""

    reason = "unsupported_pair"
    http_status = 400


class NotFoundError(SwapError):
    """Unknown quote id."""

    reason = "quote_not_found"
    http_status = 404


class ExpiredError(SwapError):
    """Quote id is known but its deadline has passed (410 Gone)."""

    reason = "quote_expired"
    http_status = 410


class QuoteIdCollisionError(SwapError):
    """Could not allocate an unused quote id."""

    reason = "quote_id_collision"


class MissingFieldError(SwapError):
    """A required field was absent when encoding."""

    reason = "missing_field"

    def __init__(self, field: str, context: str = "pack"):
        self.field = field
        super().__init__(f"{context}: {field} is required")


class EncodingError(SwapError):
    """Malformed hex or byte-length input to the encoder."""

    reason = "encoding_error"


class ChainRpcError(SwapError):
    """Reading chain or relay state failed."""

    reason = "chain_rpc_error"
    http_status = 502
    retriable = True

    def __init__(
        self,
        message: str,
        code: Optional[int] = None,
        data: Optional[object] = None,
    ):
        self.code = code
        self.data = data
        super().__init__(message)


class ExternalTimeoutError(SwapError):
    """An external call exceeded its caller-supplied timeout."""

    reason = "timeout"
    http_status = 504


class SignerCapabilityError(SwapError):
    """The signer cannot sign an arbitrary 32-byte digest."""

    reason = "signer_capability_unavailable"
    http_status = 501


class EstimationError(SwapError):
    """Every relay failed gas estimation."""

    reason = "estimation_failed"
    http_status = 502

    def __init__(self, failures: list[str]):
        self.failures = failures
        super().__init__(
            "All bundlers failed gas estimation:\n" + "\n".join(failures)
        )


class SubmissionError(SwapError):
    """Every relay rejected the signed operation."""

    reason = "all_relays_rejected"
    http_status = 502

    def __init__(self, failures: list[str]):
        self.failures = failures
        super().__init__("All bundlers rejected the UserOp:\n" + "\n".join(failures))


class FeeExceedsMinOutError(SwapError):
    """The sponsor fee is larger than the guaranteed swap output."""

    reason = "swap_too_small_for_fee"
    http_status = 400

    def __init__(self, min_out: int, fee_amount: int):
        self.min_out = min_out
        self.fee_amount = fee_amount
        super().__init__(
            f"Paymaster would reject: minOut {min_out} < fee {fee_amount}",
            remediation="Increase the swap amount or try again later.",
        )


class SignatureInvalidatedError(SwapError):
    """The quote changed or expired after the user signed."""

    reason = "resign_required"
    http_status = 409

    def __init__(self, message: str):
        super().__init__(message, remediation="Rebuild the quote and sign again.")


class InclusionTimeoutError(SwapError):
    """The operation was not observed on-chain in time."""

    reason = "inclusion_timeout"
    http_status = 504


class UserOperationRevertedError(SwapError):
    """The operation was included but its execution reverted."""

    reason = "user_operation_reverted"


class AttemptCancelledError(SwapError):
    """The caller abandoned the attempt."""

    reason = "cancelled"
    http_status = 499
