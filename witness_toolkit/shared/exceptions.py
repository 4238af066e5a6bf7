"""
Exception hierarchy for the Witness Toolkit.

Exception Categories:
- RetryableException: Transient failures that may succeed on retry (RPC, network)
- NonRetryableException: Permanent failures that won't benefit from retry (bad data)
- ConfigurationException: Startup/config errors that prevent operation

Witness generation errors are categorized:
- TransportFailure -> RetryableException (timeouts, dropped connections)
- BlockNotFound, ProofNotFound -> NonRetryableException (data absent on the node)
- SlotNotDiscoverable, ZeroGroundTruthBalance -> NonRetryableException (slot search)
- ProofKeyMismatch, ProofInconsistency -> NonRetryableException (node non-conformance)
- MalformedWitness -> NonRetryableException (never transmitted)
- BalanceReadError -> NonRetryableException (oracle call answered with an error)
"""

from typing import Any, Dict, Optional


class RetryableException(Exception):
    """
    Base class for exceptions that may succeed on retry.

    Use for transient failures like:
    - RPC timeouts
    - Rate limiting
    - Temporary network issues
    """

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}


class NonRetryableException(Exception):
    """
    Base class for exceptions that won't benefit from retry.

    Use for permanent failures like:
    - Invalid input data
    - Missing required data
    - Node responses that contradict the request
    """

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}


class ConfigurationException(NonRetryableException):
    """
    Exception for configuration/startup errors.

    Use when:
    - The RPC endpoint is not configured
    - Invalid configuration values (negative bounds, zero timeouts)
    """

    pass


class TransportFailure(RetryableException):
    """
    Network-level failure talking to the node.

    Raised for timeouts, refused connections and HTTP-level errors.
    Retried locally with a bounded number of attempts.
    """

    pass


class BlockNotFound(NonRetryableException):
    """The node does not know the requested block (unknown or pruned)."""

    pass


class ProofNotFound(NonRetryableException):
    """The node answered eth_getProof without a storage proof entry."""

    pass


class SlotNotDiscoverable(NonRetryableException):
    """
    Candidate search exhausted without a match.

    Requires operator intervention: widen the search bound or configure
    the slot for this contract explicitly.
    """

    pass


class ZeroGroundTruthBalance(NonRetryableException):
    """
    The oracle reports a zero balance (or no owner).

    A zero ground truth matches every empty slot, so discovery cannot
    disambiguate. This is a skip, not a security issue.
    """

    pass


class ProofKeyMismatch(NonRetryableException):
    """The storage key echoed by the node differs from the requested key."""

    pass


class ProofInconsistency(NonRetryableException):
    """Two fetches of the same proof returned different proof nodes."""

    pass


class MalformedWitness(NonRetryableException):
    """
    Witness failed structural validation or could not be decoded.

    A malformed witness is never transmitted.
    """

    def __init__(
        self,
        message: str,
        reasons: Optional[list] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, context)
        self.reasons = list(reasons or [])


class BalanceReadError(NonRetryableException):
    """
    The balanceOf/ownerOf call was answered with an RPC error or revert.

    Kept distinct from a legitimately zero balance.
    """

    pass
