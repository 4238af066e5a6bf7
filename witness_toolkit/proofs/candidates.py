"""
Candidate slot providers.

Each provider proposes slot indices independently; `build_candidate_order`
runs them in priority order and merges their proposals into one
de-duplicated list. Nothing here decides which slot is right: every
candidate is verified against the oracle by the discovery engine.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence, Union

from witness_toolkit.proofs.proxy import ProxyResolver
from witness_toolkit.proofs.types import SlotCandidate, TokenKind
from witness_toolkit.shared.config import WitnessConfig
from witness_toolkit.shared.constants import StorageConstants
from witness_toolkit.shared.logging import get_logger
from witness_toolkit.shared.registry import get_known_slot
from witness_toolkit.shared.retry import RetryConfig
from witness_toolkit.shared.services.sourcify_service import (
    SourcifyService,
    find_mapping_slots,
)

_logger = get_logger(__name__)

MAX_BYTECODE_HINTS = 32


@dataclass(frozen=True)
class CandidateContext:
    """Everything a provider may look at for one discovery run."""

    contract: str  # Storage address (the proxy, if any)
    implementation: str  # Code address
    token_kind: TokenKind
    block_tag: Union[int, str]
    search_bound: int = StorageConstants.DEFAULT_SEARCH_BOUND
    default_slot: int = 0
    chain_id: Optional[int] = None
    explicit_slot: Optional[int] = None


class CandidateProvider:
    """Base class: propose slots for a context."""

    name = "provider"

    async def candidates(self, context: CandidateContext) -> List[int]:
        raise NotImplementedError


class KnownSlotProvider(CandidateProvider):
    """Verified slots of well-known tokens."""

    name = "registry"

    async def candidates(self, context: CandidateContext) -> List[int]:
        slot = get_known_slot(
            context.chain_id, context.contract, context.token_kind.value
        )
        return [] if slot is None else [slot]


class ExplicitSlotProvider(CandidateProvider):
    """Slot supplied by the caller."""

    name = "explicit"

    async def candidates(self, context: CandidateContext) -> List[int]:
        if context.explicit_slot is None:
            return []
        return [context.explicit_slot]


class SourcifyLayoutProvider(CandidateProvider):
    """Slots named by the verified storage layout on Sourcify."""

    name = "sourcify"

    def __init__(self, sourcify_service: SourcifyService):
        self.sourcify_service = sourcify_service

    async def candidates(self, context: CandidateContext) -> List[int]:
        if context.chain_id is None:
            return []
        layout = await self.sourcify_service.get_storage_layout(
            context.chain_id, context.implementation
        )
        if not layout:
            return []
        return find_mapping_slots(layout, context.token_kind.value)


class BytecodeHintProvider(CandidateProvider):
    """Frequent small PUSH operands in the implementation's bytecode."""

    name = "bytecode"

    def __init__(
        self, proxy_resolver: ProxyResolver, limit: int = MAX_BYTECODE_HINTS
    ):
        self.proxy_resolver = proxy_resolver
        self.limit = limit

    async def candidates(self, context: CandidateContext) -> List[int]:
        return await self.proxy_resolver.get_slot_hints(
            context.implementation, context.block_tag, limit=self.limit
        )


class DefaultSlotProvider(CandidateProvider):
    """The conventional slot for the token kind."""

    name = "default"

    async def candidates(self, context: CandidateContext) -> List[int]:
        return [context.default_slot]


class SequentialProvider(CandidateProvider):
    """Every slot from 0 to the search bound, inclusive."""

    name = "sequential"

    async def candidates(self, context: CandidateContext) -> List[int]:
        return list(range(context.search_bound + 1))


def default_providers(
    config: WitnessConfig,
    proxy_resolver: Optional[ProxyResolver] = None,
    sourcify_service: Optional[SourcifyService] = None,
    retry_config: Optional[RetryConfig] = None,
) -> List[CandidateProvider]:
    """Provider chain for a config, highest priority first."""
    providers: List[CandidateProvider] = [
        KnownSlotProvider(),
        ExplicitSlotProvider(),
    ]
    if config.use_sourcify:
        providers.append(
            SourcifyLayoutProvider(
                sourcify_service
                or SourcifyService(
                    config.sourcify_url,
                    retry_config=retry_config,
                    timeout=config.http_timeout,
                )
            )
        )
    if config.use_bytecode_hints and proxy_resolver is not None:
        providers.append(BytecodeHintProvider(proxy_resolver))
    providers.extend([DefaultSlotProvider(), SequentialProvider()])
    return providers


async def build_candidate_order(
    providers: Sequence[CandidateProvider], context: CandidateContext
) -> List[SlotCandidate]:
    """
    Run providers in order and merge their proposals.

    The first provider to propose a slot owns it; later duplicates are
    dropped. A provider that fails is logged and skipped.
    """
    ordered: List[SlotCandidate] = []
    seen = set()
    for provider in providers:
        try:
            slots = await provider.candidates(context)
        except Exception as e:
            _logger.warning(
                f"Slot provider '{provider.name}' failed for "
                f"{context.contract}: {e}"
            )
            continue

        for slot in slots:
            if slot < 0 or slot in seen:
                continue
            seen.add(slot)
            ordered.append(SlotCandidate(slot=slot, source=provider.name))

    _logger.debug(
        f"Candidate order for {context.contract}: "
        f"{[c.slot for c in ordered]}"
    )
    return ordered
