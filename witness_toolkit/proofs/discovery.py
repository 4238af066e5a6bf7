"""
Slot discovery: find the mapping slot that holds a holder's balance.

A candidate slot is accepted only when the storage word at its derived key
equals the oracle's ground truth, and the ground truth is non-zero. Probes
always read the original (possibly proxy) address, since proxies keep
storage at the proxy even when code runs elsewhere.
"""

import asyncio
from typing import List, Optional, Sequence, Union

from eth_utils import to_checksum_address

from witness_toolkit.proofs.candidates import (
    CandidateContext,
    CandidateProvider,
    build_candidate_order,
    default_providers,
)
from witness_toolkit.proofs.oracle import BalanceOracle
from witness_toolkit.proofs.proxy import ProxyResolver
from witness_toolkit.proofs.storage_keys import resolve_mapping_key
from witness_toolkit.proofs.types import (
    ProxyInfo,
    SlotCandidate,
    SlotDiscoveryResult,
    TokenKind,
)
from witness_toolkit.shared.config import WitnessConfig
from witness_toolkit.shared.constants import GlobalConstants
from witness_toolkit.shared.exceptions import BalanceReadError
from witness_toolkit.shared.logging import get_logger
from witness_toolkit.shared.registry import get_known_slot
from witness_toolkit.shared.retry import RPC_RETRY_CONFIG, RetryConfig
from witness_toolkit.shared.services.web3_service import Web3Service

_logger = get_logger(__name__)

BlockTag = Union[int, str]

ADDRESS_MASK = (1 << 160) - 1

ZERO_GROUND_TRUTH = "ZeroGroundTruthBalance"
NOT_DISCOVERABLE = "SlotNotDiscoverable"


class SlotDiscoveryEngine:
    """Verify candidate slots against on-chain ground truth."""

    def __init__(
        self,
        web3_service: Web3Service,
        config: WitnessConfig,
        oracle: Optional[BalanceOracle] = None,
        proxy_resolver: Optional[ProxyResolver] = None,
        providers: Optional[Sequence[CandidateProvider]] = None,
        retry_config: Optional[RetryConfig] = None,
    ):
        self.web3_service = web3_service
        self.config = config
        self.retry_config = retry_config or RPC_RETRY_CONFIG
        self.oracle = oracle or BalanceOracle(web3_service, self.retry_config)
        self.proxy_resolver = proxy_resolver or ProxyResolver(
            web3_service, self.retry_config
        )
        self.providers = list(
            providers
            if providers is not None
            else default_providers(
                config, self.proxy_resolver, retry_config=self.retry_config
            )
        )

    async def discover_slot(
        self,
        contract: str,
        holder: Optional[str],
        block_tag: BlockTag = "latest",
        candidate_order: Optional[Sequence[Union[int, SlotCandidate]]] = None,
        token_kind: TokenKind = TokenKind.ERC20,
        token_id: Optional[int] = None,
        proxy_info: Optional[ProxyInfo] = None,
        explicit_slot: Optional[int] = None,
        expected: Optional[int] = None,
        chain_id: Optional[int] = None,
    ) -> SlotDiscoveryResult:
        """
        Find the slot of the balances (or owners) mapping.

        Args:
            contract: Token contract (storage is always read here)
            holder: Holder address (ERC20)
            block_tag: Block to read at, ideally a pinned block number
            candidate_order: Slots to try, in priority order. When omitted
                the provider chain builds the order.
            token_kind: ERC20 balances or ERC721 owners
            token_id: Token id (ERC721)
            proxy_info: Already resolved proxy info for `contract`
            explicit_slot: Caller-supplied slot, still verified
            expected: Ground truth already read by the caller
            chain_id: Chain the contract lives on; taken from the config
                or the node when omitted

        Returns:
            SlotDiscoveryResult: found/slot, or the reason nothing was found
        """
        token_kind = TokenKind.parse(token_kind)
        contract = to_checksum_address(contract)

        ground_truth = expected
        if ground_truth is None:
            ground_truth = await self.oracle.read_ground_truth(
                contract,
                token_kind,
                block_tag,
                holder=holder,
                token_id=token_id,
            )
        if ground_truth == 0:
            _logger.info(
                f"Zero ground truth for {holder or token_id} on {contract}, "
                "slot cannot be disambiguated"
            )
            return SlotDiscoveryResult(
                found=False, slot=None, ground_truth=0, reason=ZERO_GROUND_TRUTH
            )

        chain_id = await self.resolve_chain_id(chain_id)
        if candidate_order is None:
            candidates = await self._build_candidates(
                contract,
                token_kind,
                block_tag,
                proxy_info,
                explicit_slot,
                chain_id,
            )
        else:
            candidates = [
                c if isinstance(c, SlotCandidate) else SlotCandidate(c, "caller")
                for c in candidate_order
            ]

        match, tried = await self._probe_candidates(
            contract, holder, token_kind, token_id, block_tag, candidates,
            ground_truth,
        )
        if match is None:
            _logger.warning(
                f"No slot among {tried} candidates of {contract} holds "
                f"{ground_truth}"
            )
            return SlotDiscoveryResult(
                found=False,
                slot=None,
                ground_truth=ground_truth,
                reason=NOT_DISCOVERABLE,
                candidates_tried=tried,
            )

        warnings = await self.security_warnings(
            contract, token_kind, block_tag, match.slot, ground_truth, chain_id
        )
        _logger.info(
            f"Discovered slot {match.slot} ({match.source}) for {contract}"
        )
        return SlotDiscoveryResult(
            found=True,
            slot=match.slot,
            ground_truth=ground_truth,
            source=match.source,
            candidates_tried=tried,
            warnings=tuple(warnings),
        )

    async def resolve_chain_id(self, chain_id: Optional[int] = None) -> int:
        """The given chain id, else the configured one, else the node's."""
        if chain_id is not None:
            return chain_id
        if self.config.chain_id is not None:
            return self.config.chain_id
        return await self.retry_config.run(
            self.web3_service.get_chain_id, operation_name="chain_id"
        )

    async def _build_candidates(
        self,
        contract: str,
        token_kind: TokenKind,
        block_tag: BlockTag,
        proxy_info: Optional[ProxyInfo],
        explicit_slot: Optional[int],
        chain_id: int,
    ) -> List[SlotCandidate]:
        if proxy_info is None:
            proxy_info = await self.proxy_resolver.resolve_implementation(
                contract, block_tag
            )
        context = CandidateContext(
            contract=contract,
            implementation=proxy_info.implementation_address,
            token_kind=token_kind,
            block_tag=block_tag,
            search_bound=self.config.slot_search_bound,
            default_slot=self.config.default_slot_for(token_kind.value),
            chain_id=chain_id,
            explicit_slot=explicit_slot,
        )
        return await build_candidate_order(self.providers, context)

    async def _probe(
        self,
        contract: str,
        holder: Optional[str],
        token_kind: TokenKind,
        token_id: Optional[int],
        block_tag: BlockTag,
        slot: int,
    ) -> int:
        key = resolve_mapping_key(
            token_kind, slot, holder_address=holder, token_id=token_id
        )
        word = await self.retry_config.run(
            self.web3_service.get_storage_at,
            contract,
            key,
            block_tag,
            operation_name=f"probe_slot_{slot}",
        )
        value = int.from_bytes(bytes(word), "big")
        if token_kind == TokenKind.ERC721:
            return value & ADDRESS_MASK
        return value

    async def _probe_candidates(
        self,
        contract: str,
        holder: Optional[str],
        token_kind: TokenKind,
        token_id: Optional[int],
        block_tag: BlockTag,
        candidates: List[SlotCandidate],
        ground_truth: int,
    ):
        """
        Probe candidates in windows of `probe_concurrency`.

        Within a window results are inspected in priority order, so the
        earliest matching candidate wins regardless of completion order.
        No further window is issued once a match is found.
        """
        window_size = self.config.probe_concurrency
        tried = 0
        for start in range(0, len(candidates), window_size):
            window = candidates[start : start + window_size]
            results = await asyncio.gather(
                *(
                    self._probe(
                        contract, holder, token_kind, token_id, block_tag,
                        candidate.slot,
                    )
                    for candidate in window
                ),
                return_exceptions=True,
            )
            for candidate, result in zip(window, results):
                tried += 1
                if isinstance(result, BaseException):
                    raise result
                if result == ground_truth:
                    return candidate, tried
        return None, tried

    async def security_warnings(
        self,
        contract: str,
        token_kind: TokenKind,
        block_tag: BlockTag,
        slot: int,
        ground_truth: int,
        chain_id: Optional[int] = None,
    ) -> List[str]:
        """
        Cross-checks on an accepted slot; findings are warnings, not errors.

        - The balance exceeds the suspicious share of totalSupply()
        - A registry-verified contract disagrees with the discovered slot
        """
        warnings = []
        chain_id = await self.resolve_chain_id(chain_id)
        known = get_known_slot(chain_id, contract, token_kind.value)
        if known is not None and known != slot:
            warnings.append(
                f"Discovered slot {slot} differs from verified slot {known} "
                f"for {contract}"
            )

        if token_kind == TokenKind.ERC20:
            try:
                supply = await self.oracle.read_total_supply(
                    contract, block_tag
                )
            except BalanceReadError as e:
                _logger.debug(f"totalSupply unavailable on {contract}: {e}")
                supply = 0
            ratio = GlobalConstants.SUSPICIOUS_SUPPLY_RATIO_PERCENT
            if supply and ground_truth * 100 > supply * ratio:
                warnings.append(
                    f"Balance {ground_truth} exceeds {ratio}% of total "
                    f"supply {supply}"
                )

        for warning in warnings:
            _logger.warning(warning)
        return warnings
