import asyncio
from typing import Iterable, Optional, Sequence

from eth_utils import is_address, to_checksum_address

from witness_toolkit.proofs.candidates import (
    CandidateProvider,
    default_providers,
)
from witness_toolkit.proofs.codec import WitnessCodec, build_witness
from witness_toolkit.proofs.discovery import (
    NOT_DISCOVERABLE,
    ZERO_GROUND_TRUTH,
    SlotDiscoveryEngine,
)
from witness_toolkit.proofs.fetcher import ProofFetcher
from witness_toolkit.proofs.generators.block_info import get_block_info
from witness_toolkit.proofs.oracle import BalanceOracle
from witness_toolkit.proofs.proxy import ProxyResolver
from witness_toolkit.proofs.storage_keys import resolve_mapping_key
from witness_toolkit.proofs.types import (
    BlockInfo,
    ProxyInfo,
    SlotDiscoveryResult,
    TokenKind,
    WitnessArtifact,
    WitnessRequest,
)
from witness_toolkit.proofs.validator import WitnessValidator
from witness_toolkit.shared.config import WitnessConfig
from witness_toolkit.shared.exceptions import (
    SlotNotDiscoverable,
    ZeroGroundTruthBalance,
)
from witness_toolkit.shared.logging import get_logger, set_log_level
from witness_toolkit.shared.results import Result, WitnessBatchSummary
from witness_toolkit.shared.retry import RetryConfig
from witness_toolkit.shared.services.sourcify_service import SourcifyService
from witness_toolkit.shared.services.web3_service import Web3Service
from witness_toolkit.utils.blockchain import normalize_block_tag

_logger = get_logger(__name__)


class WitnessManager:
    """A global class for generating and managing state witnesses"""

    def __init__(
        self,
        config: WitnessConfig,
        web3_service: Optional[Web3Service] = None,
        providers: Optional[Sequence[CandidateProvider]] = None,
        sourcify_service: Optional[SourcifyService] = None,
    ):
        self.config = config
        self.retry_config = RetryConfig(
            max_attempts=config.max_attempts,
            base_delay=config.retry_base_delay,
            max_delay=config.retry_max_delay,
        )
        self.web3_service = web3_service or Web3Service(
            config.rpc_url,
            call_timeout=config.call_timeout,
            chain_id=config.chain_id,
        )
        self.oracle = BalanceOracle(self.web3_service, self.retry_config)
        self.proxy_resolver = ProxyResolver(
            self.web3_service, self.retry_config
        )
        if sourcify_service is None and config.use_sourcify:
            sourcify_service = SourcifyService(
                config.sourcify_url,
                retry_config=self.retry_config,
                timeout=config.http_timeout,
            )
        self.sourcify_service = sourcify_service
        if providers is None:
            providers = default_providers(
                config,
                self.proxy_resolver,
                sourcify_service,
                self.retry_config,
            )
        self.discovery = SlotDiscoveryEngine(
            self.web3_service,
            config,
            oracle=self.oracle,
            proxy_resolver=self.proxy_resolver,
            providers=providers,
            retry_config=self.retry_config,
        )
        self.fetcher = ProofFetcher(
            self.web3_service,
            oracle=self.oracle,
            retry_config=self.retry_config,
            verify_consistency=config.verify_consistency,
        )
        self.codec = WitnessCodec()
        self.validator = WitnessValidator()
        self._resolved_chain_id: Optional[int] = config.chain_id

    @classmethod
    def from_env(
        cls,
        rpc_url: Optional[str] = None,
        chain_id: Optional[int] = None,
        **overrides,
    ) -> "WitnessManager":
        """Manager configured from WITNESS_* variables; also applies the log level"""
        config = WitnessConfig.from_env(rpc_url=rpc_url, chain_id=chain_id)
        config = config.with_overrides(**overrides)
        set_log_level(config.log_level)
        return cls(config)

    async def close(self) -> None:
        await self.web3_service.close()
        if self.sourcify_service is not None:
            await self.sourcify_service.aclose()

    async def _chain_id(self) -> int:
        """Configured chain id, else the node's (resolved once)"""
        if self._resolved_chain_id is None:
            self._resolved_chain_id = await self.discovery.resolve_chain_id()
        return self._resolved_chain_id

    async def _pin_block(self, block) -> int:
        """Resolve a tag to a concrete block number so all reads agree"""
        tag = normalize_block_tag(block)
        header = await self.fetcher.get_block(tag)
        return int(header["number"])

    async def resolve_proxy(
        self, contract: str, block="latest"
    ) -> Result[ProxyInfo]:
        """
        Resolve the implementation behind a contract.

        Args:
            contract: The contract address
            block: Block number or tag

        Returns:
            Result[ProxyInfo]: Success with proxy info, or failure with error
        """
        try:
            info = await self.proxy_resolver.resolve_implementation(
                contract, normalize_block_tag(block)
            )
            return Result.ok(info)
        except Exception as e:
            return Result.from_exception(
                "proxy", e, {"contract": contract, "block": block}
            )

    async def discover_slot(
        self,
        contract: str,
        holder: Optional[str] = None,
        block="latest",
        token_kind: TokenKind = TokenKind.ERC20,
        token_id: Optional[int] = None,
        slot: Optional[int] = None,
    ) -> Result[SlotDiscoveryResult]:
        """
        Find the balances/owners mapping slot of a contract.

        A search that ends without a match is still a successful lookup;
        the returned result carries `found=False` and the reason.
        """
        context = {
            "contract": contract,
            "holder": holder,
            "block": block,
            "token_kind": str(token_kind),
        }
        try:
            block_number = await self._pin_block(block)
            discovery = await self.discovery.discover_slot(
                contract,
                holder,
                block_number,
                token_kind=token_kind,
                token_id=token_id,
                explicit_slot=slot,
                chain_id=await self._chain_id(),
            )
            result = Result.ok(discovery)
            for warning in discovery.warnings:
                result.add_warning("discovery", warning, context)
            return result
        except Exception as e:
            return Result.from_exception("discovery", e, context)

    async def get_block_info(self, block="latest") -> Result[BlockInfo]:
        """
        Get block info for a given block number or tag.

        Returns:
            Result[BlockInfo]: Success with block info, or failure with error
        """
        try:
            info = await self.retry_config.run(
                get_block_info,
                self.web3_service,
                normalize_block_tag(block),
                operation_name="block_info",
            )
            return Result.ok(info)
        except Exception as e:
            return Result.from_exception("block_info", e, {"block": block})

    async def get_witness(
        self, request: WitnessRequest
    ) -> Result[WitnessArtifact]:
        """
        Build, validate and encode one witness.

        Proxy resolution, slot discovery and proof retrieval run in
        sequence against one pinned block. Storage and proofs are always
        taken from the requested (proxy) address.

        Returns:
            Result[WitnessArtifact]: Success with the encoded witness, or
            failure whose context carries the error kind and whether it
            is retryable
        """
        token_kind = TokenKind.parse(request.token_kind)
        context = {
            "contract": request.contract,
            "holder": request.holder,
            "block": request.block,
            "token_kind": token_kind.value,
        }
        if request.token_id is not None:
            context["token_id"] = request.token_id

        try:
            for name in ("contract", "holder"):
                value = getattr(request, name)
                if not is_address(value):
                    raise ValueError(f"Invalid {name} address: {value}")
            if token_kind == TokenKind.ERC721 and request.token_id is None:
                raise ValueError("token_id is required for ERC721 witnesses")

            contract = to_checksum_address(request.contract)
            holder = to_checksum_address(request.holder)
            block_number = await self._pin_block(request.block)
            context["block"] = block_number
            chain_id = await self._chain_id()

            proxy_info = await self.proxy_resolver.resolve_implementation(
                contract, block_number
            )
            discovery = await self.discovery.discover_slot(
                contract,
                holder,
                block_number,
                token_kind=token_kind,
                token_id=request.token_id,
                proxy_info=proxy_info,
                explicit_slot=request.slot,
                chain_id=chain_id,
            )
            if not discovery.found:
                if discovery.reason == ZERO_GROUND_TRUTH:
                    raise ZeroGroundTruthBalance(
                        "Ground truth is zero, slot cannot be disambiguated",
                        context,
                    )
                raise SlotNotDiscoverable(
                    f"No candidate slot matched after "
                    f"{discovery.candidates_tried} tries",
                    dict(context, reason=NOT_DISCOVERABLE),
                )

            storage_key = resolve_mapping_key(
                token_kind,
                discovery.slot,
                holder_address=holder,
                token_id=request.token_id,
            )
            bundle = await self.fetcher.fetch_proof(
                contract,
                storage_key,
                block_number,
                holder=holder,
                token_kind=token_kind,
                token_id=request.token_id,
            )
            witness = build_witness(
                bundle,
                holder,
                chain_id,
                token_kind=token_kind,
                token_id=request.token_id,
            )
            self.validator.ensure_valid(witness)
            encoded = self.codec.encode(witness)

            result = Result.ok(
                WitnessArtifact(
                    witness=witness,
                    encoded=encoded,
                    discovery=discovery,
                    proxy_info=proxy_info,
                )
            )
            for warning in discovery.warnings:
                result.add_warning("discovery", warning, context)
            if (
                bundle.oracle_value is not None
                and bundle.oracle_value != discovery.ground_truth
            ):
                result.add_warning(
                    "proof",
                    f"Oracle value changed from {discovery.ground_truth} "
                    f"to {bundle.oracle_value} during proof retrieval",
                    context,
                )
            if token_kind == TokenKind.ERC721 and discovery.ground_truth != int(
                holder, 16
            ):
                result.add_warning(
                    "ownership",
                    f"Token {request.token_id} is not owned by {holder}",
                    context,
                )
            return result
        except Exception as e:
            _logger.error(f"Witness generation failed: {e}")
            return Result.from_exception("witness", e, context)

    async def get_witnesses(
        self,
        requests: Iterable[WitnessRequest],
        max_concurrency: int = 8,
    ) -> WitnessBatchSummary:
        """
        Generate many witnesses concurrently.

        Requests share no mutable state; results keep the input order.
        """
        semaphore = asyncio.Semaphore(max_concurrency)

        async def _one(request: WitnessRequest) -> Result[WitnessArtifact]:
            async with semaphore:
                return await self.get_witness(request)

        results = await asyncio.gather(*(_one(r) for r in requests))

        summary = WitnessBatchSummary()
        for result in results:
            summary.add(result)
        _logger.info(
            f"Generated {summary.succeeded}/{summary.requested} witnesses"
        )
        return summary
