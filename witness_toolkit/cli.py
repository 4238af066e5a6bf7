#!/usr/bin/env python3
"""
Unified CLI for the Witness Toolkit.

Examples:
  - Slot discovery
    witness-toolkit discover-slot --contract 0x... --holder 0x... [--block 19000000]
    witness-toolkit discover-slot --contract 0x... --token-kind ERC721 --token-id 42

  - Proxies
    witness-toolkit proxy-info --contract 0x...

  - Witnesses
    witness-toolkit witness --contract 0x... --holder 0x... --block 19000000
    witness-toolkit decode-witness --file output/witness_19000000.json

  - Blocks
    witness-toolkit block-info --block 19000000
"""

import argparse
import asyncio
import json
from pathlib import Path
from typing import List, Optional

from rich.panel import Panel

from witness_toolkit.commands.helpers import handle_command_error
from witness_toolkit.commands.validation import (
    validate_block,
    validate_chain_id,
    validate_eth_address,
    validate_slot,
    validate_token,
)
from witness_toolkit.proofs import WitnessCodec, WitnessManager, WitnessValidator
from witness_toolkit.proofs.types import WitnessRequest
from witness_toolkit.shared.exceptions import MalformedWitness
from witness_toolkit.utils.formatters import (
    console,
    format_address,
    save_json_output,
    witness_table,
)


def _manager(args: argparse.Namespace, **overrides) -> WitnessManager:
    validate_chain_id(args.chain_id)
    vm = WitnessManager.from_env(
        rpc_url=args.rpc_url,
        chain_id=args.chain_id,
        log_level=args.log_level,
        **overrides,
    )
    return vm


def _print_warnings(result) -> None:
    for error in result.errors:
        console.print(f"[yellow]Warning:[/yellow] {error.message}")


def cmd_discover_slot(args: argparse.Namespace) -> None:
    contract = validate_eth_address(args.contract, "contract")
    holder = (
        validate_eth_address(args.holder, "holder") if args.holder else None
    )
    token_kind = validate_token(args.token_kind, args.token_id)
    if holder is None and token_kind.value == "ERC20":
        raise ValueError("--holder is required for ERC20")
    block = validate_block(args.block)
    slot = validate_slot(args.slot)

    async def run():
        vm = _manager(args, slot_search_bound=args.search_bound)
        try:
            console.print(Panel("Discovering Storage Slot", style="bold magenta"))
            result = await vm.discover_slot(
                contract, holder, block, token_kind, args.token_id, slot
            )
            discovery = result.unwrap()
            _print_warnings(result)

            if discovery.found:
                console.print(
                    f"[green]Slot {discovery.slot}[/green] "
                    f"(via {discovery.source}, {discovery.candidates_tried} probes)"
                )
            else:
                console.print(f"[red]Not found:[/red] {discovery.reason}")
            if args.output:
                save_json_output(discovery.to_dict(), args.output)
        finally:
            await vm.close()

    asyncio.run(run())


def cmd_proxy_info(args: argparse.Namespace) -> None:
    contract = validate_eth_address(args.contract, "contract")
    block = validate_block(args.block)

    async def run():
        vm = _manager(args)
        try:
            info = (await vm.resolve_proxy(contract, block)).unwrap()
            if info.is_proxy:
                console.print(
                    f"{format_address(info.original_address)} is a proxy → "
                    f"implementation {info.implementation_address}"
                )
            else:
                console.print(f"{info.original_address} is not a proxy")
        finally:
            await vm.close()

    asyncio.run(run())


def cmd_witness(args: argparse.Namespace) -> None:
    contract = validate_eth_address(args.contract, "contract")
    holder = validate_eth_address(args.holder, "holder")
    token_kind = validate_token(args.token_kind, args.token_id)
    request = WitnessRequest(
        contract=contract,
        holder=holder,
        block=validate_block(args.block),
        token_kind=token_kind,
        token_id=args.token_id,
        slot=validate_slot(args.slot),
    )

    async def run():
        vm = _manager(
            args,
            slot_search_bound=args.search_bound,
            verify_consistency=args.verify_consistency or None,
        )
        try:
            console.print(Panel("Generating Witness", style="bold magenta"))
            result = await vm.get_witness(request)
            artifact = result.unwrap()
            _print_warnings(result)

            data = artifact.to_dict()
            console.print(witness_table(data["witness"]))
            filename = (
                args.output
                or f"witness_{artifact.witness.block_number}.json"
            )
            save_json_output(data, filename)
        finally:
            await vm.close()

    asyncio.run(run())


def _read_encoded(args: argparse.Namespace) -> str:
    if args.hex:
        return args.hex
    text = Path(args.file).read_text().strip()
    if text.startswith("{"):
        # JSON written by the witness command
        return json.loads(text)["encoded"]
    return text


def cmd_decode_witness(args: argparse.Namespace) -> None:
    if not args.hex and not args.file:
        raise ValueError("Provide --hex or --file")

    witness = WitnessCodec().decode_hex(_read_encoded(args))
    report = WitnessValidator().validate(witness)
    console.print(witness_table(witness.to_dict()))
    if not report.valid:
        raise MalformedWitness("Witness failed validation", list(report.reasons))
    console.print("[green]Witness is structurally valid[/green]")
    if args.output:
        save_json_output(witness.to_dict(), args.output)


def cmd_block_info(args: argparse.Namespace) -> None:
    block = validate_block(args.block)

    async def run():
        vm = _manager(args)
        try:
            info = (await vm.get_block_info(block)).unwrap()
        finally:
            await vm.close()

        filename = args.output or f"block_info_{info['block_number']}.json"
        save_json_output(info, filename)

        console.print("[cyan]Block Info:[/cyan]")
        console.print(f'Block Number: {info["block_number"]}')
        console.print(f'Block Hash: {info["block_hash"]}')
        console.print(f'State Root: {info["state_root"]}')
        console.print(f'Block Timestamp: {info["block_timestamp"]}')

    asyncio.run(run())


def _add_node_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--rpc-url", type=str, help="Node RPC URL")
    parser.add_argument("--chain-id", type=int, help="Chain id")
    parser.add_argument(
        "--log-level", type=str, help="DEBUG, INFO, WARNING or ERROR"
    )


def _add_token_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--contract", type=str, required=True)
    parser.add_argument("--token-kind", type=str, default="ERC20")
    parser.add_argument("--token-id", type=int)
    parser.add_argument("--block", type=str, default="latest")
    parser.add_argument("--slot", type=int, help="Known slot (still verified)")
    parser.add_argument("--search-bound", type=int)
    parser.add_argument("--output", type=str, help="Output filename")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="witness-toolkit",
        description="Unified CLI for the Witness Toolkit",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    # discover-slot
    p_ds = sub.add_parser("discover-slot", help="Find the balances slot")
    _add_token_args(p_ds)
    p_ds.add_argument("--holder", type=str)
    _add_node_args(p_ds)
    p_ds.set_defaults(func=cmd_discover_slot)

    # proxy-info
    p_px = sub.add_parser("proxy-info", help="Resolve a proxy implementation")
    p_px.add_argument("--contract", type=str, required=True)
    p_px.add_argument("--block", type=str, default="latest")
    _add_node_args(p_px)
    p_px.set_defaults(func=cmd_proxy_info)

    # witness
    p_w = sub.add_parser("witness", help="Generate an encoded witness")
    _add_token_args(p_w)
    p_w.add_argument("--holder", type=str, required=True)
    p_w.add_argument(
        "--verify-consistency",
        action="store_true",
        help="Fetch the proof twice and compare",
    )
    _add_node_args(p_w)
    p_w.set_defaults(func=cmd_witness)

    # decode-witness
    p_dw = sub.add_parser("decode-witness", help="Decode and check a witness")
    p_dw.add_argument("--hex", type=str, help="Encoded witness (0x...)")
    p_dw.add_argument("--file", type=str, help="Hex or witness JSON file")
    p_dw.add_argument("--output", type=str, help="Output filename")
    p_dw.set_defaults(func=cmd_decode_witness)

    # block-info
    p_block = sub.add_parser("block-info", help="Get block info")
    p_block.add_argument("--block", type=str, default="latest")
    p_block.add_argument("--output", type=str, help="Output filename")
    _add_node_args(p_block)
    p_block.set_defaults(func=cmd_block_info)

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        args.func(args)
    except Exception as e:
        handle_command_error(e)


if __name__ == "__main__":
    main()
