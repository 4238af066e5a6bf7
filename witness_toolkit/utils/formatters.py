"""Shared formatting and file utilities for commands."""

import json
from pathlib import Path
from typing import Any, Dict

from rich.console import Console
from rich.table import Table

# Shared console instance
console = Console()


def format_address(address: str, length: int = 10) -> str:
    """
    Format an Ethereum address to show first and last characters.

    Args:
        address: Ethereum address
        length: Total visible characters (default: 10)

    Returns:
        Formatted address like "0x1234...5678"
    """
    if not address:
        return "N/A"
    if len(address) <= length:
        return address
    return f"{address[:6]}...{address[-4:]}"


def save_json_output(
    data: Dict[str, Any],
    filename: str,
    output_dir: str = "output",
    print_path: bool = True,
) -> str:
    """
    Save data to a JSON file with automatic directory creation.

    Args:
        data: Data to save
        filename: Output filename (can include subdirectories)
        output_dir: Base output directory (default: 'output')
        print_path: Whether to print the saved file path

    Returns:
        Full path to saved file
    """
    output_path = Path(output_dir)
    filepath = output_path / filename
    filepath.parent.mkdir(parents=True, exist_ok=True)

    with open(filepath, "w") as f:
        json.dump(data, f, indent=2)

    if print_path:
        console.print(f"[cyan]Data saved to:[/cyan] {filepath}")

    return str(filepath)


def witness_table(witness: Dict[str, Any]) -> Table:
    """Summary table of a witness rendered with Witness.to_dict()"""
    table = Table(title="Witness", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")

    for key in (
        "chain_id",
        "block_number",
        "block_hash",
        "contract_address",
        "holder_address",
        "token_kind",
        "token_id",
        "storage_key",
        "storage_value",
    ):
        value = witness.get(key)
        table.add_row(key, "-" if value is None else str(value))
    table.add_row("account_proof", f"{len(witness['account_proof'])} nodes")
    table.add_row("storage_proof", f"{len(witness['storage_proof'])} nodes")
    return table
