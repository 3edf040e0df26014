"""Shared type definitions and identifier helpers.

Token and pool identifiers are on-chain addresses, but the routing core
only relies on them being case-insensitive strings. Everything is keyed
by the lowercase form.
"""

from typing import Annotated

from pydantic import BeforeValidator, Field


def normalize_id(identifier: str) -> str:
    """Canonicalize a token or pool identifier (lowercase, stripped).

    Unlike an address checksum helper this does not add a 0x prefix or
    validate length, so symbolic ids used by fixtures survive unchanged
    apart from case.
    """
    return identifier.strip().lower()


def is_valid_address(address: str) -> bool:
    """Check if a string is a valid Ethereum address.

    Args:
        address: String to validate

    Returns:
        True if valid Ethereum address format
    """
    if not isinstance(address, str):
        return False
    if not address.startswith("0x"):
        return False
    if len(address) != 42:
        return False
    try:
        int(address, 16)
        return True
    except ValueError:
        return False


def _coerce_id(value: object) -> object:
    if isinstance(value, str):
        return normalize_id(value)
    return value


# Lowercased token/pool identifier
TokenId = Annotated[str, BeforeValidator(_coerce_id), Field(min_length=1)]

# Decimal number delivered as a string by the indexer (reserves, prices)
DecimalStr = Annotated[
    str,
    BeforeValidator(lambda v: str(v) if isinstance(v, int | float) else v),
    Field(description="Decimal number as string"),
]
