"""Order-independent reconciliation of record sets.

This module canonicalizes two record sets by a unique key and asserts
that they are structurally equal. Duplicate keys and empty recovered
sets are failures, never silently tolerated.
"""

from __future__ import annotations

from typing import Callable, Hashable, Sequence, TypeVar

from core.errors import ReconciliationMismatchError
from core.logging_config import get_logger
from core.types import TokenRecord

_LOGGER = get_logger(__name__)

RecordT = TypeVar("RecordT")


def canonicalize_records(
    records: Sequence[RecordT],
    key_fn: Callable[[RecordT], Hashable],
    label: str,
) -> list[RecordT]:
    """Sort records by key, rejecting duplicate keys.

    Args:
        records: Records in fetch order.
        key_fn: Extracts the unique, orderable key.
        label: Set name used in errors.

    Returns:
        Records sorted by key.

    Raises:
        ReconciliationMismatchError: If two records share a key.
    """
    ordered = sorted(records, key=key_fn)  # type: ignore[arg-type]
    for previous, current in zip(ordered, ordered[1:]):
        if key_fn(previous) == key_fn(current):
            raise ReconciliationMismatchError(
                f"Multiple records with key {key_fn(current)!r} in {label}."
            )
    return ordered


def reconcile_records(
    reference: Sequence[RecordT],
    recovered: Sequence[RecordT],
    key_fn: Callable[[RecordT], Hashable],
    label: str,
) -> int:
    """Assert that recovered records equal reference records.

    Args:
        reference: Records from the reference node.
        recovered: Records from the recovered node.
        key_fn: Extracts the unique key.
        label: Record set name used in errors.

    Returns:
        Number of reconciled records.

    Raises:
        ReconciliationMismatchError: If the recovered set is empty, a set has
            duplicate keys, or the sets differ.
    """
    if not recovered:
        raise ReconciliationMismatchError(f"Recovered node returned no {label}.")
    canonical_recovered = canonicalize_records(recovered, key_fn, f"recovered {label}")
    canonical_reference = canonicalize_records(reference, key_fn, f"reference {label}")
    if canonical_reference != canonical_recovered:
        raise ReconciliationMismatchError(
            f"Recovered {label} differ from reference: "
            + _describe_difference(canonical_reference, canonical_recovered, key_fn)
        )
    _LOGGER.info("records_reconciled", label=label, count=len(canonical_recovered))
    return len(canonical_recovered)


def reconcile_token_registries(
    reference: Sequence[TokenRecord],
    recovered: Sequence[TokenRecord],
) -> int:
    """Reconcile token registries keyed by L2 address."""
    return reconcile_records(reference, recovered, _token_key, "tokens")


def _token_key(token: TokenRecord) -> str:
    return token.l2_address


def _describe_difference(
    reference: Sequence[RecordT],
    recovered: Sequence[RecordT],
    key_fn: Callable[[RecordT], Hashable],
) -> str:
    reference_by_key = {key_fn(record): record for record in reference}
    recovered_by_key = {key_fn(record): record for record in recovered}
    missing = [key for key in reference_by_key if key not in recovered_by_key]
    extra = [key for key in recovered_by_key if key not in reference_by_key]
    altered = [
        f"{key!r}: reference={reference_by_key[key]!r} recovered={recovered_by_key[key]!r}"
        for key in reference_by_key
        if key in recovered_by_key and reference_by_key[key] != recovered_by_key[key]
    ]
    parts = [
        f"missing={[str(key) for key in missing]}",
        f"extra={[str(key) for key in extra]}",
        f"altered=[{'; '.join(altered)}]",
    ]
    return " ".join(parts)
