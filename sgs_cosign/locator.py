"""
Locate authorization stubs inside a bundle's entry list.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from sgs_cosign.entry import AuthorizationEntry, CredentialKind
from sgs_cosign.errors import AuthEntryNotFound


def locate_auth_entry(
    entries: Sequence[AuthorizationEntry],
    address: str,
) -> tuple[int, AuthorizationEntry]:
    """Find the ADDRESS entry belonging to ``address``.

    SOURCE_ACCOUNT entries are skipped without looking at them. Matching
    is exact string equality and the first match in list order wins.

    Returns:
        (index, entry) of the match.

    Raises:
        AuthEntryNotFound: If no ADDRESS entry matches.
    """
    for index, entry in enumerate(entries):
        match entry.credential_kind:
            case CredentialKind.SOURCE_ACCOUNT:
                continue
            case CredentialKind.ADDRESS:
                if entry.signer_address == address:
                    return index, entry
    raise AuthEntryNotFound(
        f"no address auth entry for {address} among {len(entries)} entries"
    )


def find_local_stubs(
    entries: Sequence[AuthorizationEntry],
    addresses: Iterable[str],
) -> list[int]:
    """Indices of unsigned ADDRESS entries whose signer is in ``addresses``."""
    wanted = set(addresses)
    return [
        index
        for index, entry in enumerate(entries)
        if entry.credential_kind == CredentialKind.ADDRESS
        and not entry.is_signed
        and entry.signer_address in wanted
    ]
