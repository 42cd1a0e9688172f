"""Prefixed identifiers for every AgencyFlow record."""

import secrets

ID_PREFIXES = frozenset({"proj_", "appr_", "anote_", "stx_", "batch_", "notif_", "aud_"})


def generate_id(prefix: str) -> str:
    """Return ``prefix`` followed by 16 random hex characters, e.g. ``appr_3f9c0a...``."""
    if prefix not in ID_PREFIXES:
        raise ValueError(f"unknown id prefix {prefix!r}")
    return prefix + secrets.token_hex(8)
