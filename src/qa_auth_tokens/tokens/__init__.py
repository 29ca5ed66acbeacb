"""Bearer token decoding, storage selection and snapshot validation."""

from .codec import DecodedToken, ExpirationInfo, decode, is_usable, is_well_formed
from .reader import SELECTION_RULES, StorageEntry, TokenCandidate, resolve_token, select_token
from .validator import TokenValidator

__all__ = [
    "DecodedToken",
    "ExpirationInfo",
    "SELECTION_RULES",
    "StorageEntry",
    "TokenCandidate",
    "TokenValidator",
    "decode",
    "is_usable",
    "is_well_formed",
    "resolve_token",
    "select_token",
]
