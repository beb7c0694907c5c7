"""
Offline transaction authoring and publishing.

This package provides:
- gas_ladder: price ladders and signing one action per rung
- transcript: the persisted form of a signed ladder
- publisher: broadcasting a transcript up its ladder
- resolver: the new-resolver action
"""

from .transcript import (
    TranscriptEntry,
    validate_ladder,
    check_output,
    write_transcript,
    read_transcript,
)

from .gas_ladder import (
    Action,
    gwei_to_wei,
    linear_ladder,
    geometric_ladder,
    author,
    parse_private_key,
)

from .publisher import Publisher, publish

from .resolver import NewResolverResult, new_resolver, set_resolver_action

__all__ = [
    # Transcripts
    "TranscriptEntry",
    "validate_ladder",
    "check_output",
    "write_transcript",
    "read_transcript",
    # Authoring
    "Action",
    "gwei_to_wei",
    "linear_ladder",
    "geometric_ladder",
    "author",
    "parse_private_key",
    # Publishing
    "Publisher",
    "publish",
    # Resolver
    "NewResolverResult",
    "new_resolver",
    "set_resolver_action",
]
