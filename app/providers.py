"""Streaming provider directory used to partition movie-night bundles."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable


@dataclass(frozen=True)
class StreamingProviderDefinition:
    """Maps an internal provider key to the catalog's provider identifier."""

    key: str
    name: str
    catalog_id: int

    def to_payload(self) -> dict[str, object]:
        return {"id": self.key, "name": self.name, "catalogId": self.catalog_id}


STREAMING_PROVIDERS: tuple[StreamingProviderDefinition, ...] = (
    StreamingProviderDefinition(key="netflix", name="Netflix", catalog_id=8),
    StreamingProviderDefinition(key="prime", name="Prime", catalog_id=9),
    StreamingProviderDefinition(key="hulu", name="Hulu", catalog_id=15),
    StreamingProviderDefinition(key="paramount", name="Paramount", catalog_id=531),
    StreamingProviderDefinition(key="hbo", name="HBO", catalog_id=384),
    StreamingProviderDefinition(key="disney", name="Disney", catalog_id=337),
    StreamingProviderDefinition(key="tubi", name="Tubi", catalog_id=283),
    StreamingProviderDefinition(key="peacock", name="Peacock", catalog_id=386),
    StreamingProviderDefinition(key="appletv", name="AppleTV", catalog_id=350),
)


STREAMING_PROVIDER_KEYS: tuple[str, ...] = tuple(
    definition.key for definition in STREAMING_PROVIDERS
)


def provider_map(
    keys: Iterable[str],
    definitions: Iterable[StreamingProviderDefinition] = STREAMING_PROVIDERS,
) -> dict[str, str]:
    """Return ``{provider key: catalog id}`` for the recognised keys.

    Catalog ids are returned as strings because candidates advertise their
    availability with string identifiers.
    """

    lookup = {definition.key: definition for definition in definitions}
    mapping: dict[str, str] = {}
    for key in keys:
        definition = lookup.get(key)
        if definition is not None:
            mapping[key] = str(definition.catalog_id)
    return mapping
