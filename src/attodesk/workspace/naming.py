"""Human-friendly workspace ids like ``brave-otter``."""

from __future__ import annotations

import random
import string
from typing import Collection

ADJECTIVES = (
    "agile", "bold", "brave", "bright", "calm",
    "clever", "cool", "daring", "eager", "fair",
    "fast", "fierce", "fond", "frank", "fresh",
    "gentle", "glad", "grand", "happy", "hardy",
    "hasty", "honest", "jolly", "keen", "kind",
    "lively", "loyal", "merry", "mighty", "modest",
    "noble", "plain", "plucky", "polite", "proud",
    "quick", "quiet", "rapid", "ready", "sharp",
    "sleek", "smart", "snug", "steady", "stout",
    "sunny", "swift", "tender", "usual", "vivid",
)

ANIMALS = (
    "alpaca", "badger", "bobcat", "bison", "canary",
    "condor", "cougar", "crane", "dingo", "eagle",
    "falcon", "ferret", "finch", "fox", "gecko",
    "gibbon", "heron", "hornet", "husky", "ibis",
    "iguana", "jackal", "jaguar", "koala", "lemur",
    "leopon", "lizard", "lynx", "macaw", "marten",
    "mink", "moose", "newt", "ocelot", "otter",
    "parrot", "pelican", "puma", "quail", "raven",
    "robin", "salmon", "shark", "shrew", "sloth",
    "spider", "stork", "tiger", "toucan", "wombat",
)

_SUFFIX_ALPHABET = string.digits + string.ascii_lowercase


def generate_workspace_id(
    existing_ids: Collection[str] = (),
    rng: random.Random | None = None,
) -> str:
    """Draw ``<adjective>-<animal>`` ids until one is unused.

    After ``len(ADJECTIVES) * len(ANIMALS)`` misses, a four character base-36
    suffix is appended instead.
    """
    rng = rng or random.Random()
    existing = set(existing_ids)
    for _ in range(len(ADJECTIVES) * len(ANIMALS)):
        candidate = f"{rng.choice(ADJECTIVES)}-{rng.choice(ANIMALS)}"
        if candidate not in existing:
            return candidate
    suffix = "".join(rng.choice(_SUFFIX_ALPHABET) for _ in range(4))
    return f"{rng.choice(ADJECTIVES)}-{rng.choice(ANIMALS)}-{suffix}"
