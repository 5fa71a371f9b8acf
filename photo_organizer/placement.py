"""Placement: give every upload a virtual path no other upload in the batch uses."""
from __future__ import annotations

import logging
from typing import Dict, Iterator

from .errors import PlacementExhaustionError
from .models import GroupKey
from .utils.paths import clean_filename, join_virtual, split_name

# Far beyond any real batch; only guards against a runaway loop
MAX_DISAMBIGUATION = 1_000_000


class NameRegistry:
    """Virtual paths already handed out during one request.

    Owned by a single session and only ever grows.
    """

    def __init__(self):
        self._taken: Dict[str, bool] = {}

    def __contains__(self, path: str) -> bool:
        return self._taken.get(path, False)

    def __len__(self) -> int:
        return len(self._taken)

    def __iter__(self) -> Iterator[str]:
        return iter(self._taken)

    def claim(self, path: str) -> None:
        self._taken[path] = True


def place(group_key: GroupKey, filename: str | None, registry: NameRegistry) -> str:
    """Return a free virtual path for `filename` under `group_key` and claim it.

    Behavior:
    - The first upload keeps its name: ``2021-03/IMG_1.jpg``
    - Later uploads with the same name get ``IMG_1_1.jpg``, ``IMG_1_2.jpg``, ...
    - Suffixed names are claimed too, so they are never handed out twice
    """
    name = clean_filename(filename)
    candidate = join_virtual(group_key, name)

    if candidate in registry:
        base, suf = split_name(name)
        i = 1
        while candidate in registry:
            if i > MAX_DISAMBIGUATION:
                raise PlacementExhaustionError(f"No free name for {name!r} under {'/'.join(group_key)}")
            candidate = join_virtual(group_key, f"{base}_{i}{suf}")
            i += 1
        logging.debug("Renamed %s -> %s to avoid a clash", name, candidate)

    registry.claim(candidate)
    return candidate
