"""
Equipment categories served by the engine.

Each category is an independent catalogue with its own cache artifact.
The set is fixed at configuration time; new categories can be appended
through EXTRA_CATEGORIES but existing ones must not be renamed without
redeploying their artifacts.
"""

import os
from typing import Tuple

DEFAULT_CATEGORIES = (
    "summon/party_main",
    "summon/party_sub",
    "weapon/main",
    "weapon/normal",
    "priority/weapon/main",
    "priority/weapon/normal",
    "chara",
)

ROUTE_PREFIX = "/v1/detect/"


def configured_categories(extra: str = None) -> Tuple[str, ...]:
    """Default categories followed by any comma-separated extras, deduplicated."""
    if extra is None:
        extra = os.environ.get("EXTRA_CATEGORIES", "")

    categories = list(DEFAULT_CATEGORIES)
    for name in extra.split(","):
        name = name.strip().strip("/")
        if name and name not in categories:
            categories.append(name)
    return tuple(categories)


def route_for(category: str) -> str:
    return f"{ROUTE_PREFIX}{category}"
