"""Registry snapshots: the admitted descriptions a tree is built from."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Tuple

import yaml

from .config import DEFAULT_TREE_LEVELS, MAX_TREE_LEVELS
from .exceptions import RegistryFileError, RegistryFullError
from .hashing import HashProvider
from .merkle import MerkleTree


@dataclass(frozen=True)
class RegistrySnapshot:
    levels: int
    descriptions: Tuple[str, ...]

    def build_tree(self, hasher: HashProvider) -> MerkleTree:
        return build_registry_tree(self.descriptions, hasher, levels=self.levels)


def build_registry_tree(
    descriptions: Iterable[str],
    hasher: HashProvider,
    *,
    levels: int = DEFAULT_TREE_LEVELS,
) -> MerkleTree:
    """Insert each description's hash at slots 0..n-1 and build the tree."""
    tree = MerkleTree(levels, hasher)
    for index, description in enumerate(descriptions):
        if index >= tree.capacity:
            raise RegistryFullError(
                f"Registry holds more than {tree.capacity} entries; increase levels"
            )
        tree.insert_leaf(index, tree.hash_leaf_value(description))
    tree.build()
    return tree


def load_registry(path: str | Path, levels: int | None = None) -> RegistrySnapshot:
    """
    Load a snapshot from YAML.

    Accepts either a bare list of descriptions or a mapping with an
    ``agents`` list and an optional ``levels``. An explicit ``levels``
    argument wins over the file.
    """
    path = Path(path)
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise RegistryFileError(f"cannot read registry file {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise RegistryFileError(f"registry file {path} is not valid YAML: {exc}") from exc

    if data is None:
        data = []
    if isinstance(data, list):
        file_levels = None
        agents = data
    elif isinstance(data, dict):
        file_levels = data.get("levels")
        agents = data.get("agents", [])
    else:
        raise RegistryFileError(f"registry file {path} must hold a list or a mapping")

    if not isinstance(agents, list):
        raise RegistryFileError("'agents' must be a list of descriptions")
    for idx, agent in enumerate(agents):
        if not isinstance(agent, str) or not agent:
            raise RegistryFileError(f"agents[{idx}] must be a non-empty string")

    resolved_levels = levels if levels is not None else file_levels
    if resolved_levels is None:
        resolved_levels = DEFAULT_TREE_LEVELS
    if isinstance(resolved_levels, bool) or not isinstance(resolved_levels, int):
        raise RegistryFileError("'levels' must be an int")
    if resolved_levels < 1 or resolved_levels > MAX_TREE_LEVELS:
        raise RegistryFileError(f"'levels' must be between 1 and {MAX_TREE_LEVELS}")

    return RegistrySnapshot(levels=resolved_levels, descriptions=tuple(agents))
