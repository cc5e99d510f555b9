from __future__ import annotations

from pathlib import Path

from wildbattle.species.registry import SpeciesCatalog, load_species_catalog


_CATALOG: SpeciesCatalog | None = None


def init_species(*, project_root: Path, strict: bool = False) -> SpeciesCatalog:
    """Load the species catalog once and cache it.

    Safe to call multiple times; subsequent calls return the already loaded instance.
    """

    global _CATALOG
    if _CATALOG is None:
        _CATALOG = load_species_catalog(root=project_root, strict=strict)
    return _CATALOG


def reset_species_for_tests() -> None:
    global _CATALOG
    _CATALOG = None


def get_species_catalog() -> SpeciesCatalog:
    if _CATALOG is None:
        raise RuntimeError("Species catalog not initialized. Call init_species() at startup.")
    return _CATALOG
