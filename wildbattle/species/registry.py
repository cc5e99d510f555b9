from __future__ import annotations

import csv
import re
from dataclasses import dataclass
from pathlib import Path

from wildbattle.api.models import Species
from wildbattle.errors import SpeciesNotFound
from wildbattle.rng import Dice


def _norm_key(s: str) -> str:
    return re.sub(r"\s+", " ", s).strip().casefold()


def _slug_id(s: str) -> str:
    s = s.strip().casefold()
    s = re.sub(r"[^a-z0-9]+", "_", s)
    return s.strip("_")


class SpeciesLoadError(RuntimeError):
    pass


@dataclass(frozen=True, slots=True)
class SpeciesCatalog:
    """Wild species master data.

    Ids are canonical (for persistence/network). Names are for display, but
    lookups by name are forgiving about case and whitespace.
    """

    species: tuple[Species, ...]
    _by_id: dict[str, Species]
    _key_to_id: dict[str, str]

    @staticmethod
    def from_rows(rows: list[Species]) -> "SpeciesCatalog":
        by_id: dict[str, Species] = {}
        key_to_id: dict[str, str] = {}
        for s in rows:
            if s.species_id in by_id:
                raise SpeciesLoadError(f"Duplicate species id: {s.species_id}")
            by_id[s.species_id] = s
            key_to_id[_norm_key(s.name)] = s.species_id
        return SpeciesCatalog(species=tuple(rows), _by_id=by_id, _key_to_id=key_to_id)

    def get(self, species_id: str) -> Species | None:
        return self._by_id.get(species_id)

    def resolve_id(self, name: str) -> str | None:
        return self._key_to_id.get(_norm_key(name))

    def require(self, key: str) -> Species:
        """Look a species up by id, falling back to its display name."""

        species = self.get(key)
        if species is None:
            sid = self.resolve_id(key)
            species = self.get(sid) if sid else None
        if species is None:
            raise SpeciesNotFound(key)
        return species

    def __len__(self) -> int:
        return len(self.species)

    def pick_random(self, *, dice: Dice) -> Species:
        if not self.species:
            raise SpeciesLoadError("Species catalog is empty")
        return self.species[dice.choice_index(len(self.species))]


def _read_csv_rows(path: Path) -> list[list[str]]:
    try:
        with path.open(encoding="utf-8-sig", newline="") as f:
            rows = [[c.strip() for c in row] for row in csv.reader(f)]
    except FileNotFoundError as e:
        raise SpeciesLoadError(f"Species file not found: {path}") from e

    return [row for row in rows if any(cell.strip() for cell in row)]


def load_species_csv(path: Path) -> SpeciesCatalog:
    rows = _read_csv_rows(path)
    if not rows:
        raise SpeciesLoadError(f"Empty species CSV: {path}")

    header = [c.casefold() for c in rows[0]]
    if header[:3] != ["id", "name", "base_hp"]:
        raise SpeciesLoadError(f"Unexpected header in {path}: {rows[0]}")

    out: list[Species] = []
    for row in rows[1:]:
        if len(row) < 3:
            continue
        sid, name, raw_hp = row[0].strip(), row[1].strip(), row[2].strip()
        if not name:
            continue
        try:
            base_hp = int(raw_hp)
        except ValueError as e:
            raise SpeciesLoadError(f"Invalid base_hp for {name!r} in {path}: {raw_hp!r}") from e
        if base_hp < 1:
            raise SpeciesLoadError(f"base_hp must be >= 1 for {name!r} in {path}")
        out.append(Species(species_id=sid or _slug_id(name), name=name, base_hp=base_hp))

    return SpeciesCatalog.from_rows(out)


def _fallback_species_catalog() -> SpeciesCatalog:
    """Built-in starter species, used when assets/species.csv is missing."""

    return SpeciesCatalog.from_rows(
        [
            Species(species_id="electric_mouse", name="Electric Mouse", base_hp=35),
            Species(species_id="fire_lizard", name="Fire Lizard", base_hp=40),
            Species(species_id="water_turtle", name="Water Turtle", base_hp=45),
            Species(species_id="grass_seed", name="Grass Seed", base_hp=45),
            Species(species_id="rock_snake", name="Rock Snake", base_hp=50),
            Species(species_id="flame_beast", name="Flame Beast", base_hp=100),
        ]
    )


def load_species_catalog(*, root: Path, strict: bool = False) -> SpeciesCatalog:
    # Non-strict mode falls back to the built-in dataset when the CSV is missing or broken.
    try:
        return load_species_csv(root / "assets" / "species.csv")
    except SpeciesLoadError:
        if strict:
            raise
        return _fallback_species_catalog()
