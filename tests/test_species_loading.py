from __future__ import annotations

from pathlib import Path

import pytest

from wildbattle.errors import SpeciesNotFound
from wildbattle.rng import Dice
from wildbattle.species.registry import SpeciesLoadError, load_species_catalog, load_species_csv
from wildbattle.species.singleton import get_species_catalog


class _ScriptedRng:
    def __init__(self, values: list[float]):
        self.values = list(values)

    def next(self) -> float:
        return self.values.pop(0)


def test_species_load_and_lookup() -> None:
    root = Path(__file__).resolve().parent
    catalog = load_species_catalog(root=root, strict=True)

    assert len(catalog) == 5
    assert catalog.require("flame_beast").base_hp == 100

    # Names resolve case/whitespace-insensitively; ids are canonical.
    assert catalog.resolve_id("  electric   MOUSE ") == "electric_mouse"
    assert catalog.require("Rock Snake").species_id == "rock_snake"
    assert catalog.require(" rock   SNAKE").species_id == "rock_snake"
    with pytest.raises(SpeciesNotFound):
        catalog.require("Water Turtle")

    # Rows without an id get a slug.
    assert catalog.require("test_sprout").name == "Test Sprout"

    with pytest.raises(SpeciesNotFound):
        catalog.require("water_turtle")


def test_test_session_uses_fixture_species() -> None:
    catalog = get_species_catalog()
    assert catalog.get("test_sprout") is not None
    assert catalog.get("water_turtle") is None


def test_pick_random_is_driven_by_dice() -> None:
    catalog = load_species_catalog(root=Path(__file__).resolve().parent, strict=True)
    dice = Dice(rng=_ScriptedRng([0.0, 0.99]))

    assert catalog.pick_random(dice=dice).species_id == "electric_mouse"
    assert catalog.pick_random(dice=dice).species_id == "test_sprout"


def test_missing_file_strict_raises(tmp_path: Path) -> None:
    with pytest.raises(SpeciesLoadError):
        load_species_catalog(root=tmp_path, strict=True)


def test_missing_file_falls_back_to_starters(tmp_path: Path) -> None:
    catalog = load_species_catalog(root=tmp_path)
    assert catalog.require("water_turtle").base_hp == 45
    assert len(catalog) == 6


def test_bad_rows_are_rejected(tmp_path: Path) -> None:
    bad_header = tmp_path / "a.csv"
    bad_header.write_text("name,hp\nFoo,10\n", encoding="utf-8")
    with pytest.raises(SpeciesLoadError):
        load_species_csv(bad_header)

    bad_hp = tmp_path / "b.csv"
    bad_hp.write_text("id,name,base_hp\nfoo,Foo,zero\n", encoding="utf-8")
    with pytest.raises(SpeciesLoadError):
        load_species_csv(bad_hp)

    dupes = tmp_path / "c.csv"
    dupes.write_text("id,name,base_hp\nfoo,Foo,10\nfoo,Foo Two,12\n", encoding="utf-8")
    with pytest.raises(SpeciesLoadError):
        load_species_csv(dupes)


def test_csv_with_bom_crlf_and_quoted_names(tmp_path: Path) -> None:
    path = tmp_path / "species.csv"
    path.write_bytes(
        "\ufeffid,name,base_hp\r\nmr_mime,\"Mime, Mister\",40\r\n\r\n,Tall Grass,25\r\n".encode("utf-8")
    )

    catalog = load_species_csv(path)

    assert [s.species_id for s in catalog.species] == ["mr_mime", "tall_grass"]
    assert catalog.require("mr_mime").name == "Mime, Mister"
    assert catalog.require("tall_grass").base_hp == 25


def test_non_strict_fallback_on_unreadable_header(tmp_path: Path) -> None:
    (tmp_path / "assets").mkdir()
    (tmp_path / "assets" / "species.csv").write_text("species,hp\nfoo,1\n", encoding="utf-8")

    assert load_species_catalog(root=tmp_path).require("flame_beast").base_hp == 100
    with pytest.raises(SpeciesLoadError):
        load_species_catalog(root=tmp_path, strict=True)
