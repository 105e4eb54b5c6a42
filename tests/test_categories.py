from pathlib import Path

import pytest
from canasta.runtime.category_rules import load_category_classifier
from canasta.runtime.config_files import load_toml
from canasta.runtime.matching_rules import build_match_config, load_match_config
from canasta.ticket.categories import CategoryClassifier, build_category_rules


@pytest.mark.parametrize(
    ("name", "category"),
    [
        ("LECHE ENTERA", "Lácteos"),
        ("QUESO MOZZARELL", "Lácteos"),
        ("ARROZ", "Granos"),
        ("ARROZ DIANA 500G", "Granos"),
        ("PAN TAJADO", "Panadería"),
        ("MANZANAS ROJAS", "Frutas"),
        ("TORNILLO 3/8", "Otros"),
    ],
)
def test_default_rules(classifier: CategoryClassifier, name: str, category: str) -> None:
    assert classifier.detect_category(name) == category


def test_keywords_match_whole_words_only(classifier: CategoryClassifier) -> None:
    # "pan" must not match inside "panal" or "pantalon".
    assert classifier.detect_category("PANTALON") == "Otros"


def test_get_categories_lists_fallback_last(classifier: CategoryClassifier) -> None:
    categories = classifier.get_categories()

    assert categories[-1] == "Otros"
    assert "Lácteos" in categories
    assert len(categories) == len(set(categories))


def test_earlier_config_wins() -> None:
    project = {"rules": [{"category": "Mascotas", "keywords": ["leche para gato"]}], "fallback": "Varios"}
    defaults = {"rules": [{"category": "Lácteos", "keywords": ["leche"]}], "fallback": "Otros"}

    classifier = CategoryClassifier(build_category_rules([project, defaults]))

    assert classifier.detect_category("Leche para gato") == "Mascotas"
    assert classifier.detect_category("Leche entera") == "Lácteos"
    assert classifier.detect_category("Tornillo") == "Varios"
    assert classifier.get_categories() == ["Mascotas", "Lácteos", "Varios"]


def test_invalid_rules_are_skipped() -> None:
    config = {
        "rules": [
            {"category": "", "keywords": ["x"]},
            {"category": "Aseo", "keywords": []},
            "oops",
            {"category": "Aseo", "keywords": "jabon"},
        ]
    }
    rules = build_category_rules([config])

    assert [rule.category for rule in rules.rules] == ["Aseo"]
    assert rules.rules[0].keywords == ("jabon",)


def test_load_category_classifier_layers_project_file(tmp_path: Path) -> None:
    project_rules = tmp_path / "category_rules.toml"
    project_rules.write_text('[[rules]]\ncategory = "Desayuno"\nkeywords = ["avena"]\n', encoding="utf-8")
    defaults = tmp_path / "missing.toml"

    classifier = load_category_classifier((str(project_rules), str(defaults)))

    assert classifier.detect_category("AVENA TETRA PAK") == "Desayuno"
    assert classifier.detect_category("LECHE") == "Otros"


def test_load_toml_missing_file(tmp_path: Path) -> None:
    assert load_toml(tmp_path / "nope.toml") == {}


def test_match_config_defaults() -> None:
    config = build_match_config({})

    assert config.matched_threshold == 0.8
    assert config.min_similarity == 0.3
    assert config.limit == 5


def test_match_config_from_file(tmp_path: Path) -> None:
    path = tmp_path / "matching.toml"
    path.write_text("[matching]\nmatched_threshold = 0.9\nmin_similarity = 0.4\nlimit = 3\n", encoding="utf-8")

    config = load_match_config(str(path))

    assert (config.matched_threshold, config.min_similarity, config.limit) == (0.9, 0.4, 3)


@pytest.mark.parametrize(
    "table",
    [
        {"matched_threshold": 0.5, "min_similarity": 0.6},
        {"matched_threshold": 1.2},
        {"min_similarity": -0.1},
        {"limit": 0},
    ],
)
def test_match_config_rejects_invalid_values(table: dict[str, float]) -> None:
    with pytest.raises(ValueError):
        build_match_config({"matching": table})
