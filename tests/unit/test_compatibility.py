# tests/unit/test_compatibility.py
"""
Unit Test per la compatibilità del catalogo
Autosalone - Gestione Stock e Prezzi
"""

import pytest

from autosalone.models.catalog import Accessory, ExteriorColor, VehicleTrim
from autosalone.services.compatibility import filter_compatible, is_compatible, sort_by_name


class TestIsCompatible:
    """Lista vuota = compatibile con tutti"""

    def test_empty_list_matches_every_model(self):
        trim = VehicleTrim(id="t1", name="Base", compatible_models=[])
        assert is_compatible(trim, "mod-a")
        assert is_compatible(trim, "mod-z")

    def test_listed_models_only(self):
        trim = VehicleTrim(id="t1", name="Plus", compatible_models=["mod-a", "mod-b"])
        assert is_compatible(trim, "mod-a")
        assert is_compatible(trim, "mod-b")
        assert not is_compatible(trim, "mod-c")

    def test_accessory_trim_constraint(self):
        accessory = Accessory(
            id="a1", name="Cerchi 18", price_with_vat=900,
            compatible_models=["mod-a"], compatible_trims=["t-sport"]
        )
        assert is_compatible(accessory, "mod-a", "t-sport")
        assert not is_compatible(accessory, "mod-a", "t-base")
        assert not is_compatible(accessory, "mod-b", "t-sport")

    def test_trim_constraint_ignored_without_trim(self):
        accessory = Accessory(id="a1", name="Cerchi 18", price_with_vat=900, compatible_trims=["t-sport"])
        assert is_compatible(accessory, "mod-a")

    def test_trim_constraint_not_applied_to_non_accessories(self):
        color = ExteriorColor(id="c1", name="Rosso", compatible_models=["mod-a"])
        assert is_compatible(color, "mod-a", "qualsiasi")


class TestFilterAndSort:

    def test_filter_preserves_catalog_order(self):
        trims = [
            VehicleTrim(id="t3", name="Zeta"),
            VehicleTrim(id="t1", name="Alfa", compatible_models=["mod-b"]),
            VehicleTrim(id="t2", name="Beta", compatible_models=["mod-a"]),
        ]
        assert [t.id for t in filter_compatible(trims, "mod-a")] == ["t3", "t2"]

    def test_sort_by_name_case_insensitive(self):
        trims = [
            VehicleTrim(id="t1", name="plus"),
            VehicleTrim(id="t2", name="Base"),
            VehicleTrim(id="t3", name="Lusso"),
        ]
        assert [t.name for t in sort_by_name(trims)] == ["Base", "Lusso", "plus"]

# Pytest-Marks
pytestmark = [
    pytest.mark.unit,
    pytest.mark.fast
]
