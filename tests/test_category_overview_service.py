import datetime

import pytest

from models.blueprint_models import LogCategory
from models.geometry_models import NormalizedPoint
from models.overview_models import CategoryFilterPreset
from services.category_overview_service import CategoryOverviewService

from conftest import BASE_DATE


def add(store, blueprint, category, minutes=0, photo=False):
    entry = store.create_log_entry(blueprint.id, 1, NormalizedPoint(0.5, 0.5), category.value, category,
                                   date=BASE_DATE + datetime.timedelta(minutes=minutes))
    if photo:
        store.add_photo(entry.id, b"\x89PNG")
    return entry


@pytest.fixture
def populated(store, blueprint):
    add(store, blueprint, LogCategory.ELECTRICAL, minutes=0)
    add(store, blueprint, LogCategory.ELECTRICAL, minutes=30, photo=True)
    add(store, blueprint, LogCategory.ELECTRICAL, minutes=10)
    add(store, blueprint, LogCategory.FLOORING, minutes=5)
    add(store, blueprint, LogCategory.SAFETY, minutes=50)
    add(store, blueprint, LogCategory.SAFETY, minutes=40)
    return blueprint


def test_overview_counts_by_category(store, populated):
    overview = CategoryOverviewService(store).overview(populated.id)

    assert [(s.category, s.count) for s in overview.stats] == [
        (LogCategory.ELECTRICAL, 3), (LogCategory.SAFETY, 2), (LogCategory.FLOORING, 1),
    ]
    electrical = overview.stats[0]
    assert electrical.has_media is True
    assert electrical.latest_date == BASE_DATE + datetime.timedelta(minutes=30)
    assert overview.stats[1].has_media is False
    assert overview.stats[1].latest_date == BASE_DATE + datetime.timedelta(minutes=50)


def test_overview_totals(store, populated):
    overview = CategoryOverviewService(store).overview(populated.id)
    assert overview.total_entries == 6
    assert overview.entries_with_media == 1
    assert overview.categories_present == {LogCategory.ELECTRICAL, LogCategory.FLOORING, LogCategory.SAFETY}


def test_equal_counts_keep_category_order(store, blueprint):
    add(store, blueprint, LogCategory.GENERAL)
    add(store, blueprint, LogCategory.PLUMBING)
    overview = CategoryOverviewService(store).overview(blueprint.id)
    assert [s.category for s in overview.stats] == [LogCategory.PLUMBING, LogCategory.GENERAL]


def test_empty_blueprint(store, blueprint):
    overview = CategoryOverviewService(store).overview(blueprint.id)
    assert overview.stats == ()
    assert overview.total_entries == 0
    assert CategoryOverviewService(store).preset_categories(blueprint.id, CategoryFilterPreset.ALL) == frozenset()


@pytest.mark.parametrize("preset, expected", [
    (CategoryFilterPreset.ALL, {LogCategory.ELECTRICAL, LogCategory.FLOORING, LogCategory.SAFETY}),
    (CategoryFilterPreset.CONSTRUCTION, {LogCategory.ELECTRICAL}),
    (CategoryFilterPreset.FINISHING, {LogCategory.FLOORING}),
    (CategoryFilterPreset.SAFETY, {LogCategory.SAFETY}),
    ("other", {LogCategory.SAFETY}),
])
def test_presets_intersect_present_categories(store, populated, preset, expected):
    assert CategoryOverviewService(store).preset_categories(populated.id, preset) == expected


def test_preset_groups():
    assert CategoryFilterPreset.CONSTRUCTION.categories() == set(LogCategory.construction_categories())
    assert CategoryFilterPreset.FINISHING.categories() == set(LogCategory.finishing_categories())
    assert CategoryFilterPreset.ALL.categories() == LogCategory.all()
    assert not CategoryFilterPreset.CONSTRUCTION.categories() & CategoryFilterPreset.FINISHING.categories()


def test_unknown_preset_and_blueprint(store, blueprint):
    service = CategoryOverviewService(store)
    with pytest.raises(ValueError):
        service.preset_categories(blueprint.id, "roofing-only")
    with pytest.raises(KeyError):
        service.overview("missing")
