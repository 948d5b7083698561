import pytest

from configurator.schemas.selection import SelectedOption
from configurator.services.selection_tree import ItemContext
from configurator.services.validation import (
    is_group_satisfied,
    is_item_valid,
    is_session_valid,
    selected_quantity,
    summarize_group,
    unsatisfied_groups,
)
from tests.fixtures_data import (
    COMBO,
    GRUPO_BEBIDA,
    GRUPO_PAO,
    HAMBURGUER,
    LANCHE_HAMBURGUER,
    PAO_AUSTRALIANO,
    REFRIGERANTE,
    SUCO,
    preloaded_cache,
)


def _selected(option, quantity=1, children=()):
    return SelectedOption(product_option=option, quantity=quantity, selected_options=list(children))


@pytest.mark.parametrize(
    ("min_quantity", "expected"),
    [(0, True), (1, False)],
)
def test_unhydrated_group_is_satisfied_only_when_optional(min_quantity, expected):
    shallow_group = GRUPO_PAO.model_copy(update={"options": [], "min_quantity": min_quantity})

    assert is_group_satisfied(shallow_group, []) is expected


def test_group_counts_only_its_own_options():
    selections = [_selected(REFRIGERANTE, 2), _selected(PAO_AUSTRALIANO)]

    assert selected_quantity(GRUPO_BEBIDA, selections) == 2
    assert selected_quantity(GRUPO_PAO, selections) == 1
    assert is_group_satisfied(GRUPO_PAO, selections)


def test_summarize_group_reports_remaining_capacity():
    summary = summarize_group(GRUPO_BEBIDA, [_selected(SUCO)])

    assert summary.current == 1
    assert summary.remaining == 1
    assert summary.is_valid
    assert summary.is_hydrated


def test_adding_to_under_filled_required_group_never_invalidates_it():
    selections = []
    before = is_group_satisfied(GRUPO_PAO, selections)
    after = is_group_satisfied(GRUPO_PAO, [_selected(PAO_AUSTRALIANO)])

    assert before is False
    assert after is True


def test_item_validity_recurses_into_nested_products():
    cache = preloaded_cache()
    incomplete = ItemContext(product=COMBO, selections=[_selected(LANCHE_HAMBURGUER)])
    complete = ItemContext(
        product=COMBO,
        selections=[_selected(LANCHE_HAMBURGUER, children=[_selected(PAO_AUSTRALIANO)])],
    )

    assert is_item_valid(incomplete, cache) is False
    assert is_item_valid(complete, cache) is True
    assert is_session_valid([complete, incomplete], cache) is False
    assert is_session_valid([complete], cache) is True


def test_unsatisfied_groups_point_at_the_failing_level():
    cache = preloaded_cache()
    items = [
        ItemContext(product=HAMBURGUER, selections=[]),
        ItemContext(product=COMBO, selections=[_selected(LANCHE_HAMBURGUER)]),
    ]

    unsatisfied = unsatisfied_groups(items, cache)

    assert [(entry.item_index, entry.path, entry.group_name) for entry in unsatisfied] == [
        (0, (), "Pão"),
        (1, (0,), "Pão"),
    ]
    assert unsatisfied[0].min_quantity == 1
    assert unsatisfied[0].current == 0
