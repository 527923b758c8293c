"""Tests for the bulk filtering strategies."""

from __future__ import annotations

from typing import Callable

import pytest

from conftest import ADMIN_ID
from contextgroups import GroupAccess, ItemQuery, UnsupportedStrategyError
from contextgroups.access import (
    AccessStrategy,
    ExcludeStrategy,
    FilterStrategy,
    IncludeStrategy,
    PropagateStrategy,
    get_strategy_class,
)
from contextgroups.memory import InMemoryContentStore

BULK_STRATEGIES = ("filter", "exclude", "include")
ALL_ITEMS = (100, 101, 102, 103, 200, 201, 300)

READABLE = {
    "nearest": {
        10: {100, 101, 102, 200, 300},
        30: {100, 101, 102, 200, 201, 300},
        40: {103, 200, 300},
        99: {200, 300},
        0: {200, 300},
        ADMIN_ID: {100, 101, 102, 103, 200, 201, 300},
    },
    "conjunctive": {
        10: {100, 101, 102, 200, 300},
        30: {100, 101, 102, 200, 201, 300},
        40: {200, 300},
        99: {200, 300},
        0: {200, 300},
        ADMIN_ID: {100, 101, 102, 103, 200, 201, 300},
    },
}


class TestStrategyEquivalence:
    """Every bulk strategy returns the same readable set as can_read."""

    @pytest.mark.parametrize("mode", sorted(READABLE))
    @pytest.mark.parametrize("strategy", BULK_STRATEGIES)
    def test_full_listing(
        self, make_access: Callable[..., GroupAccess], staff_site: GroupAccess, strategy: str, mode: str
    ) -> None:
        """Test unpaginated listings match single-item decisions."""
        access = make_access(access_strategy=strategy, parent_inheritance=mode)
        for user_id, expected in READABLE[mode].items():
            listed = set(access.request(user_id).query(ItemQuery()))
            assert listed == expected, (strategy, mode, user_id)
            assert {i for i in expected if access.can_read(i, user_id)} == expected

    @pytest.mark.parametrize("strategy", BULK_STRATEGIES)
    def test_is_readable_matches_can_read(
        self, make_access: Callable[..., GroupAccess], staff_site: GroupAccess, strategy: str
    ) -> None:
        """Test per-item checks agree with the resolver."""
        access = make_access(access_strategy=strategy)
        request = access.request(40)
        for item_id in (100, 101, 102, 103, 200, 201, 300):
            assert request.is_readable(item_id) == access.can_read(item_id, 40)

    @pytest.mark.parametrize("strategy", BULK_STRATEGIES)
    def test_read_policies_narrow_every_strategy(
        self,
        make_access: Callable[..., GroupAccess],
        staff_site: GroupAccess,
        content: InMemoryContentStore,
        strategy: str,
    ) -> None:
        """Test read policies remove the same items from listings as from can_read."""
        access = make_access(access_strategy=strategy)
        access.resolver.add_read_policy(lambda item_id, user_id: item_id not in (101, 300))
        items = [content.get_item(item_id) for item_id in ALL_ITEMS]

        cases = {10: {100, 102, 200}, 40: {103, 200}, 0: {200}, ADMIN_ID: set(ALL_ITEMS)}
        for user_id, expected in cases.items():
            request = access.request(user_id)
            assert {i for i in ALL_ITEMS if access.can_read(i, user_id)} == expected
            assert set(request.query(ItemQuery())) == expected, (strategy, user_id)
            assert {i for i in ALL_ITEMS if request.is_readable(i)} == expected, (strategy, user_id)
            assert {item.id for item in request.filter_items(items)} == expected, (strategy, user_id)

    @pytest.mark.parametrize("strategy", BULK_STRATEGIES)
    def test_groupless_child_of_excluded_item(
        self, make_access: Callable[..., GroupAccess], content: InMemoryContentStore, strategy: str
    ) -> None:
        """Test a groupless child of an excluded item is excluded too."""
        access = make_access(access_strategy=strategy)
        staff = access.groups.create_group("Staff", users=[10])
        content.add_item(100)
        content.add_item(101, parent_id=100)
        access.linker.set_item_read_groups(100, [staff])

        assert access.request(99).query(ItemQuery()) == []
        assert access.request(10).query(ItemQuery()) == [100, 101]

    @pytest.mark.parametrize("strategy", BULK_STRATEGIES)
    def test_count_ignores_pagination(
        self, make_access: Callable[..., GroupAccess], staff_site: GroupAccess, strategy: str
    ) -> None:
        """Test count runs the query without offset and limit."""
        access = make_access(access_strategy=strategy)
        assert access.request(10).count(ItemQuery(offset=1, limit=2)) == 5
        assert access.request(0).count(ItemQuery(post_types=["post"])) == 0

    @pytest.mark.parametrize("strategy", BULK_STRATEGIES)
    def test_ungoverned_query(
        self, make_access: Callable[..., GroupAccess], staff_site: GroupAccess, strategy: str
    ) -> None:
        """Test queries for ungoverned types pass through."""
        access = make_access(access_strategy=strategy)
        assert access.request(0).query(ItemQuery(post_types=["attachment"])) == [300]


class TestFilterStrategy:
    """Tests for FilterStrategy paging."""

    def test_refills_short_page(self, staff_site: GroupAccess) -> None:
        """Test dropped rows are replaced from the following rows."""
        request = staff_site.request(40)
        assert isinstance(request, FilterStrategy)
        assert request.query(ItemQuery(post_types=["post", "page"], limit=3)) == [103, 200]

    def test_refill_stops_when_full(self, staff_site: GroupAccess) -> None:
        """Test the refill loop stops once the page is full."""
        request = staff_site.request(10)
        query = ItemQuery(post_types=["post", "page"], limit=2)
        assert request.query(query) == [100, 101]
        assert request.query(query.model_copy(update={"offset": 2})) == [102, 200]

    def test_singular_not_refilled(self, staff_site: GroupAccess) -> None:
        """Test a single-item request is only filtered."""
        query = ItemQuery(include_ids=[103, 200], limit=1, singular=True)
        assert staff_site.request(10).query(query) == []

    def test_unbounded_not_refilled(self, staff_site: GroupAccess) -> None:
        """Test unbounded listings are filtered once."""
        assert staff_site.request(99).query(ItemQuery(post_types=["post"])) == []

    def test_admin_unfiltered(self, staff_site: GroupAccess) -> None:
        """Test ignore_groups users get raw results."""
        assert staff_site.request(ADMIN_ID).query(ItemQuery(limit=3)) == [100, 101, 102]


class TestExcludeStrategy:
    """Tests for ExcludeStrategy."""

    @pytest.fixture
    def access(self, make_access: Callable[..., GroupAccess]) -> GroupAccess:
        return make_access(access_strategy="exclude")

    def test_prepare_query(self, staff_site: GroupAccess) -> None:
        """Test the unreadable set is injected as exclude_ids."""
        request = staff_site.request(10)
        assert isinstance(request, ExcludeStrategy)
        prepared = request.prepare_query(ItemQuery(exclude_ids=[200]))
        assert prepared.exclude_ids == [200, 103, 201]

    def test_merges_caller_exclusions(self, staff_site: GroupAccess) -> None:
        """Test caller exclusions are kept."""
        assert staff_site.request(10).query(ItemQuery(exclude_ids=[200])) == [100, 101, 102, 300]

    def test_paginates_in_store(self, staff_site: GroupAccess) -> None:
        """Test pages are cut by the store after exclusion."""
        assert staff_site.request(40).query(ItemQuery(limit=2)) == [103, 200]

    def test_cache_and_refresh(self, staff_site: GroupAccess) -> None:
        """Test the id set is cached per request until refreshed."""
        request = staff_site.request(99)
        assert 100 in request.sets.excluded

        staff_site.groups.add_users(1, [99])
        assert 100 in request.sets.excluded
        request.refresh()
        assert 100 not in request.sets.excluded
        assert staff_site.request(99).is_readable(100)


class TestIncludeStrategy:
    """Tests for IncludeStrategy."""

    @pytest.fixture
    def access(self, make_access: Callable[..., GroupAccess]) -> GroupAccess:
        return make_access(access_strategy="include")

    def test_prepare_query(self, staff_site: GroupAccess) -> None:
        """Test readable and ungoverned ids are injected as include_ids."""
        request = staff_site.request(40)
        assert isinstance(request, IncludeStrategy)
        assert request.prepare_query(ItemQuery()).include_ids == [103, 200, 300]

    def test_typed_query_skips_ungoverned_lookup(self, staff_site: GroupAccess) -> None:
        """Test queries limited to read types include governed ids only."""
        prepared = staff_site.request(40).prepare_query(ItemQuery(post_types=["post", "page"]))
        assert prepared.include_ids == [103, 200]

    def test_narrows_caller_include(self, staff_site: GroupAccess) -> None:
        """Test a caller's include_ids list is narrowed, never widened."""
        assert staff_site.request(10).query(ItemQuery(include_ids=[103, 200, 300])) == [200, 300]

    def test_empty_readable_set(self, staff_site: GroupAccess) -> None:
        """Test nothing readable yields an empty listing."""
        assert staff_site.request(0).query(ItemQuery(include_ids=[100, 103])) == []
        assert staff_site.request(0).query(ItemQuery(post_types=["post"])) == []

    def test_is_readable(self, staff_site: GroupAccess) -> None:
        """Test ungoverned items are readable."""
        request = staff_site.request(0)
        assert request.is_readable(300)
        assert request.is_readable(200)
        assert not request.is_readable(101)


class TestFilterItems:
    """Tests for filtering already-fetched items."""

    def test_filters_and_keeps_ungoverned(self, staff_site: GroupAccess, content: InMemoryContentStore) -> None:
        """Test unreadable items are dropped and titles left alone."""
        items = [content.get_item(i) for i in (100, 103, 200, 300)]
        kept = staff_site.request(10).filter_items(items)
        assert [(item.id, item.title) for item in kept] == [
            (100, "Handbook"),
            (200, "About"),
            (300, "Logo"),
        ]

    def test_marks_for_privileged_users(
        self, make_access: Callable[..., GroupAccess], staff_site: GroupAccess, content: InMemoryContentStore
    ) -> None:
        """Test restricted titles are marked for users who may see markings."""
        access = make_access(post_marking_symbol=" *")
        items = [content.get_item(i) for i in (100, 102, 103, 200, 300)]
        kept = access.request(ADMIN_ID).filter_items(items)
        assert [item.title for item in kept] == ["Handbook *", "Section *", "Board minutes *", "About", "Logo"]
        assert content.get_item(100).title == "Handbook"

    def test_marker(self, make_access: Callable[..., GroupAccess], staff_site: GroupAccess) -> None:
        """Test the title marker on its own."""
        assert staff_site.marker.enabled is False
        assert staff_site.marker.add_marking("Handbook", 100) == "Handbook"
        marker = make_access(post_marking_symbol=" (g)").marker
        assert marker.add_marking("Intern wiki", 201) == "Intern wiki (g)"
        assert marker.add_marking("About", 200) == "About"


class TestStrategyRegistry:
    """Tests for strategy selection."""

    @pytest.mark.parametrize(
        "name,cls",
        [
            ("filter", FilterStrategy),
            ("exclude", ExcludeStrategy),
            ("include", IncludeStrategy),
            ("propagate", PropagateStrategy),
        ],
    )
    def test_lookup(self, name: str, cls: type) -> None:
        assert get_strategy_class(name) is cls

    def test_unsupported(self) -> None:
        """Test unknown strategy names raise."""
        with pytest.raises(UnsupportedStrategyError):
            get_strategy_class("magic")

    def test_request_binds_user(self, make_access: Callable[..., GroupAccess]) -> None:
        """Test each request gets its own strategy instance."""
        access = make_access(access_strategy="exclude")
        first, second = access.request(10), access.request(10)
        assert first is not second
        assert first.user_id == 10

    def test_strategy_requires_name(self, access: GroupAccess) -> None:
        """Test a strategy class without a name cannot be instantiated."""

        class Nameless(AccessStrategy):
            pass

        with pytest.raises(TypeError):
            Nameless(10, access.config, access.content, access.resolver, access.read_sets)
        assert FilterStrategy(10, access.config, access.content, access.resolver, access.read_sets).name == "filter"
