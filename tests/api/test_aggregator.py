"""Tests for MultiKeyAggregator."""

import pytest

from canvas_fetch.api.aggregator import (
    KEY_PLACEHOLDER,
    AggregationResult,
    MultiKeyAggregator,
)
from tests.fixtures.canvas_responses import BASE, FakeCanvasTransport, make_records

TEMPLATE = f"{BASE}/courses/{KEY_PLACEHOLDER}/enrollments"


def course(key: int | str) -> str:
    return f"{BASE}/courses/{key}/enrollments"


class TestFetchAllForKeys:
    """Tests for fetch_all_for_keys."""

    @pytest.mark.asyncio
    async def test_groups_results_by_key(
        self, aggregator: MultiKeyAggregator, fake_transport: FakeCanvasTransport
    ) -> None:
        fake_transport.add_listing(course(10), make_records(2), per_page=2)
        fake_transport.add_listing(course(20), make_records(5, start_id=100), per_page=2)

        results = await aggregator.fetch_all_for_keys(TEMPLATE, [10, 20], per_page=2)

        assert list(results) == [10, 20]
        assert [r["id"] for r in results[10]] == [1, 2]
        assert sorted(r["id"] for r in results[20]) == [100, 101, 102, 103, 104]

    @pytest.mark.asyncio
    async def test_every_page_requested_once(
        self, aggregator: MultiKeyAggregator, fake_transport: FakeCanvasTransport
    ) -> None:
        fake_transport.add_listing(course(1), make_records(30), per_page=10)
        fake_transport.add_listing(course(2), make_records(10), per_page=10)

        await aggregator.fetch_all_for_keys(TEMPLATE, [1, 2], per_page=10)

        assert fake_transport.pages_requested(course(1)) == ["1", "2", "3"]
        assert fake_transport.pages_requested(course(2)) == ["1"]

    @pytest.mark.asyncio
    async def test_first_pages_dispatched_together(
        self, aggregator: MultiKeyAggregator, fake_transport: FakeCanvasTransport
    ) -> None:
        """Page 1 of every key goes out before any later page."""
        for key in (1, 2, 3):
            fake_transport.add_listing(course(key), make_records(20), per_page=10)

        await aggregator.fetch_all_for_keys(TEMPLATE, [1, 2, 3], per_page=10)

        first_three = fake_transport.urls()[:3]
        assert first_three == [f"{course(k)}?page=1&per_page=10" for k in (1, 2, 3)]

    @pytest.mark.asyncio
    async def test_max_batch_bounds_each_batch(
        self, aggregator: MultiKeyAggregator, fake_transport: FakeCanvasTransport
    ) -> None:
        for key in range(1, 6):
            fake_transport.add_listing(course(key), make_records(25), per_page=10)

        result = await aggregator.aggregate(TEMPLATE, range(1, 6), per_page=10, max_batch=2)

        assert all(len(records) == 25 for records in result.results.values())
        assert result.total_requests == 15
        assert result.batches == 8
        assert fake_transport.peak_in_flight <= 2

    @pytest.mark.asyncio
    async def test_next_only_listing(
        self, aggregator: MultiKeyAggregator, fake_transport: FakeCanvasTransport
    ) -> None:
        fake_transport.add_listing(course(7), make_records(45), per_page=10, style="next_only")

        results = await aggregator.fetch_all_for_keys(TEMPLATE, [7], per_page=10)

        assert sorted(r["id"] for r in results[7]) == list(range(1, 46))

    @pytest.mark.asyncio
    async def test_bookmark_listing(
        self, aggregator: MultiKeyAggregator, fake_transport: FakeCanvasTransport
    ) -> None:
        fake_transport.add_listing(course(1), make_records(25), per_page=10, style="bookmark")
        fake_transport.add_listing(course(2), make_records(3), per_page=10)

        results = await aggregator.fetch_all_for_keys(TEMPLATE, [1, 2], per_page=10)

        assert [r["id"] for r in results[1]] == list(range(1, 26))
        assert len(results[2]) == 3
        assert fake_transport.pages_requested(course(1)) == ["1", "bookmark:2", "bookmark:3"]

    @pytest.mark.asyncio
    async def test_field_extraction(
        self, aggregator: MultiKeyAggregator, fake_transport: FakeCanvasTransport
    ) -> None:
        fake_transport.add_listing(course(1), make_records(3), per_page=2)

        results = await aggregator.fetch_all_for_keys(
            TEMPLATE, [1], per_page=2, extract_field="name"
        )

        assert results == {1: {1: {"name": "item-1"}, 2: {"name": "item-2"}, 3: {"name": "item-3"}}}

    @pytest.mark.asyncio
    async def test_duplicate_keys_fetched_once(
        self, aggregator: MultiKeyAggregator, fake_transport: FakeCanvasTransport
    ) -> None:
        fake_transport.add_listing(course(1), make_records(2))

        results = await aggregator.fetch_all_for_keys(TEMPLATE, [1, 1, 1])

        assert list(results) == [1]
        assert len(fake_transport.calls) == 1

    @pytest.mark.asyncio
    async def test_no_keys(
        self, aggregator: MultiKeyAggregator, fake_transport: FakeCanvasTransport
    ) -> None:
        assert await aggregator.fetch_all_for_keys(TEMPLATE, []) == {}
        assert fake_transport.calls == []

    @pytest.mark.asyncio
    async def test_template_requires_placeholder(self, aggregator: MultiKeyAggregator) -> None:
        with pytest.raises(ValueError, match="<key>"):
            await aggregator.fetch_all_for_keys(f"{BASE}/courses/enrollments", [1])

    @pytest.mark.asyncio
    async def test_template_with_query(
        self, aggregator: MultiKeyAggregator, fake_transport: FakeCanvasTransport
    ) -> None:
        fake_transport.add_listing(course(1), make_records(1))

        await aggregator.fetch_all_for_keys(f"{TEMPLATE}?state[]=active", [1], has_query=True)

        assert fake_transport.urls() == [f"{course(1)}?state[]=active&page=1&per_page=100"]


class TestFailures:
    """Failure isolation between keys."""

    @pytest.mark.asyncio
    async def test_failed_key_does_not_affect_others(
        self, aggregator: MultiKeyAggregator, fake_transport: FakeCanvasTransport
    ) -> None:
        fake_transport.add_listing(course(1), make_records(3))
        fake_transport.add_listing(course(2), make_records(3))
        fake_transport.fail(course(2), 1, status=500)

        result = await aggregator.aggregate(TEMPLATE, [1, 2])

        assert len(result.results[1]) == 3
        assert result.results[2] == []
        assert result.failed_urls == {2: [f"{course(2)}?page=1&per_page=100"]}
        assert result.total_failed == 1

    @pytest.mark.asyncio
    async def test_failed_later_page_keeps_other_pages(
        self, aggregator: MultiKeyAggregator, fake_transport: FakeCanvasTransport
    ) -> None:
        fake_transport.add_listing(course(1), make_records(30), per_page=10)
        fake_transport.fail(course(1), 2, status=None)

        result = await aggregator.aggregate(TEMPLATE, [1], per_page=10)

        assert [r["id"] for r in result.results[1]] == list(range(1, 11)) + list(range(21, 31))
        assert result.total_failed == 1

    @pytest.mark.asyncio
    async def test_failed_frontier_page_does_not_end_listing(
        self, aggregator: MultiKeyAggregator, fake_transport: FakeCanvasTransport
    ) -> None:
        """Pages past a lost frontier page are still discovered and fetched."""
        fake_transport.add_listing(course(1), make_records(50), per_page=10, style="next_only")
        fake_transport.add_listing(course(2), make_records(15), per_page=10, style="next_only")
        fake_transport.fail(course(1), 3)

        result = await aggregator.aggregate(TEMPLATE, [1, 2], per_page=10)

        assert sorted(r["id"] for r in result.results[1]) == list(range(1, 21)) + list(
            range(31, 51)
        )
        assert {"4", "5"} <= set(fake_transport.pages_requested(course(1)))
        assert result.failed_urls == {1: [f"{course(1)}?page=3&per_page=10"]}
        assert len(result.results[2]) == 15

    @pytest.mark.asyncio
    async def test_exhausted_frontier_page_does_not_end_listing(
        self, aggregator: MultiKeyAggregator, fake_transport: FakeCanvasTransport
    ) -> None:
        fake_transport.add_listing(course(1), make_records(50), per_page=10, style="next_only")
        fake_transport.rate_limit(course(1), 3, times=None)

        result = await aggregator.aggregate(TEMPLATE, [1], per_page=10, max_batch=1)

        assert len(result.results[1]) == 40
        assert fake_transport.pages_requested(course(1)).count("3") == 6
        assert result.total_failed == 1

    @pytest.mark.asyncio
    async def test_missing_resource(
        self, aggregator: MultiKeyAggregator, fake_transport: FakeCanvasTransport
    ) -> None:
        """Unknown keys 404 and yield empty results."""
        fake_transport.add_listing(course(1), make_records(2))

        result = await aggregator.aggregate(TEMPLATE, [1, 999])

        assert len(result.results[1]) == 2
        assert result.results[999] == []
        assert 999 in result.failed_urls

    @pytest.mark.asyncio
    async def test_rate_limits_retried(
        self, aggregator: MultiKeyAggregator, fake_transport: FakeCanvasTransport
    ) -> None:
        fake_transport.add_listing(course(1), make_records(20), per_page=10)
        fake_transport.rate_limit(course(1), 2, times=3)

        result = await aggregator.aggregate(TEMPLATE, [1], per_page=10)

        assert len(result.results[1]) == 20
        assert result.failed_urls == {}
        # Retries are not counted as dispatched requests
        assert result.total_requests == 2


class TestAggregationResult:
    """Tests for AggregationResult."""

    def test_to_dict(self) -> None:
        result = AggregationResult(
            results={1: [{"id": 1}], 2: []},
            failed_urls={2: ["https://canvas.test/api/v1/courses/2/x?page=1&per_page=100"]},
            total_requests=2,
            batches=1,
            duration_seconds=1.234,
        )

        data = result.to_dict()

        assert data["summary"] == {
            "total_keys": 2,
            "total_requests": 2,
            "total_failed": 1,
            "batches": 1,
            "duration_seconds": 1.23,
        }
        assert data["results"] == {"1": [{"id": 1}], "2": []}
        assert list(data["failed_urls"]) == ["2"]
