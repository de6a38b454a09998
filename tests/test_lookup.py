"""Tests for the cache -> database -> live lookup tiers."""

from unittest.mock import MagicMock

import pytest

from ingestion.results_ingestion.core.exceptions import (
    FetchFailed, PersistenceError, ResultsTemporarilyUnavailable
)
from ingestion.results_ingestion.core.lookup import TieredResultLookup

HALL_TICKET = "23XZ1A0501"


@pytest.fixture
def tiers():
    cache, store, scraper = MagicMock(), MagicMock(), MagicMock()
    cache.get.return_value = None
    store.load.return_value = None
    scraper.fetch_and_parse.return_value = None
    lookup = TieredResultLookup(cache, store, scraper, exam_code="1323", read_repair_ttl=3600)
    return lookup, cache, store, scraper


class TestTieredLookup:

    def test_cache_hit_skips_database_and_portal(self, tiers, record_factory):
        lookup, cache, store, scraper = tiers
        cache.get.return_value = record_factory()

        result = lookup.lookup(HALL_TICKET)

        assert result.source == "cache"
        assert result.found
        store.load.assert_not_called()
        scraper.fetch_and_parse.assert_not_called()

    def test_database_hit_skips_portal_and_read_repairs(self, tiers, record_factory):
        lookup, cache, store, scraper = tiers
        stored = record_factory()
        store.load.return_value = stored

        result = lookup.lookup(HALL_TICKET)

        assert result.source == "database"
        assert result.record == stored
        scraper.fetch_and_parse.assert_not_called()
        cache.set.assert_called_once_with(stored, ttl_seconds=3600)

    def test_double_miss_fetches_live_exactly_once(self, tiers, record_factory):
        lookup, cache, store, scraper = tiers
        live = record_factory()
        scraper.fetch_and_parse.return_value = live

        result = lookup.lookup(HALL_TICKET)

        assert result.source == "live"
        assert result.record == live
        scraper.fetch_and_parse.assert_called_once_with(HALL_TICKET, "1323")
        store.save.assert_called_once_with(live)

    def test_not_found_anywhere(self, tiers):
        lookup, cache, store, scraper = tiers

        result = lookup.lookup(HALL_TICKET)

        assert result.source == "not_found"
        assert not result.found
        scraper.fetch_and_parse.assert_called_once()
        store.save.assert_not_called()

    def test_portal_unreachable_is_not_not_found(self, tiers):
        lookup, cache, store, scraper = tiers
        scraper.fetch_and_parse.side_effect = FetchFailed(HALL_TICKET, "timeout")

        with pytest.raises(ResultsTemporarilyUnavailable):
            lookup.lookup(HALL_TICKET)

    def test_live_record_served_when_save_fails(self, tiers, record_factory):
        lookup, cache, store, scraper = tiers
        live = record_factory()
        scraper.fetch_and_parse.return_value = live
        store.save.side_effect = PersistenceError("db down")

        result = lookup.lookup(HALL_TICKET)

        assert result.source == "live"
        assert result.record == live

    def test_malformed_hall_ticket_touches_nothing(self, tiers):
        lookup, cache, store, scraper = tiers

        result = lookup.lookup("'; DROP TABLE students;--")

        assert result.source == "not_found"
        cache.get.assert_not_called()
        store.load.assert_not_called()
        scraper.fetch_and_parse.assert_not_called()

    def test_real_tiers_promote_live_result(self, container, portal, page, fake_redis):
        portal.pages[HALL_TICKET] = page(HALL_TICKET, name="LIVE STUDENT")

        first = container.lookup.lookup(HALL_TICKET)
        second = container.lookup.lookup(HALL_TICKET)

        assert first.source == "live"
        assert second.source == "cache"
        assert second.record.name == "LIVE STUDENT"
        assert len(portal.posts) == 1
        assert container.store.load(HALL_TICKET) is not None

    def test_real_tiers_read_repair_after_cache_loss(self, container, portal, page, fake_redis):
        portal.pages[HALL_TICKET] = page(HALL_TICKET)
        container.lookup.lookup(HALL_TICKET)
        fake_redis.data.clear()

        result = container.lookup.lookup(HALL_TICKET)

        assert result.source == "database"
        assert fake_redis.set_calls[-1] == (f"result:{HALL_TICKET}", 3600)
        assert len(portal.posts) == 1
