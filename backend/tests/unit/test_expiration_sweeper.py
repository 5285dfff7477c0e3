"""
Unit tests for the expiration sweeper.

WHAT: Test single runs, failure handling and start/stop
WHY: The sweeper runs unattended in the background
HOW: Real engine with a fake clock; a failing stub for error paths
"""

import pytest

from gearmarket.services.expiration_sweeper import ExpirationSweeper


class FailingEngine:
    def sweep_expired(self):
        raise RuntimeError("database is locked")


@pytest.mark.unit
def test_run_once_expires_stale_offers(engine, make_listing, clock):
    listing = make_listing()
    engine.create_offer(listing.id, "buyer_1", 60.0)
    clock.advance(hours=49)

    sweeper = ExpirationSweeper(engine, interval_seconds=60)
    assert sweeper.run_once() == 1
    assert sweeper.run_once() == 0


@pytest.mark.unit
def test_run_once_logs_and_survives_failures(caplog):
    sweeper = ExpirationSweeper(FailingEngine(), interval_seconds=60)
    assert sweeper.run_once() == 0
    assert "Offer expiration sweep failed" in caplog.text


@pytest.mark.unit
def test_start_and_stop(engine):
    sweeper = ExpirationSweeper(engine, interval_seconds=3600)
    assert not sweeper.running

    sweeper.start()
    sweeper.start()
    assert sweeper.running
    assert sweeper._timer is not None

    sweeper.stop()
    assert not sweeper.running
    assert sweeper._timer is None
