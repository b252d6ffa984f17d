"""
Tests for backend/breakout_engine/trading_engine/position_track.py

Covers the breakout FSM for both directions:
- Entry on breakout, stop loss on the way back
- Minute-boundary lockout after a block
- Signal arming and threshold trailing
- Paper PnL and peak tracking
- Safety invariant self-heal
- Persistence subset
"""

import pytest

from conftest import T0
from breakout_engine.trading_engine.models import Direction, ExecutionKind, FsmState

SYMBOL = "BTCUSDT"


def _armed(make_track, direction=Direction.LONG, threshold=100.0, **kwargs):
    track, dispatch, save = make_track(direction, **kwargs)
    ltp = threshold if direction == Direction.SHORT else None
    track.apply_signal(threshold, ltp, T0)
    return track, dispatch, save


class TestBreakoutEntry:
    """Tests for the NOPOSITION_SIGNAL -> position transition."""

    def test_no_threshold_is_noop(self, make_track):
        """Edge case: ticks without an armed threshold change nothing."""
        track, _, _ = make_track()
        track.on_tick(SYMBOL, 150.0, T0)
        assert track.fsm_state == FsmState.NOPOSITION
        assert track.paper_trade is None

    def test_long_enters_above_threshold(self, make_track):
        """Happy path: LTP above threshold opens a LONG paper trade at LTP."""
        track, _, _ = _armed(make_track)
        track.on_tick(SYMBOL, 101.0, T0 + 1000)

        assert track.fsm_state == FsmState.BUYPOSITION
        assert track.paper_trade.entry_price == 101.0
        assert track.paper_trade.quantity == pytest.approx(10.0 / 101.0)
        assert track.live.pending_paper_trade is not None

    def test_long_blocks_when_not_crossed(self, make_track):
        """Failure: LTP at the threshold is not a breakout."""
        track, _, _ = _armed(make_track)
        track.on_tick(SYMBOL, 100.0, T0 + 1000)

        assert track.fsm_state == FsmState.NOPOSITION_BLOCKED
        assert track.last_blocked_at_ms == T0 + 1000
        assert track.paper_trade is None

    def test_short_enters_below_and_stops_above(self, make_track):
        """Happy path: SHORT breaks down below threshold and stops out above it."""
        track, _, _ = _armed(make_track, Direction.SHORT, threshold=60.0)
        track.on_tick(SYMBOL, 59.0, T0 + 1000)
        assert track.fsm_state == FsmState.SELLPOSITION

        track.on_tick(SYMBOL, 61.0, T0 + 2000)
        assert track.fsm_state == FsmState.NOPOSITION_BLOCKED
        closed = track.paper_trades[0]
        assert closed.reason == "Stop Loss"
        assert closed.realized_pnl == pytest.approx((59.0 - 61.0) * 10.0 / 59.0)

    def test_long_100_101_99_scenario(self, make_track):
        """Scenario: threshold 100, ticks 100, 101 (next minute), 99 -> enter 101, stop out 99."""
        track, _, _ = _armed(make_track)

        track.on_tick(SYMBOL, 100.0, T0 + 1000)
        assert track.fsm_state == FsmState.NOPOSITION_BLOCKED

        track.on_tick(SYMBOL, 101.0, T0 + 60_000)
        assert track.fsm_state == FsmState.BUYPOSITION
        assert track.paper_trade.entry_price == 101.0

        track.on_tick(SYMBOL, 99.0, T0 + 61_000)
        assert track.fsm_state == FsmState.NOPOSITION_BLOCKED
        assert track.paper_trade is None
        closed = track.paper_trades[0]
        assert closed.entry_price == 101.0
        assert closed.exit_price == 99.0
        assert closed.realized_pnl < 0

    def test_ticks_for_other_symbol_do_not_mark_trade(self, make_track):
        """Edge case: an open trade is only marked by ticks for its own symbol."""
        track, _, _ = _armed(make_track)
        track.on_tick(SYMBOL, 101.0, T0 + 1000)
        track.on_tick("BTCUSD", 150.0, T0 + 2000)
        assert track.paper_trade.current_price == 101.0


class TestLockout:
    """Tests for NOPOSITION_BLOCKED minute-boundary expiry."""

    def test_stays_blocked_within_same_minute(self, make_track):
        """Edge case: a breakout inside the blocked minute is ignored."""
        track, _, _ = _armed(make_track)
        track.on_tick(SYMBOL, 100.0, T0 + 1000)
        track.on_tick(SYMBOL, 105.0, T0 + 59_999)

        assert track.fsm_state == FsmState.NOPOSITION_BLOCKED
        assert track.paper_trade is None

    def test_unblocks_one_second_after_late_block(self, make_track):
        """Edge case: a block at :59 expires at the next minute, one second later."""
        track, _, _ = _armed(make_track)
        track.on_tick(SYMBOL, 100.0, T0 + 59_000)
        track.on_tick(SYMBOL, 101.0, T0 + 60_000)

        assert track.fsm_state == FsmState.BUYPOSITION

    def test_reevaluation_failure_refreshes_anchor(self, make_track):
        """Failure: still no breakout after expiry -> stay blocked with a new anchor."""
        track, _, _ = _armed(make_track)
        track.on_tick(SYMBOL, 100.0, T0 + 1000)
        track.on_tick(SYMBOL, 99.0, T0 + 60_500)

        assert track.fsm_state == FsmState.NOPOSITION_BLOCKED
        assert track.last_blocked_at_ms == T0 + 60_500

    def test_reevaluation_uses_current_price(self, make_track):
        """Happy path: re-entry happens at the price of the re-evaluating tick."""
        track, _, _ = _armed(make_track)
        track.on_tick(SYMBOL, 90.0, T0 + 1000)
        track.on_tick(SYMBOL, 104.0, T0 + 120_000)

        assert track.paper_trade.entry_price == 104.0

    def test_blocked_without_anchor_counts_as_expired(self, make_track):
        """Edge case: a restored BLOCKED track with no anchor re-evaluates immediately."""
        track, _, _ = make_track()
        track.fsm_state = FsmState.NOPOSITION_BLOCKED
        track.threshold = 100.0
        track.on_tick(SYMBOL, 101.0, T0)

        assert track.fsm_state == FsmState.BUYPOSITION


class TestSignals:
    """Tests for apply_signal()."""

    def test_signal_while_blocked_rearms(self, make_track):
        track, _, _ = _armed(make_track)
        track.on_tick(SYMBOL, 100.0, T0 + 1000)
        track.apply_signal(95.0, 100.0, T0 + 2000)

        assert track.fsm_state == FsmState.NOPOSITION_SIGNAL
        assert track.threshold == 95.0

    def test_signal_in_position_trails_threshold(self, make_track):
        """Happy path: a signal during a position only moves the threshold."""
        track, _, _ = _armed(make_track)
        track.on_tick(SYMBOL, 101.0, T0 + 1000)
        track.apply_signal(100.5, 101.0, T0 + 2000)

        assert track.fsm_state == FsmState.BUYPOSITION
        assert track.threshold == 100.5
        assert track.paper_trade is not None

    def test_short_signal_ignores_stop_price(self, make_track):
        track, _, _ = make_track(Direction.SHORT)
        track.apply_signal(50.0, 60.0, T0)
        assert track.threshold == 60.0

    def test_signal_ring_is_bounded(self, make_track):
        track, _, _ = make_track(signal_ring_size=3)
        for i in range(5):
            track.apply_signal(100.0 + i, None, T0 + i)

        assert len(track.signals) == 3
        assert track.signals[0].stop_price == 104.0
        assert track.last_signal_at_ms == T0 + 4


class TestPaperPnl:
    """Tests for mark-to-market and peak PnL."""

    def test_pnl_zero_at_open(self, make_track):
        track, _, _ = _armed(make_track)
        track.on_tick(SYMBOL, 101.0, T0 + 1000)
        assert track.paper_trade.unrealized_pnl == 0.0

    def test_peak_never_decreases(self, make_track):
        track, _, _ = _armed(make_track)
        track.on_tick(SYMBOL, 101.0, T0 + 1000)
        qty = track.paper_trade.quantity

        track.on_tick(SYMBOL, 103.0, T0 + 2000)
        assert track.current_peak_pnl == pytest.approx(2 * qty)

        track.on_tick(SYMBOL, 102.0, T0 + 3000)
        assert track.current_peak_pnl == pytest.approx(2 * qty)
        assert track.paper_trade.unrealized_pnl == pytest.approx(qty)

        track.on_tick(SYMBOL, 104.0, T0 + 4000)
        assert track.current_peak_pnl == pytest.approx(3 * qty)

    def test_peak_only_records_positive_pnl(self, make_track):
        track, _, _ = _armed(make_track)
        track.on_tick(SYMBOL, 101.0, T0 + 1000)
        track.on_tick(SYMBOL, 100.5, T0 + 2000)
        assert track.current_peak_pnl is None

    def test_peak_archived_on_close(self, make_track):
        track, _, _ = _armed(make_track)
        track.on_tick(SYMBOL, 101.0, T0 + 1000)
        track.on_tick(SYMBOL, 104.0, T0 + 2000)
        peak = track.current_peak_pnl

        track.on_tick(SYMBOL, 99.0, T0 + 3000)
        assert track.current_peak_pnl is None
        assert track.peak_pnl_history[0].pnl == peak
        assert track.peak_pnl_history[0].timestamp == T0 + 3000

    def test_losing_trade_archives_no_peak(self, make_track):
        track, _, _ = _armed(make_track)
        track.on_tick(SYMBOL, 101.0, T0 + 1000)
        track.on_tick(SYMBOL, 99.0, T0 + 2000)
        assert track.peak_pnl_history == []


class TestPaperClose:
    """Tests for close_paper_trade()."""

    def test_close_requests_save_and_feeds_live_cumulative(self, make_track):
        track, _, save = make_track()
        track.open_paper_trade(SYMBOL, 100.0, T0)
        track.close_paper_trade(110.0, "Stop Loss", T0 + 1000)

        save.assert_called_once()
        assert track.live.cumulative_pnl == pytest.approx(1.0)
        assert track.live.pending_paper_trade is None

    def test_close_force_closes_live_trade(self, make_track):
        """Happy path: closing paper also closes live with the same reason."""
        track, dispatch, _ = make_track()
        track.open_paper_trade(SYMBOL, 100.0, T0)
        track.live.open_trade_at(101.0, SYMBOL, T0 + 1000)
        track.close_paper_trade(102.0, "Daily Reset", T0 + 2000)

        exit_row = track.live.trades[0]
        assert exit_row.action == "EXIT"
        assert exit_row.reason == "Daily Reset"
        assert dispatch.call_args_list[-1].args[0].kind == ExecutionKind.EXIT

    def test_open_skips_when_trade_already_open(self, make_track):
        track, _, _ = make_track()
        track.open_paper_trade(SYMBOL, 100.0, T0)
        track.open_paper_trade(SYMBOL, 200.0, T0 + 1)
        assert track.paper_trade.entry_price == 100.0

    def test_history_limit(self, make_track):
        track, _, _ = make_track(paper_history_limit=1)
        for i, price in enumerate((100.0, 200.0)):
            track.open_paper_trade(SYMBOL, price, T0 + i * 10)
            track.close_paper_trade(price, "Stop Loss", T0 + i * 10 + 1)

        assert len(track.paper_trades) == 1
        assert track.paper_trades[0].entry_price == 200.0

    def test_close_without_trade_is_noop(self, make_track):
        track, _, save = make_track()
        track.close_paper_trade(100.0, "Stop Loss", T0)
        save.assert_not_called()


class TestInvariant:
    """Tests for check_invariant()."""

    def test_position_without_trade_self_heals(self, make_track):
        """Failure: BUYPOSITION with no paper trade is reset to NOPOSITION."""
        track, _, _ = make_track()
        track.fsm_state = FsmState.BUYPOSITION
        track.threshold = 100.0
        track.current_peak_pnl = 3.0

        track.on_tick(SYMBOL, 99.0, T0)

        assert track.fsm_state == FsmState.NOPOSITION
        assert track.threshold is None
        assert track.current_peak_pnl is None
        assert track.paper_trades == []


class TestPersistence:
    """Tests for to_persisted() / restore()."""

    def test_open_trade_is_not_persisted(self, make_track):
        track, _, _ = _armed(make_track)
        track.on_tick(SYMBOL, 101.0, T0 + 1000)

        data = track.to_persisted()
        assert "paper_trade" not in data
        assert data["fsm_state"] == "BUYPOSITION"
        assert data["threshold"] == 100.0

    def test_restore_round_trips_history(self, make_track):
        track, _, _ = _armed(make_track)
        track.on_tick(SYMBOL, 101.0, T0 + 1000)
        track.on_tick(SYMBOL, 104.0, T0 + 2000)
        track.on_tick(SYMBOL, 99.0, T0 + 3000)

        restored, _, _ = make_track()
        restored.restore(track.to_persisted())

        assert restored.fsm_state == FsmState.NOPOSITION_BLOCKED
        assert restored.paper_trades == track.paper_trades
        assert restored.peak_pnl_history == track.peak_pnl_history
        assert list(restored.live.trades) == list(track.live.trades)
        assert restored.live.cumulative_pnl == track.live.cumulative_pnl

    def test_restore_unknown_state_falls_back(self, make_track):
        track, _, _ = make_track()
        track.restore({"fsm_state": "SIDEWAYS"})
        assert track.fsm_state == FsmState.NOPOSITION
