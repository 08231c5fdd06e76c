"""
Risk Manager
============

Owns open positions and is the single gate every candidate trade passes
through.

RESPONSIBILITIES:
=================

1. SIZING: Kelly and volatility-targeted notional, capped by limits
2. PRE-TRADE CHECKS (check_risk_limits), evaluated in order:
   a. |quantity * price| <= max_position_size
   b. realized daily PnL >= -daily_loss_limit
   c. proposed value / portfolio value <= concentration_limit
   d. current drawdown <= max_drawdown
   The first failing check denies the order with a DenialReason code.
3. POSITION LIFECYCLE: add, mark-to-market, exits, close
4. PORTFOLIO RISK: drawdown, VaR, Sharpe, concentration

EXIT ORDER ON EVERY PRICE UPDATE:
=================================

    1. explicit stop_loss hit   (long: price <= stop, short: price >= stop)
    2. explicit take_profit hit (long: price >= take, short: price <= take)
    3. dynamic stop: unrealized / (entry * |qty|) < -stop_loss_percent / 100

CONCURRENCY:
============
Signal execution and periodic mark-to-market both mutate positions, so
every public method runs under one re-entrant lock. calculate_risk_metrics
returns a frozen snapshot taken under the same lock.

Daily PnL is only reset by an explicit reset_daily_metrics() call.
"""

import threading
import time
from collections import deque
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Dict, List, Optional, Deque

from ..errors import ConfigError
from ..infra.config import RiskLimits
from ..infra.logging import get_logger, LogCategory
from .position_sizing import kelly_position_size, volatility_weighted_size
from .risk_metrics import (
    RiskMetrics,
    value_at_risk,
    sharpe_ratio,
    max_drawdown,
    current_drawdown,
    correlation_risk,
)


logger = get_logger()


class DenialReason(Enum):
    """Machine-readable reason a pre-trade check failed."""
    POSITION_SIZE = "position_size"
    DAILY_LOSS = "daily_loss"
    CONCENTRATION = "concentration"
    DRAWDOWN = "drawdown"


class CloseReason(Enum):
    """Why a position was closed."""
    STOP_LOSS = "stop_loss"
    TAKE_PROFIT = "take_profit"
    DYNAMIC_STOP = "dynamic_stop"
    MANUAL = "manual"
    EMERGENCY = "emergency"


@dataclass(frozen=True)
class RiskDecision:
    """
    Result of a pre-trade check.

    Truthy when the order is allowed.
    """
    allowed: bool
    code: Optional[DenialReason] = None
    reason: Optional[str] = None

    @classmethod
    def allow(cls) -> 'RiskDecision':
        return cls(True)

    @classmethod
    def deny(cls, code: DenialReason, reason: str) -> 'RiskDecision':
        return cls(False, code, reason)

    def __bool__(self) -> bool:
        return self.allowed


@dataclass
class Position:
    """
    An open position. Quantity sign encodes direction (long > 0).
    """
    symbol: str
    quantity: float
    entry_price: float
    current_price: float
    unrealized_pnl: float = 0.0
    timestamp: int = 0
    stop_loss: Optional[float] = None
    take_profit: Optional[float] = None

    @property
    def is_long(self) -> bool:
        return self.quantity > 0

    @property
    def market_value(self) -> float:
        return abs(self.quantity * self.current_price)

    def to_dict(self) -> Dict:
        return {
            "symbol": self.symbol,
            "quantity": self.quantity,
            "entry_price": self.entry_price,
            "current_price": self.current_price,
            "unrealized_pnl": self.unrealized_pnl,
            "timestamp": self.timestamp,
            "stop_loss": self.stop_loss,
            "take_profit": self.take_profit,
        }


@dataclass(frozen=True)
class PositionClosedEvent:
    """Emitted every time a position is closed."""
    symbol: str
    quantity: float
    entry_price: float
    exit_price: float
    realized_pnl: float
    reason: CloseReason
    timestamp: int

    def to_dict(self) -> Dict:
        return {
            "symbol": self.symbol,
            "quantity": self.quantity,
            "entry_price": self.entry_price,
            "exit_price": self.exit_price,
            "realized_pnl": self.realized_pnl,
            "reason": self.reason.value,
            "timestamp": self.timestamp,
        }


# Callback for position-closed events
PositionClosedCallback = Callable[[PositionClosedEvent], None]


def _now_ms() -> int:
    return int(time.time() * 1000)


class RiskManager:
    """
    Sizes, gates and books positions; computes portfolio risk.
    """

    def __init__(
        self,
        limits: Optional[RiskLimits] = None,
        history_size: int = 1000,
        var_confidence: float = 0.95,
        min_history_for_stats: int = 30
    ):
        """
        Initialize risk manager.

        Args:
            limits: Risk limits (defaults if omitted)
            history_size: Portfolio value history and closed-event capacity
            var_confidence: VaR confidence level
            min_history_for_stats: Value points required for VaR and Sharpe
        """
        self._limits = replace(limits) if limits else RiskLimits()
        self._limits.validate()

        self._var_confidence = var_confidence
        self._min_history = min_history_for_stats

        # Position state
        self._positions: Dict[str, Position] = {}
        self._daily_pnl = 0.0

        # Portfolio value tracking
        self._portfolio_history: Deque[float] = deque(maxlen=history_size)
        self._peak_value = 0.0

        # Close events and subscribers
        self._closed_events: Deque[PositionClosedEvent] = deque(maxlen=history_size)
        self._callbacks: List[PositionClosedCallback] = []

        # Thread safety
        self._lock = threading.RLock()

    @property
    def limits(self) -> RiskLimits:
        """Copy of the active limits."""
        with self._lock:
            return replace(self._limits)

    @property
    def daily_pnl(self) -> float:
        """Realized PnL since the last daily reset."""
        with self._lock:
            return self._daily_pnl

    def register_callback(self, callback: PositionClosedCallback) -> None:
        """Subscribe to position-closed events."""
        self._callbacks.append(callback)

    # ------------------------------------------------------------------
    # Sizing
    # ------------------------------------------------------------------

    def calculate_kelly_position(
        self,
        win_rate: float,
        avg_win: float,
        avg_loss: float,
        portfolio_value: float
    ) -> float:
        """
        Quarter-Kelly notional, capped at max_position_size.

        Example: win_rate=0.6, avg_win=2, avg_loss=-1 on 100,000 gives
        kelly=0.4 and 0.4 * 0.25 * 100,000 = 10,000.
        """
        with self._lock:
            cap = self._limits.max_position_size
        return kelly_position_size(win_rate, avg_win, avg_loss, portfolio_value, cap)

    def calculate_volatility_weighted_position(
        self,
        symbol: str,
        volatility: float,
        target_volatility: float,
        portfolio_value: float
    ) -> float:
        """Volatility-targeted notional for `symbol`, capped at max_position_size."""
        with self._lock:
            cap = self._limits.max_position_size
        return volatility_weighted_size(volatility, target_volatility, portfolio_value, cap)

    # ------------------------------------------------------------------
    # Pre-trade checks
    # ------------------------------------------------------------------

    def check_risk_limits(self, symbol: str, proposed_quantity: float, price: float) -> RiskDecision:
        """
        Check a proposed order against all limits.

        Reads state only; nothing is booked or recorded.

        Returns:
            RiskDecision.allow() or the first failing check's denial
        """
        with self._lock:
            limits = self._limits
            proposed_value = abs(proposed_quantity * price)

            if proposed_value > limits.max_position_size:
                return RiskDecision.deny(
                    DenialReason.POSITION_SIZE,
                    f"Position size {proposed_value:.2f} exceeds limit {limits.max_position_size:.2f}",
                )

            if self._daily_pnl < -limits.daily_loss_limit:
                return RiskDecision.deny(
                    DenialReason.DAILY_LOSS,
                    f"Daily loss limit reached: {self._daily_pnl:.2f}",
                )

            portfolio_value = self._portfolio_value()
            if portfolio_value > 0:
                concentration = proposed_value / portfolio_value
                if concentration > limits.concentration_limit:
                    return RiskDecision.deny(
                        DenialReason.CONCENTRATION,
                        f"Concentration {concentration:.1%} exceeds limit {limits.concentration_limit:.1%}",
                    )

            drawdown = current_drawdown(max(self._peak_value, portfolio_value), portfolio_value)
            if drawdown > limits.max_drawdown:
                return RiskDecision.deny(
                    DenialReason.DRAWDOWN,
                    f"Current drawdown {drawdown:.1%} exceeds limit {limits.max_drawdown:.1%}",
                )

            return RiskDecision.allow()

    # ------------------------------------------------------------------
    # Position lifecycle
    # ------------------------------------------------------------------

    def add_position(self, position: Position) -> None:
        """Book a position. An existing position in the symbol is replaced."""
        with self._lock:
            if position.symbol in self._positions:
                logger.warning(
                    f"Replacing existing position in {position.symbol}",
                    category=LogCategory.RISK,
                    symbol=position.symbol,
                )
            self._positions[position.symbol] = position
            self._record_portfolio_value()

        logger.info(
            f"OPEN: {position.quantity:+g} {position.symbol} @ {position.entry_price:.4f}",
            category=LogCategory.AUDIT,
            symbol=position.symbol,
            quantity=position.quantity,
            entry_price=position.entry_price,
            stop_loss=position.stop_loss,
            take_profit=position.take_profit,
        )

    def open_position(
        self,
        symbol: str,
        quantity: float,
        price: float,
        timestamp: Optional[int] = None,
        stop_loss: Optional[float] = None,
        take_profit: Optional[float] = None
    ) -> Position:
        """
        Book a new position with stop/take levels.

        Levels not given are derived from stop_loss_percent and
        take_profit_percent on the side of the position's direction.
        """
        with self._lock:
            sl = self._limits.stop_loss_percent / 100
            tp = self._limits.take_profit_percent / 100

        direction = 1 if quantity > 0 else -1
        if stop_loss is None:
            stop_loss = price * (1 - direction * sl)
        if take_profit is None:
            take_profit = price * (1 + direction * tp)

        position = Position(
            symbol=symbol,
            quantity=quantity,
            entry_price=price,
            current_price=price,
            timestamp=timestamp if timestamp is not None else _now_ms(),
            stop_loss=stop_loss,
            take_profit=take_profit,
        )
        self.add_position(position)
        return position

    def update_position(self, symbol: str, current_price: float) -> Optional[PositionClosedEvent]:
        """
        Mark a position to market and evaluate exits.

        Returns:
            The close event if an exit fired, else None
        """
        with self._lock:
            position = self._positions.get(symbol)
            if position is None:
                return None

            position.current_price = current_price
            position.unrealized_pnl = (current_price - position.entry_price) * position.quantity
            self._peak_value = max(self._peak_value, self._portfolio_value())

            reason = self._exit_reason(position)
            if reason is None:
                return None

            return self._close(symbol, current_price, reason)

    def _exit_reason(self, position: Position) -> Optional[CloseReason]:
        price = position.current_price

        if position.stop_loss is not None:
            if (price <= position.stop_loss) if position.is_long else (price >= position.stop_loss):
                return CloseReason.STOP_LOSS

        if position.take_profit is not None:
            if (price >= position.take_profit) if position.is_long else (price <= position.take_profit):
                return CloseReason.TAKE_PROFIT

        notional = position.entry_price * abs(position.quantity)
        if notional > 0:
            pnl_percent = position.unrealized_pnl / notional
            if pnl_percent < -self._limits.stop_loss_percent / 100:
                return CloseReason.DYNAMIC_STOP

        return None

    def close_position(
        self,
        symbol: str,
        exit_price: float,
        reason: CloseReason = CloseReason.MANUAL
    ) -> float:
        """
        Close a position and realize its PnL into daily PnL.

        Returns:
            Realized PnL, 0.0 when there is no position
        """
        with self._lock:
            event = self._close(symbol, exit_price, reason)
        return event.realized_pnl if event else 0.0

    def _close(self, symbol: str, exit_price: float, reason: CloseReason) -> Optional[PositionClosedEvent]:
        position = self._positions.pop(symbol, None)
        if position is None:
            return None

        realized_pnl = (exit_price - position.entry_price) * position.quantity
        self._daily_pnl += realized_pnl
        self._record_portfolio_value()

        event = PositionClosedEvent(
            symbol=symbol,
            quantity=position.quantity,
            entry_price=position.entry_price,
            exit_price=exit_price,
            realized_pnl=realized_pnl,
            reason=reason,
            timestamp=_now_ms(),
        )
        self._closed_events.append(event)

        logger.log_position_closed(
            symbol, position.quantity, exit_price, realized_pnl, reason.value,
            entry_price=position.entry_price,
        )

        for callback in self._callbacks:
            try:
                callback(event)
            except Exception as e:
                logger.error(f"Position callback error: {e}", category=LogCategory.RISK)

        return event

    def emergency_stop(self) -> List[PositionClosedEvent]:
        """
        Close every open position at its current price, in symbol order.
        """
        with self._lock:
            logger.log_risk_event(
                "EMERGENCY_STOP",
                f"Closing {len(self._positions)} positions",
                severity="CRITICAL",
                symbols=sorted(self._positions),
            )

            events = []
            for symbol in sorted(self._positions):
                event = self._close(symbol, self._positions[symbol].current_price, CloseReason.EMERGENCY)
                events.append(event)
            return events

    # ------------------------------------------------------------------
    # Portfolio tracking
    # ------------------------------------------------------------------

    def _portfolio_value(self) -> float:
        return sum(p.market_value for p in self._positions.values())

    def _record_portfolio_value(self) -> None:
        value = self._portfolio_value()
        self._portfolio_history.append(value)
        self._peak_value = max(self._peak_value, value)

    def calculate_risk_metrics(self) -> RiskMetrics:
        """
        Snapshot of portfolio risk.

        Reads state only: the running peak is not advanced here.
        """
        with self._lock:
            exposures = {symbol: p.market_value for symbol, p in self._positions.items()}
            portfolio_value = sum(exposures.values())
            unrealized = sum(p.unrealized_pnl for p in self._positions.values())
            history = list(self._portfolio_history)
            peak = max(self._peak_value, portfolio_value)
            daily_pnl = self._daily_pnl

        return RiskMetrics(
            portfolio_value=portfolio_value,
            exposure_by_asset=exposures,
            correlation_risk=correlation_risk(exposures, portfolio_value),
            var_estimate=value_at_risk(history, self._var_confidence, self._min_history),
            sharpe_ratio=sharpe_ratio(history, self._min_history),
            max_drawdown=max_drawdown(history),
            current_drawdown=current_drawdown(peak, portfolio_value),
            daily_pnl=daily_pnl + unrealized,
        )

    def reset_daily_metrics(self) -> None:
        """Start a new trading day."""
        with self._lock:
            previous = self._daily_pnl
            self._daily_pnl = 0.0

        logger.info(
            f"Daily metrics reset (previous daily PnL {previous:+.2f})",
            category=LogCategory.RISK,
            previous_daily_pnl=previous,
        )

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    def get_positions(self) -> Dict[str, Position]:
        """Copies of the open positions."""
        with self._lock:
            return {symbol: replace(p) for symbol, p in self._positions.items()}

    def get_closed_events(self, limit: Optional[int] = None) -> List[PositionClosedEvent]:
        """Closed-position events, oldest first."""
        with self._lock:
            events = list(self._closed_events)
        return events[-limit:] if limit else events

    def get_portfolio_history(self) -> List[float]:
        with self._lock:
            return list(self._portfolio_history)

    def update_risk_limits(self, **changes) -> RiskLimits:
        """
        Hot-reload some or all limits.

        Raises:
            ConfigError: unknown limit name or a negative value
        """
        unknown = set(changes) - set(RiskLimits.field_names())
        if unknown:
            raise ConfigError(f"Unknown risk limits: {', '.join(sorted(unknown))}")

        with self._lock:
            updated = replace(self._limits, **changes)
            updated.validate()
            self._limits = updated

        logger.info(
            "Risk limits updated",
            category=LogCategory.RISK,
            **changes
        )
        return replace(updated)
