"""Markdown text for every notification the monitor sends"""

from typing import List, Optional

from portfolio_monitor.models import (
    MovementEvent,
    Notification,
    PortfolioHistoryPoint,
    PortfolioSummary,
    PositionEvent,
    PositionEventKind,
    PriceAlert,
    AlertCondition,
)


def format_number(value: Optional[float], decimals: int = 2) -> str:
    if value is None:
        return f"{0:.{decimals}f}"
    try:
        number = float(value)
    except (TypeError, ValueError):
        return f"{0:.{decimals}f}"
    if number != number or number in (float('inf'), float('-inf')):
        return f"{0:.{decimals}f}"
    return f"{number:,.{decimals}f}"


def _pnl_emoji(value: float) -> str:
    return "🟢" if value >= 0 else "🔴"


def format_position_event(event: PositionEvent) -> Notification:
    position = event.position
    lines: List[str]

    if event.kind == PositionEventKind.OPENED:
        lines = [
            f"🆕 *New position: {event.symbol}*",
            "",
            f"- *Bought:* `{event.quantity:g}` at `${format_number(event.price, 4)}`",
            f"- *Cost:* `${format_number(event.quantity * event.price)}`",
            f"- *Balance:* `{event.balance:g}`",
        ]
    elif event.kind == PositionEventKind.INCREASED:
        lines = [
            f"➕ *Position increased: {event.symbol}*",
            "",
            f"- *Bought:* `{event.quantity:g}` at `${format_number(event.price, 4)}`",
            f"- *New average price:* `${format_number(position.average_buy_price, 4)}`",
            f"- *Balance:* `{event.balance:g}`",
        ]
    elif event.kind == PositionEventKind.REDUCED:
        pnl = event.realized_pnl or 0.0
        lines = [
            f"➖ *Partial sell: {event.symbol}*",
            "",
            f"- *Sold:* `{event.quantity:g}` at `${format_number(event.price, 4)}`",
            f"- *Average buy price:* `${format_number(position.average_buy_price, 4)}`",
            f"- *Realized P&L:* {_pnl_emoji(pnl)} `${format_number(pnl)}` ({format_number(event.realized_pnl_percent)}%)",
            f"- *Remaining balance:* `{event.balance:g}`",
        ]
    else:
        pnl = event.total_realized_pnl if event.total_realized_pnl is not None else (event.realized_pnl or 0.0)
        lines = [
            f"✅ *Position closed: {event.symbol}*",
            "",
            f"- *Sold:* `{event.quantity:g}` at `${format_number(event.price, 4)}`",
            f"- *Average buy price:* `${format_number(position.average_buy_price, 4)}`",
            f"- *Total realized P&L:* {_pnl_emoji(pnl)} `${format_number(pnl)}` ({format_number(event.realized_pnl_percent)}%)",
            f"- *Held for:* `{format_number(event.duration_days, 1)}` days",
        ]
        if event.highest_price is not None and event.lowest_price is not None:
            lines.append(
                f"- *Range while open:* `${format_number(event.lowest_price, 4)}` - `${format_number(event.highest_price, 4)}`"
            )

    # Only closed positions go to the public channel
    return Notification(text="\n".join(lines), broadcast=event.kind == PositionEventKind.CLOSED)


def format_movement_event(event: MovementEvent, average_buy_price: Optional[float] = None) -> Notification:
    arrow = "📈" if event.direction == "up" else "📉"
    lines = [
        f"{arrow} *Price movement: {event.symbol}*",
        "",
        f"- *Change:* `{event.percent_change:+.2f}%` (threshold {format_number(event.threshold)}%)",
        f"- *From:* `${format_number(event.baseline_price, 4)}` *to* `${format_number(event.current_price, 4)}`",
    ]
    if average_buy_price:
        pnl_percent = (event.current_price - average_buy_price) / average_buy_price * 100
        lines.append(f"- *Vs. your average:* {_pnl_emoji(pnl_percent)} `{pnl_percent:+.2f}%`")
    return Notification(text="\n".join(lines))


def format_price_alert(alert: PriceAlert, current_price: float) -> Notification:
    condition = ">" if alert.condition == AlertCondition.ABOVE else "<"
    lines = [
        "🚨 *Price alert!* 🚨",
        "",
        f"- *Instrument:* `{alert.inst_id}`",
        f"- *Condition met:* `{condition} {alert.price:g}`",
        f"- *Current price:* `{current_price:g}`",
    ]
    return Notification(text="\n".join(lines))


def format_daily_summary(
    portfolio: PortfolioSummary,
    capital: float,
    history: List[PortfolioHistoryPoint],
    broadcast: bool = False
) -> Notification:
    total = portfolio.total
    lines = [
        "📊 *Daily portfolio summary*",
        "",
        f"💰 *Current value:* `${format_number(total)}`",
    ]

    if capital > 0:
        pnl = total - capital
        lines.append(f"💼 *Capital:* `${format_number(capital)}`")
        lines.append(f"📈 *P&L:* {_pnl_emoji(pnl)} `${format_number(pnl)}` ({format_number(pnl / capital * 100)}%)")

    if len(history) >= 2 and history[-2].total > 0:
        previous = history[-2].total
        diff = history[-1].total - previous
        lines.append(f"🗓️ *Since yesterday:* {_pnl_emoji(diff)} `${format_number(diff)}` ({format_number(diff / previous * 100)}%)")

    if portfolio.assets:
        lines.append("")
        for asset in portfolio.assets[:10]:
            share = asset.value / total * 100 if total > 0 else 0.0
            lines.append(f"💎 *{asset.asset}* ({format_number(share)}%): `${format_number(asset.value)}`")

    return Notification(text="\n".join(lines), broadcast=broadcast)
