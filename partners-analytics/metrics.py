"""
Metrics aggregation for the partner dashboard.

Turns stored hourly metric points into the chart series and KPI totals
served by /api/metrics, and shapes transaction rows for /api/transactions.
Everything here is a pure function of its inputs: callers pass `now`
instead of reading the clock so results are reproducible.
"""
import logging
import re
from datetime import datetime, timedelta, timezone
from decimal import Decimal, ROUND_HALF_UP

logger = logging.getLogger(__name__)

# Stand-in for a live BTC/USD feed, see utils/price_fetcher.py
BTC_PRICE_USD = 80000

TREND_WINDOW = timedelta(hours=24)

# Named ranges (matching the dashboard time-range tabs)
RANGE_TO_DELTA = {
    '1d': timedelta(days=1),
    '7d': timedelta(days=7),
    '1m': timedelta(days=30),
    '30d': timedelta(days=30),
    '3m': timedelta(days=90),
    '90d': timedelta(days=90),
    'all': timedelta(days=365),
}

_URL_DECODED_OFFSET = re.compile(r'T.* (\d{2}:?\d{2})$')


# =============================================================================
# Helpers
# =============================================================================

def round_half_away(value, places=2):
    """Round to `places` decimals with ties going away from zero (1.005 -> 1.01)"""
    if value is None:
        return 0.0
    quantum = Decimal(1).scaleb(-places)
    rounded = Decimal(repr(float(value))).quantize(quantum, rounding=ROUND_HALF_UP)
    # + 0.0 turns -0.0 into 0.0
    return float(rounded) + 0.0


def to_utc(value):
    """Coerce a datetime to an aware UTC datetime; naive values are taken as UTC"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_iso(value):
    """Serialize like JavaScript's Date.toISOString(): 2025-01-01T00:00:00.000Z"""
    if value is None:
        return None
    value = to_utc(value)
    return value.strftime('%Y-%m-%dT%H:%M:%S') + f".{value.microsecond // 1000:03d}Z"


def parse_timestamp(raw):
    """
    Parse an ISO-8601 query value. Returns None for absent or malformed input
    so that callers treat it as "no bound".
    """
    if raw is None:
        return None
    value = str(raw).strip()
    if not value:
        return None

    if value.endswith(('Z', 'z')):
        value = value[:-1] + '+00:00'

    # A '+' in an unencoded query string arrives as a space
    match = _URL_DECODED_OFFSET.search(value)
    if match:
        value = value[:match.start(1) - 1] + '+' + match.group(1)

    try:
        return to_utc(datetime.fromisoformat(value))
    except (ValueError, OverflowError):
        # unparsable, or out of range once shifted to UTC
        logger.debug(f"Ignoring malformed timestamp {raw!r}")
        return None


def resolve_window(from_param=None, to_param=None, range_param=None, now=None):
    """
    Work out the inclusive [start, end] bounds for a metrics request.

    Explicit from/to win over a named range on a per-bound basis. Unknown
    ranges and malformed timestamps leave the bound open.
    """
    start = parse_timestamp(from_param)
    end = parse_timestamp(to_param)

    delta = RANGE_TO_DELTA.get((range_param or '').strip().lower())
    if delta is not None:
        now = to_utc(now or datetime.now(timezone.utc))
        if start is None:
            start = now - delta
        if end is None:
            end = now

    return start, end


def filter_points(points, start=None, end=None):
    """Points with start <= t <= end, ascending by t"""
    selected = []
    for point in points:
        t = to_utc(point['t'])
        if start is not None and t < start:
            continue
        if end is not None and t > end:
            continue
        selected.append(point)
    return sorted(selected, key=lambda p: to_utc(p['t']))


def fee_change_24h(points, now):
    """
    Relative change in fees between the trailing 24h and the 24h before it.

    Anchored on `now`, not on any chart window. Returns 0 when the earlier
    window has no fees.
    """
    now = to_utc(now)
    last_start = now - TREND_WINDOW
    prev_start = now - 2 * TREND_WINDOW

    last_fees = 0.0
    prev_fees = 0.0
    for point in points:
        t = to_utc(point['t'])
        if t >= last_start:
            last_fees += float(point['fees_usd'])
        elif t >= prev_start:
            prev_fees += float(point['fees_usd'])

    if prev_fees == 0:
        return 0.0
    return (last_fees - prev_fees) / prev_fees


# =============================================================================
# Response builders
# =============================================================================

def compute_metrics_response(points, now, trend_points=None, btc_price=BTC_PRICE_USD):
    """
    Build the /api/metrics payload.

    `points` is the (already date-filtered) series for the chart and totals.
    `trend_points` feeds change24h; when omitted the series itself is used.
    The HTTP layer passes the trailing 48h here so the trend card does not
    depend on the selected chart range.
    """
    ordered = sorted(points, key=lambda p: to_utc(p['t']))

    series = []
    total_volume = 0.0
    total_fees = 0.0
    total_trades = 0

    for point in ordered:
        volume = float(point['volume_usd'])
        fees = float(point['fees_usd'])
        trades = int(point['trades'])

        total_volume += volume
        total_fees += fees
        total_trades += trades

        series.append({
            't': to_iso(point['t']),
            'volumeUsd': round_half_away(volume, 2),
            'feesUsd': round_half_away(fees, 2),
            'trades': trades
        })

    fees_usd = round_half_away(total_fees, 2)
    btc_equivalent = round_half_away(fees_usd / btc_price, 4) if btc_price else 0.0
    change_24h = fee_change_24h(ordered if trend_points is None else trend_points, now)

    return {
        'series': series,
        'totals': {
            'volumeUsd': round_half_away(total_volume, 2),
            'feesUsd': fees_usd,
            'trades': total_trades,
            'change24h': round_half_away(change_24h, 4),
            'btcEquivalent': btc_equivalent
        }
    }


def format_transaction(row):
    return {
        'id': row['id'],
        'projectId': row['project_id'],
        'ts': to_iso(row['ts']),
        'assetFrom': row['asset_from'],
        'assetTo': row['asset_to'],
        'amountIn': row['amount_in'],
        'amountOut': row['amount_out'],
        'route': row['route'],
        'usdNotional': round_half_away(row['usd_notional'], 2),
        'feeUsd': round_half_away(row['fee_usd'], 2),
        'status': row['status'],
        'txHash': row['tx_hash'],
        'chain': row['chain']
    }


def format_transactions(transactions):
    return [format_transaction(row) for row in transactions]
