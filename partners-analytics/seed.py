# seed.py
"""
Synthetic metrics and transactions for newly created projects.

Placeholder until real THORChain / Mayachain / Chainflip attribution is
ingested: every project gets SEED_DAYS of hourly metric points ending at the
current hour and a handful of recent swaps.
"""
import logging
import random
import uuid
from datetime import datetime, timedelta, timezone
from typing import Dict, List

from config import config

logger = logging.getLogger(__name__)

SWAP_PAIRS = [
    ('BTC', 'ETH'),
    ('ETH', 'USDC'),
    ('USDC', 'BTC'),
    ('ETH', 'BTC'),
    ('BTC', 'USDT'),
    ('SOL', 'ETH'),
    ('RUNE', 'BTC'),
]
CHAINS = ['THOR', 'MAYA', 'CHAINFLIP']
STATUSES = ['Completed', 'Running', 'Refunded']
FEE_RATE = 0.003


def generate_metric_points(project_id: str, now: datetime, days: int = None, rng=None) -> List[Dict]:
    rng = rng or random.Random()
    days = config.SEED_DAYS if days is None else days
    current_hour = now.astimezone(timezone.utc).replace(minute=0, second=0, microsecond=0)

    points = []
    for hours_ago in range(days * 24 - 1, -1, -1):
        volume = 10000 + rng.random() * 15000
        points.append({
            'project_id': project_id,
            't': current_hour - timedelta(hours=hours_ago),
            'volume_usd': volume,
            'fees_usd': volume * (0.003 + rng.random() * 0.002),
            'trades': 20 + int(rng.random() * 40),
        })
    return points


def generate_transactions(project_id: str, now: datetime, rng=None) -> List[Dict]:
    rng = rng or random.Random()
    count = 8 + int(rng.random() * 4)

    transactions = []
    for i in range(count):
        hours_ago = i * 2 + rng.random() * 2
        asset_from, asset_to = rng.choice(SWAP_PAIRS)
        if i == 0:
            status = 'Running'
        elif i == 1:
            status = 'Refunded'
        else:
            status = rng.choice(STATUSES)

        usd_notional = 1000 + rng.random() * 5000
        amount_in = rng.random() * 5 + 0.1
        amount_out = round(amount_in, 4) * (0.95 + rng.random() * 0.04)

        transactions.append({
            'project_id': project_id,
            'ts': now - timedelta(hours=hours_ago),
            'asset_from': asset_from,
            'asset_to': asset_to,
            'amount_in': f"{amount_in:.4f} {asset_from}",
            'amount_out': f"{amount_out:.4f} {asset_to}",
            'route': f"{asset_from}→{asset_to}",
            'usd_notional': usd_notional,
            'fee_usd': usd_notional * FEE_RATE,
            'status': status,
            'tx_hash': f"0x{uuid.uuid4().hex}",
            'chain': rng.choice(CHAINS),
        })
    return transactions


def seed_project(storage, project_id: str, now: datetime = None, rng=None):
    """Insert synthetic data for a project; returns (metric_points, transactions) inserted"""
    now = now or datetime.now(timezone.utc)
    points = generate_metric_points(project_id, now, rng=rng)
    transactions = generate_transactions(project_id, now, rng=rng)

    storage.add_metric_points(points)
    storage.add_transactions(transactions)
    logger.info(f"Seeded project {project_id}: {len(points)} metric points, {len(transactions)} transactions")
    return len(points), len(transactions)
