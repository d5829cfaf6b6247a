# fleetcheck/services/telemetry.py
from __future__ import annotations

from datetime import datetime, timedelta

from fleetcheck.core.timeutils import iso_z
from fleetcheck.schemas.non_conformity import TelemetrySnapshot


def _seed_hash(seed: str) -> int:
    # 31-multiplier string hash folded into signed 32 bits
    h = 0
    for ch in seed:
        h = (h * 31 + ord(ch)) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return abs(h)


def fetch_telemetry_snapshot(asset_id: str, at: datetime) -> TelemetrySnapshot:
    """
    Deterministic stand-in for the telematics provider: the same (asset, instant)
    always yields the same snapshot. Window is [at - 24h, at + 6h].
    """
    r = _seed_hash(f"{asset_id}-{iso_z(at)}")
    if r % 5 == 0:
        fault_codes = ["E123", "P2047"]
    elif r % 7 == 0:
        fault_codes = ["C880"]
    else:
        fault_codes = []

    return TelemetrySnapshot(
        hours=round((r % 8000) / 10, 1),
        odometer_km=round((r % 500000) / 10, 1),
        fuel_used_l=round((r % 9000) / 100, 1),
        idle_time_h=round(((r / 3) % 2000) / 10, 1),
        fault_codes=fault_codes,
        window_start=at - timedelta(hours=24),
        window_end=at + timedelta(hours=6),
    )
