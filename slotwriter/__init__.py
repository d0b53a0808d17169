"""Write slot values to InfluxDB v2 as line protocol records."""

__all__ = [
    "config",
    "core",
    "run",
    "webapi",
]
