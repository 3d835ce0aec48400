"""NextSignal utilities package.

Stateless helpers with no external calls or side effects.
"""

from nextsignal.utils.date_utils import cutoff_time, parse_timestamp, utc_now
from nextsignal.utils.geo_utils import centroid, distance_meters, validate_coordinates
from nextsignal.utils.logging_utils import configure_logging, get_logger, get_run_logger

__all__ = [
    "cutoff_time",
    "parse_timestamp",
    "utc_now",
    "centroid",
    "distance_meters",
    "validate_coordinates",
    "configure_logging",
    "get_logger",
    "get_run_logger",
]
