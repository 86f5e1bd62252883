"""Useful Constants"""

## Timer Constants

# Minimum wait time between checks in the timer thread
MIN_SLEEP_TIME = 0.001

## Reconcile Constants

# Seconds to wait for a thread to exit on shutdown
STOP_JOIN_TIMEOUT = 30

## Rate Limiter Constants

# Past this many failures the backoff is pinned to the max delay
MAX_BACKOFF_EXPONENT = 62
