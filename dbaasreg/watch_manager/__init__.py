"""
The watch manager streams the operator's Deployment events and dispatches
reconciles of the provider registration
"""

# Local
from .rate_limiter import ItemExponentialFailureRateLimiter, RetryPolicies
from .watch_manager import WatchManager
