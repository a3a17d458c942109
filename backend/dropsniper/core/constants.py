"""
Centralized constants for the drop scheduler and acquisition engine.

Change job IDs, alert thresholds or retry pacing here instead of scattering literals
across the scheduler, the engine and main.
"""

# Scheduler job ID (APScheduler interval job that runs one poll tick)
SNIPER_POLL_JOB_ID = "sniper_poll"

# Staged alerts and execution window, in seconds relative to the drop instant
FIVE_MINUTE_ALERT_SECONDS = 5 * 60
ONE_MINUTE_ALERT_SECONDS = 60
PREWARM_SECONDS = 10           # execution may start this long before the drop
EXECUTION_GRACE_SECONDS = 2    # ...and until this long after it
STALE_AFTER_SECONDS = 2 * 60   # past this, the drop is over and the target is untracked
EXPIRED_ACTION_SECONDS = 5 * 60

# Acquisition retry pacing (fixed delay: contested inventory rewards immediate retry)
DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_DELAY_SECONDS = 0.5
AGGRESSIVE_RETRY_DELAY_SECONDS = 0.2
DEFAULT_TIME_FLEXIBILITY_MINUTES = 60

# Target defaults when a row leaves them empty
DEFAULT_PREFERRED_TIME = "19:00"
DEFAULT_PARTY_SIZE = 2

# Transfers: deadline is this long before the reservation; "needing action" looks this far ahead
TRANSFER_DEADLINE_HOURS = 24
TRANSFER_ACTION_WINDOW_HOURS = 48

# Patterns: after this many confirmed successes the learned schedule stops moving
PATTERN_LOCK_AFTER_SUCCESSES = 3
