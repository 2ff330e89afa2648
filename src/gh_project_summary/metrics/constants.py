"""Named constants behind every derived metric."""

# Weights of items created in the recent window
ACTIVITY_WEIGHTS = {
    "commits": 1.0,
    "issues": 2.0,
    "pull_requests": 3.0,
}

RECENT_WINDOW_DAYS = 30

# Relative change beyond which a trend is increasing/decreasing
TREND_THRESHOLD = 0.10

HEALTH_WEIGHTS = {
    "issue_response_rate": 0.5,
    "pr_merge_rate": 0.5,
}

# Value of a ratio or score whose denominator is zero
RATIO_SENTINEL = 0.0

DAY_PRECISION = 2
RATE_PRECISION = 4
SCORE_PRECISION = 2

# Minimum summed repository activity score for each recent activity level
ACTIVITY_LEVEL_THRESHOLDS = {
    "high": 100.0,
    "medium": 20.0,
}

MOST_ACTIVE_LIMIT = 5
