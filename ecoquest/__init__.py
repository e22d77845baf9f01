"""Task verification, scoring, badge and leaderboard engine for civic eco-challenges."""

__version__ = "0.4.0"
