"""Khepri coaching gateway: tool dispatch, Intervals.icu integration and plan periodization."""
