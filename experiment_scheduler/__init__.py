"""Experiment scheduler service package.

This package contains the backend glue that:
- Boots the relational database connection (PostgreSQL, MySQL or SQLite).
- Keeps start/end scheduled jobs of experiments in sync with AWS Step Functions.
- Moves experiments to their next state when a step function calls back.
"""
