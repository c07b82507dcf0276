"""Verdict: crowd and expert feedback on photos, text, comparisons and split tests.

Requesters spend credits to collect a fixed number of independent verdicts;
once the target count is reached the request is finalized with a consensus
outcome (average rating, winning option, or winning photo).
"""

__version__ = "0.1.0"
