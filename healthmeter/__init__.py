"""Continuity and forecasting engine for the daily bookkeeping dashboard."""
