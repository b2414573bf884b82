"""
Module: utils
Description: Package initialization for utility functions.

This package contains shared helpers used throughout the service:
- logger: Structured logging configuration and helpers
- metrics: CloudWatch delivery counters
- clock: Epoch-millisecond time helpers
"""

__all__ = []
