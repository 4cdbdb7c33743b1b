"""
Background Jobs for the Task Pool.

This module contains scheduled jobs:
- suggestion_expiry: Retire AI suggestions past their review window
"""

from .suggestion_expiry import run_expiry_job

__all__ = ["run_expiry_job"]
