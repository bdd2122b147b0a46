# notifier/core/dispatch/errors.py
from __future__ import annotations


class DispatchError(Exception):
    """Base class for dispatch hand-off errors"""


class BatchOwnershipError(DispatchError):
    """A batch was claimed twice, reused after close, or released twice"""


class InvalidJobError(DispatchError, ValueError):
    """A notification job violates its construction invariants"""
