"""
Workers Module - Async Thread Management
========================================
Contains QThread workers for non-blocking watermark removal.

Components:
- RemovalWorker: Single image, reports processing state
- BatchRemovalWorker: Many images with progress tracking and cancellation
"""

from .removal_worker import (
    RemovalWorker, BatchRemovalWorker, RemovalConfig, RemovalOutcome,
    STATUS_IDLE, STATUS_PROCESSING, STATUS_SUCCESS, STATUS_ERROR
)

__all__ = [
    "RemovalWorker",
    "BatchRemovalWorker",
    "RemovalConfig",
    "RemovalOutcome",
    "STATUS_IDLE",
    "STATUS_PROCESSING",
    "STATUS_SUCCESS",
    "STATUS_ERROR",
]
