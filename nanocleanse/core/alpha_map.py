"""
Alpha Map Builder
=================
Turns a reference capture of the overlay into a per-pixel opacity map.

Technical Notes:
- Captures show the white overlay rendered on pure black, so each
  observed pixel is alpha * 255 and alpha = max(R, G, B) / 255
- Maps are float32, read-only once built
- AlphaMapCache builds each size at most once, even when several
  threads ask for the same size at the same time
"""

import logging
import threading
from typing import Callable, Dict

import numpy as np

logger = logging.getLogger(__name__)


def build_alpha_map(capture: np.ndarray) -> np.ndarray:
    """
    Derive the overlay opacity map from a reference capture.

    Args:
        capture: uint8 array of shape (H, W, 3) or (H, W, 4). Only the
                 colour channels are read.

    Returns:
        Read-only float32 array of shape (H, W) with values in [0, 1].

    Raises:
        ValueError: If the array is not an RGB(A) image.
    """
    if capture.ndim != 3 or capture.shape[2] not in (3, 4):
        raise ValueError(
            f"Reference capture must be an RGB(A) array, got shape {capture.shape}"
        )

    max_channel = capture[:, :, :3].max(axis=2)
    alpha_map = max_channel.astype(np.float32) / np.float32(255.0)
    alpha_map.flags.writeable = False
    return alpha_map


class AlphaMapCache:
    """
    Memoized store of alpha maps keyed by logo size.

    Entries are never evicted. Each key has its own lock, so building
    the 96px map does not block a reader of the 48px one.
    """

    def __init__(self):
        self._maps: Dict[int, np.ndarray] = {}
        self._build_counts: Dict[int, int] = {}
        self._key_locks: Dict[int, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, size: int) -> threading.Lock:
        with self._registry_lock:
            lock = self._key_locks.get(size)
            if lock is None:
                lock = threading.Lock()
                self._key_locks[size] = lock
            return lock

    def get(self, size: int, builder: Callable[[int], np.ndarray]) -> np.ndarray:
        """
        Return the map for `size`, calling `builder(size)` on first use.

        Args:
            size: Logo size (48 or 96).
            builder: Produces the alpha map for a size. Only called once
                     per size for the lifetime of the cache.

        Returns:
            The cached alpha map.
        """
        # Fast path: no locking once built
        alpha_map = self._maps.get(size)
        if alpha_map is not None:
            return alpha_map

        with self._lock_for(size):
            alpha_map = self._maps.get(size)
            if alpha_map is None:
                logger.debug("Building %dpx alpha map", size)
                alpha_map = builder(size)
                self._maps[size] = alpha_map
                self._build_counts[size] = self._build_counts.get(size, 0) + 1
            return alpha_map

    def build_count(self, size: int) -> int:
        """Number of times the map for `size` has been built."""
        return self._build_counts.get(size, 0)

    def __contains__(self, size: int) -> bool:
        return size in self._maps

    def __len__(self) -> int:
        return len(self._maps)
