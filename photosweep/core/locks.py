# core/locks.py

import threading
from typing import Dict


class UserLockRegistry:
    """
    One lock per user id. Passes over different users never wait on each
    other; two passes over the same user are serialised.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}

    def lock_for(self, user_id: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(user_id)
            if lock is None:
                lock = self._locks[user_id] = threading.Lock()
            return lock
