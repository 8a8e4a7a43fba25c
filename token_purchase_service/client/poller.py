import logging
import threading
from typing import Callable, Optional

import httpx

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 3.0
# ~5 minutes at the default interval
DEFAULT_MAX_ATTEMPTS = 100


class PollTimeout(Exception):
    def __init__(self, session_id: str, attempts: int, last: Optional[dict]):
        super().__init__(f"Transaction for session {session_id} not settled after {attempts} attempts")
        self.session_id = session_id
        self.attempts = attempts
        self.last = last


def is_terminal(record: Optional[dict]) -> bool:
    return bool(record) and bool(record.get("blockchain_tx_hash") or record.get("error_message"))


class TransactionStatusPoller:
    """Polls the transaction read endpoint until the purchase settles.

    Stops on a tx hash or an error message, after ``max_attempts`` fetches, or
    when ``cancel()`` is called from another thread.
    """

    def __init__(
        self,
        base_url: str,
        interval: float = DEFAULT_INTERVAL_SECONDS,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        timeout: float = 10.0,
        client: Optional[httpx.Client] = None,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.interval = interval
        self.max_attempts = max_attempts
        self._client = client or httpx.Client(base_url=base_url.rstrip("/"), timeout=timeout)
        self._cancelled = threading.Event()

    def fetch(self, session_id: str) -> Optional[dict]:
        response = self._client.get(f"/api/transactions/session/{session_id}")
        if response.status_code == 404:
            return None
        response.raise_for_status()
        return response.json()

    def poll(self, session_id: str, on_update: Optional[Callable[[dict], None]] = None) -> Optional[dict]:
        record = None

        for attempt in range(1, self.max_attempts + 1):
            if self._cancelled.is_set():
                logger.info("Polling for session %s cancelled", session_id)
                return None

            try:
                fetched = self.fetch(session_id)
            except httpx.HTTPError as e:
                # a failed fetch still counts as an attempt
                logger.warning("Fetching session %s failed (attempt %s): %s", session_id, attempt, e)
            else:
                if fetched is not None:
                    record = fetched
                    if on_update:
                        on_update(record)

                if is_terminal(fetched):
                    logger.info("Session %s settled as %s after %s attempts", session_id, record.get("status"), attempt)
                    return record

            if attempt == self.max_attempts:
                break

            # wait() returns True as soon as cancel() is called
            if self._cancelled.wait(self.interval):
                logger.info("Polling for session %s cancelled", session_id)
                return None

        raise PollTimeout(session_id, self.max_attempts, record)

    def reset(self):
        """Clear a previous cancel() so the poller can be reused."""
        self._cancelled.clear()

    def cancel(self):
        self._cancelled.set()

    def close(self):
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
