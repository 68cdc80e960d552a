import time
import logging
from typing import Callable, Optional

import requests

logger = logging.getLogger(__name__)


class PublicDataFetcher:
    """Looks up the host's public IP, at most once per ``ttl`` seconds."""

    def __init__(
        self,
        url: str = 'https://api.ipify.org',
        ttl: float = 60.0,
        timeout: float = 5.0,
        clock: Callable[[], float] = time.time,
    ):
        self.url = url
        self.ttl = ttl
        self.timeout = timeout
        self.clock = clock
        self.public_ip: Optional[str] = None
        self._last_fetch: Optional[float] = None

    def fetch(self) -> Optional[str]:
        now = self.clock()
        if self._last_fetch is not None and now - self._last_fetch < self.ttl:
            return self.public_ip
        self._last_fetch = now

        logger.info("Fetching public data...")
        try:
            resp = requests.get(self.url, timeout=self.timeout)
            resp.raise_for_status()
        except requests.exceptions.RequestException as e:
            logger.warning(f"Could not fetch public IP: {e}")
            return self.public_ip

        self.public_ip = resp.text.strip()
        logger.info(f"Public IP: {self.public_ip}")
        return self.public_ip
