"""
Speedtest backend API client.

``Target`` turns a backend base URL into the endpoint URLs the testers use;
``SpeedtestAPI`` fetches the server catalogue.  All HTTP work goes through
a single ``aiohttp.ClientSession`` managed via async-context-manager
protocol (``async with SpeedtestAPI(target) as api: ...``).
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import aiohttp

from .constants import COMMON_HEADERS, CONNECT_TIMEOUT, DEFAULT_SERVER_URL, READ_TIMEOUT


# ---------------------------------------------------------------------------
# Data models
# ---------------------------------------------------------------------------

@dataclass
class Target:
    """The backend a test runs against."""

    base_url: str = DEFAULT_SERVER_URL

    def __post_init__(self) -> None:
        self.base_url = self.base_url.rstrip("/")

    # -- Derived URLs -------------------------------------------------------

    @property
    def ping_url(self) -> str:
        return f"{self.base_url}/ping"

    def download_url(self, size_mb: Optional[int] = None) -> str:
        if size_mb is None:
            return f"{self.base_url}/download"
        return f"{self.base_url}/download?size={size_mb}"

    @property
    def upload_url(self) -> str:
        return f"{self.base_url}/upload"

    @property
    def servers_url(self) -> str:
        return f"{self.base_url}/servers"


@dataclass
class Server:
    """An entry of the backend's server catalogue."""

    id: str
    name: str
    location: str
    lat: float
    lon: float
    distance: float

    # -- Constructors -------------------------------------------------------

    @classmethod
    def from_dict(cls, data: dict) -> Server:
        return cls(
            id=str(data.get("id", "")),
            name=data.get("name", ""),
            location=data.get("location", ""),
            lat=float(data.get("lat", 0)),
            lon=float(data.get("lon", 0)),
            distance=float(data.get("distance", 0)),
        )

    # -- Serialisation ------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "location": self.location,
            "lat": self.lat,
            "lon": self.lon,
            "distance": self.distance,
        }


# ---------------------------------------------------------------------------
# API client
# ---------------------------------------------------------------------------

class SpeedtestAPI:
    """Async context-manager wrapping the backend's catalogue endpoint."""

    def __init__(self, target: Optional[Target] = None) -> None:
        self.target = target or Target()
        self._session: Optional[aiohttp.ClientSession] = None
        self.servers: List[Server] = []

    # -- Context manager ----------------------------------------------------

    async def __aenter__(self) -> SpeedtestAPI:
        timeout = aiohttp.ClientTimeout(total=None, connect=CONNECT_TIMEOUT, sock_read=READ_TIMEOUT)
        self._session = aiohttp.ClientSession(headers=COMMON_HEADERS, timeout=timeout)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        if self._session:
            await self._session.close()
            self._session = None

    # -- Internal helpers ---------------------------------------------------

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            raise RuntimeError(
                "SpeedtestAPI must be used as an async context manager "
                "(async with SpeedtestAPI() as api: ...)"
            )
        return self._session

    # -- Public methods -----------------------------------------------------

    async def fetch_servers(self) -> List[Server]:
        """Return the catalogue advertised by the backend."""
        session = self._ensure_session()

        async with session.get(self.target.servers_url) as resp:
            resp.raise_for_status()
            data = await resp.json()

        self.servers = [Server.from_dict(s) for s in data.get("servers", [])]
        return self.servers
