"""HTTP client abstraction.

This module provides:
- HttpClient: Protocol for blocking HTTP reads (injectable for tests)
- RealHttpClient: Real implementation using urllib
- MockHttpClient: Mock implementation for testing

Callers on the event loop run these through ``asyncio.to_thread``.
"""

from __future__ import annotations

import json
import ssl
import urllib.error
import urllib.request
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, runtime_checkable

from tu import __version__
from tu.core.result import Err, Ok, Result

__all__ = [
    "HttpClient",
    "RealHttpClient",
    "MockHttpClient",
    "HttpError",
]


@dataclass(frozen=True, slots=True)
class HttpError:
    """HTTP error details.

    Attributes:
        url: The URL that failed
        status: HTTP status code (0 for network errors)
        message: Human-readable error message
    """

    url: str
    status: int
    message: str

    def __str__(self) -> str:
        if self.status:
            return f"HTTP {self.status}: {self.message} ({self.url})"
        return f"{self.message} ({self.url})"

    @property
    def not_found(self) -> bool:
        return self.status == 404


@runtime_checkable
class HttpClient(Protocol):
    """Protocol for HTTP operations."""

    def get_json(self, url: str) -> Result[object, HttpError]:
        """Fetch URL and parse the body as JSON."""
        ...

    def get_bytes(self, url: str) -> Result[bytes, HttpError]:
        """Fetch URL and return the raw body."""
        ...

    def download(self, url: str, dest: Path) -> Result[Path, HttpError]:
        """Stream URL into ``dest`` (parent directories are created)."""
        ...


class RealHttpClient:
    """HTTP client using urllib with system certificates."""

    def __init__(self, timeout: float = 60.0, user_agent: str | None = None) -> None:
        self.timeout = timeout
        self.user_agent = user_agent or f"theming-updater/{__version__}"
        self._ssl_context = ssl.create_default_context()

    def _open(self, url: str):
        req = urllib.request.Request(url, headers={"User-Agent": self.user_agent})
        return urllib.request.urlopen(req, timeout=self.timeout, context=self._ssl_context)

    def get_bytes(self, url: str) -> Result[bytes, HttpError]:
        try:
            with self._open(url) as response:
                return Ok(response.read())
        except urllib.error.HTTPError as e:
            return Err(HttpError(url=url, status=e.code, message=str(e.reason)))
        except urllib.error.URLError as e:
            return Err(HttpError(url=url, status=0, message=str(e.reason)))
        except TimeoutError:
            return Err(HttpError(url=url, status=0, message="Request timed out"))
        except (ValueError, OSError) as e:
            return Err(HttpError(url=url, status=0, message=str(e)))

    def get_json(self, url: str) -> Result[object, HttpError]:
        result = self.get_bytes(url)
        if isinstance(result, Err):
            return result

        try:
            data: object = json.loads(result.value.decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            return Err(HttpError(url=url, status=0, message=f"JSON parse error: {e}"))
        return Ok(data)

    def download(self, url: str, dest: Path) -> Result[Path, HttpError]:
        try:
            with self._open(url) as response:
                dest.parent.mkdir(parents=True, exist_ok=True)
                with open(dest, "wb") as f:
                    while True:
                        chunk = response.read(64 * 1024)
                        if not chunk:
                            break
                        f.write(chunk)
            return Ok(dest)
        except urllib.error.HTTPError as e:
            return Err(HttpError(url=url, status=e.code, message=str(e.reason)))
        except urllib.error.URLError as e:
            return Err(HttpError(url=url, status=0, message=str(e.reason)))
        except TimeoutError:
            return Err(HttpError(url=url, status=0, message="Download timed out"))
        except (ValueError, OSError) as e:
            return Err(HttpError(url=url, status=0, message=str(e)))


class MockHttpClient:
    """Mock HTTP client for testing.

    Usage:
        client = MockHttpClient()
        client.set_json("https://feed/index.json", {"resources": []})
        client.set_bytes("https://raw/file.scss", b"$x: 1;")
    """

    def __init__(self) -> None:
        self._responses: dict[str, bytes | object | HttpError] = {}
        self.calls: list[tuple[str, str]] = []

    def set_json(self, url: str, response: object | HttpError) -> None:
        self._responses[url] = response if isinstance(response, HttpError) else json.dumps(
            response
        ).encode("utf-8")

    def set_bytes(self, url: str, response: bytes | HttpError) -> None:
        self._responses[url] = response

    def _lookup(self, url: str) -> Result[bytes, HttpError]:
        if url not in self._responses:
            return Err(HttpError(url=url, status=404, message="Not found (mock)"))
        response = self._responses[url]
        if isinstance(response, HttpError):
            return Err(response)
        assert isinstance(response, bytes)
        return Ok(response)

    def get_bytes(self, url: str) -> Result[bytes, HttpError]:
        self.calls.append(("get_bytes", url))
        return self._lookup(url)

    def get_json(self, url: str) -> Result[object, HttpError]:
        self.calls.append(("get_json", url))
        result = self._lookup(url)
        if isinstance(result, Err):
            return result
        return Ok(json.loads(result.value.decode("utf-8")))

    def download(self, url: str, dest: Path) -> Result[Path, HttpError]:
        self.calls.append(("download", url))
        result = self._lookup(url)
        if isinstance(result, Err):
            return result
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_bytes(result.value)
        return Ok(dest)
