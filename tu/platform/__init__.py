"""Platform abstraction layer: subprocesses, HTTP and files."""

from .files import atomic_write_text, remove_tree
from .http import HttpClient, HttpError, MockHttpClient, RealHttpClient
from .process import ProcessError, run

__all__ = [
    # files
    "atomic_write_text",
    "remove_tree",
    # http
    "HttpClient",
    "HttpError",
    "MockHttpClient",
    "RealHttpClient",
    # process
    "ProcessError",
    "run",
]
