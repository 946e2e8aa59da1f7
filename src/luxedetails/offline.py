"""Offline application-shell cache.

A versioned cache of the dashboard's static assets, modelled on a browser
service worker:

1. **install**   open the cache named after the current version and fill it
   with every URL in the asset manifest. All or nothing: if any single fetch
   fails the cache is not populated and the worker is discarded.
2. **activate**  delete every cache whose name is not the current version,
   retiring shells left behind by older releases.
3. **fetch**     answer a request from the caches when an exact match exists,
   otherwise go to the network. Network responses are never written back.

On-disk layout
--------------
Each named cache is a directory under the cache root; each entry is a JSON
file named after the SHA-256 of its URL::

    caches/
      luxe-details-v1/
        3f1c...e2.json    {"url": ..., "status_code": 200, "headers": [...], "body": "<base64>"}

Usage (CLI)
-----------
    luxe cache install                 # install + activate the current version
    luxe cache status                  # list caches and entry counts
    luxe cache fetch /index.html       # fetch through the worker
    luxe cache clear                   # drop every cache
"""

from __future__ import annotations

import base64
import hashlib
import logging
import shutil
from enum import Enum
from pathlib import Path
from typing import Annotated, Iterable, Optional, Union

import httpx
import typer
from pydantic import BaseModel, Field, ValidationError
from rich import box
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.text import Text

from . import config

logger = logging.getLogger(__name__)

console = Console()
err = Console(stderr=True)

cache_app = typer.Typer(
    name="cache",
    help="Manage the offline application-shell cache.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

RequestLike = Union[httpx.Request, httpx.URL, str]

# Headers describing the wire encoding; the stored body is already decoded.
_HOP_HEADERS = frozenset({"content-encoding", "content-length", "transfer-encoding", "connection"})


class CacheInstallError(Exception):
    """Raised when a manifest URL cannot be fetched during install."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"Could not cache {url}: {reason}")
        self.url = url
        self.reason = reason


class CachedResponse(BaseModel):
    url: str
    status_code: int
    headers: list[tuple[str, str]] = Field(default_factory=list)
    body: str = ""

    @classmethod
    def from_response(cls, url: str, response: httpx.Response) -> "CachedResponse":
        return cls(
            url=url,
            status_code=response.status_code,
            headers=[(k, v) for k, v in response.headers.multi_items() if k.lower() not in _HOP_HEADERS],
            body=base64.b64encode(response.content).decode("ascii"),
        )

    def to_response(self, request: httpx.Request, cache_name: str) -> httpx.Response:
        return httpx.Response(
            self.status_code,
            headers=self.headers,
            content=base64.b64decode(self.body),
            request=request,
            extensions={"cache_name": cache_name},
        )


def _as_request(request: RequestLike) -> httpx.Request:
    if isinstance(request, httpx.Request):
        return request
    return httpx.Request("GET", request)


def _entry_name(url: str) -> str:
    return hashlib.sha256(url.encode("utf-8")).hexdigest() + ".json"


# ---------------------------------------------------------------------------
# Cache storage
# ---------------------------------------------------------------------------


class Cache:
    """One named cache: exact-URL request to stored response."""

    def __init__(self, name: str, path: Path) -> None:
        self.name = name
        self.path = path

    def match(self, request: RequestLike) -> Optional[httpx.Response]:
        req = _as_request(request)
        if req.method != "GET":
            return None
        entry = self.path / _entry_name(str(req.url))
        cached = self._load(entry)
        if cached is None:
            return None
        return cached.to_response(req, self.name)

    def put(self, request: RequestLike, response: httpx.Response) -> None:
        url = str(_as_request(request).url)
        cached = CachedResponse.from_response(url, response)
        self.path.mkdir(parents=True, exist_ok=True)
        tmp = self.path / (_entry_name(url) + ".tmp")
        tmp.write_text(cached.model_dump_json(), encoding="utf-8")
        tmp.replace(self.path / _entry_name(url))

    def add_all(self, client: httpx.Client, urls: Iterable[str]) -> None:
        """Fetch every URL, then store them all; nothing is stored on failure."""
        fetched: list[tuple[httpx.Request, httpx.Response]] = []
        for url in urls:
            request = client.build_request("GET", url)
            try:
                response = client.send(request)
            except httpx.HTTPError as exc:
                raise CacheInstallError(url, str(exc) or type(exc).__name__) from exc
            if not response.is_success:
                raise CacheInstallError(url, f"HTTP {response.status_code}")
            fetched.append((request, response))

        for request, response in fetched:
            self.put(request, response)

    def keys(self) -> list[str]:
        urls = []
        for entry in sorted(self.path.glob("*.json")):
            cached = self._load(entry)
            if cached is not None:
                urls.append(cached.url)
        return urls

    def __len__(self) -> int:
        return len(self.keys())

    def _load(self, entry: Path) -> Optional[CachedResponse]:
        """Read one entry; a missing or corrupt file counts as a miss."""
        try:
            return CachedResponse.model_validate_json(entry.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (ValidationError, UnicodeDecodeError):
            logger.warning("Ignoring corrupt cache entry %s", entry)
            return None


class CacheStorage:
    """All caches owned by this installation, one directory each."""

    def __init__(self, root: Path) -> None:
        self.root = root

    def _path(self, name: str) -> Path:
        if not name or "/" in name or "\\" in name or name.startswith("."):
            raise ValueError(f"Invalid cache name: {name!r}")
        return self.root / name

    def open(self, name: str) -> Cache:
        path = self._path(name)
        path.mkdir(parents=True, exist_ok=True)
        return Cache(name, path)

    def has(self, name: str) -> bool:
        return self._path(name).is_dir()

    def delete(self, name: str) -> bool:
        path = self._path(name)
        if not path.is_dir():
            return False
        shutil.rmtree(path)
        return True

    def keys(self) -> list[str]:
        if not self.root.is_dir():
            return []
        return sorted(p.name for p in self.root.iterdir() if p.is_dir())

    def match(self, request: RequestLike) -> Optional[httpx.Response]:
        for name in self.keys():
            response = Cache(name, self.root / name).match(request)
            if response is not None:
                return response
        return None


# ---------------------------------------------------------------------------
# Worker
# ---------------------------------------------------------------------------


class WorkerState(str, Enum):
    INSTALLING = "installing"
    ACTIVE = "active"
    REDUNDANT = "redundant"


class OfflineCacheWorker:
    """Install / activate / fetch lifecycle over a :class:`CacheStorage`."""

    def __init__(
        self,
        storage: CacheStorage,
        client: httpx.Client,
        cache_name: str = config.CACHE_NAME,
        assets: Iterable[str] = config.ASSETS,
        origin: str = config.DEFAULT_ORIGIN,
    ) -> None:
        self.storage = storage
        self.client = client
        self.cache_name = cache_name
        self.assets = tuple(assets)
        self.origin = origin
        self.state = WorkerState.INSTALLING
        self.installed = False

    @property
    def manifest(self) -> list[str]:
        """Asset URLs with relative paths resolved against the origin."""
        base = httpx.URL(self.origin)
        return [str(base.join(asset)) for asset in self.assets]

    def install(self) -> None:
        if self.state is not WorkerState.INSTALLING:
            raise RuntimeError(f"Cannot install a worker that is {self.state.value}")

        existed = self.storage.has(self.cache_name)
        cache = self.storage.open(self.cache_name)
        logger.info("Caching shell assets into %s", self.cache_name)
        try:
            cache.add_all(self.client, self.manifest)
        except CacheInstallError:
            if not existed:
                self.storage.delete(self.cache_name)
            self.state = WorkerState.REDUNDANT
            raise
        self.installed = True

    def activate(self) -> list[str]:
        """Evict caches from other versions; returns their names."""
        if not self.installed or self.state is WorkerState.REDUNDANT:
            raise RuntimeError("Cannot activate a worker that has not installed")

        stale = [name for name in self.storage.keys() if name != self.cache_name]
        for name in stale:
            self.storage.delete(name)
            logger.info("Deleted stale cache %s", name)
        self.state = WorkerState.ACTIVE
        return stale

    def adopt(self) -> None:
        """Take over as the active worker for a cache installed earlier."""
        if not self.storage.has(self.cache_name):
            raise RuntimeError(f"No installed cache named {self.cache_name}")
        self.installed = True
        self.state = WorkerState.ACTIVE

    def retire(self) -> None:
        self.state = WorkerState.REDUNDANT

    def fetch(self, request: RequestLike) -> httpx.Response:
        if isinstance(request, httpx.Request):
            req = request
        else:
            req = self.client.build_request("GET", httpx.URL(self.origin).join(str(request)))

        if self.state is WorkerState.ACTIVE:
            cached = self.storage.match(req)
            if cached is not None:
                return cached
        return self.client.send(req)


class WorkerRegistration:
    """Tracks which worker currently controls the cache storage."""

    def __init__(self, storage: CacheStorage) -> None:
        self.storage = storage
        self.active: Optional[OfflineCacheWorker] = None

    def update(self, worker: OfflineCacheWorker) -> list[str]:
        """Install and activate *worker*, replacing the current one.

        If install fails the current worker stays in control.
        """
        worker.install()
        evicted = worker.activate()
        if self.active is not None and self.active is not worker:
            self.active.retire()
        self.active = worker
        return evicted


# ---------------------------------------------------------------------------
# CLI commands
# ---------------------------------------------------------------------------


def _storage() -> CacheStorage:
    return CacheStorage(config.cache_dir())


def _client() -> httpx.Client:
    return httpx.Client(follow_redirects=True, timeout=15.0)


@cache_app.command()
def install(
    origin: Annotated[
        Optional[str],
        typer.Option("--origin", help="Origin serving the app shell.", show_default=False),
    ] = None,
) -> None:
    """Install the current cache version and retire older ones."""
    storage = _storage()
    with _client() as client:
        worker = OfflineCacheWorker(storage, client, origin=origin or config.origin())
        try:
            evicted = WorkerRegistration(storage).update(worker)
        except CacheInstallError as exc:
            err.print(f"[bold red]Install failed:[/bold red] {escape(str(exc))}")
            raise typer.Exit(1) from exc

    console.print(
        f"[bold green]Cached {len(worker.manifest)} asset(s) →[/bold green] [bold]{worker.cache_name}[/bold]"
    )
    for name in evicted:
        console.print(f"  [dim]Deleted stale cache[/dim] {escape(name)}")


@cache_app.command()
def status() -> None:
    """List caches and how many responses each holds."""
    storage = _storage()
    names = storage.keys()
    if not names:
        console.print("[dim]No caches installed.[/dim]")
        return

    table = Table(box=box.ROUNDED, header_style="bold cyan")
    table.add_column("Cache", style="bold white")
    table.add_column("Entries", justify="right")
    table.add_column("Current", justify="center")
    for name in names:
        table.add_row(
            Text(name),
            str(len(storage.open(name))),
            "[green]yes[/green]" if name == config.CACHE_NAME else "[dim]no[/dim]",
        )
    console.print(table)


@cache_app.command()
def fetch(
    url: Annotated[str, typer.Argument(help="Absolute URL or path relative to the origin.")],
    origin: Annotated[
        Optional[str],
        typer.Option("--origin", help="Origin for relative paths.", show_default=False),
    ] = None,
) -> None:
    """Fetch a URL through the worker, preferring the cache."""
    storage = _storage()
    with _client() as client:
        worker = OfflineCacheWorker(storage, client, origin=origin or config.origin())
        if storage.has(worker.cache_name):
            worker.adopt()
        try:
            response = worker.fetch(url)
        except httpx.HTTPError as exc:
            err.print(f"[bold red]Network error:[/bold red] {escape(str(exc))}")
            raise typer.Exit(1) from exc

    source = response.extensions.get("cache_name")
    where = f"cache [bold]{escape(source)}[/bold]" if source else "network"
    console.print(f"[bold]{response.status_code}[/bold] {escape(str(response.request.url))} [dim]from[/dim] {where}")
    console.print(f"  [dim]{len(response.content)} bytes, {escape(response.headers.get('content-type', 'unknown type'))}[/dim]")


@cache_app.command()
def clear() -> None:
    """Delete every cache."""
    storage = _storage()
    names = storage.keys()
    for name in names:
        storage.delete(name)
    console.print(f"[bold green]Deleted {len(names)} cache(s).[/bold green]")
