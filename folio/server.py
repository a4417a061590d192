"""Watch-and-republish server for Folio.

Builds the site, serves the output over HTTP and watches the source tree.
Every change triggers a full rebuild into a staging directory that is then
swapped in atomically, after which connected browsers are told to reload
over a websocket.

Key classes:
- DevServer: Builds, serves, watches and republishes.
- _ReloadHandler: HTTP handler that injects the reload script and serves 404s.
- _ChangeHandler: watchdog handler that triggers rebuilds.
"""

from __future__ import annotations

import asyncio
import functools
import json
import os
import shutil
import threading
import time
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path

import click
import websockets
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from .build import CONFIG_FILE, BuildError, build_site, load_config

RELOAD_SCRIPT_TEMPLATE = """
<script>
(() => {{
  const ws = new WebSocket('ws://' + location.hostname + ':{ws_port}');
  ws.onmessage = (event) => {{
    const data = JSON.parse(event.data || '{{}}');
    if (data.type === 'reload') location.reload();
  }};
}})();
</script>
"""


def inject_reload_script(html: str, script: str) -> str:
    """Insert the reload script before ``</body>``, or append it."""
    if "</body>" in html:
        return html.replace("</body>", f"{script}</body>", 1)
    return html + script


class _ReloadHandler(SimpleHTTPRequestHandler):
    """Serves the output tree with the live reload script injected into HTML."""

    reload_script = RELOAD_SCRIPT_TEMPLATE.format(ws_port=4001)

    def end_headers(self):
        self.send_header("Cache-Control", "no-cache, no-store, must-revalidate")
        super().end_headers()

    def log_message(self, format, *args):  # pragma: no cover - quiet console
        pass

    def list_directory(self, path):  # pragma: no cover - exercised via send_head
        return self._serve_404()

    def _send_html(self, status: int, html: str):
        encoded = inject_reload_script(html, self.reload_script).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(encoded)))
        self.end_headers()
        self.wfile.write(encoded)

    def _serve_404(self):
        error_page = Path(self.directory) / "404" / "index.html"
        if error_page.exists():
            self._send_html(404, error_page.read_text(encoding="utf-8"))
            return None
        self.send_error(404, "File not found")
        return None

    def send_head(self):
        path = Path(self.translate_path(self.path))
        if path.is_dir():
            path = path / "index.html"
        if not path.exists():
            return self._serve_404()
        if path.suffix == ".html":
            self._send_html(200, path.read_text(encoding="utf-8"))
            return None
        return super().send_head()


class DevServer:
    """Builds, serves, watches and republishes a site.

    Attributes:
        project_root: Root directory of the project.
        config: Loaded configuration.
        output_dir: Directory being served.
        http_port: Port for the HTTP server.
        ws_port: Port for the reload websocket.
    """

    def __init__(self, project_root: Path, http_port: int | None = None, ws_port: int | None = None):
        """Initialize the server.

        Args:
            project_root: Root directory of the project.
            http_port: Override for the configured HTTP port.
            ws_port: Override for the websocket port; defaults to the HTTP
                port plus one.
        """
        self.project_root = project_root
        self.config = load_config(project_root)
        self.output_dir = project_root / self.config.get("output_dir", "output")
        self._staging_dir = self.output_dir.with_name(self.output_dir.name + ".staging")
        self.http_port = int(http_port or self.config.get("port", 4000))
        if ws_port is not None:
            self.ws_port = int(ws_port)
        elif http_port is None and self.config.get("ws_port"):
            self.ws_port = int(self.config["ws_port"])
        else:
            self.ws_port = self.http_port + 1
        self._reload_script = RELOAD_SCRIPT_TEMPLATE.format(ws_port=self.ws_port)
        self._root_url = f"http://localhost:{self.http_port}"
        self._observer: Observer | None = None
        self._ws_clients: set = set()
        self._loop = asyncio.new_event_loop()
        self._lock = threading.Lock()
        self._last_signature: tuple | None = None
        self._post_build_delay = 0.05

    def watched_paths(self) -> list[Path]:
        """Source folders whose changes trigger a rebuild."""
        return [
            self.project_root / self.config.get(key, default)
            for key, default in (("site_dir", "site"), ("assets_dir", "assets"), ("data_dir", "data"))
        ]

    def start(self, include_drafts: bool = False) -> None:  # pragma: no cover - integration path
        self.publish(include_drafts)
        self._last_signature = self._compute_signature()
        threading.Thread(target=self._start_http, daemon=True).start()
        threading.Thread(target=self._start_ws, daemon=True).start()
        self._start_watcher(include_drafts)
        try:
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            self.stop()

    def stop(self) -> None:
        if self._observer:
            self._observer.stop()
            self._observer.join()
        self._loop.call_soon_threadsafe(self._loop.stop)

    def publish(self, include_drafts: bool) -> None:
        """Build into the staging directory and swap it into place."""
        staging = self._prepare_staging_dir()
        build_site(
            self.project_root,
            include_drafts=include_drafts,
            root_url=self._root_url,
            clean_output=True,
            output_dir_override=staging,
        )
        self._activate_staging(staging)

    def rebuild(self, include_drafts: bool) -> bool:
        """Republish after a change, then tell browsers to reload.

        Returns:
            True if a new build was published. Unchanged sources, a rebuild
            already in progress, or a failed build all return False; a failed
            build leaves the previous output in place.
        """
        if not self._lock.acquire(blocking=False):
            return False
        try:
            signature = self._compute_signature()
            if signature is not None and signature == self._last_signature:
                return False
            click.echo("Change detected; rebuilding...")
            try:
                self.publish(include_drafts)
            except Exception as exc:
                self._discard_staging()
                self._report_failure(exc)
                self._last_signature = signature
                return False
            self._last_signature = signature
            if self._post_build_delay:
                time.sleep(self._post_build_delay)
            self._broadcast_reload()
            return True
        finally:
            self._lock.release()

    def _report_failure(self, exc: Exception) -> None:
        click.echo(click.style("Build failed:", fg="red", bold=True), err=True)
        if not isinstance(exc, BuildError):
            click.echo(f"  Error: {type(exc).__name__}: {exc}", err=True)
            return
        try:
            location = exc.source_path.relative_to(self.project_root)
        except ValueError:
            location = exc.source_path
        if exc.line is not None:
            location = f"{location}:{exc.line}"
        click.echo(click.style(f"  File: {location}", fg="yellow"), err=True)
        click.echo(f"  Error: {exc.message}", err=True)

    def _discard_staging(self) -> None:
        if self._staging_dir.exists():
            shutil.rmtree(self._staging_dir, ignore_errors=True)

    def _start_http(self) -> None:  # pragma: no cover - integration path
        handler_cls = type(
            "_ReloadHandlerWithPort", (_ReloadHandler,), {"reload_script": self._reload_script}
        )
        handler = functools.partial(handler_cls, directory=str(self.output_dir))
        httpd = ThreadingHTTPServer(("", self.http_port), handler)
        click.echo(f"Serving {self.output_dir} at http://localhost:{self.http_port}")
        httpd.serve_forever()

    def _start_ws(self) -> None:  # pragma: no cover - integration path
        asyncio.set_event_loop(self._loop)
        try:
            self._loop.run_until_complete(self._run_ws_server())
        except OSError as exc:
            click.echo(f"WebSocket server failed to start (port {self.ws_port}): {exc}", err=True)

    async def _run_ws_server(self) -> None:  # pragma: no cover - integration path
        async with websockets.serve(self._ws_handler, "0.0.0.0", self.ws_port):
            await asyncio.Future()

    async def _ws_handler(self, websocket):
        self._ws_clients.add(websocket)
        try:
            await websocket.wait_closed()
        finally:
            self._ws_clients.discard(websocket)

    def _broadcast_reload(self) -> None:
        message = json.dumps({"type": "reload"})
        asyncio.run_coroutine_threadsafe(self._async_broadcast(message), self._loop)

    async def _async_broadcast(self, message: str) -> None:
        stale = set()
        for ws in list(self._ws_clients):
            try:
                await ws.send(message)
            except Exception:
                stale.add(ws)
        self._ws_clients -= stale

    def _start_watcher(self, include_drafts: bool) -> None:
        handler = _ChangeHandler(self, include_drafts)
        observer = Observer()
        for watch_path in self.watched_paths():
            if watch_path.exists():
                observer.schedule(handler, str(watch_path), recursive=True)
        # folio.yaml lives at the root
        observer.schedule(handler, str(self.project_root), recursive=False)
        observer.start()
        self._observer = observer

    def _compute_signature(self) -> tuple | None:
        entries: list[tuple] = []
        config_path = self.project_root / CONFIG_FILE
        candidates = [config_path] if config_path.exists() else []
        for root in self.watched_paths():
            if root.exists():
                candidates.extend(sorted(root.rglob("*")))
        for path in candidates:
            if path.is_dir():
                continue
            try:
                stat = path.stat()
            except OSError:
                continue
            rel = path.relative_to(self.project_root)
            entries.append((str(rel), stat.st_mtime_ns, stat.st_size))
        return tuple(entries) if entries else None

    def _prepare_staging_dir(self) -> Path:
        staging = self._staging_dir
        if staging.exists():
            shutil.rmtree(staging)
        staging.mkdir(parents=True, exist_ok=True)
        return staging

    def _activate_staging(self, staging: Path) -> None:
        retired = self.output_dir.with_name(self.output_dir.name + ".old")
        if retired.exists():
            shutil.rmtree(retired)
        if self.output_dir.exists():
            os.replace(self.output_dir, retired)
        os.replace(staging, self.output_dir)
        if retired.exists():
            shutil.rmtree(retired)


class _ChangeHandler(FileSystemEventHandler):
    def __init__(self, server: DevServer, include_drafts: bool):
        super().__init__()
        self.server = server
        self.include_drafts = include_drafts

    def on_any_event(self, event):
        if event.is_directory:
            return
        path = Path(os.fsdecode(event.src_path))
        output_dir = self.server.output_dir
        retired = output_dir.with_name(output_dir.name + ".old")
        for ignored in (output_dir, self.server._staging_dir, retired):
            if path == ignored or ignored in path.parents:
                return
        if path.parent == self.server.project_root and path.name != CONFIG_FILE:
            return
        self.server.rebuild(self.include_drafts)
