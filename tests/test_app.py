"""Integration tests for mdpreview.app — wiring the pipeline into Chirp."""

from __future__ import annotations

import asyncio
import json
from dataclasses import replace
from pathlib import Path
from unittest.mock import patch

import pytest

from mdpreview._errors import ConfigError, ContentError
from mdpreview.app import (
    PageRenderer,
    _create_chirp_app,
    _mount_static_files,
    build_app,
    preview,
)
from mdpreview.config import PreviewConfig
from mdpreview.reactive.orchestrator import RELOAD_MESSAGE

from tests.conftest import FakeChannel, StubRebuild


def _body(response: object) -> str:
    body = response.body  # type: ignore[attr-defined]
    return body.decode("utf-8") if isinstance(body, bytes) else str(body)


class TestCreateChirpApp:
    """_create_chirp_app — Chirp App creation from PreviewConfig."""

    def test_host_and_port_from_config(self, config: PreviewConfig) -> None:
        app = _create_chirp_app(replace(config, host="0.0.0.0", port=9000))
        assert app.config.host == "0.0.0.0"
        assert app.config.port == 9000

    def test_not_debug_by_default(self, config: PreviewConfig) -> None:
        assert not _create_chirp_app(config).config.debug

    def test_single_worker(self, config: PreviewConfig) -> None:
        # Watchers and the channel registry are per process
        assert _create_chirp_app(config).config.workers == 1
        assert build_app(config, operation=StubRebuild()).app.config.workers == 1


class TestBuildApp:
    """build_app — component assembly."""

    def test_initial_render(self, config: PreviewConfig) -> None:
        server = build_app(config, operation=StubRebuild())
        assert "Hello" in server.state.html

    def test_routes_registered(self, config: PreviewConfig) -> None:
        server = build_app(config, operation=StubRebuild())
        names = {r.name for r in server.app._pending_routes if hasattr(r, "name")}
        assert {"preview:index", "preview:events", "preview:stats"} <= names

    def test_lifecycle_hooks_registered(self, config: PreviewConfig) -> None:
        server = build_app(config, operation=StubRebuild())
        assert server.app._startup_hooks
        assert server.app._shutdown_hooks

    def test_missing_file_raises(self, config: PreviewConfig, tmp_path: Path) -> None:
        with pytest.raises(ContentError):
            build_app(replace(config, file=tmp_path / "missing.md"))

    def test_bad_highlight_style_raises(self, config: PreviewConfig) -> None:
        with pytest.raises(ConfigError):
            build_app(replace(config, highlight_style="no-such-style"))

    def test_missing_vendor_libraries_warn(self, config: PreviewConfig) -> None:
        app = _create_chirp_app(config)
        warnings = _mount_static_files(app, config, {})
        assert any("mermaid" in w for w in warnings)
        assert any("svg-pan-zoom" in w for w in warnings)
        assert all("mdpreview --fetch-vendor" in w for w in warnings)

    def test_present_vendor_library_not_warned(self, config: PreviewConfig, tmp_path: Path) -> None:
        app = _create_chirp_app(config)
        warnings = _mount_static_files(app, config, {"mermaid": tmp_path})
        assert not any("mermaid" in w for w in warnings)


class TestPageRenderer:
    """The page shell around the content."""

    def test_wraps_content(self, config: PreviewConfig) -> None:
        page = PageRenderer(config, {})
        html = page.render("<h1>Hi</h1>")
        assert html.lstrip().startswith("<!DOCTYPE html>")
        assert "<title>Markdown Preview</title>" in html
        assert "<h1>Hi</h1>" in html
        assert '<script src="/static/preview.js"></script>' in html
        assert "/vendor/highlight/theme.css" in html

    def test_vendor_scripts_included_when_present(
        self, config: PreviewConfig, tmp_path: Path,
    ) -> None:
        page = PageRenderer(config, {"mermaid": tmp_path})
        html = page.render("")
        assert "/vendor/mermaid/dist/mermaid.min.js" in html
        assert "svg-pan-zoom.min.js" not in html

    def test_title_escaped(self, config: PreviewConfig) -> None:
        page = PageRenderer(replace(config, title="<b>Notes</b>"), {})
        assert "<title>&lt;b&gt;Notes&lt;/b&gt;</title>" in page.render("")

    def test_user_template_overrides_bundled(self, config: PreviewConfig, tmp_path: Path) -> None:
        templates = tmp_path / "templates"
        templates.mkdir()
        (templates / "preview.html").write_text("<main>{{ content }}</main>")
        page = PageRenderer(replace(config, templates_dir=templates), {})
        assert page.render("<p>x</p>") == "<main><p>x</p></main>"


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------


class TestEndToEnd:
    """Full pipeline through Chirp's test client."""

    @pytest.mark.asyncio
    async def test_index_serves_rendered_markdown(self, config: PreviewConfig) -> None:
        from chirp.testing.client import TestClient

        server = build_app(config, operation=StubRebuild())
        async with TestClient(server.app) as client:
            response = await client.get("/")
            assert response.status == 200
            body = _body(response)
            assert "Hello" in body
            assert "<title>Markdown Preview</title>" in body

    @pytest.mark.asyncio
    async def test_edit_reloads_once_and_serves_new_content(
        self, config: PreviewConfig, md_file: Path,
    ) -> None:
        from chirp.testing.client import TestClient

        server = build_app(config, operation=StubRebuild())
        channel = FakeChannel()
        server.registry.register(channel)

        md_file.write_text("# Goodbye\n", encoding="utf-8")
        server.orchestrator.reload_content(md_file)

        assert channel.messages == ["reload"]
        async with TestClient(server.app) as client:
            body = _body(await client.get("/"))
            assert "Goodbye" in body
            assert "Hello" not in body

    @pytest.mark.asyncio
    async def test_file_edit_pushes_reload_over_event_stream(
        self, config: PreviewConfig, md_file: Path,
    ) -> None:
        """A real write goes watcher -> render -> registry -> /events."""
        from chirp.testing.client import TestClient

        server = build_app(replace(config, debounce_ms=50), operation=StubRebuild())
        async with TestClient(server.app) as client:
            stream = asyncio.create_task(client.sse("/events", max_events=1))
            for _ in range(200):
                if server.registry.count() == 1:
                    break
                await asyncio.sleep(0.01)
            assert server.registry.count() == 1

            # Let the watcher settle before the write
            await asyncio.sleep(0.3)
            md_file.write_text("# Goodbye\n", encoding="utf-8")
            result = await asyncio.wait_for(stream, timeout=10)

            assert result.status == 200
            assert result.headers["content-type"] == "text/event-stream"
            assert result.headers["cache-control"] == "no-cache"
            assert result.headers["connection"] == "keep-alive"
            assert [event.data for event in result.events] == [RELOAD_MESSAGE]
            assert "Goodbye" in _body(await client.get("/"))

        assert server.registry.count() == 0

    def test_reload_wire_format(self) -> None:
        from chirp import SSEEvent

        assert SSEEvent(data=RELOAD_MESSAGE).encode() == "data: reload\n\n"

    @pytest.mark.asyncio
    async def test_highlight_theme(self, config: PreviewConfig) -> None:
        from chirp.testing.client import TestClient

        server = build_app(config, operation=StubRebuild())
        async with TestClient(server.app) as client:
            response = await client.get("/vendor/highlight/theme.css")
            assert response.status == 200
            assert ".highlight" in _body(response)

    @pytest.mark.asyncio
    async def test_client_script_served(self, config: PreviewConfig) -> None:
        from chirp.testing.client import TestClient

        server = build_app(config, operation=StubRebuild())
        async with TestClient(server.app) as client:
            response = await client.get("/static/preview.js")
            assert response.status == 200
            assert "EventSource" in _body(response)

    @pytest.mark.asyncio
    async def test_stats_endpoint(self, config: PreviewConfig, md_file: Path) -> None:
        from chirp.testing.client import TestClient

        server = build_app(config, operation=StubRebuild())
        server.registry.register(FakeChannel())
        server.orchestrator.reload_content(md_file)

        async with TestClient(server.app) as client:
            response = await client.get("/__preview/stats")
            assert response.status == 200
            payload = json.loads(_body(response))

        assert payload["open_channels"] == 1
        assert payload["last_reload"] == {"path": str(md_file), "ok": True, "error": ""}
        assert payload["event_log"]["by_type"]["ContentReloaded"] == 1
        assert payload["event_log"]["by_type"]["ReloadBroadcast"] == 1

    @pytest.mark.asyncio
    async def test_unknown_path_404(self, config: PreviewConfig) -> None:
        from chirp.testing.client import TestClient

        server = build_app(config, operation=StubRebuild())
        async with TestClient(server.app) as client:
            response = await client.get("/nope")
            assert response.status == 404


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


class TestLifecycle:
    """Startup starts the watchers (and browser), shutdown stops them."""

    @pytest.mark.asyncio
    async def test_startup_and_shutdown(self, config: PreviewConfig) -> None:
        import asyncio

        async def _idle_awatch(*_args: object, stop_event: asyncio.Event, **_kwargs: object):  # noqa: ANN202
            await stop_event.wait()
            return
            yield  # pragma: no cover

        server = build_app(config, operation=StubRebuild())
        with (
            patch("watchfiles.awatch", _idle_awatch),
            patch("mdpreview.app.webbrowser.open") as open_browser,
        ):
            await server.app._startup_hooks[-1]()
            await asyncio.sleep(0)
            assert server.orchestrator._watcher.is_running

            await server.app._shutdown_hooks[-1]()
            assert not server.orchestrator._watcher.is_running

        open_browser.assert_not_called()

    @pytest.mark.asyncio
    async def test_browser_opened_when_enabled(self, config: PreviewConfig) -> None:
        import asyncio

        async def _idle_awatch(*_args: object, stop_event: asyncio.Event, **_kwargs: object):  # noqa: ANN202
            await stop_event.wait()
            return
            yield  # pragma: no cover

        server = build_app(replace(config, open_browser=True), operation=StubRebuild())
        with (
            patch("watchfiles.awatch", _idle_awatch),
            patch("mdpreview.app.webbrowser.open") as open_browser,
        ):
            await server.app._startup_hooks[-1]()
            await server.app._shutdown_hooks[-1]()

        open_browser.assert_called_once_with("http://localhost:4002")


class TestPreview:
    """preview() entry point."""

    def test_missing_file_raises(self, tmp_path: Path) -> None:
        with pytest.raises(ContentError, match="not found"):
            preview(tmp_path / "missing.md", open_browser=False)
