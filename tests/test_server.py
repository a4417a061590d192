import asyncio
from pathlib import Path

from folio.build import BuildError
from folio.server import DevServer, _ChangeHandler, inject_reload_script


class DummyEvent:
    def __init__(self, path, is_directory=False):
        self.src_path = path
        self.is_directory = is_directory


def quiet_server(tmp_path, monkeypatch):
    server = DevServer(tmp_path)
    server._post_build_delay = 0
    broadcasts = []
    monkeypatch.setattr(server, "_broadcast_reload", lambda: broadcasts.append("reload"))
    return server, broadcasts


def test_change_handler_skips_output_and_root_files(tmp_path):
    server = DevServer(tmp_path)
    called = []
    server.rebuild = lambda include_drafts: called.append(include_drafts)
    handler = _ChangeHandler(server, include_drafts=True)

    handler.on_any_event(DummyEvent(str(tmp_path / "output" / "index.html")))
    handler.on_any_event(DummyEvent(str(tmp_path / "output.staging" / "index.html")))
    handler.on_any_event(DummyEvent(str(tmp_path / "output.old" / "index.html")))
    handler.on_any_event(DummyEvent(str(tmp_path / "README.md")))
    handler.on_any_event(DummyEvent(str(tmp_path / "site"), is_directory=True))
    assert called == []

    handler.on_any_event(DummyEvent(str(tmp_path / "site" / "index.md")))
    handler.on_any_event(DummyEvent(str(tmp_path / "folio.yaml")))
    assert called == [True, True]


def test_async_broadcast_drops_stale_clients():
    server = DevServer(Path("."))

    class GoodWS:
        def __init__(self):
            self.messages = []

        async def send(self, msg):
            self.messages.append(msg)

    class BadWS:
        async def send(self, msg):
            raise ConnectionError("gone")

    good = GoodWS()
    bad = BadWS()
    server._ws_clients = {good, bad}
    asyncio.run(server._async_broadcast("hello"))
    assert good.messages == ["hello"]
    assert server._ws_clients == {good}


def test_ports(tmp_path):
    server = DevServer(tmp_path, http_port=5055)
    assert server.http_port == 5055
    assert server.ws_port == 5056

    (tmp_path / "folio.yaml").write_text("port: 8000\nws_port: 9000\n", encoding="utf-8")
    assert DevServer(tmp_path).ws_port == 9000
    assert DevServer(tmp_path, http_port=7000).ws_port == 7001
    assert DevServer(tmp_path, ws_port=7100).ws_port == 7100


def test_watched_paths_follow_config(tmp_path):
    (tmp_path / "folio.yaml").write_text("site_dir: content\n", encoding="utf-8")
    server = DevServer(tmp_path)
    assert server.watched_paths() == [tmp_path / "content", tmp_path / "assets", tmp_path / "data"]


def test_rebuild_publishes_and_reloads(tmp_path, monkeypatch):
    (tmp_path / "site").mkdir()
    source = tmp_path / "site" / "index.md"
    source.write_text("one", encoding="utf-8")
    server, broadcasts = quiet_server(tmp_path, monkeypatch)
    calls = []

    def fake_build_site(root, include_drafts=False, root_url="", clean_output=True, output_dir_override=None):
        calls.append(include_drafts)
        (output_dir_override / "index.html").write_text(f"build {len(calls)}", encoding="utf-8")

    monkeypatch.setattr("folio.server.build_site", fake_build_site)

    assert server.rebuild(include_drafts=True) is True
    assert calls == [True]
    assert broadcasts == ["reload"]
    assert (server.output_dir / "index.html").read_text(encoding="utf-8") == "build 1"
    assert not server._staging_dir.exists()

    assert server.rebuild(include_drafts=True) is False
    assert calls == [True]

    source.write_text("two, longer", encoding="utf-8")
    assert server.rebuild(include_drafts=False) is True
    assert (server.output_dir / "index.html").read_text(encoding="utf-8") == "build 2"
    assert not server.output_dir.with_name("output.old").exists()


def test_failed_rebuild_keeps_previous_output(tmp_path, monkeypatch, capsys):
    (tmp_path / "site").mkdir()
    source = tmp_path / "site" / "index.md"
    source.write_text("one", encoding="utf-8")
    server, broadcasts = quiet_server(tmp_path, monkeypatch)
    server.output_dir.mkdir()
    (server.output_dir / "index.html").write_text("previous", encoding="utf-8")

    def failing_build_site(root, **kwargs):
        raise BuildError(source, "Unknown tag 'x'", line=3)

    monkeypatch.setattr("folio.server.build_site", failing_build_site)
    assert server.rebuild(include_drafts=False) is False
    assert broadcasts == []
    assert (server.output_dir / "index.html").read_text(encoding="utf-8") == "previous"
    err = capsys.readouterr().err
    assert "site/index.md:3" in err
    assert "Unknown tag 'x'" in err


def test_rebuild_skips_while_locked(tmp_path, monkeypatch):
    server, broadcasts = quiet_server(tmp_path, monkeypatch)
    server._lock.acquire()
    try:
        assert server.rebuild(include_drafts=False) is False
    finally:
        server._lock.release()
    assert broadcasts == []


def test_inject_reload_script():
    assert inject_reload_script("<body>x</body>", "<s/>") == "<body>x<s/></body>"
    assert inject_reload_script("plain", "<s/>") == "plain<s/>"


def test_unexpected_rebuild_failure_is_reported(tmp_path, monkeypatch, capsys):
    (tmp_path / "site").mkdir()
    (tmp_path / "site" / "index.md").write_text("one", encoding="utf-8")
    server, broadcasts = quiet_server(tmp_path, monkeypatch)
    server.output_dir.mkdir()
    (server.output_dir / "index.html").write_text("previous", encoding="utf-8")

    def crashing_build_site(root, output_dir_override=None, **kwargs):
        (output_dir_override / "half.html").write_text("partial", encoding="utf-8")
        raise RuntimeError("renderer crashed")

    monkeypatch.setattr("folio.server.build_site", crashing_build_site)
    assert server.rebuild(include_drafts=False) is False
    assert broadcasts == []
    assert not server._staging_dir.exists()
    assert (server.output_dir / "index.html").read_text(encoding="utf-8") == "previous"
    assert "RuntimeError: renderer crashed" in capsys.readouterr().err


def test_undecodable_file_keeps_serving_previous_build(tmp_path, monkeypatch, capsys):
    site = tmp_path / "site"
    (site / "_layouts").mkdir(parents=True)
    (site / "_layouts" / "default.html").write_text("<main>{{ content }}</main>", encoding="utf-8")
    (site / "index.md").write_text("---\nlayout: default\n---\nHello\n", encoding="utf-8")
    server, broadcasts = quiet_server(tmp_path, monkeypatch)
    server.publish(include_drafts=False)
    published = (server.output_dir / "index.html").read_text(encoding="utf-8")

    (site / "bad.md").write_bytes(b"---\nlayout: default\n---\n\xff\xfe bad\n")
    assert server.rebuild(include_drafts=False) is False
    assert (server.output_dir / "index.html").read_text(encoding="utf-8") == published
    assert not (server.output_dir / "bad").exists()
    err = capsys.readouterr().err
    assert "site/bad.md:4" in err
    assert "not valid UTF-8" in err

    (site / "bad.md").write_text("---\nlayout: default\n---\nFixed\n", encoding="utf-8")
    assert server.rebuild(include_drafts=False) is True
    assert (server.output_dir / "bad" / "index.html").exists()
    assert broadcasts == ["reload"]
