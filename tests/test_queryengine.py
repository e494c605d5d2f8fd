import json
import os
import sys
import tempfile
import textwrap

import pytest

from prisma_runtime.binaries import ENGINE_VERSION
from prisma_runtime.platform import binary_platform_name, check_for_extension, name
from prisma_runtime.protocol import (
    UPDATE_NOT_FOUND_MESSAGE,
    GQLBatchRequest,
    GQLRequest,
    NotFoundError,
)
from prisma_runtime.queryengine import QueryEngine

_FAKE_ENGINE = textwrap.dedent(
    """
    import json
    import sys
    from http.server import BaseHTTPRequestHandler, HTTPServer

    if "--version" in sys.argv:
        print("query-engine __VERSION__")
        sys.exit(0)

    port = int(sys.argv[sys.argv.index("-p") + 1])

    RESPONSES = {
        "raw": {"data": {"result": [
            {"prisma__type": "string", "prisma__value": "asdf"},
            {"prisma__type": "null", "prisma__value": None},
        ]}},
        "notfound": {"errors": [{"error": __NOT_FOUND__}]},
        "failing": {"errors": [{"error": "boom\\nhappened"}]},
    }


    class Handler(BaseHTTPRequestHandler):
        def _body(self):
            length = int(self.headers.get("Content-Length") or 0)
            return self.rfile.read(length)

        def _send(self, obj):
            data = json.dumps(obj).encode()
            self.send_response(200)
            self.send_header("Content-Type", "application/json")
            self.send_header("Content-Length", str(len(data)))
            self.end_headers()
            self.wfile.write(data)

        def do_GET(self):
            self._body()
            self._send({"data": {"result": {}}})

        def do_POST(self):
            body = json.loads(self._body())
            if "batch" in body:
                self._send({"batchResult": [
                    {"data": {"result": {"prisma__type": "bytes", "prisma__value": "aGk="}}}
                ]})
            elif body["query"] == "echo":
                self._send({"data": {"result": {"contentType": self.headers.get("content-type")}}})
            else:
                self._send(RESPONSES[body["query"]])

        def log_message(self, *args):
            pass


    server = HTTPServer(("localhost", port), Handler)
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        pass
    """
)


def _write_engine(path, version=ENGINE_VERSION):
    script = _FAKE_ENGINE.replace("__VERSION__", version).replace(
        "__NOT_FOUND__", repr(UPDATE_NOT_FOUND_MESSAGE)
    )
    path.write_text(f"#!{sys.executable}\n{script}")
    path.chmod(0o755)
    return path


@pytest.fixture
def isolated(tmp_path, monkeypatch):
    work = tmp_path / "work"
    work.mkdir()
    monkeypatch.chdir(work)
    temp = tmp_path / "temp"
    temp.mkdir()
    monkeypatch.setattr(tempfile, "tempdir", str(temp))
    monkeypatch.delenv("PRISMA_QUERY_ENGINE_BINARY", raising=False)
    return tmp_path


@pytest.fixture
def engine(isolated, monkeypatch):
    binary = _write_engine(isolated / "fake-engine")
    monkeypatch.setenv("PRISMA_QUERY_ENGINE_BINARY", str(binary))
    query_engine = QueryEngine("datasource db {}", False)
    query_engine.connect()
    yield query_engine
    if not query_engine._disconnected:
        query_engine.disconnect()


def _exact_local_name():
    return "prisma-query-engine-" + check_for_extension(name(), binary_platform_name())


def test_name():
    assert QueryEngine("schema").name == "query-engine"


def test_replace_schema():
    query_engine = QueryEngine("provider = \"sqlite\"", True)
    query_engine.replace_schema(lambda schema: schema.replace("sqlite", "postgresql"))
    assert query_engine.schema == "provider = \"postgresql\""


def test_do_unwraps_typed_values(engine):
    assert engine.do(GQLRequest("raw")) == ["asdf", None]


def test_do_raises_not_found(engine):
    with pytest.raises(NotFoundError):
        engine.do(GQLRequest("notfound"))


def test_do_raises_pql_error_on_one_line(engine):
    with pytest.raises(RuntimeError, match="pql error: boom happened"):
        engine.do(GQLRequest("failing"))


def test_request_sends_json(engine):
    body = engine.request("POST", "/", GQLRequest("echo").to_dict())
    assert json.loads(body)["data"]["result"] == {"contentType": "application/json"}


def test_batch_decodes_bytes(engine):
    response = engine.batch(GQLBatchRequest([GQLRequest("anything")], transaction=True))
    assert response["batchResult"][0]["data"]["result"] == b"hi"


def test_requests_fail_after_disconnect(engine):
    engine.disconnect()
    with pytest.raises(RuntimeError, match="client is disconnected"):
        engine.request("POST", "/", {})


def test_context_manager_connects_and_disconnects(isolated, monkeypatch):
    binary = _write_engine(isolated / "fake-engine")
    monkeypatch.setenv("PRISMA_QUERY_ENGINE_BINARY", str(binary))
    query_engine = QueryEngine("schema")
    with query_engine:
        assert query_engine.do(GQLRequest("raw")) == ["asdf", None]
    with pytest.raises(RuntimeError, match="client is disconnected"):
        query_engine.do(GQLRequest("raw"))


def test_ensure_missing_override(isolated, monkeypatch):
    missing = str(isolated / "does-not-exist")
    monkeypatch.setenv("PRISMA_QUERY_ENGINE_BINARY", missing)
    with pytest.raises(FileNotFoundError, match="PRISMA_QUERY_ENGINE_BINARY was provided"):
        QueryEngine("schema").ensure()


def test_ensure_override_ignores_version(isolated, monkeypatch):
    binary = _write_engine(isolated / "custom-engine", version="other")
    monkeypatch.setenv("PRISMA_QUERY_ENGINE_BINARY", str(binary))
    assert QueryEngine("schema").ensure() == str(binary)


def test_ensure_no_binary(isolated):
    with pytest.raises(FileNotFoundError, match="no binary found"):
        QueryEngine("schema").ensure()


def test_ensure_local_binary(isolated):
    local_name = _exact_local_name()
    _write_engine(isolated / "work" / local_name)
    assert QueryEngine("schema").ensure() == os.path.join(os.curdir, local_name)


def test_ensure_local_binary_wrong_version(isolated):
    _write_engine(isolated / "work" / _exact_local_name(), version="other")
    with pytest.raises(RuntimeError, match="expected query engine version"):
        QueryEngine("schema").ensure()