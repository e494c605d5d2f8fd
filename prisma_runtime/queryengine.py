"""Engine that runs a local query engine binary and talks to it over HTTP."""

from __future__ import annotations

import json
import logging
import os
import signal
import subprocess
import time
from collections.abc import Callable
from typing import Any

from dotenv import load_dotenv

from prisma_runtime.binaries import ENGINE_VERSION, global_unpack_dir
from prisma_runtime.platform import binary_platform_name, check_for_extension, name as platform_name
from prisma_runtime.protocol import Engine, GQLError, GQLResponse
from prisma_runtime.transform import transform_value
from prisma_runtime.transport import EngineHTTPError, get_free_port, request

logger = logging.getLogger(__name__)

_ENGINE_PREFIX = "prisma-query-engine-"
_READINESS_ATTEMPTS = 100
_GENERATE_NOTE = "Did you forget to run `go run github.com/steebchen/prisma-client-go generate`?"


class QueryEngine(Engine):
    """Start a query engine process for a schema and send queries to it."""

    name = "query-engine"

    def __init__(self, schema: str, has_binary_targets: bool = False) -> None:
        self.schema = schema
        # set by generated code when binary targets were given, so binaries are expected locally
        self.has_binary_targets = has_binary_targets
        self._process: subprocess.Popen[bytes] | None = None
        self._url = ""
        self._disconnected = False

    def replace_schema(self, replace: Callable[[str], str]) -> None:
        """Replace the schema by what the given function makes of it."""
        self.schema = replace(self.schema)

    def connect(self) -> None:
        """Find the engine binary, start it and wait until it answers."""
        logger.debug("ensure query engine binary...")

        for env_file in ("e2e.env", os.path.join("db", "e2e.env"), os.path.join("prisma", "e2e.env")):
            load_dotenv(env_file)

        started = time.monotonic()
        file = self.ensure()
        self._spawn(file)
        logger.debug("connecting took %.3fs", time.monotonic() - started)
        logger.debug("connected.")

    def disconnect(self) -> None:
        """Stop the engine process; no queries can be sent afterwards."""
        self._disconnected = True
        logger.debug("disconnecting...")

        process = self._process
        if process is None:
            raise RuntimeError("query engine is not running")

        if platform_name() == "windows":
            process.kill()
            return

        try:
            process.send_signal(signal.SIGINT)
        except OSError as exc:
            raise RuntimeError(f"send signal: {exc}") from exc
        process.wait()
        logger.debug("disconnected.")

    def do(self, payload: Any) -> Any:
        """Send one query and return its result with typed values unwrapped."""
        started = time.monotonic()
        body = self.request("POST", "/", payload)
        logger.debug("[timing] query engine request took %.6fs", time.monotonic() - started)
        logger.debug("[timing] query engine response %s", body)

        try:
            decoded = json.loads(body)
        except ValueError as exc:
            raise ValueError(f"json gql response unmarshal: {exc}") from exc

        result = self._result_of(GQLResponse.from_dict(decoded))
        return transform_value(result)

    def batch(self, payload: Any) -> Any:
        """Send a batch of queries and return the decoded body with typed values unwrapped."""
        body = self.request("POST", "/", payload)
        try:
            decoded = json.loads(body)
        except ValueError as exc:
            raise ValueError(f"json body unmarshal: {exc}") from exc
        return transform_value(decoded)

    def request(self, method: str, path: str, payload: Any) -> bytes:
        """Send a JSON payload to the engine and return the raw response body."""
        if self._disconnected:
            logger.info(
                "A query was executed after Disconnect() was called. "
                "Make sure to not send any queries after disconnecting the client."
            )
            raise RuntimeError("client is disconnected")

        return request(method, self._url + path, self._encode(payload), {"content-type": "application/json"})

    def ensure(self) -> str:
        """Return the path of the engine binary to run, checking its version."""
        started = time.monotonic()

        binaries_path = global_unpack_dir(ENGINE_VERSION)
        system = platform_name()
        binary_name = check_for_extension(system, system)
        exact_binary_name = check_for_extension(system, binary_platform_name())

        local_path = os.path.join(os.curdir, _ENGINE_PREFIX + binary_name)
        local_exact_path = os.path.join(os.curdir, _ENGINE_PREFIX + exact_binary_name)
        global_path = os.path.join(binaries_path, _ENGINE_PREFIX + binary_name)
        global_exact_path = os.path.join(binaries_path, _ENGINE_PREFIX + exact_binary_name)

        logger.debug("expecting local query engine `%s` or `%s`", local_path, local_exact_path)
        logger.debug("expecting global query engine `%s` or `%s`", global_path, global_exact_path)

        file = ""
        # a custom engine is not required to match the expected version
        force_version = True

        override = os.environ.get("PRISMA_QUERY_ENGINE_BINARY", "")
        if override:
            logger.debug("PRISMA_QUERY_ENGINE_BINARY is defined, using %s", override)
            if not os.path.exists(override):
                raise FileNotFoundError(
                    f"PRISMA_QUERY_ENGINE_BINARY was provided, but no query engine was found at {override}"
                )
            file = override
            force_version = False
        else:
            for candidate in (local_exact_path, local_path):
                if os.path.exists(candidate):
                    file = candidate
                    logger.debug("query engine found in working directory: %s", file)
                    break
            for candidate in (global_exact_path, global_path):
                if os.path.exists(candidate):
                    file = candidate
                    logger.debug("query engine found in global path: %s", file)
                    break

        if not file:
            raise FileNotFoundError("no binary found")

        version_started = time.monotonic()
        try:
            completed = subprocess.run(
                [file, "--version"],
                stdout=subprocess.PIPE,
                text=True,
                errors="replace",
                check=True,
            )
        except (OSError, subprocess.SubprocessError) as exc:
            raise RuntimeError(f"version check failed: {exc}") from exc
        logger.debug("version check took %.3fs", time.monotonic() - version_started)

        version = completed.stdout.replace("query-engine", "", 1).strip()
        if version != ENGINE_VERSION:
            message = f"expected query engine version `{ENGINE_VERSION}` but got `{version}`\n{_GENERATE_NOTE}"
            if force_version:
                raise RuntimeError(message)
            logger.info("%s, ignoring since custom query engine was provided", message)

        logger.debug("using query engine at %s", file)
        logger.debug("ensure query engine took %.3fs", time.monotonic() - started)
        return file

    def _environment(self) -> dict[str, str]:
        env = dict(os.environ)
        env.update(
            {
                "PRISMA_DML": self.schema,
                "RUST_LOG": "error",
                "RUST_LOG_FORMAT": "json",
                "PRISMA_CLIENT_ENGINE_TYPE": "binary",
            }
        )
        if logger.isEnabledFor(logging.DEBUG):
            env["PRISMA_LOG_QUERIES"] = "y"
            env["RUST_LOG"] = "info"
        return env

    def _spawn(self, file: str) -> None:
        try:
            port = get_free_port()
        except OSError as exc:
            raise RuntimeError(f"get free port: {exc}") from exc

        logger.debug("running query-engine on port %s", port)
        self._url = f"http://localhost:{port}"

        logger.debug("starting engine...")
        try:
            self._process = subprocess.Popen(
                [file, "-p", str(port), "--enable-raw-queries"],
                env=self._environment(),
            )
        except OSError as exc:
            raise RuntimeError(f"start command: {exc}") from exc

        logger.debug("connecting to engine...")
        try:
            self._wait_until_ready()
        except Exception:
            self._process.kill()
            self._process.wait()
            raise

    def _wait_until_ready(self) -> None:
        connect_error: Exception | None = None
        gql_errors: list[GQLError] | None = None

        for _ in range(_READINESS_ATTEMPTS):
            try:
                body = self.request("GET", "/status", {})
            except (ConnectionError, EngineHTTPError) as exc:
                connect_error = exc
                logger.debug("could not connect; retrying...")
                time.sleep(0.1)
                continue

            try:
                response = GQLResponse.from_dict(json.loads(body))
            except ValueError as exc:
                connect_error = exc
                logger.debug("could not unmarshal response; retrying...")
                time.sleep(0.05)
                continue

            if response.errors is not None:
                gql_errors = response.errors
                logger.debug("could not connect due to gql errors; retrying...")
                time.sleep(0.05)
                continue

            connect_error = None
            gql_errors = None
            break

        if connect_error is not None:
            raise ConnectionError(f"readiness query error: {connect_error}") from connect_error
        if gql_errors is not None:
            raise RuntimeError(f"readiness gql errors: {gql_errors}")