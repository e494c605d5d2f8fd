# prisma-runtime

The runtime side of a Prisma client. The package works out which engine build
fits the current machine. It downloads the Prisma CLI and the engine binaries
into a cache. It can start the query engine as a child process and send it
GraphQL requests, or it can send those requests to a hosted data proxy instead.

## Installation

```
pip install prisma-runtime
```

## Running the Prisma CLI

The `prisma-runtime` command passes its arguments to the Prisma CLI. Before
each run it makes sure the CLI and the engines are in the user cache directory,
and downloads whatever is missing. If the run fails, the command prints the
error to stderr and exits with status 1.

```
prisma-runtime db push --schema=./schema.prisma --skip-generate
```

From Python, the same thing is `prisma_runtime.cli.run(arguments, output)`.
`output` decides whether the CLI's own stdout and stderr are shown. A failure
raises `RuntimeError`.

```python
from prisma_runtime.cli import run

run(["db", "push", "--schema=./schema.prisma"], True)
```

The CLI runs with `PRISMA_HIDE_UPDATE_MESSAGE=true` and
`PRISMA_CLI_QUERY_ENGINE_TYPE=binary`. It is pointed at the cached engines
unless `PRISMA_QUERY_ENGINE_BINARY` or `PRISMA_MIGRATION_ENGINE_BINARY` is set,
in which case that value is passed on. `prisma_runtime.cli.build_environment(directory)`
returns this environment without running anything.

## Engine binaries

```python
from prisma_runtime import binaries, platform

platform.name()                    # "linux", "darwin", "windows", ...
platform.binary_platform_name()    # e.g. "debian-openssl-1.1.x" or "darwin"
platform.check_for_extension("windows", "/some.gz")  # "/some.exe.gz"

binaries.fetch_native("/absolute/cache/dir")  # CLI plus every engine
binaries.download_engine("query-engine", "/absolute/cache/dir")  # returns the path
```

On Linux the engine flavour comes from `/etc/os-release` (`alpine`, `rhel` or
`debian`) and from the output of `openssl version -v`.
`platform.parse_linux_distro` and `platform.parse_openssl_version` do the
parsing.

`fetch_native` raises `ValueError` when the directory is empty or not absolute.
A file that is already there is not downloaded again. Downloads are gzip files
that are unpacked on the way. The download locations can be changed with the
`PRISMA_CLI_URL` and `PRISMA_ENGINE_URL` environment variables, which are read
when `prisma_runtime.binaries` is imported. The versions that are used are
`binaries.PRISMA_VERSION` and `binaries.ENGINE_VERSION`.

`prisma_runtime.unpack.unpack(data, name, version)` writes an engine binary
that is held in memory into `binaries.global_unpack_dir(version)`. It does not
overwrite a file that is already there, and it returns the file's path.

## Query engine

```python
from prisma_runtime.protocol import GQLRequest, NotFoundError
from prisma_runtime.queryengine import QueryEngine

with QueryEngine(schema_text) as engine:
    try:
        result = engine.do(GQLRequest(query="query { result: findManyUser { id } }"))
    except NotFoundError:
        result = None
```

`connect` first loads `e2e.env`, `db/e2e.env` and `prisma/e2e.env` if they
exist. It then looks for a binary named `prisma-query-engine-<flavour>`, first
in the working directory and then in the global unpack directory. A binary in
the global unpack directory takes precedence. `connect` runs the binary with
`--version` and checks that it matches `ENGINE_VERSION`. It then starts the
binary on a free local port and polls `/status` until the engine answers, for
up to 100 attempts. To use a particular binary, set
`PRISMA_QUERY_ENGINE_BINARY`. With that set, a version mismatch is only logged.

`do` returns the `result` value of the response. Prisma's typed wrappers for
raw query values (`{"prisma__type": ..., "prisma__value": ...}`) are replaced
by plain values, and bytes values are decoded from base64 into `bytes`. If the
engine reports that a record to update or delete was not found, `do` raises
`NotFoundError`. Any other engine error raises `RuntimeError`. `batch` returns
the whole decoded response body, unwrapped the same way. After `disconnect`,
every request raises `RuntimeError`.

The unwrapping is also available on its own: `transform.transform_value(value)`
works on decoded JSON. `transform.transform_response(data)` works on a JSON
document and returns a new one, in which bytes stay base64 encoded.

## Data proxy

```python
from prisma_runtime.proxy import DataProxyEngine

engine = DataProxyEngine(schema_text, "prisma://proxy.example.com/?api_key=placeholder")
engine.connect()   # uploads the schema, keyed by its hash
result = engine.do(payload)
```

`connect` raises `ValueError` when the connection string has no `api_key`. The
remote URI is `https://<host>/<PRISMA_VERSION>/<schema hash>`, where the hash is
`proxy.hash_schema(schema)`. If the proxy answers 404, the schema is uploaded
again and the request is retried once.

## Wire types and transport

`prisma_runtime.protocol` holds `GQLRequest`, `GQLBatchRequest` (with
`to_dict`), `GQLResponse`, `GQLBatchResponse`, `GQLError` (with `from_dict`),
and the abstract `Engine` base class. `prisma_runtime.transport.request` sends
one HTTP request and returns its body. For a 404 it raises
`SchemaNotFoundError`, for any status other than 200 or 201 it raises
`EngineHTTPError`, and when it cannot connect it raises `ConnectionError`.

## What this package does not do

It does not generate client code from a Prisma schema, and it has no typed
query builder for models. Queries are sent as GraphQL text or as ready-made
payloads. Migrations and `db push` are left to the Prisma CLI, which the
`prisma-runtime` command runs.