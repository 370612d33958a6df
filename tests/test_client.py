"""Tests for single-statement execution through the client."""

import pytest
from conftest import DATABASE_URL, INT4, TEXT, raw_result

from pghttp import (
    FullQueryResult,
    HttpConfig,
    InvalidConnectionString,
    InvalidUsage,
    QueryOptions,
    TransactionOptions,
    TypeParsers,
    create_client,
)


@pytest.mark.asyncio
async def test_object_mode_scenario(sql, gateway):
    """Test SELECT $1::int AS n with [1] gives [{'n': 1}]."""
    gateway.respond(raw_result([("n", INT4)], [["1"]]))
    rows = await sql("SELECT $1::int AS n", [1])
    assert rows == [{"n": 1}]


@pytest.mark.asyncio
async def test_array_mode_scenario(sql, gateway):
    """Test the same query in array mode gives [[1]]."""
    gateway.respond(raw_result([("n", INT4)], [["1"]]))
    rows = await sql("SELECT $1::int AS n", [1], QueryOptions(array_mode=True))
    assert rows == [[1]]


@pytest.mark.asyncio
async def test_request_shape(sql, gateway):
    """Test a single statement posts {query, params} with the protocol headers."""
    await sql.template(["SELECT ", "::int AS n"], 1)
    request = gateway.last
    assert request["method"] == "POST"
    assert request["url"] == "https://ep-example-123.db.example.com/sql"
    assert request["body"] == {"query": "SELECT $1::int AS n", "params": ["1"]}
    headers = request["headers"]
    assert headers["Khulnasoft-Connection-String"] == DATABASE_URL
    assert headers["Khulnasoft-Raw-Text-Output"] == "true"
    assert headers["Khulnasoft-Array-Mode"] == "true"


@pytest.mark.asyncio
async def test_array_mode_header_sent_for_object_results(sql, gateway):
    """Test rows are always requested as arrays, whatever the output shape."""
    await sql("SELECT 1", options=QueryOptions(array_mode=False))
    assert gateway.last["headers"]["Khulnasoft-Array-Mode"] == "true"


@pytest.mark.asyncio
async def test_single_statement_has_no_batch_headers(http_config, type_parsers, gateway):
    """Test transaction headers are never sent for a single statement."""
    sql = create_client(
        DATABASE_URL,
        config=http_config,
        type_parsers=type_parsers,
        isolation_level="Serializable",
        read_only=True,
        deferrable=True,
    )
    await sql("SELECT 1")
    assert not any(name.startswith("Khulnasoft-Batch-") for name in gateway.last["headers"])


@pytest.mark.asyncio
async def test_each_await_sends_again(sql, gateway):
    """Test a handle has no cached result; awaiting twice sends twice."""
    gateway.respond(raw_result([("n", INT4)], [["1"]]))
    q = sql("SELECT 1 AS n")
    assert gateway.requests == []
    assert await q == [{"n": 1}]
    gateway.respond(raw_result([("n", INT4)], [["2"]]))
    assert await q == [{"n": 2}]
    assert len(gateway.requests) == 2


@pytest.mark.asyncio
async def test_options_resolved_at_execution(sql, gateway):
    """Test replacing client options after building a handle affects its execution."""
    gateway.respond(raw_result([("n", INT4)], [["1"]]))
    q = sql("SELECT 1 AS n")
    sql.options = TransactionOptions(array_mode=True)
    assert await q == [[1]]


@pytest.mark.asyncio
async def test_global_config_read_at_execution(gateway):
    """Test the process-wide config is looked up when the query runs."""
    import pghttp

    sql = create_client(DATABASE_URL, type_parsers=TypeParsers())
    q = sql("SELECT 1")
    previous = pghttp.http_config.fetch_function
    pghttp.http_config.fetch_function = gateway
    try:
        await q
    finally:
        pghttp.http_config.fetch_function = previous
    assert len(gateway.requests) == 1


@pytest.mark.asyncio
async def test_replace_global_config(gateway):
    """Test a replaced process-wide config is used and visible on the package."""
    import pghttp

    sql = create_client(DATABASE_URL, type_parsers=TypeParsers())
    q = sql("SELECT 1")
    replacement = HttpConfig(fetch_endpoint="https://gateway.test/sql", fetch_function=gateway)
    previous = pghttp.set_http_config(replacement)
    try:
        assert pghttp.http_config is replacement
        await q
    finally:
        pghttp.set_http_config(previous)
    assert pghttp.http_config is previous
    assert gateway.last["url"] == "https://gateway.test/sql"


@pytest.mark.asyncio
async def test_replace_global_type_parsers(http_config, gateway):
    import pghttp

    gateway.respond(raw_result([("n", INT4)], [["7"]]))
    sql = create_client(DATABASE_URL, config=http_config)
    registry = TypeParsers({INT4: lambda cell: f"<{cell}>"})
    previous = pghttp.set_default_type_parsers(registry)
    try:
        assert pghttp.default_type_parsers is registry
        assert await sql("SELECT 7 AS n") == [{"n": "<7>"}]
    finally:
        pghttp.set_default_type_parsers(previous)


@pytest.mark.asyncio
async def test_type_parser_override_read_at_execution(sql, gateway, type_parsers):
    """Test a parser installed after building a handle is used by it."""
    gateway.respond(raw_result([("n", INT4)], [["7"]]))
    q = sql("SELECT 7 AS n")
    type_parsers.set_type_parser(INT4, lambda cell: f"int:{cell}")
    assert await q == [{"n": "int:7"}]


@pytest.mark.asyncio
async def test_full_results(sql, gateway):
    gateway.respond(raw_result([("num", INT4)], [["123"]]))
    result = await sql("SELECT 123 AS num", [], QueryOptions(array_mode=True, full_results=True))
    assert isinstance(result, FullQueryResult)
    assert result.rows == [[123]]
    assert result.row_as_array is True


@pytest.mark.asyncio
async def test_transport_options_forwarded(http_config, type_parsers, gateway):
    """Test transport options reach the outbound call, call level winning."""
    sql = create_client(
        DATABASE_URL,
        config=http_config,
        type_parsers=type_parsers,
        transport_options={"timeout": 10, "follow_redirects": True},
    )
    await sql("SELECT 1", options=QueryOptions(transport_options={"timeout": 2}))
    assert gateway.last["options"] == {"timeout": 2, "follow_redirects": True}


@pytest.mark.asyncio
async def test_query_shortcut(sql, gateway):
    gateway.respond(raw_result([("s", TEXT)], [["hi"]]))
    assert await sql.query("SELECT $1 AS s", ["hi"], array_mode=True) == [["hi"]]


@pytest.mark.asyncio
async def test_result_observer_from_client(http_config, type_parsers, gateway):
    seen = []
    sql = create_client(
        DATABASE_URL,
        config=http_config,
        type_parsers=type_parsers,
        result_observer=lambda query, raw, rows, opts: seen.append((query.text, rows, opts)),
    )
    gateway.respond(raw_result([("n", INT4)], [["1"]]))
    await sql("SELECT 1 AS n")
    assert seen == [("SELECT 1 AS n", [{"n": 1}], {"array_mode": False, "full_results": False})]


def test_endpoint_callable(gateway):
    """Test the endpoint may be derived from host and port."""
    config = HttpConfig(fetch_endpoint=lambda host, port: f"http://{host}:{port or 4444}/sql", fetch_function=gateway)
    sql = create_client("postgres://u:p@localhost:5432/db", config=config)
    assert sql._transport.url() == "http://localhost:5432/sql"


def test_static_endpoint_from_env():
    config = HttpConfig.from_env({"PGHTTP_FETCH_ENDPOINT": "http://proxy.local/sql"})
    assert config.endpoint_for("anything", None) == "http://proxy.local/sql"


def test_missing_connection_string(monkeypatch):
    """Test a missing connection string fails before anything is sent."""
    monkeypatch.delenv("DATABASE_URL", raising=False)
    with pytest.raises(InvalidConnectionString) as exc_info:
        create_client()
    assert exc_info.value.reason == "missing"


def test_connection_string_from_env(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", DATABASE_URL)
    sql = create_client()
    assert sql.connection.hostname == "ep-example-123.db.example.com"


def test_unknown_client_option():
    with pytest.raises(InvalidUsage):
        create_client(DATABASE_URL, array_mod=True)


def test_bad_isolation_level_rejected_at_creation():
    with pytest.raises(InvalidUsage):
        create_client(DATABASE_URL, isolation_level="Whenever")
