"""Drivers — Redis (redis-py asyncio client).

A "statement" is a Redis command.  Arguments come either from the params
list (``query("GET", ["user:1"])``) or, when no params are given, from the
statement itself (``query("SET user:1 alice")``, tokenised shell-style so
quoted values may contain spaces).  Commands are upper-cased before they
are sent.

List and set replies become ``rows`` (set members sorted).  A hash reply is
one row, a nil reply or an empty hash yields no rows and any other scalar
reply yields a single row.  The reply, the command echo and the execution
time are returned as extras.

A statement that is a list of command arrays runs as a non-transactional
pipeline and yields one outcome row per command.
"""

from __future__ import annotations

import re
import shlex
import time
from typing import Any, Sequence

import redis.asyncio as aioredis
from redis.asyncio.retry import Retry
from redis.backoff import ExponentialBackoff

from db_bridge.drivers.base import REDACTED, BaseDriver, QueryResult
from db_bridge.exceptions import QueryError, ValidationError

SCAN_COUNT = 100
MAX_PATTERNS = 10
MAX_SAMPLE_KEYS = 5
MAX_PATTERN_ITERATIONS = 100
MAX_TYPE_ITERATIONS = 50
MAX_TYPE_KEYS = 1000
KEY_TYPES = ("string", "hash", "list", "set", "zset", "stream")

_NUMERIC = re.compile(r"^\d+$")
_UUID = re.compile(r"^[0-9a-f-]{36}$", re.IGNORECASE)
_OBJECT_ID = re.compile(r"^[0-9a-f]{24}$", re.IGNORECASE)


def extract_pattern(key: str) -> str:
    """Collapse identifier-like segments: ``"user:123:profile"`` -> ``"user:*:profile"``.

    The first segment is always kept verbatim.
    """
    parts = key.split(":")
    if len(parts) == 1:
        return key
    return ":".join(
        [parts[0]]
        + [
            "*" if _NUMERIC.match(p) or _UUID.match(p) or _OBJECT_ID.match(p) else p
            for p in parts[1:]
        ]
    )


def parse_command(statement: str | Sequence[Any], params: list[Any]) -> tuple[str, list[Any]]:
    if isinstance(statement, (list, tuple)):
        tokens = list(statement)
    elif params:
        tokens = [statement, *params]
    else:
        tokens = shlex.split(statement)
    if not tokens or not isinstance(tokens[0], str) or not tokens[0].strip():
        raise QueryError(
            "Command must be a string or array starting with command name",
            backend_type=RedisDriver.BACKEND_TYPE,
        )
    return tokens[0].strip().upper(), tokens[1:]


def is_pipeline(statement: Any) -> bool:
    """True for ``[["SET", "k", "v"], ["GET", "k"]]``: a list of command arrays."""
    return (
        isinstance(statement, (list, tuple))
        and len(statement) > 0
        and all(isinstance(cmd, (list, tuple)) for cmd in statement)
    )


def normalize_reply(reply: Any) -> Any:
    """Make a decoded reply JSON-friendly.

    redis-py decodes set replies (SMEMBERS, SINTER, ...) into ``set``; those
    become sorted lists.  Nested arrays are normalised element-wise.
    """
    if isinstance(reply, (set, frozenset)):
        return sorted(reply, key=str)
    if isinstance(reply, (list, tuple)):
        return [normalize_reply(item) for item in reply]
    return reply


def reply_rows(reply: Any) -> list[Any]:
    # A hash reply is a single row; an empty hash, like nil, is no rows.
    if isinstance(reply, list):
        return reply
    if isinstance(reply, dict):
        return [reply] if reply else []
    if reply is None:
        return []
    return [reply]


class RedisDriver(BaseDriver):
    BACKEND_TYPE = "redis"
    DISPLAY_NAME = "Redis"
    DEFAULT_PORT = 6379
    REQUIRED_FIELDS = ("host",)

    @property
    def db_index(self) -> int:
        raw = self.parameters.get("db", self.parameters.get("database"))
        return int(raw) if raw not in (None, "") else 0

    def _validate_extra(self) -> None:
        try:
            db = self.db_index
        except (TypeError, ValueError):
            db = -1
        if not 0 <= db <= 15:
            raise ValidationError(
                "Redis database must be a number between 0 and 15",
                backend_type=self.BACKEND_TYPE,
            )

    async def _open(self) -> Any:
        p = self.parameters
        kwargs: dict[str, Any] = {
            "host": p["host"],
            "port": int(p.get("port") or self.DEFAULT_PORT),
            "db": self.db_index,
            "password": p.get("password"),
            "username": p.get("username"),
            "client_name": p.get("connection_name") or "db-bridge",
            "decode_responses": True,
            "socket_connect_timeout": float(self._setting("connection_timeout")),
            "socket_timeout": self._setting("query_timeout"),
            "max_connections": int(self._setting("max_connections")),
            "retry": Retry(ExponentialBackoff(cap=3.0, base=0.1), 3),
        }
        if p.get("tls"):
            kwargs["ssl"] = True
            if p.get("reject_unauthorized") is False:
                kwargs["ssl_cert_reqs"] = "none"
        return aioredis.Redis(**kwargs)

    async def _ping(self, client: Any) -> None:
        if not await client.ping():
            raise RuntimeError("Unexpected PING response")

    async def _close(self, client: Any) -> None:
        await client.aclose()

    async def _execute(
        self, client: Any, statement: str | Sequence[Any], params: list[Any]
    ) -> QueryResult:
        if is_pipeline(statement):
            start = time.perf_counter()
            outcomes = await self._run_pipeline(client, statement)
            elapsed_ms = round((time.perf_counter() - start) * 1000, 2)
            return QueryResult(
                rows=outcomes,
                extras={
                    "pipeline": True,
                    "command_count": len(outcomes),
                    "execution_time_ms": elapsed_ms,
                },
            )

        command, args = parse_command(statement, params)
        start = time.perf_counter()
        result = normalize_reply(await client.execute_command(command, *args))
        elapsed_ms = round((time.perf_counter() - start) * 1000, 2)
        return QueryResult(
            rows=reply_rows(result),
            extras={
                "result": result,
                "command": command,
                "args": args,
                "execution_time_ms": elapsed_ms,
            },
        )

    async def pipeline(self, commands: Sequence[Sequence[Any]]) -> list[dict[str, Any]]:
        """Run several commands in one round-trip; one outcome per command."""
        return await self._run_pipeline(self._require_client(), commands)

    async def _run_pipeline(
        self, client: Any, commands: Sequence[Sequence[Any]]
    ) -> list[dict[str, Any]]:
        parsed = [parse_command(list(cmd), []) for cmd in commands]
        pipe = client.pipeline(transaction=False)
        for command, args in parsed:
            pipe.execute_command(command, *args)
        results = await pipe.execute(raise_on_error=False)

        return [
            {
                "command": command,
                "success": not isinstance(result, Exception),
                "result": None if isinstance(result, Exception) else normalize_reply(result),
                "error": str(result) if isinstance(result, Exception) else None,
            }
            for (command, _args), result in zip(parsed, results)
        ]

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    async def _introspect(self, client: Any) -> dict[str, Any]:
        key_count = await client.dbsize()
        info = await client.info()
        return {
            "database": self.db_index,
            "key_count": key_count,
            "server_info": {
                "version": info.get("redis_version"),
                "mode": info.get("redis_mode"),
                "os": info.get("os"),
                "uptime_seconds": info.get("uptime_in_seconds"),
                "connected_clients": info.get("connected_clients"),
                "used_memory": info.get("used_memory_human"),
                "used_memory_peak": info.get("used_memory_peak_human"),
            },
            "key_patterns": await self._sample_key_patterns(client),
            "type_distribution": await self._key_type_distribution(client),
        }

    async def _sample_key_patterns(self, client: Any) -> list[dict[str, Any]]:
        patterns: dict[str, dict[str, Any]] = {}
        cursor = 0
        iterations = 0
        while True:
            cursor, keys = await client.scan(cursor=cursor, count=SCAN_COUNT)
            for key in keys:
                entry = patterns.setdefault(
                    extract_pattern(key),
                    {"pattern": extract_pattern(key), "count": 0, "sample_keys": []},
                )
                entry["count"] += 1
                if len(entry["sample_keys"]) < MAX_SAMPLE_KEYS:
                    entry["sample_keys"].append(key)
            iterations += 1
            if (
                int(cursor) == 0
                or len(patterns) >= MAX_PATTERNS
                or iterations >= MAX_PATTERN_ITERATIONS
            ):
                break

        ranked = sorted(patterns.values(), key=lambda e: e["count"], reverse=True)
        return ranked[:MAX_PATTERNS]

    async def _key_type_distribution(self, client: Any) -> dict[str, int]:
        types = {name: 0 for name in (*KEY_TYPES, "other")}
        seen = 0
        cursor = 0
        iterations = 0
        while True:
            cursor, keys = await client.scan(cursor=cursor, count=SCAN_COUNT)
            for key in keys:
                key_type = await client.type(key)
                types[key_type if key_type in types else "other"] += 1
                seen += 1
                if seen >= MAX_TYPE_KEYS:
                    break
            iterations += 1
            if int(cursor) == 0 or seen >= MAX_TYPE_KEYS or iterations >= MAX_TYPE_ITERATIONS:
                break
        return types

    def describe(self) -> dict[str, Any]:
        return {
            "host": self.parameters.get("host"),
            "port": self.parameters.get("port") or self.DEFAULT_PORT,
            "database": self.db_index,
            "user": self.parameters.get("username"),
        }

    def get_connection_string(self) -> str:
        p = self.parameters
        scheme = "rediss" if p.get("tls") else "redis"
        port = p.get("port") or self.DEFAULT_PORT
        auth = f"{REDACTED}@" if p.get("password") else ""
        return f"{scheme}://{auth}{p.get('host')}:{port}/{self.db_index}"
