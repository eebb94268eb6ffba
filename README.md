# golink

Building blocks for a two-part URL shortener:

- a **generation** side that takes a long URL, gives it a unique short code,
  stores it and caches it, and
- a **redirection** side that turns a short code back into the original URL,
  looking in the cache first. It keeps its own copy of the links in step by
  applying change events in batches.

Both sides share Snowflake IDs and Base62 short codes, pagination and query
options, query builders for Elasticsearch and MongoDB, a Redis cache engine,
a wide-column (Cassandra/ScyllaDB) repository, message-handler middleware,
logging and YAML/`.env` configuration loading.

## Modules

| Module | What it holds |
| --- | --- |
| `golink.unique` | `base62_encode`, `base62_decode`, `SnowflakeNode` |
| `golink.timer` | `Timer`, `CachedTimer`: a clock that advances in fixed steps on a background thread |
| `golink.utils` | `calculate_backoff_by_time`, `calculate_backoff_by_attempt`, `is_empty`, `to_duration`, `to_duration_ms` |
| `golink.dto` | `QueryOptions`, `PaginationOptions`, `SearchFilter`, `SortOption`, `PaginationMeta`, `Paginated`, `calculate_pagination`, the `Repository` protocol |
| `golink.settings` | `Config` and its sections, built with `Config.from_mapping` |
| `golink.es_query` | Elasticsearch request bodies from `QueryOptions` |
| `golink.mongo_query` | MongoDB filter, sort and `FindOptions` from `QueryOptions` |
| `golink.mapper` | `Mapper`, which binds row mappings onto dataclasses; `BaseModel`; the `Model` contract |
| `golink.messaging` | `KafkaConfig`, `ProducerConfig`, `ConsumerConfig`, `Producer`, `chain`, `recovery`, `build_context`, `build_headers`, `publish_json` |
| `golink.redis_engine` | `RedisEngine` cache with JSON values, prefix invalidation and geo queries; `new_connection` |
| `golink.widecolumn` | `WideColumnRepository` on top of an abstract `Session` |
| `golink.links` | `Link`, `CreateLinkRequest`, `LinkResponse`, `LinkRecord`, `ChangeEvent`, `Operation`, `ServiceError` |
| `golink.generation` | `LinkCache`, `LinkRepository`, `LinkService`, `LinkHandler` for creating short links |
| `golink.redirection` | `LinkCache`, `LinkRepository`, `LinkService`, `LinkHandler` for resolving short links |
| `golink.cdc` | `extract_payload`, `CDCLink` and the batching `CDCConsumer` |
| `golink.logs` | `LoggerConfig`, `new_logger`, `get_log_level` |
| `golink.bootstrap` | `load_config`, `setup_logger`, `setup_timers` |
| `golink.web` | Flask apps: `create_generation_app`, `create_redirection_app`, and `ping` |

## Short codes

Snowflake IDs become short codes through Base62. The alphabet is digits
first, then upper case, then lower case.

```python
from golink.unique import base62_encode, base62_decode

code = base62_encode(125)       # "21"
assert base62_decode(code) == 125
```

`base62_decode` raises `ValueError` if the text holds a character outside
the alphabet. `SnowflakeNode(settings, clock)` takes a
`golink.settings.SnowflakeNodeSettings` and a `Timer`. It raises
`ValueError` when the worker id does not fit the node bits, or when the total
bits do not exceed node plus step bits. Layouts narrower than 50 bits count
seconds, wider ones count milliseconds.

## Pagination

`calculate_pagination` works out the page metadata for a listing. It always
reports at least one page, even when there are no items.

```python
from golink.dto import calculate_pagination

meta = calculate_pagination(2, 10, 35)
assert meta.total_pages == 4
assert meta.has_next and meta.has_prev
```

## Search queries

The same `QueryOptions` can become an Elasticsearch body or a MongoDB filter.
With no filters, Elasticsearch gets a `match_all` query and offset
pagination (`from` and `size`). A cursor switches to `search_after` for
Elasticsearch, and to an `_id` range for MongoDB.

```python
from golink.es_query import build_search_query
from golink.mongo_query import apply_query_options

body = build_search_query(None)
mongo_filter, find_options = apply_query_options(None)
```

## Storage and cache

- `WideColumnRepository(session, prototype)` runs CQL statements through
  any `golink.widecolumn.Session`. You implement `execute` and
  `execute_batch` over your driver. Rows come back as mappings and are bound
  onto the model with `Mapper`. `get` raises `NotFoundError` when no row
  matches.
- `new_connection(settings, client=None)` builds a `RedisEngine`. It fills
  in default pool, timeout and retry settings and pings the server, and
  raises `ConnectionFailedError` if that fails. Values are stored as JSON.
  `get` returns the raw stored bytes and raises `KeyNotFoundError` when the
  key is absent.

## Web applications

`golink.web` builds one Flask application for each side:

- the generation app serves `POST /links` with a JSON body
  `{"original_url": ...}` and answers `{"short_link": ...}`;
- the redirection app serves `GET /<short_code>` and answers with a `302`
  redirect, or `404 {"error": "link not found"}`.

Both apps answer `GET /ping`. Pass a handler from `golink.generation` or
`golink.redirection`, and the server mode: `"release"` turns debug mode off.

## Configuration and logging

`golink.bootstrap.load_config(env=None, config_dir="config")` reads
`<config_dir>/<env>.yaml`. If no environment is given, it uses `GO_ENV`, and
falls back to `local`. It then merges a `.env` file from the parent of
`config_dir`, if there is one. Last, an environment variable named after a
key path in upper case, such as `SERVER.PORT`, overrides that key. The result
is a `golink.settings.Config`.

`setup_logger` builds the `golink` logger from the config's logger section.
It writes JSON lines to a size-rotated file and readable lines to stdout.
`setup_timers` starts a 10 ms and a 1 s `CachedTimer`.

## What the package does not do

- It has no command and does not start a server. You serve the Flask apps
  yourself, for example with `app.run()` or a WSGI server.
- It has no Cassandra/ScyllaDB driver. `Session` is abstract.
- It has no Kafka client. `CDCConsumer` takes any object with
  `start(context, topics, handler, error_handler)` and `close()`, and
  `Producer` is abstract.
- It builds Elasticsearch and MongoDB queries but has no client or
  repository that sends them.