# garagemetrics

A small metrics service. At a fixed interval it fetches an expvar-style JSON document from a service's debug endpoint and hands it to three publishers:

- **stdout** (`garagemetrics.publisher.Stdout`): logs the document as compact JSON with sorted keys. `memstats.Alloc` is lifted out as `heap`, and the `memstats` and `cmdline` keys are dropped.
- **expvar** (`garagemetrics.expvarsrv.ExpvarServer`): serves the last document unchanged as `application/json` over HTTP.
- **Prometheus** (`garagemetrics.prometheus.Exporter`): serves numeric values in the text exposition format (`text/plain; version=0.0.4`). Nested keys are joined with `_`, booleans become `1`/`0`, and values are printed without decimals. Non-numeric values are left out.

Both HTTP servers answer on their configured route and return 404 for any other path.

The package also contains:

- `garagemetrics.logfmt`: a formatter that turns structured JSON log lines into readable ones;
- `garagemetrics.datadog`: a Datadog series encoder (`marshal_datadog`) and a `Datadog` publisher;
- `garagemetrics.genkey`: `gen_key`, which writes a 2048-bit RSA key pair as `private.pem` and `public.pem`.

## Installation

```
pip install garagemetrics
```

To run the tests:

```
pip install "garagemetrics[test]"
pytest
```

## Running the metrics service

```
garagemetrics
```

Every setting can be given as a flag, or as an environment variable named `METRICS_` followed by the setting name in upper case (for example `METRICS_PUBLISH_INTERVAL=10s`). Flags take precedence over the environment. Durations accept forms such as `5s`, `250ms` or `1m30s`. Run `garagemetrics --help` for the full list, or `garagemetrics --version` for the version.

| Flag                          | Default                            |
|-------------------------------|------------------------------------|
| `--collect-from`              | `http://localhost:3010/debug/vars` |
| `--publish-interval`          | `5s`                               |
| `--expvar-host`               | `0.0.0.0:4000`                     |
| `--expvar-route`              | `/metrics`                         |
| `--prometheus-host`           | `0.0.0.0:4020`                     |
| `--prometheus-route`          | `/metrics`                         |
| `--*-read-timeout`            | `5s`                               |
| `--*-write-timeout`           | `10s`                              |
| `--*-idle-timeout`            | `120s`                             |
| `--*-shutdown-timeout`        | `5s`                               |

Log output goes to stdout. If a collection fails, the error is logged and the service waits for the next interval. The service runs until it receives SIGINT or SIGTERM. It then stops the publisher and shuts down both servers, forcing each one closed if it does not finish within its shutdown timeout.

## Reading structured logs

To pipe JSON log output through the formatter:

```
some-service | garagemetrics-logfmt
some-service | garagemetrics-logfmt --service SALES
```

Each JSON object becomes one line that starts with these fields, in this order:

`service: time: file: level: trace_id: msg`

The remaining fields follow, in the order they appear in the record, as `key[value]`. A record with no `trace_id` gets `00000000-0000-0000-0000-000000000000`.

Other lines are handled as follows:

- with no filter, lines that are not JSON objects are printed unchanged;
- with `--service`, those lines are dropped, and only records whose `service` matches (ignoring case) are printed.

SIGINT is ignored while the formatter reads, so it keeps running when the upstream process is interrupted.

## Library use

```python
from garagemetrics.logfmt import format_line
from garagemetrics.prometheus import deep_copy_map, render_metrics
from garagemetrics.datadog import marshal_datadog
from garagemetrics.genkey import gen_key

print(format_line('{"service":"SALES","level":"INFO","msg":"startup","n":1}'))
print(render_metrics(deep_copy_map({"mem": {"alloc": 1024}, "up": True})))
print(marshal_datadog({"host": "localhost", "goroutines": 7}).decode())
gen_key(".")  # writes ./private.pem and ./public.pem
```

`marshal_datadog` produces one gauge series per numeric value. Its metric name is prefixed with `dev` when the `host` value is `localhost`, and with `prod` otherwise. `Datadog(api_key, host).publish(data)` posts that document to `host?api_key=...` and logs an error unless the reply is 202.

## What it does not do

- No debug or profiling server is started. `--web-debug-host` is accepted but not used.
- `--publish-to` is accepted but not used: the stdout, expvar and Prometheus publishers always run.
- The service does not send metrics to Datadog. The `Datadog` class can only be used from code.
- Key generation has no command of its own. Call `gen_key` from Python.