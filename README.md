# chartrender

chartrender is an HTTP service that turns a chart or canvas configuration into an image or a PDF.
For each request it builds an HTML page that loads the chosen JavaScript library from a CDN. It opens
that page in a headless browser over the DevTools protocol and waits until the page reports that
drawing is finished. It then returns a PNG, JPEG or PDF.

These libraries are supported:

| name             | library                                     |
|------------------|---------------------------------------------|
| `apache-echarts` | Apache ECharts                              |
| `chartjs`        | Chart.js                                    |
| `konvajs`        | Konva.js, built from a list of shapes       |
| `konvajs-json`   | Konva.js, built from a serialised stage     |

## Installation

```
pip install .
```

## The browser

chartrender does not start a browser itself. It connects to a Chromium or Chrome instance that is
already running with remote debugging enabled (the browser's `--remote-debugging-port` flag).
The environment variable `CHROME_DEVTOOLS_URL` gives the DevTools endpoint. It may be either the
`http://host:port` address that the browser serves DevTools on, or the browser's `ws://` debugger URL.
The default is `http://127.0.0.1:9222`.

Each instance in the pool is a separate DevTools connection to that browser. The pool starts with one
connection and grows on demand, up to ten. At most twenty renders run at the same time.

## Configuration

`chartrender.settings.get_config` reads these settings:

| variable | meaning                                          |
|----------|--------------------------------------------------|
| `env`    | required; `file` also loads a `.env` file        |
| `host`   | required; address to bind                        |
| `port`   | required; port to listen on (0–65535)            |
| `prefix` | optional path prefix for the API, `/` if unset   |

The names of the settings are matched without regard to case, so `HOST` and `host` both work. Loading
of a `.env` file is controlled by the variable spelled exactly `env`. It defaults to `file`. In that
mode, the settings from a `.env` file found from the working directory are added, and variables that
are already set are not overridden. With any other value, only the environment itself is used.

Example `.env`:

```
env=file
host=0.0.0.0
port=8080
prefix=/
```

## Running

```
chartrender
```

The option `--log-dir DIR` sets where logs go. By default they go to `./logs/app.log` at debug level,
and the file is rotated at midnight. The interactive API documentation is at `/docs`, and the
OpenAPI document is at `/openapi.json`. If no browser connection can be made at startup, the command
exits with an error.

## Endpoints

### `POST /render`

```json
{
  "library": {"name": "apache-echarts", "version": "5.4.0"},
  "data": {
    "title": {"text": "Sales"},
    "xAxis": {"data": ["Mon", "Tue", "Wed"]},
    "yAxis": {},
    "series": [{"type": "bar", "data": [120, 200, 150]}]
  },
  "options": {"width": 800, "height": 600, "format": "png"}
}
```

Fields of `options`:

- `width`, `height`: from 100 to 4000 pixels.
- `format`: one of `png`, `jpeg`, `jpg` or `pdf`.
- `quality`: from 1 to 100. The default is 90, and it is passed along with screenshots.
- `device_scale_factor`: from 0.5 to 3.0. The default is 1.
- `poll_interval_ms`: from 50 to 1000, default 100. This sets how often the page is checked for
  readiness and how long to wait after it is ready. The page is checked at most 50 times.
- `render_delay_ms` (0–5000) and `timeout_ms` (1000–60000): these are validated but otherwise unused.
- `return_base64`: when true, the response is `{"data": "...", "mime_type": "image/png"}` rather
  than raw bytes.

`library.cdn_url` loads the script from another address. That address must use HTTPS, and its host
must be `cdn.jsdelivr.net`, `unpkg.com` or `cdnjs.cloudflare.com`. Any failure gives a 500 response
whose body is `{"detail": "..."}`.

### `GET /libraries`

Lists each supported library with version `latest` and its CDN URL template.

### `GET /health`

Reports the current browser pool size and its maximum, the free render slots and their total, and
the utilisation percentage of each.

## Using it from Python

```python
from chartrender.app import AppState, create_app
from chartrender.renderer import RenderingEngine
from chartrender.settings import get_config

app = create_app(AppState(engine=RenderingEngine()), get_config())
```

`RenderingEngine` accepts a `browser_factory` callable in place of the default DevTools connection.
`chartrender.template.generate_html` builds the HTML page without a browser, and
`chartrender.template.validate_cdn_url` checks a custom CDN address.

## Tests

```
pip install .[test]
pytest
```