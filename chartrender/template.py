"""Build the HTML page that loads a charting library and draws a chart."""

from __future__ import annotations

import json
from urllib.parse import urlsplit

from .registry import get_library
from .schemas import RenderRequest

ALLOWED_DOMAINS = ("cdn.jsdelivr.net", "unpkg.com", "cdnjs.cloudflare.com")

_PAGE = """<!DOCTYPE html>
<html>
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>Render</title>
    <style>
        * {{
            margin: 0;
            padding: 0;
            box-sizing: border-box;
        }}
        body {{
            background: white;
            overflow: hidden;
            display: flex;
            align-items: center;
            justify-content: center;
        }}
        #render-container {{
            width: {width}px;
            height: {height}px;
        }}
        #chart-canvas {{
            display: block;
        }}
    </style>
</head>
<body>
    <div id="render-container">
        {canvas}
    </div>

    <script>
        window.devicePixelRatio = {ratio};
        const dataJson = '{data_json}';
    </script>
    <script src="{cdn_url}"></script>

    <script>
        window.renderReady = false;
        window.renderError = null;

        window.addEventListener('DOMContentLoaded', () => {{
            try {{
                {init_script}
            }} catch (error) {{
                console.error('Render initialization error:', error);
                window.renderError = error.message;
            }}
        }});
    </script>
</body>
</html>"""


class TemplateError(ValueError):
    """The request cannot be turned into a page."""


def _js_number(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def validate_cdn_url(url: str) -> None:
    """Accept only HTTPS URLs on a known CDN host; raise TemplateError otherwise."""
    try:
        parsed = urlsplit(url)
        host = parsed.hostname
    except ValueError as exc:
        raise TemplateError("Invalid CDN URL format") from exc
    if not parsed.scheme:
        raise TemplateError("Invalid CDN URL format")
    if not host:
        raise TemplateError("CDN URL must have a host")
    if host not in ALLOWED_DOMAINS:
        raise TemplateError(
            f"CDN domain '{host}' not allowed. Allowed domains: {json.dumps(list(ALLOWED_DOMAINS))}"
        )
    if parsed.scheme != "https":
        raise TemplateError("CDN URL must use HTTPS")


def generate_html(request: RenderRequest) -> str:
    """Return the full HTML document that renders ``request`` in a browser."""
    library = request.library
    options = request.options
    try:
        template = get_library(library.name)
    except LookupError as exc:
        raise TemplateError(str(exc)) from None

    if library.cdn_url is not None:
        validate_cdn_url(library.cdn_url)
        cdn_url = library.cdn_url
    else:
        cdn_url = template.cdn_url.replace("{version}", library.version)

    try:
        data_json = json.dumps(
            request.data, sort_keys=True, separators=(",", ":"), ensure_ascii=False, allow_nan=False
        )
    except (TypeError, ValueError) as exc:
        raise TemplateError(f"Cannot serialise chart data: {exc}") from exc

    init_script = (
        template.init_script.replace("{data}", "JSON.parse(dataJson)")
        .replace("{width}", str(options.width))
        .replace("{height}", str(options.height))
    )

    canvas = '<canvas id="chart-canvas"></canvas>' if library.name == "chartjs" else ""
    ratio = options.device_scale_factor if options.device_scale_factor is not None else 1.0

    return _PAGE.format(
        width=options.width,
        height=options.height,
        canvas=canvas,
        ratio=_js_number(ratio),
        data_json=data_json.replace("'", "\\'").replace("\n", "\\n"),
        cdn_url=cdn_url,
        init_script=init_script,
    )