"""
Hand-off page served between a recorded click and the destination.

The page carries the click id so the browser can post its fingerprint to
/track-fingerprint/{click_id} before moving on. A meta refresh forwards
visitors with scripting disabled.
"""

import html
import json

from fastapi.responses import HTMLResponse

# Seconds the meta refresh waits; the script normally leaves sooner
REFRESH_DELAY = 2

PAGE_TEMPLATE = """<!doctype html>
<html>
<head>
<meta charset="utf-8">
<meta name="robots" content="noindex">
<meta http-equiv="refresh" content="{delay};url={url_attr}">
<title>Redirecting...</title>
</head>
<body data-click-id="{click_id}">
<p>Redirecting to <a href="{url_attr}">{url_text}</a>...</p>
<script>
(function () {{
  var clickId = document.body.getAttribute("data-click-id");
  var target = {url_js};
  var data = {{
    user_agent: navigator.userAgent,
    language: navigator.language,
    languages: navigator.languages,
    platform: navigator.platform,
    timezone: Intl.DateTimeFormat().resolvedOptions().timeZone,
    screen: screen.width + "x" + screen.height,
    color_depth: screen.colorDepth,
    hardware_concurrency: navigator.hardwareConcurrency,
    touch_points: navigator.maxTouchPoints
  }};
  try {{
    fetch("/track-fingerprint/" + clickId, {{
      method: "POST",
      headers: {{"Content-Type": "application/json"}},
      body: JSON.stringify(data),
      keepalive: true
    }}).catch(function () {{}}).then(function () {{ location.replace(target); }});
  }} catch (e) {{
    location.replace(target);
  }}
}})();
</script>
</body>
</html>
"""


def _script_literal(value: str) -> str:
    # Keeps "</script>" and friends from closing the inline block
    return json.dumps(value).replace("<", "\\u003c").replace(">", "\\u003e").replace("&", "\\u0026")


def render_page(url: str, click_id: int) -> str:
    return PAGE_TEMPLATE.format(
        delay=REFRESH_DELAY,
        url_attr=html.escape(url, quote=True),
        url_text=html.escape(url),
        url_js=_script_literal(url),
        click_id=int(click_id),
    )


def interstitial_response(url: str, click_id: int) -> HTMLResponse:
    response = HTMLResponse(content=render_page(url, click_id), status_code=200)
    response.headers["Cache-Control"] = "no-store"
    response.headers["X-Click-Id"] = str(click_id)
    return response
