from __future__ import annotations

from html import escape

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from ..errors import InvalidValueError

SETUP_PAGE_PATH = "/setup/v1/covercalibrator/0/setup"

router = APIRouter()


@router.get("/setup")
def setup_redirect():
    return RedirectResponse(url=SETUP_PAGE_PATH, status_code=302)


@router.get("/setup/v1/covercalibrator/0/setup", response_class=HTMLResponse)
def setup_page(request: Request):
    return HTMLResponse(render_setup_page(request))


@router.post("/setup/v1/covercalibrator/0/setup", response_class=HTMLResponse)
async def update_setup(request: Request):
    controller = request.app.state.controller
    form = await request.form()

    try:
        device_name = form.get("deviceName")
        if isinstance(device_name, str) and device_name.strip() and device_name.strip() != controller.device_name:
            controller.set_device_name(device_name)

        raw_max = form.get("maxBrightness")
        if isinstance(raw_max, str) and raw_max.strip():
            try:
                max_brightness = int(raw_max)
            except ValueError as exc:
                raise InvalidValueError("Max brightness must be a whole number") from exc
            if max_brightness != controller.max_brightness:
                controller.set_max_brightness(max_brightness)
    except InvalidValueError as exc:
        return HTMLResponse(render_setup_page(request, message=exc.message), status_code=400)

    return RedirectResponse(url=SETUP_PAGE_PATH, status_code=303)


def render_setup_page(request: Request, *, message: str | None = None) -> str:
    state = request.app.state.controller.snapshot()
    settings = request.app.state.settings
    address = request.app.state.identity.local_address()
    api_base = f"http://{address}:{settings.http_port}/api/v1/covercalibrator/0/"
    notice = f"<p class='error'>{escape(message)}</p>" if message else ""

    return f"""<!DOCTYPE html>
<html>
<head>
<title>{escape(state.device_name)} Setup</title>
<meta name="viewport" content="width=device-width, initial-scale=1">
</head>
<body>
<h1>{escape(state.device_name)} Setup</h1>
{notice}
<h2>Current Status</h2>
<ul>
<li>State: {state.calibrator_status.label}</li>
<li>Brightness: {state.brightness}%</li>
<li>Max Brightness: {state.max_brightness}%</li>
<li>Connected: {"Yes" if state.connected else "No"}</li>
<li>API Base: {escape(api_base)}</li>
</ul>
<h2>Settings</h2>
<form method="post" action="{SETUP_PAGE_PATH}">
<label>Device name <input type="text" name="deviceName" value="{escape(state.device_name)}"></label>
<label>Max brightness <input type="number" name="maxBrightness" min="1" max="100" value="{state.max_brightness}"></label>
<button type="submit">Save</button>
</form>
</body>
</html>
"""
