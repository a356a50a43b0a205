from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from ..calibrator.controller import CalibratorController
from ..errors import AlpacaError
from .utils import (
    RequestContext,
    alpaca_error,
    alpaca_response,
    bind_request_context,
    require_bool,
    require_int,
)

router = APIRouter(dependencies=[Depends(bind_request_context)])


def get_controller(request: Request) -> CalibratorController:
    return request.app.state.controller


@router.get("/connected")
def get_connected(controller: CalibratorController = Depends(get_controller)):
    return alpaca_response(value=controller.connected)


@router.put("/connected")
def put_connected(
    context: RequestContext = Depends(bind_request_context),
    controller: CalibratorController = Depends(get_controller),
):
    try:
        controller.set_connected(require_bool(context, "Connected"))
    except AlpacaError as exc:
        return alpaca_error(exc)
    return alpaca_response()


@router.get("/description")
def get_description(request: Request):
    return alpaca_response(value=request.app.state.settings.device_description)


@router.get("/driverinfo")
def get_driver_info(request: Request):
    return alpaca_response(value=request.app.state.settings.driver_info)


@router.get("/driverversion")
def get_driver_version(request: Request):
    return alpaca_response(value=request.app.state.settings.driver_version)


@router.get("/interfaceversion")
def get_interface_version(request: Request):
    return alpaca_response(value=request.app.state.settings.interface_version)


@router.get("/name")
def get_name(controller: CalibratorController = Depends(get_controller)):
    return alpaca_response(value=controller.device_name)


@router.get("/supportedactions")
def get_supported_actions(controller: CalibratorController = Depends(get_controller)):
    return alpaca_response(value=controller.supported_actions())


@router.put("/action")
def put_action(
    context: RequestContext = Depends(bind_request_context),
    controller: CalibratorController = Depends(get_controller),
):
    action = context.get("Action")
    try:
        result = controller.run_action(str(action or ""), context.get("Parameters"))
    except AlpacaError as exc:
        return alpaca_error(exc)
    return alpaca_response(value=result)


@router.get("/brightness")
def get_brightness(controller: CalibratorController = Depends(get_controller)):
    try:
        controller.require_connected()
    except AlpacaError as exc:
        return alpaca_error(exc)
    return alpaca_response(value=controller.brightness)


@router.get("/calibratorstate")
def get_calibrator_state(controller: CalibratorController = Depends(get_controller)):
    try:
        controller.require_connected()
    except AlpacaError as exc:
        return alpaca_error(exc)
    return alpaca_response(value=int(controller.calibrator_status))


@router.get("/coverstate")
def get_cover_state(controller: CalibratorController = Depends(get_controller)):
    try:
        controller.require_connected()
    except AlpacaError as exc:
        return alpaca_error(exc)
    return alpaca_response(value=int(controller.cover_status))


@router.get("/maxbrightness")
def get_max_brightness(controller: CalibratorController = Depends(get_controller)):
    try:
        controller.require_connected()
    except AlpacaError as exc:
        return alpaca_error(exc)
    return alpaca_response(value=controller.max_brightness)


@router.put("/calibratoron")
def calibrator_on(
    context: RequestContext = Depends(bind_request_context),
    controller: CalibratorController = Depends(get_controller),
):
    try:
        controller.require_connected()
        brightness = require_int(context, "Brightness") if context.has("Brightness") else None
        controller.turn_on(brightness, require_connected=True)
    except AlpacaError as exc:
        return alpaca_error(exc)
    return alpaca_response()


@router.put("/calibratoroff")
def calibrator_off(controller: CalibratorController = Depends(get_controller)):
    try:
        controller.turn_off(require_connected=True)
    except AlpacaError as exc:
        return alpaca_error(exc)
    return alpaca_response()


@router.put("/opencover")
def open_cover(controller: CalibratorController = Depends(get_controller)):
    try:
        controller.open_cover()
    except AlpacaError as exc:
        return alpaca_error(exc)
    return alpaca_response()


@router.put("/closecover")
def close_cover(controller: CalibratorController = Depends(get_controller)):
    try:
        controller.close_cover()
    except AlpacaError as exc:
        return alpaca_error(exc)
    return alpaca_response()


@router.put("/haltcover")
def halt_cover(controller: CalibratorController = Depends(get_controller)):
    try:
        controller.halt_cover()
    except AlpacaError as exc:
        return alpaca_error(exc)
    return alpaca_response()
