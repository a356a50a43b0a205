from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from ..devices.utils import alpaca_response, bind_request_context

router = APIRouter(dependencies=[Depends(bind_request_context)])

SUPPORTED_API_VERSIONS = [1]


@router.get("/apiversions")
def get_api_versions():
    return alpaca_response(value=SUPPORTED_API_VERSIONS)


@router.get("/v1/description")
def get_description(request: Request):
    settings = request.app.state.settings
    return alpaca_response(
        value={
            "ServerName": settings.server_name,
            "Manufacturer": settings.manufacturer,
            "ManufacturerVersion": settings.manufacturer_version,
            "Location": settings.location,
        }
    )


@router.get("/v1/configureddevices")
def get_configured_devices(request: Request):
    controller = request.app.state.controller
    identity = request.app.state.identity
    devices = [
        {
            "DeviceName": controller.device_name,
            "DeviceType": "CoverCalibrator",
            "DeviceNumber": 0,
            "UniqueID": identity.unique_id(),
        },
    ]
    return alpaca_response(value=devices)
