import pytest
from fastapi.testclient import TestClient

from flatpanel_alpaca.calibrator.controller import create_controller
from flatpanel_alpaca.calibrator.hardware import HardwareInitError
from flatpanel_alpaca.config.settings import Settings
from flatpanel_alpaca.config.store import ConfigStore
from flatpanel_alpaca.errors import ErrorCode
from flatpanel_alpaca.server import build_app

BASE = "/api/v1/covercalibrator/0"


def _client(tmp_path, **overrides):
    settings = Settings(state_directory=tmp_path, discovery_enabled=False, **overrides)
    return TestClient(build_app(settings))


def _value(response):
    payload = response.json()
    return payload.get("Value")


def _error(response):
    return response.json()["ErrorNumber"]


def test_initial_state_is_off_with_zero_brightness(tmp_path):
    client = _client(tmp_path)

    resp = client.get(f"{BASE}/calibratorstate")
    assert resp.status_code == 200 and _value(resp) == 1

    resp = client.get(f"{BASE}/brightness")
    assert resp.status_code == 200 and _value(resp) == 0

    resp = client.get(f"{BASE}/coverstate")
    assert resp.status_code == 200 and _value(resp) == 0


@pytest.mark.parametrize("brightness", [0, 1, 37, 99, 100])
def test_calibrator_on_with_brightness_reads_back(tmp_path, brightness):
    client = _client(tmp_path)

    resp = client.put(f"{BASE}/calibratoron", data={"Brightness": str(brightness)})
    assert resp.status_code == 200
    assert _error(resp) == 0
    assert "Value" not in resp.json()

    assert _value(client.get(f"{BASE}/brightness")) == brightness
    assert _value(client.get(f"{BASE}/calibratorstate")) == 3


def test_calibrator_on_without_brightness_uses_max(tmp_path):
    client = _client(tmp_path, max_brightness=80)

    resp = client.put(f"{BASE}/calibratoron")
    assert resp.status_code == 200 and _error(resp) == 0

    assert _value(client.get(f"{BASE}/brightness")) == 80
    assert _value(client.get(f"{BASE}/maxbrightness")) == 80
    assert _value(client.get(f"{BASE}/calibratorstate")) == 3


def test_brightness_above_max_is_invalid_value_and_changes_nothing(tmp_path):
    client = _client(tmp_path, max_brightness=60)
    client.put(f"{BASE}/calibratoron", data={"Brightness": "20"})

    resp = client.put(f"{BASE}/calibratoron", data={"Brightness": "61"})
    assert resp.status_code == 200
    assert _error(resp) == ErrorCode.INVALID_VALUE == 1025
    assert "out of range" in resp.json()["ErrorMessage"]

    assert _value(client.get(f"{BASE}/brightness")) == 20
    assert _value(client.get(f"{BASE}/calibratorstate")) == 3


def test_out_of_range_before_first_command_leaves_state_off(tmp_path):
    client = _client(tmp_path)

    resp = client.put(f"{BASE}/calibratoron", data={"Brightness": "-1"})
    assert _error(resp) == 1025
    assert _value(client.get(f"{BASE}/calibratorstate")) == 1


def test_non_numeric_brightness_is_device_error_not_rejection(tmp_path):
    client = _client(tmp_path)

    resp = client.put(f"{BASE}/calibratoron", data={"Brightness": "bright"})
    assert resp.status_code == 200
    assert _error(resp) == 1025
    assert _value(client.get(f"{BASE}/calibratorstate")) == 1


def test_calibrator_off_keeps_ready_state(tmp_path):
    client = _client(tmp_path)
    client.put(f"{BASE}/calibratoron", data={"Brightness": "45"})

    resp = client.put(f"{BASE}/calibratoroff")
    assert resp.status_code == 200 and _error(resp) == 0

    assert _value(client.get(f"{BASE}/brightness")) == 0
    assert _value(client.get(f"{BASE}/calibratorstate")) == 3


def test_calibrator_off_from_initial_state_becomes_ready(tmp_path):
    client = _client(tmp_path)

    client.put(f"{BASE}/calibratoroff")
    assert _value(client.get(f"{BASE}/calibratorstate")) == 3


def test_server_transaction_id_increments_by_one_across_endpoints(tmp_path):
    client = _client(tmp_path)

    responses = [
        client.get(f"{BASE}/connected"),
        client.put(f"{BASE}/opencover"),
        client.put(f"{BASE}/calibratoron", data={"Brightness": "500"}),
        client.get("/management/apiversions"),
        client.put(f"{BASE}/calibratoroff"),
    ]
    ids = [resp.json()["ServerTransactionID"] for resp in responses]
    assert all(later - earlier == 1 for earlier, later in zip(ids, ids[1:]))


def test_client_transaction_id_is_echoed(tmp_path):
    client = _client(tmp_path)

    resp = client.get(f"{BASE}/name", params={"ClientTransactionID": 42, "ClientID": 7})
    assert resp.json()["ClientTransactionID"] == 42

    resp = client.get(f"{BASE}/name", params={"clienttransactionid": 9})
    assert resp.json()["ClientTransactionID"] == 9

    resp = client.get(f"{BASE}/name", params={"ClientTransactionID": -3})
    assert resp.json()["ClientTransactionID"] == 0

    resp = client.get(f"{BASE}/name")
    assert resp.json()["ClientTransactionID"] == 0

    resp = client.put(f"{BASE}/calibratoroff", data={"ClientTransactionID": "123"})
    assert resp.json()["ClientTransactionID"] == 123


def test_connected_requires_exact_casing(tmp_path):
    client = _client(tmp_path)

    resp = client.put(f"{BASE}/connected", data={"connected": "true"})
    assert resp.status_code == 400
    assert resp.headers["content-type"].startswith("text/plain")
    assert resp.text == "Invalid parameter casing - use 'Connected'"

    resp = client.put(f"{BASE}/connected", data={"Connected": "true"})
    assert resp.status_code == 200
    assert _error(resp) == 0


def test_brightness_casing_is_rejected(tmp_path):
    client = _client(tmp_path)

    resp = client.put(f"{BASE}/calibratoron", data={"BRIGHTNESS": "10"})
    assert resp.status_code == 400
    assert resp.text == "Invalid parameter casing - use 'Brightness'"
    assert _value(client.get(f"{BASE}/calibratorstate")) == 1


def test_unknown_parameters_are_ignored(tmp_path):
    client = _client(tmp_path)

    resp = client.put(
        f"{BASE}/calibratoron",
        data={"Brightness": "12", "Frobnicate": "yes", "clientid": "4"},
    )
    assert resp.status_code == 200 and _error(resp) == 0
    assert _value(client.get(f"{BASE}/brightness")) == 12


def test_disconnected_blocks_calibrator_operations(tmp_path):
    client = _client(tmp_path)

    resp = client.put(f"{BASE}/connected", json={"Connected": False})
    assert resp.status_code == 200 and _error(resp) == 0
    assert _value(client.get(f"{BASE}/connected")) is False

    for path in ("brightness", "calibratorstate", "coverstate", "maxbrightness"):
        resp = client.get(f"{BASE}/{path}")
        assert resp.status_code == 200
        assert _error(resp) == ErrorCode.NOT_CONNECTED == 1031

    resp = client.put(f"{BASE}/calibratoron", data={"Brightness": "10"})
    assert _error(resp) == 1031
    resp = client.put(f"{BASE}/calibratoroff")
    assert _error(resp) == 1031

    client.put(f"{BASE}/connected", data={"Connected": "TRUE"})
    assert _value(client.get(f"{BASE}/brightness")) == 0
    assert _value(client.get(f"{BASE}/calibratorstate")) == 1


def test_invalid_connected_value_is_invalid_value(tmp_path):
    client = _client(tmp_path)

    resp = client.put(f"{BASE}/connected", data={"Connected": "maybe"})
    assert resp.status_code == 200 and _error(resp) == 1025

    resp = client.put(f"{BASE}/connected")
    assert resp.status_code == 200 and _error(resp) == 1025
    assert _value(client.get(f"{BASE}/connected")) is True


@pytest.mark.parametrize("method", ["opencover", "closecover", "haltcover"])
def test_cover_methods_are_not_implemented(tmp_path, method):
    client = _client(tmp_path)

    resp = client.put(f"{BASE}/{method}")
    assert resp.status_code == 200
    assert _error(resp) == ErrorCode.NOT_IMPLEMENTED == 1024
    assert resp.json()["ErrorMessage"] == "Cover control not implemented"


def test_status_action_and_unknown_action(tmp_path):
    client = _client(tmp_path)
    client.put(f"{BASE}/calibratoron", data={"Brightness": "40"})

    resp = client.get(f"{BASE}/supportedactions")
    assert _value(resp) == ["status"]

    resp = client.put(f"{BASE}/action", data={"Action": "status", "Parameters": ""})
    assert _error(resp) == 0
    assert _value(resp) == "State: Ready, Brightness: 40%"

    resp = client.put(f"{BASE}/action", data={"Action": "explode", "Parameters": ""})
    assert _error(resp) == 1024
    assert "Value" not in resp.json()


def test_common_device_properties(tmp_path):
    client = _client(tmp_path, device_name="Panel A")

    assert _value(client.get(f"{BASE}/name")) == "Panel A"
    assert _value(client.get(f"{BASE}/interfaceversion")) == 1
    assert _value(client.get(f"{BASE}/driverversion")) == "1.0.0"
    assert "Calibrator" in _value(client.get(f"{BASE}/description"))
    assert "Calibrator" in _value(client.get(f"{BASE}/driverinfo"))
    assert _value(client.get(f"{BASE}/connected")) is True


def test_unmatched_path_and_verb_are_rejected(tmp_path):
    client = _client(tmp_path)

    resp = client.get(f"{BASE}/doesnotexist")
    assert resp.status_code == 400
    assert resp.text == f"Unsupported request: GET {BASE}/doesnotexist"

    resp = client.get(f"{BASE}/calibratoron")
    assert resp.status_code == 400
    assert "GET" in resp.text and "calibratoron" in resp.text


def test_rejections_do_not_consume_server_transaction_ids(tmp_path):
    client = _client(tmp_path)

    first = client.get(f"{BASE}/connected").json()["ServerTransactionID"]
    client.put(f"{BASE}/connected", data={"CONNECTED": "true"})
    client.get(f"{BASE}/nowhere")
    second = client.get(f"{BASE}/connected").json()["ServerTransactionID"]
    assert second == first + 1


class _BrokenOutput:
    def open(self):
        raise HardwareInitError("PWM unavailable")

    def write(self, brightness_percent):
        return False


def test_hardware_init_failure_pins_error_but_serves_reads(tmp_path):
    settings = Settings(state_directory=tmp_path, discovery_enabled=False)
    store = ConfigStore(path=tmp_path / "calibrator.json")
    controller = create_controller(settings, output=_BrokenOutput(), store=store)
    client = TestClient(build_app(settings, controller=controller, store=store))

    assert _value(client.get(f"{BASE}/calibratorstate")) == 5
    assert _value(client.get(f"{BASE}/brightness")) == 0

    resp = client.put(f"{BASE}/calibratoron")
    assert resp.status_code == 200
    assert _error(resp) == ErrorCode.HARDWARE_FAILURE
    assert _value(client.get(f"{BASE}/calibratorstate")) == 5
