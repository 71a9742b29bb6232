import json
import logging

import pytest

from netdiagram.device_config import (
    DeviceConfigImportOptions,
    DeviceConfigTemplate,
    export_device_config,
    import_device_config,
    parse_device_config_json,
    stringify_device_config,
    validate_ip_address,
    validate_subnet_mask,
)
from netdiagram.exceptions import DeviceConfigError
from netdiagram.ids import SequentialIdGenerator
from netdiagram.models import Device, Interface, InterfaceRef


def router(device_id="r1", **config):
    return Device(
        id=device_id,
        type="router",
        name=device_id,
        config={"hostname": device_id, **config},
        interfaces=[
            Interface(id=f"{device_id}-0", name="gi0/0", speed="1000", ip_address="10.0.0.1",
                      connected_to=InterfaceRef(device_id="s1", interface_id="s1-0")),
        ],
    )


def template(**device_configs):
    return DeviceConfigTemplate.model_validate({"version": "1.0", "deviceConfigs": device_configs})


def test_export_uses_first_device_per_type():
    devices = [router("r1", asn=65000), router("r2"), Device(id="s1", type="server", name="web")]
    exported = export_device_config(devices)

    assert set(exported.device_configs) == {"router", "server"}
    router_config = exported.device_configs["router"]
    assert router_config.config == {"hostname": "r1", "asn": 65000}
    assert router_config.interfaces[0].name == "gi0/0"
    dumped = router_config.interfaces[0].model_dump(by_alias=True)
    assert "id" not in dumped
    assert "connectedTo" not in dumped


def test_stringify_and_parse():
    text = stringify_device_config(export_device_config([router()]))
    assert json.loads(text)["version"] == "1.0"
    parsed = parse_device_config_json(text)
    assert parsed.device_configs["router"].interfaces[0].speed == "1000"


@pytest.mark.parametrize("text,message", [
    ("{not json", "Invalid JSON format"),
    ('{"deviceConfigs": {"router": {}}}', "missing version or deviceConfigs"),
    ('{"version": "1.0", "deviceConfigs": {"toaster": {}}}', "Invalid device type: toaster"),
    ('{"version": "1.0", "deviceConfigs": {"router": {"interfaces": [{}]}}}',
     "Interface at index 0 for router is missing name"),
    ('{"version": "1.0", "deviceConfigs": {"router": {"interfaces": [{"name": "g", "vlans": 5}]}}}',
     "VLANs must be an array for interface g"),
    ('{"version": "1.0", "deviceConfigs": {"router": {"interfaces": [{"name": "g", "vlans": [5000]}]}}}',
     "VLAN 5000 out of range"),
    ('{"version": "1.0", "deviceConfigs": ["router"]}', "missing version or deviceConfigs"),
    ('{"version": "1.0", "deviceConfigs": {"router": "oops"}}', "missing version or deviceConfigs"),
    ('{"version": "1.0", "deviceConfigs": {"router": {"interfaces": [{"name": "g", "vlans": [true]}]}}}',
     "VLAN True out of range"),
])
def test_parse_rejects_invalid_templates(text, message):
    with pytest.raises(DeviceConfigError, match=message):
        parse_device_config_json(text)


def test_parse_warns_on_other_version(caplog):
    text = '{"version": "2.0", "deviceConfigs": {"router": {}}}'
    with caplog.at_level(logging.WARNING, logger="netdiagram.device_config"):
        parse_device_config_json(text)
    assert "2.0" in caplog.text


def test_import_fills_blank_config_only():
    device = router(asn=1)
    result = import_device_config([device], template(router={"config": {"hostname": "x", "asn": 2, "routingProtocol": "ospf"}}))
    config = result[0].config
    assert config.hostname == "r1"
    assert config.asn == 1
    assert config.routing_protocol == "ospf"


def test_import_overwrite_replaces_config():
    options = DeviceConfigImportOptions(overwrite_existing=True)
    result = import_device_config([router()], template(router={"config": {"hostname": "x"}}), options)
    assert result[0].config.hostname == "x"


def test_merge_overwrite_keeps_identity_and_wiring():
    device = router()
    options = DeviceConfigImportOptions(overwrite_existing=True)
    result = import_device_config(
        [device], template(router={"interfaces": [{"name": "gi0/0", "speed": "100"}]}), options
    )
    intf = result[0].interfaces[0]
    assert intf.speed == "100"
    assert intf.id == "r1-0"
    assert intf.connected_to.device_id == "s1"
    assert intf.ip_address == "10.0.0.1"


def test_replace_interfaces_mints_new_ids():
    options = DeviceConfigImportOptions(merge_interfaces=False)
    result = import_device_config(
        [router()],
        template(router={"interfaces": [{"name": "gi0/5"}, {"name": "gi0/6"}]}),
        options,
        ids=SequentialIdGenerator(),
    )
    assert [i.name for i in result[0].interfaces] == ["gi0/5", "gi0/6"]
    assert [i.id for i in result[0].interfaces] == ["intf-1", "intf-2"]


def test_type_mode_limits_device_type():
    devices = [router(), Device(id="s1", type="server", name="web")]
    options = DeviceConfigImportOptions(mode="type", device_type="server")
    tpl = template(router={"config": {"asn": 9}}, server={"config": {"os": "linux"}})
    result = import_device_config(devices, tpl, options)
    assert result[0] is devices[0]
    assert result[1].config.os == "linux"


def test_selected_mode_requires_selection():
    devices = [router("r1"), router("r2")]
    options = DeviceConfigImportOptions(mode="selected")
    tpl = template(router={"config": {"asn": 9}})
    result = import_device_config(devices, tpl, options, selected_ids={"r2"})
    assert result[0] is devices[0]
    assert result[1].config.asn == 9


def test_address_validators():
    assert validate_ip_address("192.168.1.1")
    assert not validate_ip_address("256.1.1.1")
    assert validate_subnet_mask("255.255.255.0")
    assert not validate_subnet_mask("255.255.255.3")
