import logging

import pytest

from config_tree.hooks import HookBus


def test_hookbus_register_and_run_success():
    bus = HookBus()
    called = []

    bus.register(called.append)
    bus.run({"action": "bind", "key": "a"})
    assert called and called[0]["key"] == "a"


def test_hookbus_register_non_callable_raises():
    bus = HookBus()
    with pytest.raises(TypeError):
        bus.register(123)


def test_hookbus_invalid_failure_mode():
    with pytest.raises(ValueError):
        HookBus("boom")


def test_hookbus_run_failure_modes(caplog):
    def bad(_):
        raise RuntimeError("fail")

    caplog.set_level(logging.DEBUG, logger="config_tree.hooks")
    bus_ignore = HookBus("ignore")
    bus_ignore.register(bad)
    bus_ignore.run({"action": "bind"})

    bus_log = HookBus("log")
    bus_log.register(bad)
    bus_log.run({"action": "bind"})
    assert any("failed on bind" in r.getMessage() for r in caplog.records)

    bus_raise = HookBus("raise")
    bus_raise.register(bad)
    with pytest.raises(RuntimeError):
        bus_raise.run({"action": "bind"})


def test_hookbus_clear():
    bus = HookBus()
    bus.register(lambda event: None)
    bus.clear()
    assert len(bus) == 0
    bus.run({"action": "unbind"})
