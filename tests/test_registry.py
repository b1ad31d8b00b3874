from types import SimpleNamespace

from translation_adapter.models import Side
from translation_adapter.registry import CorrespondenceRegistry, base_identifier
from translation_adapter.signals import SignalHub


def entity(identifier, side):
    return SimpleNamespace(identifier=identifier, side=side)


def test_base_identifier():
    assert base_identifier("cxcite_ref-1", Side.TARGET) == "cite_ref-1"
    assert base_identifier("cite_ref-1", Side.TARGET) == "cite_ref-1"
    assert base_identifier("cxcite", Side.SOURCE) == "cxcite"


def test_register_and_lookup():
    registry = CorrespondenceRegistry()
    source, target = entity("7", Side.SOURCE), entity("7", Side.TARGET)
    registry.register(source)
    registry.register(target)

    assert registry.lookup("7", Side.SOURCE) is source
    assert registry.counterpart(source) is target
    assert registry.counterpart(target) is source
    assert "7" in registry
    assert len(registry) == 1


def test_entities_without_identifier_are_ignored():
    registry = CorrespondenceRegistry()
    registry.register(entity(None, Side.SOURCE))

    assert len(registry) == 0


def test_unregister_only_the_registered_entity():
    registry = CorrespondenceRegistry()
    first = entity("7", Side.TARGET)
    registry.register(first)
    registry.unregister(entity("7", Side.TARGET))
    assert registry.lookup("7", Side.TARGET) is first

    registry.unregister(first)
    assert registry.lookup("7", Side.TARGET) is None
    assert "7" not in registry


def test_signal_hub():
    hub = SignalHub()
    received = []

    def handler(*args):
        received.append(args)

    hub.connect("x", handler)
    hub.fire("x", 1, 2)
    hub.fire("y", 9)
    hub.disconnect("x", handler)
    hub.fire("x", 3)

    assert received == [(1, 2)]
    assert not hasattr(hub, "fired")
