"""
minihost — Capability Registry Unit Tests
===========================================

What:  set/get contract of CapabilityRegistry.
"""

from minihost.capabilities import CapabilityRegistry, RequestCapability, ResponseCapability


class _Marker:
    pass


class TestCapabilityRegistry:
    """Tests for the typed capability store."""

    def setup_method(self):
        self.registry = CapabilityRegistry()

    def test_get_returns_just_set_instance(self):
        instance = _Marker()
        self.registry.set(_Marker, instance)
        assert self.registry.get(_Marker) is instance

    def test_get_unset_kind_returns_none(self):
        """A missing capability is not an error."""
        assert self.registry.get(RequestCapability) is None

    def test_set_overwrites_previous_entry(self):
        first, second = _Marker(), _Marker()
        self.registry.set(_Marker, first).set(_Marker, second)
        assert self.registry.get(_Marker) is second
        assert len(self.registry) == 1

    def test_set_is_fluent(self):
        assert self.registry.set(_Marker, _Marker()) is self.registry

    def test_kinds_have_independent_slots(self):
        request, response = object(), object()
        self.registry.set(RequestCapability, request).set(ResponseCapability, response)
        assert self.registry.get(RequestCapability) is request
        assert self.registry.get(ResponseCapability) is response
        assert len(self.registry) == 2

    def test_same_instance_may_back_several_kinds(self):
        shared = object()
        self.registry.set(RequestCapability, shared).set(ResponseCapability, shared)
        assert self.registry.get(RequestCapability) is self.registry.get(ResponseCapability)

    def test_contains(self):
        self.registry.set(ResponseCapability, object())
        assert ResponseCapability in self.registry
        assert RequestCapability not in self.registry

    def test_repr_lists_kinds(self):
        self.registry.set(ResponseCapability, object()).set(RequestCapability, object())
        assert repr(self.registry) == "CapabilityRegistry(RequestCapability, ResponseCapability)"
