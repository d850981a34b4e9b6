import pytest

from bootprof.sandbox.host import (Application, ComponentResolutionError, load_class,
                                   normalize_identifier)
from fixtures.sample_components import AlphaComponent, CacheService, InjectedComponent


def test_load_class_accepts_both_notations():
    assert load_class("fixtures.sample_components.AlphaComponent") is AlphaComponent
    assert load_class("fixtures.sample_components:AlphaComponent") is AlphaComponent
    assert normalize_identifier(" pkg.mod:Cls ") == "pkg.mod.Cls"


@pytest.mark.parametrize("identifier", ["Bare", "missing_pkg_xyz.Cls",
                                        "fixtures.sample_components.Nope",
                                        "fixtures.sample_components.FakeClock.advance"])
def test_load_class_errors(identifier):
    with pytest.raises(ComponentResolutionError):
        load_class(identifier)


def test_singleton_and_bind():
    app = Application()
    app.singleton(CacheService, lambda a: CacheService())
    assert app.make(CacheService) is app.make(CacheService)

    app.bind("transient", lambda a: object())
    assert app.make("transient") is not app.make("transient")
    assert app.make(Application) is app

    with pytest.raises(ComponentResolutionError):
        app.make("unbound")


def test_hooks_receive_injected_arguments():
    app = Application()
    shared = app.instance(CacheService, CacheService())

    component = app.register_component("fixtures.sample_components.InjectedComponent")
    assert isinstance(component, InjectedComponent)
    assert component.cache is shared

    app.boot_component(component)
    assert component.db is None
