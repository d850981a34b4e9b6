"""Startup components used by the test suite."""
from typing import Optional

from bootprof.sandbox.host import Component


class FakeClock:
    """Manually advanced clock; components advance it to simulate work."""

    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class CacheService:
    pass


class DatabaseService:
    pass


class AlphaComponent(Component):
    def register(self):
        self.app.make(FakeClock).advance(0.02)

    def boot(self):
        self.app.make(FakeClock).advance(0.01)


class BrokenComponent(Component):
    def register(self):
        self.app.make(FakeClock).advance(0.005)
        raise RuntimeError("boom")


class BootFailsComponent(Component):
    def register(self):
        self.app.make(FakeClock).advance(0.004)

    def boot(self):
        self.app.make(FakeClock).advance(0.002)
        raise ValueError("boot exploded")


class RegisterOnlyComponent(Component):
    def register(self):
        self.app.make(FakeClock).advance(0.003)


class DeferredComponent(Component):
    deferred = True

    def register(self):
        self.app.singleton(CacheService, lambda app: CacheService())

    def provides(self):
        return ["mailer", CacheService]


class InjectedComponent(Component):
    def register(self, cache: CacheService, retries: int = 3):
        self.cache = cache

    def boot(self, db: Optional[DatabaseService] = None, name: str = "injected"):
        self.db = db


class DeclaredComponent(Component):
    @classmethod
    def dependencies(cls):
        return [AlphaComponent, "fixtures.sample_components:InjectedComponent"]


class NotAComponent:
    def register(self, label: str):
        pass


class ExitingComponent(Component):
    def register(self):
        raise SystemExit(2)
