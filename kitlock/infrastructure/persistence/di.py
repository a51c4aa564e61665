from dishka import provide

from kitlock.config import Config
from kitlock.domain.lock.port.lockfile_store import LockfileStore
from kitlock.infrastructure.persistence.lockfile import YamlLockfileStore
from kitlock.util.di.base import Provider
from kitlock.util.di.scope import Scope


class PersistenceProvider(Provider):
    @provide(scope=Scope.APP)
    def get_lockfile_store(self, config: Config) -> LockfileStore:
        return YamlLockfileStore(path=config.paths.lockfile)
