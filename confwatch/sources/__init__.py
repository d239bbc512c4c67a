"""Configuration source and namespace implementations.

The ZooKeeper and Redis implementations import their client libraries on
import, so they are not re-exported here.
"""

__all__ = [
    "MemoryNamespace",
    "RedisNamespace",
    "ZooKeeperConfigurationSource",
    "ZooKeeperNamespace",
]
