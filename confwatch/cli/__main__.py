from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer

from ..core.errors import ConfigurationError
from ..core.listeners import CallbackListener
from ..core.overlay import OverlayResolver
from ..core.settings import SettingsLoader, SourceSettings
from ..core.types import UpdateResult
from ..sources.memory import MemoryNamespace

app = typer.Typer(help="confwatch CLI")


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _settings(config: Optional[Path], address: Optional[str], root: Optional[str]) -> SourceSettings:
    loader = SettingsLoader(config)
    return loader.get_source_settings(address=address, root_path=root)


def _open_source(settings: SourceSettings):
    from ..sources.zookeeper import ZooKeeperConfigurationSource

    return ZooKeeperConfigurationSource.from_settings(settings)


def build_namespaces(entries: List[Dict[str, Any]], settings: SourceSettings) -> List[Any]:
    """Create namespaces from ``namespaces:`` entries, keeping their order."""
    namespaces: List[Any] = []
    for entry in entries:
        name = entry["name"]
        if "values" in entry:
            values = {str(k): str(v) for k, v in (entry["values"] or {}).items()}
            namespaces.append(MemoryNamespace(name, values))
            continue
        uri = str(entry["uri"])
        if uri.startswith(("redis://", "rediss://", "unix://")):
            from ..sources.redis_kv import RedisNamespace

            namespaces.append(RedisNamespace(uri, name=name, prefix=entry.get("prefix", "")))
        elif uri.startswith("zookeeper:"):
            from ..sources.zookeeper import ZooKeeperNamespace

            source = _open_source(settings)
            source.start()
            namespace = ZooKeeperNamespace(name, source, owns_source=True)
            namespace.attach()
            namespaces.append(namespace)
        else:
            raise ConfigurationError(f"Unsupported namespace uri: {uri}")
    return namespaces


@app.command()
def snapshot(
    address: Optional[str] = typer.Option(None, "--address"),
    root: Optional[str] = typer.Option(None, "--root"),
    config: Optional[Path] = typer.Option(None, "--config"),
    log_level: str = typer.Option("WARNING", "--log-level"),
):
    _configure_logging(log_level)
    with _open_source(_settings(config, address, root)) as source:
        typer.echo(json.dumps(source.get_current_data(), indent=2, sort_keys=True))


@app.command()
def watch(
    address: Optional[str] = typer.Option(None, "--address"),
    root: Optional[str] = typer.Option(None, "--root"),
    config: Optional[Path] = typer.Option(None, "--config"),
    log_level: str = typer.Option("INFO", "--log-level"),
):
    _configure_logging(log_level)
    source = _open_source(_settings(config, address, root))

    def _print(result: UpdateResult) -> None:
        typer.echo(json.dumps(result.to_dict(), sort_keys=True))

    source.add_update_listener(CallbackListener(_print))
    source.start()
    try:
        threading.Event().wait()
    except KeyboardInterrupt:
        pass
    finally:
        source.close()


@app.command()
def resolve(
    key: str,
    config: Optional[Path] = typer.Option(None, "--config"),
    log_level: str = typer.Option("WARNING", "--log-level"),
):
    _configure_logging(log_level)
    loader = SettingsLoader(config)
    namespaces = build_namespaces(loader.get_namespaces(), loader.get_source_settings())
    try:
        resolver = OverlayResolver(namespaces)
        value, prov = resolver.resolve_with_provenance(key)
        typer.echo(json.dumps({"key": key, "value": value, "namespace": prov.namespace if prov else None}, indent=2))
    finally:
        for ns in namespaces:
            close = getattr(ns, "close", None)
            if close is not None:
                close()


if __name__ == "__main__":
    app()
