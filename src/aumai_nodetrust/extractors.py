"""Metadata extractors: runtime facts in, :class:`WorkloadRuntime` out.

Container extractors take the dictionary returned by ``docker inspect``
(``Name``, ``State.Pid``, ``Config.Image``, ``Config.Labels``).
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

from aumai_nodetrust.errors import ExtractionError
from aumai_nodetrust.models import MonitorKind, WorkloadRuntime

Extractor = Callable[[Mapping[str, Any]], WorkloadRuntime]

SWARM_SERVICE_LABEL = "com.docker.swarm.service.id"
DEFAULT_BRIDGE_HINT = {"bridge": "0.0.0.0/0"}


_MALFORMED = (KeyError, TypeError, ValueError, AttributeError)


def _tags(base: Mapping[str, str], labels: Any) -> dict[str, str]:
    tags = dict(base)
    tags.update({str(k): str(v) for k, v in dict(labels or {}).items()})
    return tags


def _container_fields(info: Mapping[str, Any]) -> tuple[str, int, str, dict[str, str]]:
    try:
        name = str(info["Name"]).lstrip("/")
        config = info.get("Config") or {}
        image = str(config.get("Image", ""))
        labels = dict(config.get("Labels") or {})
        pid = int((info.get("State") or {}).get("Pid", 0))
    except _MALFORMED as exc:
        raise ExtractionError(f"Malformed container description: {exc}") from exc
    return name, pid, image, labels


def _container_runtime(name: str, pid: int, image: str, labels: Any) -> WorkloadRuntime:
    try:
        return WorkloadRuntime(
            name=name,
            pid=pid,
            tags=_tags({"image": image, "name": name}, labels),
            ip_addresses=dict(DEFAULT_BRIDGE_HINT),
            workload_type=MonitorKind.container,
        )
    except _MALFORMED as exc:
        raise ExtractionError(f"Malformed container description: {exc}") from exc


def container_extractor(info: Mapping[str, Any]) -> WorkloadRuntime:
    """Tag a container with its image, name and labels."""
    return _container_runtime(*_container_fields(info))


def make_swarm_extractor(client: Any = None) -> Extractor:
    """Build an extractor that prefers swarm service labels over container labels.

    Args:
        client: A ``docker.DockerClient``.  Created from the environment on
            first use when omitted.
    """

    state = {"client": client}

    def _client() -> Any:
        if state["client"] is None:
            import docker
            from docker.errors import DockerException

            try:
                state["client"] = docker.from_env()
            except DockerException as exc:
                raise ExtractionError(f"Error creating Docker client: {exc}") from exc
        return state["client"]

    def swarm_extractor(info: Mapping[str, Any]) -> WorkloadRuntime:
        name, pid, image, labels = _container_fields(info)

        service_id = labels.get(SWARM_SERVICE_LABEL)
        if service_id:
            try:
                service = _client().services.get(service_id)
                labels = dict(service.attrs.get("Spec", {}).get("Labels") or {})
            except ExtractionError:
                raise
            except Exception as exc:
                raise ExtractionError(f"Failed to get swarm labels: {exc}") from exc

        return _container_runtime(name, pid, image, labels)

    return swarm_extractor


def process_extractor(info: Mapping[str, Any]) -> WorkloadRuntime:
    """Tag a Linux process with its executable, user and cgroup.

    Expects ``pid`` and ``name``; ``user``, ``cgroup`` and ``labels`` are
    optional.
    """
    try:
        pid = int(info["pid"])
        name = str(info["name"])
        base = {"@sys:name": name, "@sys:pid": str(pid)}
        if info.get("user"):
            base["@sys:user"] = str(info["user"])
        if info.get("cgroup"):
            base["@sys:cgroup"] = str(info["cgroup"])
        return WorkloadRuntime(
            name=name,
            pid=pid,
            tags=_tags(base, info.get("labels")),
            workload_type=MonitorKind.linux_process,
        )
    except _MALFORMED as exc:
        raise ExtractionError(f"Malformed process description: {exc}") from exc


def cni_extractor(info: Mapping[str, Any]) -> WorkloadRuntime:
    """Tag a CNI-attached container from its runtime arguments.

    ``Args`` is the CNI ``CNI_ARGS`` string, e.g.
    ``K8S_POD_NAMESPACE=default;K8S_POD_NAME=web-0``.
    """
    try:
        container_id = info.get("ContainerID")
        if not container_id:
            raise ExtractionError("CNI description has no ContainerID")

        tags: dict[str, str] = {}
        for pair in str(info.get("Args", "")).split(";"):
            key, sep, value = pair.partition("=")
            if sep and key:
                tags[key.strip()] = value.strip()

        ip_addresses = {}
        if info.get("IP"):
            ip_addresses["cni"] = str(info["IP"])
        return WorkloadRuntime(
            name=tags.get("K8S_POD_NAME", str(container_id)),
            tags=tags,
            ip_addresses=ip_addresses,
            workload_type=MonitorKind.cni,
        )
    except _MALFORMED as exc:
        raise ExtractionError(f"Malformed CNI description: {exc}") from exc


__all__ = [
    "Extractor",
    "cni_extractor",
    "container_extractor",
    "make_swarm_extractor",
    "process_extractor",
]
