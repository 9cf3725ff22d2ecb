"""Tests for aumai_nodetrust.extractors."""

from __future__ import annotations

from typing import Any

import pytest

from aumai_nodetrust.errors import ExtractionError
from aumai_nodetrust.extractors import (
    SWARM_SERVICE_LABEL,
    cni_extractor,
    container_extractor,
    make_swarm_extractor,
    process_extractor,
)
from aumai_nodetrust.models import MonitorKind


def _inspect(labels: dict[str, str] | None = None) -> dict[str, Any]:
    return {
        "Name": "/web-1",
        "State": {"Pid": 4242},
        "Config": {"Image": "nginx:1.25", "Labels": labels or {}},
    }


class _Service:
    def __init__(self, labels: dict[str, str]) -> None:
        self.attrs = {"Spec": {"Labels": labels}}


class _Services:
    def __init__(self, labels: dict[str, str] | None = None, error: Exception | None = None) -> None:
        self.labels = labels or {}
        self.error = error
        self.requested: list[str] = []

    def get(self, service_id: str) -> _Service:
        self.requested.append(service_id)
        if self.error is not None:
            raise self.error
        return _Service(self.labels)


class _Client:
    def __init__(self, services: _Services) -> None:
        self.services = services


# ===========================================================================
# Containers
# ===========================================================================


class TestContainerExtractor:
    def test_strips_leading_slash(self) -> None:
        assert container_extractor(_inspect()).name == "web-1"

    def test_tags_image_name_and_labels(self) -> None:
        runtime = container_extractor(_inspect({"app": "web"}))
        assert runtime.tags == {"image": "nginx:1.25", "name": "web-1", "app": "web"}

    def test_pid_and_type(self) -> None:
        runtime = container_extractor(_inspect())
        assert runtime.pid == 4242
        assert runtime.workload_type == MonitorKind.container

    def test_bridge_hint(self) -> None:
        assert container_extractor(_inspect()).ip_addresses == {"bridge": "0.0.0.0/0"}

    def test_missing_name_raises(self) -> None:
        with pytest.raises(ExtractionError, match="Malformed container"):
            container_extractor({"Config": {}})

    def test_null_labels_tolerated(self) -> None:
        info = _inspect()
        info["Config"]["Labels"] = None
        assert container_extractor(info).tags["name"] == "web-1"

    def test_negative_pid_raises(self) -> None:
        info = _inspect()
        info["State"]["Pid"] = -5
        with pytest.raises(ExtractionError, match="Malformed container"):
            container_extractor(info)

    def test_non_mapping_labels_raise(self) -> None:
        info = _inspect()
        info["Config"]["Labels"] = ["app"]
        with pytest.raises(ExtractionError):
            container_extractor(info)


class TestSwarmExtractor:
    def test_uses_service_labels(self) -> None:
        services = _Services({"tier": "frontend"})
        extractor = make_swarm_extractor(_Client(services))
        runtime = extractor(_inspect({SWARM_SERVICE_LABEL: "svc-1", "app": "web"}))
        assert services.requested == ["svc-1"]
        assert runtime.tags["tier"] == "frontend"
        assert "app" not in runtime.tags

    def test_falls_back_to_container_labels(self) -> None:
        services = _Services({"tier": "frontend"})
        extractor = make_swarm_extractor(_Client(services))
        runtime = extractor(_inspect({"app": "web"}))
        assert services.requested == []
        assert runtime.tags["app"] == "web"

    def test_service_lookup_failure_raises(self) -> None:
        extractor = make_swarm_extractor(_Client(_Services(error=RuntimeError("no swarm"))))
        with pytest.raises(ExtractionError, match="Failed to get swarm labels"):
            extractor(_inspect({SWARM_SERVICE_LABEL: "svc-1"}))

    def test_negative_pid_raises(self) -> None:
        extractor = make_swarm_extractor(_Client(_Services({"tier": "frontend"})))
        info = _inspect({SWARM_SERVICE_LABEL: "svc-1"})
        info["State"]["Pid"] = -5
        with pytest.raises(ExtractionError):
            extractor(info)


# ===========================================================================
# Linux processes
# ===========================================================================


class TestProcessExtractor:
    def test_system_tags(self) -> None:
        runtime = process_extractor(
            {"pid": 17, "name": "sshd", "user": "root", "cgroup": "/system.slice"}
        )
        assert runtime.tags == {
            "@sys:name": "sshd",
            "@sys:pid": "17",
            "@sys:user": "root",
            "@sys:cgroup": "/system.slice",
        }
        assert runtime.workload_type == MonitorKind.linux_process

    def test_optional_fields_omitted(self) -> None:
        runtime = process_extractor({"pid": 17, "name": "sshd"})
        assert "@sys:user" not in runtime.tags

    def test_extra_labels(self) -> None:
        runtime = process_extractor({"pid": 17, "name": "sshd", "labels": {"role": "admin"}})
        assert runtime.tags["role"] == "admin"

    def test_missing_pid_raises(self) -> None:
        with pytest.raises(ExtractionError):
            process_extractor({"name": "sshd"})

    def test_non_numeric_pid_raises(self) -> None:
        with pytest.raises(ExtractionError):
            process_extractor({"pid": "abc", "name": "sshd"})

    def test_negative_pid_raises(self) -> None:
        with pytest.raises(ExtractionError, match="Malformed process"):
            process_extractor({"pid": -1, "name": "x"})

    def test_non_mapping_labels_raise(self) -> None:
        with pytest.raises(ExtractionError, match="Malformed process"):
            process_extractor({"pid": 1, "name": "x", "labels": ["a"]})


# ===========================================================================
# CNI
# ===========================================================================


class TestCNIExtractor:
    def test_parses_cni_args(self) -> None:
        runtime = cni_extractor(
            {
                "ContainerID": "abc123",
                "Args": "K8S_POD_NAMESPACE=default;K8S_POD_NAME=web-0;IgnoreUnknown=1",
                "IP": "10.0.0.7",
            }
        )
        assert runtime.name == "web-0"
        assert runtime.tags["K8S_POD_NAMESPACE"] == "default"
        assert runtime.ip_addresses == {"cni": "10.0.0.7"}
        assert runtime.workload_type == MonitorKind.cni

    def test_name_falls_back_to_container_id(self) -> None:
        runtime = cni_extractor({"ContainerID": "abc123", "Args": "garbage"})
        assert runtime.name == "abc123"
        assert runtime.tags == {}

    def test_missing_container_id_raises(self) -> None:
        with pytest.raises(ExtractionError, match="ContainerID"):
            cni_extractor({"Args": "K8S_POD_NAME=web-0"})

    def test_non_mapping_description_raises(self) -> None:
        with pytest.raises(ExtractionError, match="Malformed CNI"):
            cni_extractor(["ContainerID", "abc123"])  # type: ignore[arg-type]
