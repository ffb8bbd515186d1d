"""
Kubernetes resource kinds: provider, Deployment and Service.

Objects are created through a provider node built from a kubeconfig, so
Deployment and Service nodes are declared with ``provider=`` which gives
them an ordering edge on it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import ClassVar

from stackweave.core.node import ArgsStruct, Input, ResourceArgs, check_choice, check_required, check_type, is_literal

SERVICE_TYPES = ("ClusterIP", "NodePort", "LoadBalancer", "ExternalName")


@dataclass(kw_only=True)
class ProviderArgs(ResourceArgs):
    """Kubernetes provider bound to one cluster through a kubeconfig document."""

    KIND: ClassVar[str] = "pulumi:providers:kubernetes"
    OUTPUTS: ClassVar[tuple[str, ...]] = ("id",)

    kubeconfig: Input[str]
    namespace: Input[str] | None = None

    def check(self) -> list[str]:
        problems: list[str] = []
        check_required(problems, "kubeconfig", self.kubeconfig)
        return problems


@dataclass(kw_only=True)
class ObjectMeta(ArgsStruct):
    name: Input[str] | None = None
    namespace: Input[str] | None = None
    labels: dict[str, Input[str]] | None = None
    annotations: dict[str, Input[str]] | None = None


@dataclass(kw_only=True)
class ContainerPort(ArgsStruct):
    container_port: Input[int]
    protocol: Input[str] = "TCP"

    def check(self) -> list[str]:
        problems: list[str] = []
        _check_port(problems, "container_port", self.container_port)
        check_choice(problems, "protocol", self.protocol, ("TCP", "UDP", "SCTP"))
        return problems


@dataclass(kw_only=True)
class Container(ArgsStruct):
    name: Input[str]
    image: Input[str]
    ports: list[ContainerPort] = field(default_factory=list)
    env: dict[str, Input[str]] | None = None

    def check(self) -> list[str]:
        problems: list[str] = []
        check_required(problems, "name", self.name)
        check_required(problems, "image", self.image)
        return problems


@dataclass(kw_only=True)
class PodSpec(ArgsStruct):
    containers: list[Container]

    def check(self) -> list[str]:
        if not self.containers:
            return ["containers must not be empty"]
        return []


@dataclass(kw_only=True)
class PodTemplateSpec(ArgsStruct):
    metadata: ObjectMeta
    spec: PodSpec


@dataclass(kw_only=True)
class LabelSelector(ArgsStruct):
    match_labels: dict[str, Input[str]]


@dataclass(kw_only=True)
class DeploymentSpec(ArgsStruct):
    selector: LabelSelector
    template: PodTemplateSpec
    replicas: Input[int] = 1

    def check(self) -> list[str]:
        problems: list[str] = []
        check_type(problems, "replicas", self.replicas, int)
        if is_literal(self.replicas) and isinstance(self.replicas, int) and self.replicas < 0:
            problems.append(f"replicas must be >= 0, got {self.replicas}")
        # A selector that does not match the pod template would never own its pods
        labels = self.template.metadata.labels or {}
        for key, value in self.selector.match_labels.items():
            if labels.get(key) != value:
                problems.append(f"selector.match_labels[{key!r}] does not match template.metadata.labels")
        return problems


@dataclass(kw_only=True)
class DeploymentArgs(ResourceArgs):
    KIND: ClassVar[str] = "kubernetes:apps/v1:Deployment"
    OUTPUTS: ClassVar[tuple[str, ...]] = ("id", "metadata", "status")

    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    spec: DeploymentSpec


@dataclass(kw_only=True)
class ServicePort(ArgsStruct):
    port: Input[int]
    target_port: Input[int] | None = None
    protocol: Input[str] = "TCP"

    def check(self) -> list[str]:
        problems: list[str] = []
        _check_port(problems, "port", self.port)
        _check_port(problems, "target_port", self.target_port)
        check_choice(problems, "protocol", self.protocol, ("TCP", "UDP", "SCTP"))
        return problems


@dataclass(kw_only=True)
class ServiceSpec(ArgsStruct):
    ports: list[ServicePort]
    selector: dict[str, Input[str]] | None = None
    type: Input[str] = "ClusterIP"

    def check(self) -> list[str]:
        problems: list[str] = []
        if not self.ports:
            problems.append("ports must not be empty")
        check_choice(problems, "type", self.type, SERVICE_TYPES)
        return problems


@dataclass(kw_only=True)
class ServiceArgs(ResourceArgs):
    """
    Kubernetes Service.

    A ``LoadBalancer`` service reports its external address under
    ``status["load_balancer"]["ingress"]``, a list with one entry per address.
    """

    KIND: ClassVar[str] = "kubernetes:core/v1:Service"
    OUTPUTS: ClassVar[tuple[str, ...]] = ("id", "metadata", "spec", "status")

    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    spec: ServiceSpec


def _check_port(problems: list[str], field_name: str, value) -> None:
    check_type(problems, field_name, value, int)
    if is_literal(value) and isinstance(value, int) and not isinstance(value, bool) and not 1 <= value <= 65535:
        problems.append(f"{field_name} must be between 1 and 65535, got {value}")
