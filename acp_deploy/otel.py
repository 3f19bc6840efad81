"""
AWS OpenTelemetry collector
Receives Zipkin traces inside the cluster and forwards them to AWS X-Ray
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

import pulumi
import pulumi_kubernetes as k8s
import yaml

from .errors import ConfigurationError
from .model import KubernetesCluster

COLLECTOR = "aws-otel-collector"
COLLECTOR_IMAGE = "amazon/aws-otel-collector:latest"
CONFIG_MAP_NAME = "aws-otel-config.yaml"
POD_CONFIG = "config.yaml"
POD_MOUNT_FOLDER = "/etc/otel-agent-config"
CONFIG_VOLUME = "config"


@dataclass(frozen=True)
class CollectorConfig:
    text: str
    zipkin_port: int
    health_check_port: int


def parse_port(endpoint: Optional[str], config_path: str, file_name: str) -> int:
    """Port of a 'host:port' endpoint"""
    if endpoint is None:
        raise ConfigurationError(f"{file_name} doesn't have '{config_path}' declared!")

    chunks = str(endpoint).split(":")
    if len(chunks) != 2:
        raise ConfigurationError(
            f"{file_name} has malformed '{config_path}': '{endpoint}'! It must have a 'host:port' format.")

    unparsed_port = chunks[1]
    try:
        port = int(unparsed_port)
    except ValueError:
        port = -1
    if port < 0 or port > 65535:
        raise ConfigurationError(
            f"{file_name} has malformed '{config_path}' port: '{unparsed_port}'! "
            "It must have a number between 0 and 65535.")
    return port


def _endpoint(document: Dict[str, Any], *path: str) -> Optional[str]:
    node = document
    for key in path:
        if not isinstance(node, dict):
            return None
        node = node.get(key)
    return node.get("endpoint") if isinstance(node, dict) else None


def read_collector_config(file_name: str) -> CollectorConfig:
    """
    Load the collector configuration file and the two ports the deployment exposes

    Raises:
        ConfigurationError: missing file, invalid YAML or malformed endpoints
    """
    try:
        with open(file_name, "r") as f:
            text = f.read()
        document = yaml.safe_load(text) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Could not read {file_name}: {e}") from e

    return CollectorConfig(
        text=text,
        zipkin_port=parse_port(
            _endpoint(document, "receivers", "zipkin"), "receivers.zipkin.endpoint", file_name),
        health_check_port=parse_port(
            _endpoint(document, "extensions", "health_check"), "extensions.health_check.endpoint", file_name),
    )


def install_collector(config, cluster: KubernetesCluster) -> Dict[str, Any]:
    """
    Namespace, config map, deployment and service for the collector

    Returns:
        Dict with the resources and the in-cluster service endpoint
    """
    settings = config.otel
    collector_config = read_collector_config(settings.config_file)
    pulumi.log.debug(f"Zipkin port: {collector_config.zipkin_port}")
    pulumi.log.debug(f"Health check port: {collector_config.health_check_port}")

    labels = {"app": COLLECTOR}
    namespace_name = settings.namespace

    namespace = k8s.core.v1.Namespace(
        namespace_name,
        metadata=k8s.meta.v1.ObjectMetaArgs(name=namespace_name),
        opts=pulumi.ResourceOptions(provider=cluster.k8s_provider))
    in_namespace = pulumi.ResourceOptions(provider=cluster.k8s_provider, depends_on=[namespace])

    config_map = k8s.core.v1.ConfigMap(
        COLLECTOR,
        metadata=k8s.meta.v1.ObjectMetaArgs(
            name=CONFIG_MAP_NAME,
            namespace=namespace_name,
            labels=labels,
        ),
        data={POD_CONFIG: collector_config.text},
        opts=in_namespace)

    args = [f"--config={POD_MOUNT_FOLDER}/{POD_CONFIG}"]
    if settings.debug:
        args.append("--log-level=DEBUG")

    health_probe = k8s.core.v1.ProbeArgs(
        http_get=k8s.core.v1.HTTPGetActionArgs(path="/", port=collector_config.health_check_port))

    deployment = k8s.apps.v1.Deployment(
        COLLECTOR,
        metadata=k8s.meta.v1.ObjectMetaArgs(
            name=COLLECTOR,
            namespace=namespace_name,
            labels=labels,
        ),
        spec=k8s.apps.v1.DeploymentSpecArgs(
            min_ready_seconds=5,
            progress_deadline_seconds=120,
            replicas=1,
            selector=k8s.meta.v1.LabelSelectorArgs(match_labels=labels),
            template=k8s.core.v1.PodTemplateSpecArgs(
                metadata=k8s.meta.v1.ObjectMetaArgs(labels=labels),
                spec=k8s.core.v1.PodSpecArgs(
                    containers=[k8s.core.v1.ContainerArgs(
                        name=COLLECTOR,
                        image=COLLECTOR_IMAGE,
                        command=["/awscollector"],
                        args=args,
                        volume_mounts=[k8s.core.v1.VolumeMountArgs(
                            name=CONFIG_VOLUME,
                            mount_path=POD_MOUNT_FOLDER,
                        )],
                        resources=k8s.core.v1.ResourceRequirementsArgs(
                            limits={"cpu": "256m", "memory": "512Mi"},
                            requests={"cpu": "32m", "memory": "24Mi"},
                        ),
                        ports=[k8s.core.v1.ContainerPortArgs(container_port=collector_config.zipkin_port)],
                        liveness_probe=health_probe,
                        readiness_probe=health_probe,
                        # region and credentials used to reach X-Ray
                        env=[
                            k8s.core.v1.EnvVarArgs(name="AWS_REGION", value=settings.xray_region),
                            k8s.core.v1.EnvVarArgs(name="AWS_ACCESS_KEY_ID", value=settings.xray_access_key_id),
                            k8s.core.v1.EnvVarArgs(
                                name="AWS_SECRET_ACCESS_KEY", value=settings.xray_secret_access_key),
                        ],
                    )],
                    volumes=[k8s.core.v1.VolumeArgs(
                        name=CONFIG_VOLUME,
                        config_map=k8s.core.v1.ConfigMapVolumeSourceArgs(name=config_map.metadata.name),
                    )],
                ),
            ),
        ),
        opts=in_namespace)

    service_name = f"{COLLECTOR}-svc"
    service = k8s.core.v1.Service(
        service_name,
        metadata=k8s.meta.v1.ObjectMetaArgs(
            name=service_name,
            namespace=namespace_name,
            labels=labels,
        ),
        spec=k8s.core.v1.ServiceSpecArgs(
            type="ClusterIP",
            ports=[k8s.core.v1.ServicePortArgs(port=collector_config.zipkin_port)],
            selector=labels,
        ),
        opts=pulumi.ResourceOptions(provider=cluster.k8s_provider, depends_on=[namespace, deployment]))

    return {
        "namespace": namespace,
        "config_map": config_map,
        "deployment": deployment,
        "service": service,
        "endpoint": f"{service_name}.{namespace_name}.svc.cluster.local",
    }
