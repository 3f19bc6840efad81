"""
Cluster add-ons
metrics-server and the Akka Platform Operator chart
"""

from typing import Any, List

import pulumi
import pulumi_kubernetes as k8s

from .config import Charts, Versions
from .model import Cloud, KubernetesCluster
from .telemetry import chart_options


def metrics_server_url(version: str = Versions.METRICS_SERVER) -> str:
    return f"https://github.com/kubernetes-sigs/metrics-server/releases/download/{version}/components.yaml"


def install_metrics_server(cluster: KubernetesCluster) -> k8s.yaml.ConfigGroup:
    """Required by the operator to autoscale Akka deployments"""
    return k8s.yaml.ConfigGroup(
        "metrics-server",
        files=[metrics_server_url()],
        opts=pulumi.ResourceOptions(provider=cluster.k8s_provider, depends_on=[cluster.cluster]))


def install_operator(config, cloud: Cloud, cluster: KubernetesCluster, namespace: k8s.core.v1.Namespace,
                     service_account_name: str, depends_on: List[Any] = None) -> k8s.helm.v3.Release:
    """
    Install the Akka Platform Operator chart into the operator namespace

    Args:
        config: Stack configuration
        cloud: Cloud the chart values are tailored for
        cluster: Target cluster
        namespace: Operator namespace resource
        service_account_name: Service account the operator runs as
        depends_on: Resources that must exist first, e.g. the service account

    Returns:
        The chart release
    """
    settings = config.operator
    pulumi.log.info(f"Installing {Charts.AKKA_OPERATOR} {settings.version} into namespace {settings.namespace}")
    return k8s.helm.v3.Release(
        Charts.AKKA_OPERATOR,
        name=Charts.AKKA_OPERATOR,
        chart=Charts.AKKA_OPERATOR,
        version=settings.version,
        namespace=settings.namespace,
        repository_opts=k8s.helm.v3.RepositoryOptsArgs(repo=Charts.AKKA_OPERATOR_REPO),
        values=cloud.operator_chart_values(service_account_name),
        opts=chart_options(config, cluster, depends_on=[namespace] + (depends_on or [])))
