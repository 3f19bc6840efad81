"""
Telemetry backends
Prometheus for metrics and Grafana, with the Lightbend Telemetry dashboards when they can be fetched
"""

from typing import Any, Dict, List

import pulumi
import pulumi_kubernetes as k8s
import requests

from .config import Charts, Namespaces
from .dashboards import Dashboard, fetch_dashboards
from .errors import DashboardError
from .model import KubernetesCluster

DASHBOARD_LABEL = "grafana_dashboard"
DASHBOARD_FOLDER = "Lightbend Telemetry"

DATASOURCES = {
    "datasources.yaml": {
        "datasources": [{
            "name": "Cinnamon Prometheus",
            "type": "prometheus",
            "access": "proxy",
            "url": f"http://prometheus-server.{Namespaces.TELEMETRY}.svc.cluster.local",
            "editable": True,
        }]
    }
}


def chart_options(config, cluster: KubernetesCluster, depends_on: List[Any] = None) -> pulumi.ResourceOptions:
    """Charts take a while to install, the timeout is raised for all operations"""
    return pulumi.ResourceOptions(
        provider=cluster.k8s_provider,
        custom_timeouts=pulumi.CustomTimeouts(
            create=config.helm_timeout,
            update=config.helm_timeout,
            delete=config.helm_timeout),
        depends_on=[cluster.cluster] + (depends_on or []))


def install_prometheus(config, cluster: KubernetesCluster) -> k8s.helm.v3.Release:
    # The chart defaults are good enough for Lightbend Telemetry. Available values:
    # $ helm show values prometheus-community/prometheus
    return k8s.helm.v3.Release(
        Charts.PROMETHEUS,
        name=Charts.PROMETHEUS,
        chart=Charts.PROMETHEUS,
        namespace=Namespaces.TELEMETRY,
        repository_opts=k8s.helm.v3.RepositoryOptsArgs(repo=Charts.PROMETHEUS_REPO),
        opts=chart_options(config, cluster))


def grafana_values(dashboards: List[Dashboard]) -> Dict[str, Any]:
    """
    Grafana chart values. With no dashboards only the Prometheus datasource is configured.
    See https://github.com/grafana/helm-charts/blob/main/charts/grafana/README.md#import-dashboards
    """
    values = {"datasources": DATASOURCES}
    if not dashboards:
        return values

    values["sidecar"] = {
        "dashboards": {
            "enabled": True,
            "label": DASHBOARD_LABEL,
        }
    }
    values["dashboardProviders"] = {
        "dashboardproviders.yaml": {
            "apiVersion": 1,
            "providers": [{
                "name": dashboard.name,
                "orgId": 1,
                "folder": DASHBOARD_FOLDER,
                "type": "file",
                "disableDeletion": False,
                "editable": True,
                "options": {"path": f"/var/lib/grafana/dashboards/{dashboard.name}"},
            } for dashboard in dashboards]
        }
    }
    # provider name -> ConfigMap name, not a Kubernetes resource
    values["dashboardsConfigMaps"] = {dashboard.name: dashboard.name for dashboard in dashboards}
    return values


def publish_dashboards(cluster: KubernetesCluster, dashboards: List[Dashboard]) -> List[k8s.core.v1.ConfigMap]:
    """One ConfigMap per dashboard, next to Grafana"""
    return [
        k8s.core.v1.ConfigMap(
            dashboard.name,
            metadata=k8s.meta.v1.ObjectMetaArgs(
                name=dashboard.name,
                namespace=Namespaces.TELEMETRY,
                labels={DASHBOARD_LABEL: "true"},
            ),
            data={dashboard.filename: dashboard.json},
            opts=pulumi.ResourceOptions(provider=cluster.k8s_provider, depends_on=[cluster.cluster]))
        for dashboard in dashboards
    ]


def install_grafana(config, cluster: KubernetesCluster, dashboards: List[Dashboard]) -> Dict[str, Any]:
    # the chart mounts the ConfigMaps, they have to exist before its pods start
    config_maps = publish_dashboards(cluster, dashboards)
    release = k8s.helm.v3.Release(
        Charts.GRAFANA,
        name=Charts.GRAFANA,
        chart=Charts.GRAFANA,
        namespace=Namespaces.TELEMETRY,
        repository_opts=k8s.helm.v3.RepositoryOptsArgs(repo=Charts.GRAFANA_REPO),
        values=grafana_values(dashboards),
        opts=chart_options(config, cluster, depends_on=config_maps))
    return {
        "release": release,
        "dashboards": config_maps,
    }


def load_dashboards(config) -> List[Dashboard]:
    """
    Prebuilt dashboards, or none at all when they can't be fetched.
    A failure here must never fail the stack.
    """
    settings = config.telemetry
    if not settings.install_dashboards:
        return []

    try:
        return fetch_dashboards(settings.dashboards_url)
    except (DashboardError, requests.RequestException, OSError) as e:
        pulumi.log.warn(f"Could NOT install Grafana with Lightbend Telemetry dashboards: {e}")
        pulumi.log.warn("Falling back to a vanilla Grafana installation")
        return []


def install_backends(config, cluster: KubernetesCluster) -> Dict[str, Any]:
    """
    Install Prometheus and Grafana into the cluster

    Returns:
        Dict with both releases and the dashboard ConfigMaps
    """
    prometheus = install_prometheus(config, cluster)
    dashboards = load_dashboards(config)
    grafana = install_grafana(config, cluster, dashboards)

    if dashboards:
        pulumi.log.info(f"Grafana installed with {len(dashboards)} Lightbend Telemetry dashboards.")

    return {
        "prometheus": prometheus,
        "grafana": grafana["release"],
        "dashboards": grafana["dashboards"],
    }
