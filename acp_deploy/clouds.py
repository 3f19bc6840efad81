"""
AWS and GCP implementations of the cloud abstraction
"""

from typing import List

import pulumi
import pulumi_kubernetes as k8s

from . import aurora, cloudsql, eks, gke, msk
from .config import AWS, GCP, SUPPORTED_CLOUDS, Defaults
from .errors import ConfigurationError
from .model import Cloud, EksCluster, GkeCluster, JdbcDatabase, KafkaCluster

# GCP Marketplace applications CRD
APP_CRD_URL = "https://raw.githubusercontent.com/GoogleCloudPlatform/marketplace-k8s-app-tools/master/crd/app-crd.yaml"


class AwsCloud(Cloud):
    """EKS, MSK and Aurora"""

    name = AWS

    def create_kubernetes_cluster(self) -> EksCluster:
        return eks.create_kubernetes_cluster(self.config)

    def operator_service_account(self, cluster: EksCluster, service_account_name: str,
                                 namespace: k8s.core.v1.Namespace) -> k8s.core.v1.ServiceAccount:
        return eks.create_operator_service_account(self.config, cluster, service_account_name, namespace)

    def create_kafka_cluster(self, cluster: EksCluster) -> KafkaCluster:
        return msk.create_kafka_cluster(self.config, cluster)

    def create_jdbc_database(self, cluster: EksCluster) -> JdbcDatabase:
        return aurora.create_jdbc_database(self.config, cluster)


class GcpCloud(Cloud):
    """GKE and Cloud SQL"""

    name = GCP

    def create_kubernetes_cluster(self) -> GkeCluster:
        return gke.create_kubernetes_cluster(self.config)

    def operator_service_account(self, cluster: GkeCluster, service_account_name: str,
                                 namespace: k8s.core.v1.Namespace) -> k8s.core.v1.ServiceAccount:
        return gke.create_operator_service_account(cluster, service_account_name, namespace)

    def create_kafka_cluster(self, cluster: GkeCluster) -> KafkaCluster:
        raise ConfigurationError("Kafka clusters are only supported with cloud 'aws'")

    def create_jdbc_database(self, cluster: GkeCluster) -> JdbcDatabase:
        return cloudsql.create_jdbc_database(self.config, cluster)

    def install_prerequisites(self, cluster: GkeCluster,
                              namespace: k8s.core.v1.Namespace) -> List[pulumi.Resource]:
        """License secret and the Marketplace Application CRD"""
        opts = pulumi.ResourceOptions(provider=cluster.k8s_provider, depends_on=[namespace])
        license_secret = k8s.yaml.ConfigGroup(
            "license-secret",
            files=[self.config.operator.license_file_path],
            opts=opts)
        app_crd = k8s.yaml.ConfigGroup(
            "app-crd",
            files=[APP_CRD_URL],
            opts=pulumi.ResourceOptions(provider=cluster.k8s_provider))
        return [license_secret, app_crd]

    def operator_chart_values(self, service_account_name: str) -> dict:
        values = super().operator_chart_values(service_account_name)
        values["provider"] = {"name": GCP}
        values["reportingSecret"] = Defaults.REPORTING_SECRET
        return values


CLOUDS = {
    AWS: AwsCloud,
    GCP: GcpCloud,
}


def select_cloud(config) -> Cloud:
    """
    The one cloud implementation for this stack

    Raises:
        ConfigurationError: unknown cloud selector
    """
    cloud_class = CLOUDS.get(config.cloud)
    if cloud_class is None:
        raise ConfigurationError(
            f"Unsupported value '{config.cloud}' for 'cloud', expected one of: {', '.join(SUPPORTED_CLOUDS)}")
    return cloud_class(config)
