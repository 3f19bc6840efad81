"""
Unit tests for the GCP variant
GKE cluster, Cloud SQL, and the operator prerequisites on GCP
"""

import unittest
from unittest.mock import Mock, patch
import sys
import os

# Add the project root to the path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from acp_deploy import cloudsql, gke
from acp_deploy.clouds import APP_CRD_URL, AwsCloud, GcpCloud, select_cloud
from acp_deploy.config import CloudSqlSettings, Defaults, GkeSettings, OperatorSettings
from acp_deploy.errors import ConfigurationError
from acp_deploy.kubeconfig import render_gke_kubeconfig
from acp_deploy.model import GkeCluster


def make_config():
    config = Mock()
    config.cloud = "gcp"
    config.stack = "dev"
    config.name = lambda suffix: f"acp-dev-{suffix}"
    config.db_password_length = 16
    config.gke = GkeSettings(
        project="my-project",
        zone="us-central1-c",
        region="us-central1",
        cluster_name="acp-dev-gke",
        node_machine_type="n1-standard-4",
        initial_node_count=3,
        min_node_count=1,
        max_node_count=7,
    )
    config.cloudsql = CloudSqlSettings(create_instance=True, tier="db-f1-micro", database_version="POSTGRES_13")
    config.operator = OperatorSettings(
        install=True, version="1.1.22", namespace="lightbend", license_file_path="license.yaml")
    return config


def make_cluster():
    return GkeCluster(
        kubeconfig=Mock(),
        name="acp-dev-gke",
        k8s_provider=Mock(),
        cluster=Mock(),
        node_pool=Mock(),
        network=gke.network_id("my-project"),
    )


class TestGkeCluster(unittest.TestCase):

    def test_cluster_structure(self):
        with patch('acp_deploy.gke.gcp') as mock_gcp, \
                patch('acp_deploy.gke.k8s') as mock_k8s, \
                patch('acp_deploy.gke.pulumi') as mock_pulumi, \
                patch('acp_deploy.gke.gke_kubeconfig') as mock_kubeconfig:
            cluster = gke.create_kubernetes_cluster(make_config())

            self.assertEqual(cluster.network, "projects/my-project/global/networks/default")
            self.assertEqual(cluster.node_pool, mock_gcp.container.NodePool.return_value)
            self.assertEqual(cluster.kubeconfig, mock_kubeconfig.return_value)

            _, kwargs = mock_gcp.container.Cluster.call_args
            self.assertEqual(kwargs["networking_mode"], "VPC_NATIVE")
            self.assertTrue(kwargs["remove_default_node_pool"])

            _, kwargs = mock_k8s.Provider.call_args
            self.assertEqual(kwargs["namespace"], "lightbend")
            mock_pulumi.ResourceOptions.assert_any_call(depends_on=[mock_gcp.container.NodePool.return_value])

    def test_kubeconfig_uses_auth_plugin(self):
        kubeconfig = render_gke_kubeconfig("my-project", "us-central1-c", "acp-dev-gke", "1.2.3.4", "CA")
        self.assertIn("gke-gcloud-auth-plugin", kubeconfig)
        self.assertIn("server: https://1.2.3.4", kubeconfig)
        self.assertIn("my-project_us-central1-c_acp-dev-gke", kubeconfig)


class TestCloudSql(unittest.TestCase):

    def test_private_instance(self):
        with patch('acp_deploy.cloudsql.gcp') as mock_gcp, \
                patch('acp_deploy.cloudsql.pulumi') as mock_pulumi, \
                patch('acp_deploy.cloudsql.create_database_password') as mock_password:
            result = cloudsql.create_jdbc_database(make_config(), make_cluster())

            connection = mock_gcp.servicenetworking.Connection.return_value
            mock_pulumi.ResourceOptions.assert_called_once_with(depends_on=[connection])
            _, kwargs = mock_gcp.sql.DatabaseInstanceSettingsIpConfigurationArgs.call_args
            self.assertFalse(kwargs["ipv4_enabled"])

            instance = mock_gcp.sql.DatabaseInstance.return_value
            self.assertEqual(result.endpoint, instance.private_ip_address)
            self.assertEqual(result.connection_name, instance.connection_name)
            self.assertEqual(result.password, mock_password.return_value.result)


class TestGcpCloud(unittest.TestCase):

    def test_prerequisites(self):
        with patch('acp_deploy.clouds.k8s') as mock_k8s, patch('acp_deploy.clouds.pulumi'):
            resources = GcpCloud(make_config()).install_prerequisites(make_cluster(), Mock())

            self.assertEqual(len(resources), 2)
            files = [call.kwargs["files"] for call in mock_k8s.yaml.ConfigGroup.call_args_list]
            self.assertIn(["license.yaml"], files)
            self.assertIn([APP_CRD_URL], files)

    def test_operator_chart_values(self):
        values = GcpCloud(make_config()).operator_chart_values("acp-dev-sa")
        self.assertEqual(values["serviceAccount"]["name"], "acp-dev-sa")
        self.assertEqual(values["provider"]["name"], "gcp")
        self.assertEqual(values["reportingSecret"], Defaults.REPORTING_SECRET)

    def test_kafka_not_supported(self):
        with self.assertRaises(ConfigurationError):
            GcpCloud(make_config()).create_kafka_cluster(make_cluster())


class TestSelectCloud(unittest.TestCase):

    def test_selects_by_name(self):
        config = make_config()
        self.assertIsInstance(select_cloud(config), GcpCloud)
        config.cloud = "aws"
        self.assertIsInstance(select_cloud(config), AwsCloud)
        self.assertEqual(AwsCloud(config).operator_chart_values("sa"), {"serviceAccount": {"name": "sa"}})

    def test_unknown_cloud(self):
        config = make_config()
        config.cloud = "azure"
        with self.assertRaises(ConfigurationError):
            select_cloud(config)


if __name__ == '__main__':
    unittest.main()
