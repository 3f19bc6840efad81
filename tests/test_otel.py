"""
Unit tests for the AWS OpenTelemetry collector
"""

import shutil
import tempfile
import unittest
from unittest.mock import Mock, patch
import sys
import os

# Add the project root to the path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from acp_deploy import otel
from acp_deploy.config import OtelSettings
from acp_deploy.errors import ConfigurationError

PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

COLLECTOR_CONFIG = """
extensions:
  health_check:
    endpoint: 0.0.0.0:13133
receivers:
  zipkin:
    endpoint: 0.0.0.0:9411
"""


class TestParsePort(unittest.TestCase):

    def test_valid_endpoint(self):
        self.assertEqual(otel.parse_port("0.0.0.0:9411", "receivers.zipkin.endpoint", "otel.yaml"), 9411)

    def test_missing_endpoint(self):
        with self.assertRaises(ConfigurationError) as ctx:
            otel.parse_port(None, "receivers.zipkin.endpoint", "otel.yaml")
        self.assertIn("otel.yaml doesn't have 'receivers.zipkin.endpoint' declared!", str(ctx.exception))

    def test_malformed_endpoint(self):
        with self.assertRaises(ConfigurationError) as ctx:
            otel.parse_port("0.0.0.0", "receivers.zipkin.endpoint", "otel.yaml")
        self.assertIn("'host:port' format", str(ctx.exception))

    def test_port_out_of_range(self):
        for port in ("65536", "-1", "zipkin"):
            with self.subTest(port=port):
                with self.assertRaises(ConfigurationError) as ctx:
                    otel.parse_port(f"0.0.0.0:{port}", "extensions.health_check.endpoint", "otel.yaml")
                self.assertIn("between 0 and 65535", str(ctx.exception))


class TestCollectorConfig(unittest.TestCase):

    def setUp(self):
        self.directory = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.directory)

    def write(self, content):
        path = os.path.join(self.directory, "aws-otel-collector-config.yaml")
        with open(path, "w") as f:
            f.write(content)
        return path

    def test_shipped_config(self):
        collector_config = otel.read_collector_config(os.path.join(PROJECT_ROOT, "aws-otel-collector-config.yaml"))
        self.assertEqual(collector_config.zipkin_port, 9411)
        self.assertEqual(collector_config.health_check_port, 13133)

    def test_missing_health_check(self):
        path = self.write("receivers:\n  zipkin:\n    endpoint: 0.0.0.0:9411\n")
        with self.assertRaises(ConfigurationError) as ctx:
            otel.read_collector_config(path)
        self.assertIn("extensions.health_check.endpoint", str(ctx.exception))

    def test_missing_file(self):
        with self.assertRaises(ConfigurationError):
            otel.read_collector_config(os.path.join(self.directory, "missing.yaml"))

    def test_install_collector(self):
        config = Mock()
        config.otel = OtelSettings(
            install=True,
            namespace="aws-otel-collector",
            debug=True,
            config_file=self.write(COLLECTOR_CONFIG),
            xray_region="eu-west-1",
            xray_access_key_id="AKIA",
            xray_secret_access_key="secret",
        )
        with patch('acp_deploy.otel.k8s') as mock_k8s, patch('acp_deploy.otel.pulumi'):
            result = otel.install_collector(config, Mock())

            self.assertEqual(result["endpoint"], "aws-otel-collector-svc.aws-otel-collector.svc.cluster.local")

            _, kwargs = mock_k8s.core.v1.ContainerArgs.call_args
            self.assertEqual(kwargs["image"], "amazon/aws-otel-collector:latest")
            self.assertIn("--log-level=DEBUG", kwargs["args"])

            _, kwargs = mock_k8s.core.v1.ServicePortArgs.call_args
            self.assertEqual(kwargs["port"], 9411)
            _, kwargs = mock_k8s.core.v1.HTTPGetActionArgs.call_args
            self.assertEqual(kwargs["port"], 13133)

            env = {call.kwargs["name"]: call.kwargs["value"] for call in mock_k8s.core.v1.EnvVarArgs.call_args_list}
            self.assertEqual(env["AWS_REGION"], "eu-west-1")
            self.assertEqual(env["AWS_ACCESS_KEY_ID"], "AKIA")


if __name__ == '__main__':
    unittest.main()
