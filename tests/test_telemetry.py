"""
Unit tests for the telemetry backends
Dashboard download and the fallback to a vanilla Grafana
"""

import io
import shutil
import tempfile
import unittest
import zipfile
from pathlib import Path
from unittest.mock import MagicMock, Mock, patch
import sys
import os

import requests

# Add the project root to the path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from acp_deploy import dashboards, telemetry
from acp_deploy.config import TelemetrySettings
from acp_deploy.dashboards import Dashboard, dashboard_name, fetch_dashboards
from acp_deploy.errors import DashboardError

URL = "https://downloads.lightbend.com/cinnamon/grafana/cinnamon-grafana-prometheus-2.16.1.zip"


def zip_bytes(entries):
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        for name, content in entries.items():
            zf.writestr(name, content)
    return buffer.getvalue()


def damaged_zip_bytes():
    """Deflated archive with an intact index and a corrupted entry payload"""
    name = "dashboards/Akka Actors.json"
    content = "{" + ",".join(f'"panel{i}": {{"id": {i * 7919 % 1000}, "title": "Panel {i}"}}' for i in range(500)) + "}"
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        zf.writestr(name, content)
    data = bytearray(buffer.getvalue())
    # local file header is 30 bytes plus the file name, the deflated payload follows
    payload = 30 + len(name)
    for offset in range(payload + 2, payload + 12):
        data[offset] ^= 0xFF
    return bytes(data)


def mock_response(status_code=200, content=b""):
    response = Mock(status_code=status_code)
    response.iter_content.return_value = [content]
    get = MagicMock()
    get.return_value.__enter__.return_value = response
    return get


def make_config(install_dashboards=True):
    config = Mock()
    config.helm_timeout = "30m"
    config.telemetry = TelemetrySettings(
        install_backends=True, install_dashboards=install_dashboards, cinnamon_version="2.16.1")
    return config


class TestDashboards(unittest.TestCase):

    def setUp(self):
        self.directory = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.directory)

    def test_dashboard_name(self):
        self.assertEqual(dashboard_name("grafana/Akka Actors.json"), "akka-actors")
        self.assertEqual(Dashboard("akka-actors", "{}").filename, "akka-actors.json")

    def test_download_and_read(self):
        archive = zip_bytes({
            "dashboards/Akka Actors.json": '{"title": "Akka Actors"}',
            "dashboards/Akka Streams.json": '{"title": "Akka Streams"}',
            "README.md": "not a dashboard",
        })
        with patch('acp_deploy.dashboards.requests.get', mock_response(content=archive)), \
                patch('acp_deploy.dashboards.pulumi'):
            result = fetch_dashboards(URL, self.directory)

        self.assertEqual(sorted(d.name for d in result), ["akka-actors", "akka-streams"])
        self.assertTrue((Path(self.directory) / "cinnamon-grafana-prometheus-2.16.1.zip").exists())

    def test_unexpected_status(self):
        with patch('acp_deploy.dashboards.requests.get', mock_response(status_code=404)):
            with self.assertRaises(DashboardError) as ctx:
                fetch_dashboards(URL, self.directory)
        self.assertIn("Expected HTTP Status 200 but got 404", str(ctx.exception))

    def test_corrupt_archive(self):
        with patch('acp_deploy.dashboards.requests.get', mock_response(content=b"not a zip")):
            with self.assertRaises(DashboardError):
                fetch_dashboards(URL, self.directory)

    def test_damaged_entry(self):
        with patch('acp_deploy.dashboards.requests.get', mock_response(content=damaged_zip_bytes())), \
                patch('acp_deploy.dashboards.pulumi'):
            with self.assertRaises(DashboardError):
                fetch_dashboards(URL, self.directory)

    def test_damaged_entry_falls_back(self):
        with patch('acp_deploy.dashboards.requests.get', mock_response(content=damaged_zip_bytes())), \
                patch('acp_deploy.dashboards.pulumi'), \
                patch('acp_deploy.telemetry.fetch_dashboards', lambda url: fetch_dashboards(url, self.directory)), \
                patch('acp_deploy.telemetry.k8s') as mock_k8s, \
                patch('acp_deploy.telemetry.pulumi') as mock_pulumi:
            result = telemetry.install_backends(make_config(), Mock())

        self.assertEqual(result["dashboards"], [])
        mock_k8s.core.v1.ConfigMap.assert_not_called()
        self.assertEqual(mock_pulumi.log.warn.call_count, 2)

    def test_dashboard_names_unique(self):
        archive = zip_bytes({
            "a/Akka Actors.json": "{}",
            "b/akka_actors.json": "{}",
            "c/akka-actors-2.json": "{}",
            "d/Akka Streams.json": "{}",
        })
        with patch('acp_deploy.dashboards.requests.get', mock_response(content=archive)), \
                patch('acp_deploy.dashboards.pulumi'):
            result = fetch_dashboards(URL, self.directory)

        names = [d.name for d in result]
        self.assertEqual(len(names), 4)
        self.assertEqual(len(set(names)), 4)
        self.assertIn("akka-actors", names)
        self.assertIn("akka-streams", names)

    def test_dashboard_without_usable_name_skipped(self):
        archive = zip_bytes({
            "!!!.json": "{}",
            "Akka Actors.json": "{}",
        })
        with patch('acp_deploy.dashboards.requests.get', mock_response(content=archive)), \
                patch('acp_deploy.dashboards.pulumi'):
            result = fetch_dashboards(URL, self.directory)

        self.assertEqual([d.name for d in result], ["akka-actors"])


class TestGrafanaValues(unittest.TestCase):

    def test_datasource_only(self):
        values = telemetry.grafana_values([])
        self.assertIn("datasources", values)
        self.assertNotIn("dashboardsConfigMaps", values)

    def test_with_dashboards(self):
        values = telemetry.grafana_values([Dashboard("akka-actors", "{}")])
        self.assertEqual(values["dashboardsConfigMaps"], {"akka-actors": "akka-actors"})
        providers = values["dashboardProviders"]["dashboardproviders.yaml"]["providers"]
        self.assertEqual(providers[0]["options"]["path"], "/var/lib/grafana/dashboards/akka-actors")


class TestInstallBackends(unittest.TestCase):

    def install(self, config, fetch):
        with patch('acp_deploy.telemetry.k8s') as mock_k8s, \
                patch('acp_deploy.telemetry.pulumi') as mock_pulumi, \
                patch('acp_deploy.telemetry.fetch_dashboards', fetch):
            result = telemetry.install_backends(config, Mock())
            return result, mock_k8s, mock_pulumi

    def test_dashboards_published_before_grafana(self):
        fetch = Mock(return_value=[Dashboard("akka-actors", "{}"), Dashboard("akka-streams", "{}")])
        result, mock_k8s, mock_pulumi = self.install(make_config(), fetch)

        fetch.assert_called_once_with(URL)
        self.assertEqual(mock_k8s.core.v1.ConfigMap.call_count, 2)
        self.assertEqual(len(result["dashboards"]), 2)
        self.assertEqual(mock_k8s.helm.v3.Release.call_count, 2)
        grafana_options = mock_pulumi.ResourceOptions.call_args_list[-1].kwargs
        self.assertEqual(len(grafana_options["depends_on"]), 3)

    def test_download_failure_falls_back(self):
        fetch = Mock(side_effect=DashboardError("Expected HTTP Status 200 but got 404"))
        result, mock_k8s, mock_pulumi = self.install(make_config(), fetch)

        mock_k8s.core.v1.ConfigMap.assert_not_called()
        self.assertEqual(result["dashboards"], [])
        self.assertEqual(mock_pulumi.log.warn.call_count, 2)
        _, kwargs = mock_k8s.helm.v3.Release.call_args
        self.assertNotIn("dashboardsConfigMaps", kwargs["values"])

    def test_network_failure_falls_back(self):
        fetch = Mock(side_effect=requests.ConnectionError("unreachable"))
        result, mock_k8s, _ = self.install(make_config(), fetch)

        self.assertEqual(result["dashboards"], [])
        self.assertEqual(mock_k8s.helm.v3.Release.call_count, 2)

    def test_dashboards_disabled(self):
        fetch = Mock()
        result, _, _ = self.install(make_config(install_dashboards=False), fetch)

        fetch.assert_not_called()
        self.assertEqual(result["dashboards"], [])


if __name__ == '__main__':
    unittest.main()
