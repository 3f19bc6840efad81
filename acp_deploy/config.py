"""
Configuration management for the Akka Cloud Platform deployment
Every value is either an explicit stack setting or one of the defaults below
"""

from dataclasses import dataclass
from typing import Any, Callable, Optional

import pulumi

from .errors import ConfigurationError
from .naming import name_prefix, resource_name

AWS = "aws"
GCP = "gcp"
SUPPORTED_CLOUDS = (AWS, GCP)


class Namespaces:
    LIGHTBEND = "lightbend"
    AWS_OTEL_COLLECTOR = "aws-otel-collector"
    # Prometheus and Grafana go to the default namespace, the datasource URL relies on it
    TELEMETRY = "default"


class Versions:
    # https://docs.aws.amazon.com/eks/latest/userguide/kubernetes-versions.html
    KUBERNETES = "1.30"

    # https://github.com/lightbend/akka-platform-operator/releases
    AKKA_PLATFORM_OPERATOR = "1.1.22"

    # https://docs.aws.amazon.com/msk/latest/developerguide/supported-kafka-versions.html
    KAFKA = "3.6.0"

    # https://developer.lightbend.com/docs/telemetry/current/project/release-notes.html
    CINNAMON = "2.16.1"

    METRICS_SERVER = "v0.4.4"


class Charts:
    AKKA_OPERATOR = "akka-operator"
    AKKA_OPERATOR_REPO = "https://lightbend.github.io/akka-operator-helm/"
    PROMETHEUS = "prometheus"
    PROMETHEUS_REPO = "https://prometheus-community.github.io/helm-charts"
    GRAFANA = "grafana"
    GRAFANA_REPO = "https://grafana.github.io/helm-charts"


class Defaults:
    VPC_CIDR = "10.0.0.0/16"
    NUMBER_OF_AVAILABILITY_ZONES = 2

    NODE_INSTANCE_TYPE = "t2.medium"
    NODE_DESIRED_CAPACITY = 3
    NODE_MIN_SIZE = 1
    NODE_MAX_SIZE = 4

    # https://docs.aws.amazon.com/msk/latest/developerguide/msk-create-cluster.html#broker-instance-types
    KAFKA_NUMBER_OF_BROKER_NODES = 2
    KAFKA_INSTANCE_TYPE = "kafka.m5.large"
    KAFKA_EBS_VOLUME_SIZE = 1000
    KAFKA_ENCRYPTION_IN_TRANSIT = "TLS_PLAINTEXT"

    RDS_INSTANCE_CLASS = "db.r5.large"
    RDS_NUMBER_OF_INSTANCES = 2

    DB_PASSWORD_LENGTH = 16
    # Printable ASCII only, and the data stores reject '/', '@', '"' and ' '
    DB_PASSWORD_SPECIAL_CHARS = "!#$%&*()-_=+[]{}<>:?"

    GKE_NODE_MACHINE_TYPE = "n1-standard-4"
    GKE_INITIAL_NODE_COUNT = 3
    GKE_MIN_NODE_COUNT = 1
    GKE_MAX_NODE_COUNT = 7

    CLOUDSQL_TIER = "db-f1-micro"
    CLOUDSQL_VERSION = "POSTGRES_13"

    # GCP Marketplace reporting secret shipped in the license file
    REPORTING_SECRET = "akka-cloud-platform-1-license"

    HELM_TIMEOUT = "30m"
    OTEL_COLLECTOR_CONFIG_FILE = "aws-otel-collector-config.yaml"


@dataclass(frozen=True)
class EksSettings:
    vpc_cidr: str
    number_of_availability_zones: int
    kubernetes_version: str
    node_instance_type: str
    node_desired_capacity: int
    node_min_size: int
    node_max_size: int
    create_oidc_provider: bool


@dataclass(frozen=True)
class MskSettings:
    create_cluster: bool
    kafka_version: str
    number_of_broker_nodes: int
    instance_type: str
    ebs_volume_size: int
    encryption_in_transit: str


@dataclass(frozen=True)
class RdsSettings:
    create_cluster: bool
    instance_class: str
    number_of_instances: int


@dataclass(frozen=True)
class GkeSettings:
    project: str
    zone: str
    region: str
    cluster_name: str
    node_machine_type: str
    initial_node_count: int
    min_node_count: int
    max_node_count: int


@dataclass(frozen=True)
class CloudSqlSettings:
    create_instance: bool
    tier: str
    database_version: str


@dataclass(frozen=True)
class OperatorSettings:
    install: bool
    version: str
    namespace: str
    license_file_path: Optional[str]


@dataclass(frozen=True)
class TelemetrySettings:
    install_backends: bool
    install_dashboards: bool
    cinnamon_version: str

    @property
    def dashboards_file(self) -> str:
        return f"cinnamon-grafana-prometheus-{self.cinnamon_version}.zip"

    @property
    def dashboards_url(self) -> str:
        return f"https://downloads.lightbend.com/cinnamon/grafana/{self.dashboards_file}"


@dataclass(frozen=True)
class OtelSettings:
    install: bool
    namespace: str
    debug: bool
    config_file: str
    xray_region: Optional[str]
    xray_access_key_id: Optional[str]
    xray_secret_access_key: Any


class Config:
    """Stack configuration, read once at the start of the pass"""

    def __init__(self, config_factory: Callable[..., Any] = None, stack: str = None):
        factory = config_factory or pulumi.Config
        self.config = factory()
        self.aws_config = factory("aws")
        self.gcp_config = factory("gcp")

        self.stack = stack or pulumi.get_stack()
        self.prefix = name_prefix(self.stack)

        self.cloud = self.get("cloud", AWS)
        if self.cloud not in SUPPORTED_CLOUDS:
            raise ConfigurationError(
                f"Unsupported value '{self.cloud}' for 'cloud', expected one of: {', '.join(SUPPORTED_CLOUDS)}")

        self.helm_timeout = self.get("helm.timeout", Defaults.HELM_TIMEOUT)
        self.db_password_length = self.get_int("db.password.length", Defaults.DB_PASSWORD_LENGTH)
        if self.db_password_length < 1:
            raise ConfigurationError(
                f"'db.password.length' must be a positive number, got {self.db_password_length}")
        self.install_metrics_server = self.get_bool("metricsServer.install", self.cloud == AWS)

        self.eks = self._eks_settings() if self.cloud == AWS else None
        self.msk = self._msk_settings() if self.cloud == AWS else None
        self.rds = self._rds_settings() if self.cloud == AWS else None
        self.gke = self._gke_settings() if self.cloud == GCP else None
        self.cloudsql = self._cloudsql_settings() if self.cloud == GCP else None

        if self.cloud == GCP and self.get_bool("msk.createCluster", False):
            raise ConfigurationError("'msk.createCluster' is only supported with cloud 'aws'")

        self.operator = OperatorSettings(
            install=self.get_bool("akka.operator.install", True),
            version=self.get("akka.operator.version", Versions.AKKA_PLATFORM_OPERATOR),
            namespace=self.get("akka.operator.namespace", Namespaces.LIGHTBEND),
            # set with `pulumi config set license-file-path <path>`
            license_file_path=self.require("license-file-path") if self.cloud == GCP else None,
        )

        self.telemetry = TelemetrySettings(
            install_backends=self.get_bool("akka.operator.installTelemetryBackends", True),
            install_dashboards=self.get_bool("telemetry.dashboards.install", True),
            cinnamon_version=Versions.CINNAMON,
        )

        self.otel = self._otel_settings()

    # Accessors

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        value = self.config.get(key)
        return default if value is None else value

    def get_int(self, key: str, default: Optional[int] = None) -> Optional[int]:
        value = self.config.get_int(key)
        return default if value is None else value

    def get_bool(self, key: str, default: Optional[bool] = None) -> Optional[bool]:
        value = self.config.get_bool(key)
        return default if value is None else value

    def require(self, key: str) -> str:
        value = self.config.get(key)
        if value is None:
            raise ConfigurationError(f"Missing required configuration value '{key}'")
        return value

    def require_secret(self, key: str) -> Any:
        value = self.config.get_secret(key)
        if value is None:
            raise ConfigurationError(f"Missing required configuration value '{key}'")
        return value

    def name(self, suffix: str) -> str:
        """Stack-scoped resource name"""
        return resource_name(self.prefix, suffix)

    # Feature flags

    @property
    def deploy_kafka_cluster(self) -> bool:
        return self.msk is not None and self.msk.create_cluster

    @property
    def deploy_jdbc_database(self) -> bool:
        if self.cloud == AWS:
            return self.rds.create_cluster
        return self.cloudsql.create_instance

    # Settings groups

    def _eks_settings(self) -> EksSettings:
        return EksSettings(
            vpc_cidr=self.get("vpc.cidr", Defaults.VPC_CIDR),
            number_of_availability_zones=self.get_int(
                "vpc.numberOfAvailabilityZones", Defaults.NUMBER_OF_AVAILABILITY_ZONES),
            kubernetes_version=self.get("eks.kubernetes.version", Versions.KUBERNETES),
            node_instance_type=self.get("eks.kubernetes.node.instanceType", Defaults.NODE_INSTANCE_TYPE),
            node_desired_capacity=self.get_int(
                "eks.kubernetes.node.desiredCapacity", Defaults.NODE_DESIRED_CAPACITY),
            node_min_size=self.get_int("eks.kubernetes.node.minSize", Defaults.NODE_MIN_SIZE),
            node_max_size=self.get_int("eks.kubernetes.node.maxSize", Defaults.NODE_MAX_SIZE),
            create_oidc_provider=self.get_bool("eks.createOidcProvider", True),
        )

    def _msk_settings(self) -> MskSettings:
        return MskSettings(
            create_cluster=self.get_bool("msk.createCluster", True),
            kafka_version=self.get("msk.kafka.version", Versions.KAFKA),
            number_of_broker_nodes=self.get_int(
                "msk.kafka.numberOfBrokerNodes", Defaults.KAFKA_NUMBER_OF_BROKER_NODES),
            instance_type=self.get(
                "msk.kafka.brokerNodeGroupInfo.instanceType", Defaults.KAFKA_INSTANCE_TYPE),
            ebs_volume_size=self.get_int(
                "msk.kafka.brokerNodeGroupInfo.ebsVolumeSize", Defaults.KAFKA_EBS_VOLUME_SIZE),
            encryption_in_transit=self.get(
                "msk.kafka.encryptionInfo.encryptionInTransit", Defaults.KAFKA_ENCRYPTION_IN_TRANSIT),
        )

    def _rds_settings(self) -> RdsSettings:
        return RdsSettings(
            create_cluster=self.get_bool("rds.createCluster", True),
            instance_class=self.get("rds.instanceClass", Defaults.RDS_INSTANCE_CLASS),
            number_of_instances=self.get_int("rds.numberOfInstances", Defaults.RDS_NUMBER_OF_INSTANCES),
        )

    def _gke_settings(self) -> GkeSettings:
        project = self.gcp_config.get("project")
        zone = self.gcp_config.get("zone")
        if project is None:
            raise ConfigurationError("Missing required configuration value 'gcp:project'")
        if zone is None:
            raise ConfigurationError("Missing required configuration value 'gcp:zone'")
        region = self.gcp_config.get("region") or zone.rsplit("-", 1)[0]

        return GkeSettings(
            project=project,
            zone=zone,
            region=region,
            cluster_name=self.get("cluster-name", self.name("gke")),
            node_machine_type=self.get("node-machine-type", Defaults.GKE_NODE_MACHINE_TYPE),
            initial_node_count=self.get_int("initial-node-count", Defaults.GKE_INITIAL_NODE_COUNT),
            min_node_count=self.get_int("autoscaling-min-node-count", Defaults.GKE_MIN_NODE_COUNT),
            max_node_count=self.get_int("autoscaling-max-node-count", Defaults.GKE_MAX_NODE_COUNT),
        )

    def _cloudsql_settings(self) -> CloudSqlSettings:
        return CloudSqlSettings(
            create_instance=self.get_bool("cloudsql.createInstance", True),
            tier=self.get("db-instance-tier", Defaults.CLOUDSQL_TIER),
            database_version=self.get("db-version", Defaults.CLOUDSQL_VERSION),
        )

    def _otel_settings(self) -> OtelSettings:
        install = self.get_bool("otel.collector.install", False)
        xray_region = self.get("xray.region", self.aws_config.get("region"))
        access_key_id = None
        secret_access_key = None

        if install:
            pulumi.log.info(f"AWS X-Ray region: {xray_region}")
            if xray_region is None:
                raise ConfigurationError("Missing required configuration value 'xray.region'")
            access_key_id = self.require("xray.access-key-id")
            secret_access_key = self.require_secret("xray.secret-access-key")

        return OtelSettings(
            install=install,
            namespace=self.get("otel.collector.namespace", Namespaces.AWS_OTEL_COLLECTOR),
            # enables debug loglevel for the collector
            debug=self.get_bool("otel.collector.debug", False),
            config_file=self.get("otel.collector.configFile", Defaults.OTEL_COLLECTOR_CONFIG_FILE),
            xray_region=xray_region,
            xray_access_key_id=access_key_id,
            xray_secret_access_key=secret_access_key,
        )


def get_config() -> Config:
    """Read the stack configuration for this pass"""
    return Config()
