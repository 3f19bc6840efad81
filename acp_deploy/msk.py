"""
Amazon MSK Kafka cluster
Brokers share the cluster VPC and accept all traffic from the worker nodes
"""

import json

import pulumi
import pulumi_aws as aws

from .model import EksCluster, KafkaCluster

# MSK firehose role to write broker logs to the S3 bucket
FIREHOSE_ASSUME_ROLE_POLICY = json.dumps({
    "Version": "2012-10-17",
    "Statement": [{
        "Action": "sts:AssumeRole",
        "Principal": {"Service": "firehose.amazonaws.com"},
        "Effect": "Allow",
        "Sid": ""
    }]
})


def create_broker_security_group(name: str, cluster: EksCluster) -> aws.ec2.SecurityGroup:
    """
    Security group for the brokers, open to every worker node security group.
    The group ids are only meaningful once the node groups exist, so the edge is explicit.
    """
    return aws.ec2.SecurityGroup(
        name,
        vpc_id=cluster.vpc.id,
        description="MSK brokers",
        ingress=[aws.ec2.SecurityGroupIngressArgs(
            description="EKS NodeGroups ingress",
            from_port=0,
            to_port=0,
            protocol="-1",
            security_groups=cluster.worker_security_group_ids,
        )],
        egress=[aws.ec2.SecurityGroupEgressArgs(
            from_port=0,
            to_port=0,
            protocol="-1",
            cidr_blocks=["0.0.0.0/0"],
        )],
        opts=pulumi.ResourceOptions(depends_on=cluster.node_groups))


def create_log_sinks(config) -> dict:
    """CloudWatch log group, S3 bucket and Firehose stream receiving the broker logs"""
    log_group = aws.cloudwatch.LogGroup(config.name("msk-lg"))
    log_bucket = aws.s3.Bucket(
        config.name("msk-bucket"),
        # deleted on `pulumi destroy` even when it still holds logs
        force_destroy=True)

    firehose_role = aws.iam.Role(config.name("msk-firehose-role"),
                                 assume_role_policy=FIREHOSE_ASSUME_ROLE_POLICY)
    stream = aws.kinesis.FirehoseDeliveryStream(
        config.name("msk-stream"),
        destination="extended_s3",
        extended_s3_configuration=aws.kinesis.FirehoseDeliveryStreamExtendedS3ConfigurationArgs(
            role_arn=firehose_role.arn,
            bucket_arn=log_bucket.arn,
        ),
        # MSK only delivers to streams carrying this tag
        tags={"LogDeliveryEnabled": "placeholder"})

    return {
        "log_group": log_group,
        "bucket": log_bucket,
        "stream": stream,
    }


def create_kafka_cluster(config, cluster: EksCluster) -> KafkaCluster:
    """
    Create an MSK cluster next to the EKS cluster

    Args:
        config: Stack configuration
        cluster: The EKS cluster whose workers connect to the brokers

    Returns:
        KafkaCluster handle with the connection strings
    """
    settings = config.msk
    msk_name = config.name("msk")

    security_group = create_broker_security_group(config.name("msk-sg"), cluster)
    kms = aws.kms.Key(config.name("kms"), description=msk_name)
    sinks = create_log_sinks(config)

    kafka = aws.msk.Cluster(
        msk_name,
        kafka_version=settings.kafka_version,
        number_of_broker_nodes=settings.number_of_broker_nodes,
        broker_node_group_info=aws.msk.ClusterBrokerNodeGroupInfoArgs(
            instance_type=settings.instance_type,
            client_subnets=cluster.public_subnet_ids,
            security_groups=[security_group.id],
            storage_info=aws.msk.ClusterBrokerNodeGroupInfoStorageInfoArgs(
                ebs_storage_info=aws.msk.ClusterBrokerNodeGroupInfoStorageInfoEbsStorageInfoArgs(
                    volume_size=settings.ebs_volume_size,
                ),
            ),
        ),
        encryption_info=aws.msk.ClusterEncryptionInfoArgs(
            encryption_at_rest_kms_key_arn=kms.arn,
            encryption_in_transit=aws.msk.ClusterEncryptionInfoEncryptionInTransitArgs(
                client_broker=settings.encryption_in_transit,
            ),
        ),
        open_monitoring=aws.msk.ClusterOpenMonitoringArgs(
            prometheus=aws.msk.ClusterOpenMonitoringPrometheusArgs(
                jmx_exporter=aws.msk.ClusterOpenMonitoringPrometheusJmxExporterArgs(
                    enabled_in_broker=True,
                ),
                node_exporter=aws.msk.ClusterOpenMonitoringPrometheusNodeExporterArgs(
                    enabled_in_broker=True,
                ),
            ),
        ),
        logging_info=aws.msk.ClusterLoggingInfoArgs(
            broker_logs=aws.msk.ClusterLoggingInfoBrokerLogsArgs(
                cloudwatch_logs=aws.msk.ClusterLoggingInfoBrokerLogsCloudwatchLogsArgs(
                    enabled=True,
                    log_group=sinks["log_group"].name,
                ),
                firehose=aws.msk.ClusterLoggingInfoBrokerLogsFirehoseArgs(
                    enabled=True,
                    delivery_stream=sinks["stream"].name,
                ),
                s3=aws.msk.ClusterLoggingInfoBrokerLogsS3Args(
                    enabled=True,
                    bucket=sinks["bucket"].id,
                    prefix="logs/msk-",
                ),
            ),
        ),
        opts=pulumi.ResourceOptions(depends_on=cluster.node_groups))

    return KafkaCluster(
        zookeeper_connect_string=kafka.zookeeper_connect_string,
        bootstrap_brokers=kafka.bootstrap_brokers,
        bootstrap_brokers_tls=kafka.bootstrap_brokers_tls,
    )
