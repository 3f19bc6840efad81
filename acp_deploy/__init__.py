"""
Akka Cloud Platform infrastructure
Kubernetes, Kafka and JDBC storage for Akka services on AWS or GCP
"""
