"""
Kubeconfig rendering for EKS and GKE clusters
Both delegate authentication to the cloud CLI, no static credentials end up in the file
"""

import pulumi


def render_eks_kubeconfig(endpoint: str, ca_data: str, cluster_name: str) -> str:
    return f"""apiVersion: v1
clusters:
- cluster:
    certificate-authority-data: {ca_data}
    server: {endpoint}
  name: {cluster_name}
contexts:
- context:
    cluster: {cluster_name}
    user: {cluster_name}
  name: {cluster_name}
current-context: {cluster_name}
kind: Config
users:
- name: {cluster_name}
  user:
    exec:
      apiVersion: client.authentication.k8s.io/v1beta1
      command: aws
      args:
        - eks
        - get-token
        - --cluster-name
        - {cluster_name}
"""


def render_gke_kubeconfig(project: str, zone: str, cluster_name: str, endpoint: str, ca_data: str) -> str:
    context = f"{project}_{zone}_{cluster_name}"
    return f"""apiVersion: v1
clusters:
- cluster:
    certificate-authority-data: {ca_data}
    server: https://{endpoint}
  name: {context}
contexts:
- context:
    cluster: {context}
    user: {context}
  name: {context}
current-context: {context}
kind: Config
preferences: {{}}
users:
- name: {context}
  user:
    exec:
      apiVersion: client.authentication.k8s.io/v1beta1
      command: gke-gcloud-auth-plugin
      installHint: Install gke-gcloud-auth-plugin for use with kubectl
      provideClusterInfo: true
"""


def eks_kubeconfig(cluster) -> pulumi.Output:
    return pulumi.Output.all(
        cluster.endpoint,
        cluster.certificate_authority.data,
        cluster.name
    ).apply(lambda args: render_eks_kubeconfig(args[0], args[1], args[2]))


def gke_kubeconfig(cluster, project: str, zone: str) -> pulumi.Output:
    return pulumi.Output.all(
        cluster.name,
        cluster.endpoint,
        cluster.master_auth.cluster_ca_certificate
    ).apply(lambda args: render_gke_kubeconfig(project, zone, args[0], args[1], args[2]))
