"""Typed desired/observed records, one per entity kind."""

from taikun_reconciler.models.backup import BackupCredential, BackupPolicy
from taikun_reconciler.models.base import Entity, Lockable, Record, parse_model
from taikun_reconciler.models.billing import (
    BillingCredential,
    BillingRule,
    OrganizationBillingRuleAttachment,
    RuleLabel,
    ShowbackCredential,
    ShowbackRule,
)
from taikun_reconciler.models.cloud_credential import (
    AwsCredential,
    AzureCredential,
    CloudCredential,
    CloudCredentialBase,
    GcpCredential,
    OpenStackCredential,
    ProxmoxCredential,
    VsphereCredential,
)
from taikun_reconciler.models.kubeconfig import Kubeconfig
from taikun_reconciler.models.organization import Organization, ProjectUserAttachment, User
from taikun_reconciler.models.profiles import (
    AccessProfile,
    AlertingProfile,
    KubernetesProfile,
    PolicyProfile,
    StandaloneProfile,
)
from taikun_reconciler.models.project import Project, Server, Vm
from taikun_reconciler.models.slack import SlackConfiguration

__all__ = [
    "AccessProfile",
    "AlertingProfile",
    "AwsCredential",
    "AzureCredential",
    "BackupCredential",
    "BackupPolicy",
    "BillingCredential",
    "BillingRule",
    "CloudCredential",
    "CloudCredentialBase",
    "Entity",
    "GcpCredential",
    "Kubeconfig",
    "KubernetesProfile",
    "Lockable",
    "OpenStackCredential",
    "Organization",
    "OrganizationBillingRuleAttachment",
    "PolicyProfile",
    "Project",
    "ProjectUserAttachment",
    "ProxmoxCredential",
    "Record",
    "RuleLabel",
    "Server",
    "ShowbackCredential",
    "ShowbackRule",
    "SlackConfiguration",
    "StandaloneProfile",
    "User",
    "Vm",
    "VsphereCredential",
    "parse_model",
]
