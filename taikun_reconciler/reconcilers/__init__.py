"""Entity reconcilers, keyed by kind name."""

from typing import Dict, Type

from taikun_reconciler.errors import ValidationError
from taikun_reconciler.reconcilers.backup import BackupCredentialReconciler, BackupPolicyReconciler
from taikun_reconciler.reconcilers.base import Reconciler
from taikun_reconciler.reconcilers.billing import (
    BillingCredentialReconciler,
    BillingRuleReconciler,
    OrganizationBillingRuleAttachmentReconciler,
    ShowbackCredentialReconciler,
    ShowbackRuleReconciler,
)
from taikun_reconciler.reconcilers.cloud_credential import CloudCredentialReconciler
from taikun_reconciler.reconcilers.kubeconfig import KubeconfigReconciler
from taikun_reconciler.reconcilers.organization import (
    OrganizationReconciler,
    ProjectUserAttachmentReconciler,
    UserReconciler,
)
from taikun_reconciler.reconcilers.profiles import (
    AccessProfileReconciler,
    AlertingProfileReconciler,
    KubernetesProfileReconciler,
    PolicyProfileReconciler,
    StandaloneProfileReconciler,
)
from taikun_reconciler.reconcilers.project import ProjectReconciler
from taikun_reconciler.reconcilers.slack import SlackConfigurationReconciler
from taikun_reconciler.session import Session

REGISTRY: Dict[str, Type[Reconciler]] = {
    cls.kind: cls
    for cls in (
        AccessProfileReconciler,
        AlertingProfileReconciler,
        KubernetesProfileReconciler,
        PolicyProfileReconciler,
        StandaloneProfileReconciler,
        BillingCredentialReconciler,
        BillingRuleReconciler,
        OrganizationBillingRuleAttachmentReconciler,
        ShowbackCredentialReconciler,
        ShowbackRuleReconciler,
        BackupCredentialReconciler,
        BackupPolicyReconciler,
        CloudCredentialReconciler,
        OrganizationReconciler,
        UserReconciler,
        ProjectUserAttachmentReconciler,
        SlackConfigurationReconciler,
        KubeconfigReconciler,
        ProjectReconciler,
    )
}


def reconciler_for(kind: str, session: Session) -> Reconciler:
    try:
        cls = REGISTRY[kind]
    except KeyError:
        raise ValidationError(f"unknown kind {kind!r}", "kind") from None
    return cls(session)


__all__ = ["REGISTRY", "Reconciler", "reconciler_for"]
