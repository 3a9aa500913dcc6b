"""
The offboarding procedure.

Each step is independent of the others' outcome and is safe to re-run:
objects that are already gone are reported as not found rather than
treated as errors.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import List

from . import subscriptions
from .config import (
    NOTIFICATIONS_CONFIGMAP,
    NOTIFICATIONS_CONTROLLER,
    NOTIFICATIONS_SECRET,
    SHARED_WEBHOOK_URL_KEY,
    OffboardConfig,
)
from .kubectl import Kubectl
from .log import log_info, log_step, log_warn


class StepOutcome(str, Enum):
    DELETED = "deleted"
    NOT_FOUND = "not-found"
    REMOVED = "removed"
    ABSENT = "absent"
    RESTARTED = "restarted"


@dataclass(frozen=True)
class StepRecord:
    desc: str
    outcome: StepOutcome


@dataclass
class OffboardSummary:
    records: List[StepRecord] = field(default_factory=list)

    def add(self, desc: str, outcome: StepOutcome) -> StepOutcome:
        self.records.append(StepRecord(desc=desc, outcome=outcome))
        return outcome

    def outcome_of(self, desc: str):
        for rec in self.records:
            if rec.desc == desc:
                return rec.outcome
        return None


def delete_parent_application(kube: Kubectl, cfg: OffboardConfig, summary: OffboardSummary) -> StepOutcome:
    name = cfg.app_of_apps
    desc = f"application/{name}"
    log_step(f"Deleting parent Argo CD Application (app-of-apps): {name}...")

    if not kube.exists("application", name, cfg.argocd_namespace):
        log_warn(f"⚠ Parent application {name} not found (may already be deleted)")
        return summary.add(desc, StepOutcome.NOT_FOUND)

    kube.delete("application", name, cfg.argocd_namespace)
    log_info(f"✓ Parent application {name} deleted")

    log_info("Waiting for parent application to finalize...")
    if not kube.wait_for_delete("application", name, cfg.argocd_namespace, cfg.parent_wait_timeout):
        log_warn(f"Parent application {name} did not finalize within {cfg.parent_wait_timeout}s, continuing")
    return summary.add(desc, StepOutcome.DELETED)


def ensure_child_application_removed(kube: Kubectl, cfg: OffboardConfig, summary: OffboardSummary) -> StepOutcome:
    name = cfg.child_app
    desc = f"application/{name}"
    log_step(f"Verifying child application {name} is removed...")
    # Give Argo CD a moment to cascade delete
    time.sleep(cfg.cascade_grace)

    if not kube.exists("application", name, cfg.argocd_namespace):
        log_info(f"✓ Child application {name} automatically removed by parent deletion")
        return summary.add(desc, StepOutcome.NOT_FOUND)

    log_warn(f"⚠ Child application {name} still exists, deleting explicitly...")
    kube.delete("application", name, cfg.argocd_namespace)
    if not kube.wait_for_delete("application", name, cfg.argocd_namespace, cfg.child_wait_timeout):
        log_warn(f"Child application {name} did not finalize within {cfg.child_wait_timeout}s, continuing")
    log_info(f"✓ Child application {name} deleted")
    return summary.add(desc, StepOutcome.DELETED)


def wait_for_resource_cleanup(cfg: OffboardConfig) -> None:
    log_step("Waiting for Argo CD to finalize resource cleanup...")
    time.sleep(cfg.finalize_grace)


def delete_repository_secrets(kube: Kubectl, cfg: OffboardConfig, summary: OffboardSummary) -> List[StepOutcome]:
    log_step("Cleaning up Argo CD repository secrets...")
    outcomes = []
    for name in cfg.repo_secrets:
        desc = f"secret/{name}"
        if kube.exists("secret", name, cfg.argocd_namespace):
            kube.delete("secret", name, cfg.argocd_namespace)
            log_info(f"✓ Deleted secret '{name}'")
            outcomes.append(summary.add(desc, StepOutcome.DELETED))
        else:
            log_warn(f"⚠ Secret '{name}' not found")
            outcomes.append(summary.add(desc, StepOutcome.NOT_FOUND))
    return outcomes


def remove_subscription(kube: Kubectl, cfg: OffboardConfig, summary: OffboardSummary) -> StepOutcome:
    desc = f"subscription/{cfg.webhook_name}"
    log_info(f"Removing webhook subscription for configenvrepoid={cfg.repo_id}...")

    current = kube.get_jsonpath(
        "configmap", NOTIFICATIONS_CONFIGMAP, cfg.argocd_namespace, "{.data.subscriptions}"
    )
    if not current.strip() or current.strip() == "null":
        log_warn("⚠ No subscriptions found in ConfigMap")
        return summary.add(desc, StepOutcome.ABSENT)

    filtered = subscriptions.filter_subscriptions(current, cfg.subscription_targets)
    removed = subscriptions.count_blocks(current) - subscriptions.count_blocks(filtered)
    if filtered == current:
        log_info(f"  (no subscription for '{cfg.webhook_name}' present)")
        return summary.add(desc, StepOutcome.ABSENT)

    kube.merge_patch(
        "configmap",
        NOTIFICATIONS_CONFIGMAP,
        cfg.argocd_namespace,
        {"data": {"subscriptions": filtered}},
    )
    log_info(f"✓ Removed {removed} subscription(s) for '{cfg.webhook_name}'")
    return summary.add(desc, StepOutcome.REMOVED)


def clean_notifications_configmap(kube: Kubectl, cfg: OffboardConfig, summary: OffboardSummary) -> StepOutcome:
    log_step("Cleaning up Argo CD Notifications ConfigMap entries...")

    if not kube.exists("configmap", NOTIFICATIONS_CONFIGMAP, cfg.argocd_namespace):
        log_warn(f"⚠ {NOTIFICATIONS_CONFIGMAP} not found in {cfg.argocd_namespace} namespace")
        return summary.add(f"configmap/{NOTIFICATIONS_CONFIGMAP}", StepOutcome.NOT_FOUND)

    log_info("Removing repo-specific webhook service...")
    key = cfg.webhook_service_key
    if kube.remove_key("configmap", NOTIFICATIONS_CONFIGMAP, cfg.argocd_namespace, key):
        log_info(f"  ✓ Removed '{key}'")
        summary.add(f"configmap key {key}", StepOutcome.REMOVED)
    else:
        log_info(f"  ({key} not found or already removed)")
        summary.add(f"configmap key {key}", StepOutcome.ABSENT)

    outcome = remove_subscription(kube, cfg, summary)

    log_info("✓ Notification ConfigMap entries cleaned up")
    log_info("  Note: Shared templates and triggers are preserved for other apps")
    return outcome


def clean_notifications_secret(kube: Kubectl, cfg: OffboardConfig, summary: OffboardSummary) -> StepOutcome:
    log_step("Cleaning up Argo CD Notifications Secret entries...")

    if not kube.exists("secret", NOTIFICATIONS_SECRET, cfg.argocd_namespace):
        log_warn(f"⚠ {NOTIFICATIONS_SECRET} not found in {cfg.argocd_namespace} namespace")
        return summary.add(f"secret/{NOTIFICATIONS_SECRET}", StepOutcome.NOT_FOUND)

    log_info(f"  ⊘ Preserving shared '{SHARED_WEBHOOK_URL_KEY}'")

    key = cfg.app_secret_key
    if kube.remove_key("secret", NOTIFICATIONS_SECRET, cfg.argocd_namespace, key):
        log_info(f"  ✓ Removed '{key}'")
        outcome = summary.add(f"secret key {key}", StepOutcome.REMOVED)
    else:
        log_warn(f"  ⚠ '{key}' not found or already removed")
        outcome = summary.add(f"secret key {key}", StepOutcome.ABSENT)

    log_info("✓ Notification Secret entries cleaned up")
    return outcome


def restart_notifications_controller(kube: Kubectl, cfg: OffboardConfig, summary: OffboardSummary) -> StepOutcome:
    log_step("🔄 Restarting notifications controller to reload configuration...")
    kube.rollout_restart(NOTIFICATIONS_CONTROLLER, cfg.argocd_namespace)
    return summary.add(f"deployment/{NOTIFICATIONS_CONTROLLER}", StepOutcome.RESTARTED)


def delete_labelled_resources(kube: Kubectl, cfg: OffboardConfig, summary: OffboardSummary) -> None:
    log_step("Cleaning up deployment-specific ConfigMaps and Secrets...")
    selector = f"app={cfg.app_name}"
    for kind in ("configmap", "secret"):
        desc = f"{kind} -l {selector} -n {cfg.namespace}"
        count = kube.delete_by_label(kind, cfg.namespace, selector)
        if count:
            log_info(f"✓ Deleted {count} {kind}(s) labelled {selector}")
            summary.add(desc, StepOutcome.DELETED)
        else:
            log_info(f"  (no {kind} labelled {selector} in {cfg.namespace})")
            summary.add(desc, StepOutcome.NOT_FOUND)


def offboard(kube: Kubectl, cfg: OffboardConfig) -> OffboardSummary:
    """Run every offboarding step in order."""
    summary = OffboardSummary()
    delete_parent_application(kube, cfg, summary)
    ensure_child_application_removed(kube, cfg, summary)
    wait_for_resource_cleanup(cfg)
    delete_repository_secrets(kube, cfg, summary)
    clean_notifications_configmap(kube, cfg, summary)
    clean_notifications_secret(kube, cfg, summary)
    restart_notifications_controller(kube, cfg, summary)
    delete_labelled_resources(kube, cfg, summary)
    return summary
