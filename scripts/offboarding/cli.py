"""
Offboard a deployment from Argo CD.

Deletes the deployment's App-of-Apps and child Application, its Argo CD
repository secrets, its notification webhook service, subscription and app
secret, then restarts the notifications controller and deletes the
deployment's labelled ConfigMaps and Secrets.

The namespace itself is left in place.
"""

import argparse
import subprocess
import sys
from pathlib import Path

from .config import (
    ENVIRONMENTS,
    SHARED_TEMPLATES,
    SHARED_TRIGGERS,
    SHARED_WEBHOOK_URL_KEY,
    ConfigError,
    load_config,
)
from .kubectl import Kubectl, check_kubectl
from .log import banner, log_error
from .steps import StepOutcome, offboard

CHANGED = (StepOutcome.DELETED, StepOutcome.REMOVED, StepOutcome.RESTARTED)


def build_parser():
    parser = argparse.ArgumentParser(
        prog="offboard-deployment",
        description="Remove a deployment's Argo CD applications, secrets and notification entries",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Preview what would be removed
  offboard-deployment --app-name hello-world --namespace hello-ns --env dev --repo-id 123456 --dry-run

  # Read values from a YAML file
  offboard-deployment --config offboard-hello-world-dev.yaml
        """
    )
    parser.add_argument("--config", type=Path, help="YAML file with offboarding values")
    parser.add_argument("--app-name", dest="app_name", help="Application name (e.g. hello-world)")
    parser.add_argument("--namespace", help="Namespace the deployment runs in")
    parser.add_argument("--env", choices=ENVIRONMENTS, help="Deployment environment")
    parser.add_argument("--repo-id", dest="repo_id", help="GitHub repository ID used in notification keys")
    parser.add_argument(
        "--argocd-namespace",
        dest="argocd_namespace",
        help="Namespace Argo CD is installed in (default: argocd)",
    )
    parser.add_argument(
        "--dry-run",
        dest="dry_run",
        action="store_true",
        default=None,
        help="Show what would be done without changing the cluster",
    )
    return parser


def print_report(cfg, summary):
    print()
    banner("✅ Deployment offboarding complete")
    print()
    print("Cleaned up:")
    for rec in summary.records:
        mark = "✓" if rec.outcome in CHANGED else "-"
        print(f"  {mark} {rec.desc}: {rec.outcome.value}")
    print()
    print("Preserved (shared across apps):")
    print(f"  • Webhook URL: {SHARED_WEBHOOK_URL_KEY}")
    print(f"  • Template: {', '.join(SHARED_TEMPLATES)}")
    print(f"  • Triggers: {', '.join(SHARED_TRIGGERS)}")
    print()
    print(f"Note: Namespace '{cfg.namespace}' still exists.")


def main(argv=None):
    """Main offboarding function."""
    args = build_parser().parse_args(argv)

    try:
        cfg = load_config(
            config_file=args.config,
            overrides={
                "app_name": args.app_name,
                "namespace": args.namespace,
                "env": args.env,
                "repo_id": args.repo_id,
                "argocd_namespace": args.argocd_namespace,
                "dry_run": args.dry_run,
            },
        )
    except ConfigError as e:
        log_error(str(e))
        return 1

    if not check_kubectl():
        log_error("kubectl is required but not installed.")
        return 1

    banner(
        f"Offboarding Deployment: {cfg.child_app}",
        f"Namespace: {cfg.namespace}",
        f"GitHub Repo ID: {cfg.repo_id}",
    )
    print()
    print("App-of-Apps Pattern:")
    print(f"  Parent: {cfg.app_of_apps}")
    print(f"  Child:  {cfg.child_app}")
    if cfg.dry_run:
        print()
        print("🔍 DRY RUN - no changes will be made")

    try:
        summary = offboard(Kubectl(dry_run=cfg.dry_run), cfg)
    except subprocess.CalledProcessError as e:
        cmd = " ".join(e.cmd) if isinstance(e.cmd, list) else e.cmd
        log_error(f"Command failed: {cmd}")
        if e.stderr:
            log_error(e.stderr.strip())
        return 1

    print_report(cfg, summary)
    return 0


if __name__ == "__main__":
    sys.exit(main())
