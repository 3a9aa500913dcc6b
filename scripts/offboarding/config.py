"""
Offboarding parameters.

Values are resolved in order: built-in defaults, YAML config file,
OFFBOARD_* environment variables, command-line flags. A later source
overrides an earlier one.

Example config file:

    app_name: hello-world
    namespace: essesseff-hello-world-go-template
    env: dev
    repo_id: "123456"
    child_wait_timeout: 300
"""

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

ENVIRONMENTS = ("dev", "qa", "staging", "prod")

ARGOCD_NAMESPACE = "argocd"
NOTIFICATIONS_CONFIGMAP = "argocd-notifications-cm"
NOTIFICATIONS_SECRET = "argocd-notifications-secret"
NOTIFICATIONS_CONTROLLER = "argocd-notifications-controller"

# Shared by every onboarded app; never removed
SHARED_WEBHOOK_URL_KEY = "argocd-webhook-url"
# (kind, name, data key) entries the kubectl client refuses to remove
PROTECTED_KEYS = frozenset([("secret", NOTIFICATIONS_SECRET, SHARED_WEBHOOK_URL_KEY)])

SHARED_TEMPLATES = ("app-sync-status",)
SHARED_TRIGGERS = (
    "on-sync-started",
    "on-sync-succeeded",
    "on-sync-failed",
    "on-deployed",
    "on-health-degraded",
)

ENV_VARS = {
    "app_name": "OFFBOARD_APP_NAME",
    "namespace": "OFFBOARD_NAMESPACE",
    "env": "OFFBOARD_ENV",
    "repo_id": "OFFBOARD_REPO_ID",
    "argocd_namespace": "OFFBOARD_ARGOCD_NAMESPACE",
}

REQUIRED = ("app_name", "namespace", "env", "repo_id")


class ConfigError(ValueError):
    pass


@dataclass(frozen=True)
class OffboardConfig:
    app_name: str
    namespace: str
    env: str
    repo_id: str
    argocd_namespace: str = ARGOCD_NAMESPACE
    parent_wait_timeout: int = 60
    child_wait_timeout: int = 300
    cascade_grace: int = 5
    finalize_grace: int = 10
    dry_run: bool = False

    @property
    def app_of_apps(self) -> str:
        return f"{self.app_name}-argocd-{self.env}"

    @property
    def child_app(self) -> str:
        return f"{self.app_name}-{self.env}"

    @property
    def repo_secrets(self) -> List[str]:
        return [
            f"{self.app_name}-argocd-{self.env}-repo",
            f"{self.app_name}-config-{self.env}-repo",
        ]

    @property
    def webhook_name(self) -> str:
        return f"webhook-{self.repo_id}"

    @property
    def webhook_service_key(self) -> str:
        return f"service.webhook.{self.webhook_name}"

    @property
    def app_secret_key(self) -> str:
        return f"app-secret-{self.repo_id}"

    @property
    def subscription_targets(self) -> List[str]:
        return [self.webhook_name, f"configenvrepoid={self.repo_id}"]


def read_config_file(path: Path) -> Dict[str, Any]:
    """Read offboarding values from a YAML mapping."""
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")

    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"failed to parse {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: expected a mapping at top level")

    known = {f.name for f in fields(OffboardConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigError(f"{path}: unknown keys: {', '.join(unknown)}")
    return data


def read_environment(environ=None) -> Dict[str, str]:
    environ = os.environ if environ is None else environ
    values = {}
    for key, var in ENV_VARS.items():
        value = environ.get(var)
        if value:
            values[key] = value
    return values


def _validate(values: Dict[str, Any]) -> None:
    missing = [k for k in REQUIRED if not values.get(k)]
    if missing:
        flags = ", ".join("--" + k.replace("_", "-") for k in missing)
        raise ConfigError(f"missing required values: {flags}")

    for key in REQUIRED + ("argocd_namespace",):
        value = str(values.get(key, ""))
        if "{{" in value or "}}" in value:
            raise ConfigError(f"{key} still contains a template placeholder: {value}")

    if values["env"] not in ENVIRONMENTS:
        raise ConfigError(
            f"unknown environment {values['env']!r} (expected one of: {', '.join(ENVIRONMENTS)})"
        )

    for key in ("parent_wait_timeout", "child_wait_timeout", "cascade_grace", "finalize_grace"):
        if key in values:
            try:
                values[key] = int(values[key])
            except (TypeError, ValueError) as e:
                raise ConfigError(f"{key} must be an integer number of seconds") from e
            if values[key] < 0:
                raise ConfigError(f"{key} must not be negative")

    if "dry_run" in values and not isinstance(values["dry_run"], bool):
        raise ConfigError(f"dry_run must be true or false, got {values['dry_run']!r}")


def load_config(
    config_file: Optional[Path] = None,
    overrides: Optional[Dict[str, Any]] = None,
    environ=None,
) -> OffboardConfig:
    """Merge all configuration sources into an OffboardConfig."""
    values: Dict[str, Any] = {}
    if config_file is not None:
        values.update(read_config_file(config_file))
    values.update(read_environment(environ))
    if overrides:
        values.update({k: v for k, v in overrides.items() if v is not None})

    _validate(values)
    for key in REQUIRED + ("argocd_namespace",):
        if key in values:
            values[key] = str(values[key])
    return OffboardConfig(**values)
