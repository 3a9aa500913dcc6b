"""
Thin wrapper around the kubectl CLI.

Read-only calls (get, wait) always run. Mutating calls are only logged when
the client is in dry-run mode.
"""

import json
import os
import shlex
import shutil
import subprocess
import tempfile

from .config import PROTECTED_KEYS
from .log import log_info


def run_command(cmd, check=True, capture_output=True, **kwargs):
    """Run a command and return the result."""
    result = subprocess.run(
        cmd,
        shell=isinstance(cmd, str),
        capture_output=capture_output,
        text=True,
        check=check,
        **kwargs
    )
    return result


def check_kubectl():
    """Check if kubectl is on PATH."""
    return shutil.which("kubectl") is not None


def json_pointer(*parts):
    """Build an RFC 6901 JSON pointer from path segments."""
    escaped = [p.replace("~", "~0").replace("/", "~1") for p in parts]
    return "/" + "/".join(escaped)


class Kubectl:
    """kubectl client used by the offboarding steps."""

    def __init__(self, dry_run=False, runner=run_command, protected_keys=PROTECTED_KEYS):
        self.dry_run = dry_run
        self._run = runner
        self.protected_keys = frozenset(protected_keys)

    def _mutate(self, args, check=True):
        cmd = ["kubectl"] + args
        if self.dry_run:
            log_info(f"[DRY RUN] {' '.join(shlex.quote(a) for a in cmd)}")
            return None
        return self._run(cmd, check=check, capture_output=True)

    def exists(self, kind, name, namespace):
        result = self._run(
            ["kubectl", "get", kind, name, "-n", namespace],
            check=False,
            capture_output=True,
        )
        return result.returncode == 0

    def delete(self, kind, name, namespace):
        self._mutate(["delete", kind, name, "-n", namespace, "--ignore-not-found=true"])

    def wait_for_delete(self, kind, name, namespace, timeout):
        """Block until the object is gone. Returns False on timeout or error."""
        if self.dry_run:
            return True
        result = self._run(
            [
                "kubectl", "wait", "--for=delete", f"{kind}/{name}",
                "-n", namespace, f"--timeout={timeout}s",
            ],
            check=False,
            capture_output=True,
        )
        return result.returncode == 0

    def get_jsonpath(self, kind, name, namespace, jsonpath):
        result = self._run(
            ["kubectl", "get", kind, name, "-n", namespace, "-o", f"jsonpath={jsonpath}"],
            check=False,
            capture_output=True,
        )
        if result.returncode != 0:
            return ""
        return result.stdout

    def has_key(self, kind, name, namespace, key):
        """Whether the object's `data` map holds `key`."""
        result = self._run(
            ["kubectl", "get", kind, name, "-n", namespace, "-o", "json"],
            check=False,
            capture_output=True,
        )
        if result.returncode != 0:
            return False
        try:
            obj = json.loads(result.stdout)
        except json.JSONDecodeError:
            return False
        return key in (obj.get("data") or {})

    def remove_key(self, kind, name, namespace, key):
        """Remove `data.<key>` with a JSON patch. Returns False if the key was absent."""
        if (kind, name, key) in self.protected_keys:
            raise ValueError(f"refusing to remove shared key {key!r} from {kind}/{name}")

        if self.dry_run and not self.has_key(kind, name, namespace, key):
            return False

        patch = [{"op": "remove", "path": json_pointer("data", key)}]
        result = self._mutate(
            ["patch", kind, name, "-n", namespace, "--type=json", "-p", json.dumps(patch)],
            check=False,
        )
        if result is None:
            return True
        return result.returncode == 0

    def merge_patch(self, kind, name, namespace, patch):
        """Apply a merge patch from a temporary patch file."""
        if self.dry_run:
            self._mutate(["patch", kind, name, "-n", namespace, "--type", "merge", "--patch-file", "<patch>"])
            return

        with tempfile.NamedTemporaryFile(mode="w", suffix=".json", delete=False) as tmp_file:
            json.dump(patch, tmp_file)
            tmp_file_path = tmp_file.name

        try:
            self._mutate(
                ["patch", kind, name, "-n", namespace, "--type", "merge", "--patch-file", tmp_file_path]
            )
        finally:
            os.unlink(tmp_file_path)

    def rollout_restart(self, deployment, namespace):
        self._mutate(["rollout", "restart", "deploy", deployment, "-n", namespace])

    def delete_by_label(self, kind, namespace, selector):
        """Delete every `kind` matching `selector`. Returns how many objects matched."""
        if self.dry_run:
            listed = self._run(
                ["kubectl", "get", kind, "-n", namespace, "-l", selector, "-o", "name"],
                check=False,
                capture_output=True,
            )
            self._mutate(["delete", kind, "-n", namespace, "-l", selector, "--ignore-not-found=true"])
            if listed.returncode != 0:
                return 0
            return len([line for line in listed.stdout.splitlines() if line.strip()])

        result = self._mutate(["delete", kind, "-n", namespace, "-l", selector, "--ignore-not-found=true"])
        # "No resources found" goes to stderr; each deletion is one stdout line
        return len([line for line in result.stdout.splitlines() if line.rstrip().endswith("deleted")])
