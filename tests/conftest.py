import json
import subprocess

import pytest

from offboarding.config import OffboardConfig

SUBSCRIPTIONS = """\
- recipients:
  - webhook-111
  triggers:
  - on-deployed
  selector: configenvrepoid=111
- recipients:
  - webhook-222
  triggers:
  - on-sync-failed
  selector: configenvrepoid=222
- recipients:
  - webhook-333
  triggers:
  - on-health-degraded
  selector: configenvrepoid=333
"""


class FakeCluster:
    """Stands in for `run_command`, answering kubectl invocations from in-memory state."""

    def __init__(self, objects=None, data=None, labelled=None, cascade=True, wait_rc=0):
        self.objects = set(objects or ())
        # (kind, name) -> {key: value}
        self.data = {k: dict(v) for k, v in (data or {}).items()}
        # (kind, namespace) -> names carrying the app label
        self.labelled = {k: list(v) for k, v in (labelled or {}).items()}
        self.cascade = cascade
        self.wait_rc = wait_rc
        self.calls = []
        self.patches = []

    def __call__(self, cmd, check=True, capture_output=True, **kwargs):
        self.calls.append(list(cmd))
        rc, stdout = self._dispatch(cmd[1:])
        if check and rc != 0:
            raise subprocess.CalledProcessError(rc, cmd, output=stdout, stderr="error")
        return subprocess.CompletedProcess(cmd, rc, stdout=stdout, stderr="")

    def _dispatch(self, args):
        verb = args[0]
        if verb in ("get", "delete") and "-l" in args:
            kind, ns = args[1], args[args.index("-n") + 1]
            names = self.labelled.get((kind, ns), [])
            if verb == "get":
                return 0, "".join(f"{kind}/{n}\n" for n in names)
            self.labelled[(kind, ns)] = []
            return 0, "".join(f'{kind} "{n}" deleted\n' for n in names)
        if verb == "get":
            kind, name, ns = args[1], args[2], args[4]
            if (kind, name, ns) not in self.objects:
                return 1, ""
            if "-o" in args:
                output = args[args.index("-o") + 1]
                if output == "json":
                    return 0, json.dumps({"data": self.data.get((kind, name), {})})
                field = output.rstrip("}").rsplit(".", 1)[-1]
                return 0, self.data.get((kind, name), {}).get(field, "")
            return 0, ""
        if verb == "delete":
            kind, name, ns = args[1], args[2], args[4]
            self.objects.discard((kind, name, ns))
            if self.cascade and kind == "application" and "-argocd-" in name:
                child = name.replace("-argocd-", "-")
                self.objects.discard(("application", child, ns))
            return 0, ""
        if verb == "wait":
            return self.wait_rc, ""
        if verb == "patch":
            kind, name = args[1], args[2]
            store = self.data.setdefault((kind, name), {})
            if "--patch-file" in args:
                with open(args[args.index("--patch-file") + 1]) as f:
                    patch = json.load(f)
                self.patches.append(patch)
                store.update(patch["data"])
                return 0, ""
            patch = json.loads(args[args.index("-p") + 1])
            self.patches.append(patch)
            key = patch[0]["path"].split("/", 2)[2].replace("~1", "/").replace("~0", "~")
            if key not in store:
                return 1, ""
            del store[key]
            return 0, ""
        if verb == "rollout":
            return 0, ""
        raise AssertionError(f"unexpected kubectl call: {args}")

    def verbs(self):
        return [c[1] for c in self.calls]

    def mutating_calls(self):
        return [c for c in self.calls if c[1] in ("delete", "patch", "rollout")]


@pytest.fixture
def cfg():
    return OffboardConfig(
        app_name="hello-world",
        namespace="hello-ns",
        env="dev",
        repo_id="222",
    )


@pytest.fixture
def populated_cluster():
    ns = "argocd"
    return FakeCluster(
        objects={
            ("application", "hello-world-argocd-dev", ns),
            ("application", "hello-world-dev", ns),
            ("secret", "hello-world-argocd-dev-repo", ns),
            ("secret", "hello-world-config-dev-repo", ns),
            ("configmap", "argocd-notifications-cm", ns),
            ("secret", "argocd-notifications-secret", ns),
        },
        data={
            ("configmap", "argocd-notifications-cm"): {
                "service.webhook.webhook-222": "url: https://example.invalid/hook",
                "service.webhook.webhook-111": "url: https://example.invalid/other",
                "subscriptions": SUBSCRIPTIONS,
            },
            ("secret", "argocd-notifications-secret"): {
                "argocd-webhook-url": "aHR0cHM6Ly9leGFtcGxlLmludmFsaWQ=",
                "app-secret-222": "c2VjcmV0",
                "app-secret-111": "b3RoZXI=",
            },
        },
        labelled={("configmap", "hello-ns"): ["hello-world-config"]},
    )


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    sleeps = []
    monkeypatch.setattr("offboarding.steps.time.sleep", sleeps.append)
    return sleeps
