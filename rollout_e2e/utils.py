"""kubectl wrappers and namespace helpers."""

import json
import os
import secrets
import subprocess
import time
from typing import Any, Dict, List, Optional

from .runlog import RunLog

NAMESPACE_CHARSET = "abcdefghijklmnopqrstuvwxyz0123456789"


class KubectlError(Exception):
    """kubectl failed, timed out, or printed something that is not JSON."""

    def __init__(self, args: List[str], message: str, returncode: Optional[int] = None):
        self.args_list = args
        self.returncode = returncode
        super().__init__(f"kubectl {' '.join(args)}: {message}")

    @property
    def not_found(self) -> bool:
        return "NotFound" in str(self) or "not found" in str(self)


def run_command(cmd: List[str], cwd: Optional[str] = None, timeout: float = 300,
                env: Optional[dict] = None, input_text: Optional[str] = None) -> subprocess.CompletedProcess:
    """Run shell command and return result.

    Args:
        cmd: Command and arguments as list
        cwd: Working directory for command
        timeout: Timeout in seconds
        env: Environment variables (uses os.environ.copy() if None)
        input_text: Optional text written to stdin

    Returns:
        CompletedProcess instance; a timeout is reported as returncode 124
    """
    try:
        return subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=timeout,
            cwd=cwd,
            env=env or os.environ.copy(),
            input=input_text,
        )
    except subprocess.TimeoutExpired:
        return subprocess.CompletedProcess(
            args=cmd,
            returncode=124,
            stdout="",
            stderr=f"Command timed out after {timeout}s"
        )


def generate_namespace_name(prefix: str = "test-ns-") -> str:
    return prefix + "".join(secrets.choice(NAMESPACE_CHARSET) for _ in range(4))


class KubeCommand:
    """Execute kubectl commands and parse JSON output."""

    def __init__(self, namespace: str = "test-ns", context: Optional[str] = None,
                 kubeconfig: Optional[str] = None, timeout: float = 30):
        self.namespace = namespace
        self.context = context
        self.kubeconfig = kubeconfig
        self.timeout = timeout

    def _base(self) -> List[str]:
        cmd = ["kubectl"]
        if self.kubeconfig:
            cmd += ["--kubeconfig", self.kubeconfig]
        if self.context:
            cmd += ["--context", self.context]
        return cmd

    def run(self, args: List[str], timeout: Optional[float] = None,
            input_text: Optional[str] = None) -> subprocess.CompletedProcess:
        return run_command(self._base() + args, timeout=timeout or self.timeout, input_text=input_text)

    def run_checked(self, args: List[str], timeout: Optional[float] = None,
                    input_text: Optional[str] = None) -> str:
        result = self.run(args, timeout=timeout, input_text=input_text)
        if result.returncode != 0:
            raise KubectlError(args, (result.stderr or "").strip() or "command failed", result.returncode)
        return result.stdout

    def run_json(self, args: List[str], timeout: Optional[float] = None) -> Any:
        stdout = self.run_checked(args + ["-o", "json"], timeout=timeout)
        try:
            return json.loads(stdout)
        except json.JSONDecodeError as e:
            raise KubectlError(args, f"invalid JSON output: {e}")

    def get_pods(self, label: str = "", field_selector: str = "",
                 timeout: Optional[float] = None) -> List[Dict]:
        args = ["get", "pods", "-n", self.namespace]
        if label:
            args += ["-l", label]
        if field_selector:
            args += ["--field-selector", field_selector]
        return self.run_json(args, timeout=timeout).get("items", [])

    def get_nodes(self, label: str = "") -> List[Dict]:
        args = ["get", "nodes"]
        if label:
            args += ["-l", label]
        return self.run_json(args).get("items", [])

    def get_node(self, name: str) -> Dict:
        return self.run_json(["get", "node", name])

    def get_workload(self, kind: str, name: str, timeout: Optional[float] = None) -> Dict:
        return self.run_json(["get", kind, name, "-n", self.namespace], timeout=timeout)

    def apply_manifest(self, manifest_yaml: str) -> str:
        return self.run_checked(["apply", "-n", self.namespace, "-f", "-"], input_text=manifest_yaml)

    def replace(self, obj: Dict) -> str:
        return self.run_checked(["replace", "-n", self.namespace, "--field-manager", "e2e-test", "-f", "-"],
                                input_text=json.dumps(obj))

    def delete(self, kind: str, name: str, wait: bool = False) -> str:
        return self.run_checked(["delete", kind, name, "-n", self.namespace, f"--wait={str(wait).lower()}"])

    def cluster_info(self) -> bool:
        result = self.run(["cluster-info"], timeout=10)
        return result.returncode == 0


class NamespaceHelper:
    """Create the per-suite namespace and tear it down afterwards."""

    def __init__(self, kube: KubeCommand, log: RunLog):
        self.kube = kube
        self.log = log

    def exists(self) -> bool:
        try:
            self.kube.run_json(["get", "namespace", self.kube.namespace])
        except KubectlError as e:
            if e.not_found:
                return False
            raise
        return True

    def ensure(self) -> bool:
        """Create the namespace if missing. Returns True when it was created."""
        self.log.info(f"=== Ensuring {self.kube.namespace} exists ===")
        if self.exists():
            return False
        self.log.info(f"Creating {self.kube.namespace} namespace")
        self.kube.run_checked(["create", "namespace", self.kube.namespace])
        return True

    def delete_and_wait(self, timeout: float = 60, interval: float = 0.5) -> bool:
        """Delete the namespace and poll until the API reports it gone."""
        name = self.kube.namespace
        self.log.info(f"=== Final namespace cleanup: {name} ===")
        try:
            self.kube.run_checked(["delete", "namespace", name, "--wait=false"])
        except KubectlError as e:
            if not e.not_found:
                self.log.error(f"Namespace cleanup failed: {e}")
                return False

        deadline = time.monotonic() + timeout
        while True:
            try:
                if not self.exists():
                    return True
            except KubectlError as e:
                self.log.warn(f"Temporary error checking namespace: {e}")

            if time.monotonic() >= deadline:
                self.log.error(f"could not destroy '{name}' namespace after {timeout:.0f}s")
                return False
            time.sleep(interval)
