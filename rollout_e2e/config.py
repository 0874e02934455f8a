"""Suite configuration.

CONFIGURATION:
    1. Copy .env.example to .env
    2. Edit .env with your cluster details
    3. Either export it (export $(cat .env | xargs)) or let `rollout-e2e run`
       load it with --env-file

ALL configuration values use environment variables with fallback defaults.
"""

import os
from dataclasses import dataclass, field
from typing import List, Optional

from .utils import generate_namespace_name

PACKAGED_MANIFESTS = os.path.join(os.path.dirname(os.path.abspath(__file__)), "manifests")


def _env_list(name: str, default: str = "") -> List[str]:
    value = os.environ.get(name, default)
    return [item.strip() for item in value.split(",") if item.strip()]


def _env_namespace() -> str:
    value = os.environ.get("NAMESPACE", "auto")
    return generate_namespace_name() if value == "auto" else value


def load_env_file(env_file: str) -> int:
    """Merge KEY=VALUE lines from env_file into os.environ. Returns count loaded."""
    loaded_count = 0
    with open(env_file) as f:
        for line in f:
            line = line.strip()
            if line and not line.startswith('#') and '=' in line:
                key, value = line.split('=', 1)
                os.environ[key.strip()] = value.strip().strip('"').strip("'")
                loaded_count += 1
    return loaded_count


@dataclass
class SuiteConfig:
    """Cluster access, timing and output settings for the e2e suite.

    All values are loaded from environment variables with sensible defaults.
    """

    # ── Cluster access ───────────────────────────────────────────────
    namespace: str = field(default_factory=_env_namespace)
    kube_context: Optional[str] = field(
        default_factory=lambda: os.environ.get("KUBE_CONTEXT") or None
    )
    kubeconfig: Optional[str] = field(
        default_factory=lambda: os.environ.get("KUBECONFIG") or None
    )

    # ── Rollout monitoring (seconds) ─────────────────────────────────
    poll_interval: float = field(
        default_factory=lambda: float(os.environ.get("POLL_INTERVAL", "5"))
    )
    rollout_timeout: float = field(
        default_factory=lambda: float(os.environ.get("ROLLOUT_TIMEOUT", "300"))
    )
    call_timeout: float = field(
        default_factory=lambda: float(os.environ.get("KUBECTL_TIMEOUT", "30"))
    )

    # ── Scenario timing (seconds) ────────────────────────────────────
    schedule_wait: float = field(
        default_factory=lambda: float(os.environ.get("SCHEDULE_WAIT", "30"))
    )
    scale_timeout: float = field(
        default_factory=lambda: float(os.environ.get("SCALE_TIMEOUT", "300"))
    )
    namespace_delete_timeout: float = field(
        default_factory=lambda: float(os.environ.get("NAMESPACE_DELETE_TIMEOUT", "60"))
    )
    pdb_check_interval: float = field(
        default_factory=lambda: float(os.environ.get("PDB_CHECK_INTERVAL", "15"))
    )
    pdb_deletion_samples: int = field(
        default_factory=lambda: int(os.environ.get("PDB_DELETION_SAMPLES", "10"))
    )

    # ── Suite behaviour ──────────────────────────────────────────────
    # Test ids whose failure is reported but does not fail the run
    allowed_to_fail: List[str] = field(
        default_factory=lambda: _env_list("ALLOWED_TO_FAIL")
    )
    keep_namespace: bool = field(
        default_factory=lambda: os.environ.get("KEEP_NAMESPACE", "false").lower() in ("1", "true", "yes")
    )
    manifests_dir: str = field(
        default_factory=lambda: os.environ.get("MANIFESTS_DIR", PACKAGED_MANIFESTS)
    )
    results_dir: str = field(default_factory=lambda: os.environ.get(
        "RESULTS_DIR",
        os.path.join(os.getcwd(), "results")
    ))

    def __post_init__(self):
        if self.poll_interval <= 0:
            raise ValueError(f"POLL_INTERVAL must be positive, got {self.poll_interval}")
        if self.rollout_timeout <= 0:
            raise ValueError(f"ROLLOUT_TIMEOUT must be positive, got {self.rollout_timeout}")

    def is_allowed_to_fail(self, test_id: str) -> bool:
        return test_id in self.allowed_to_fail

    def apply_overrides(self, overrides: dict):
        """Apply a flat mapping (from a YAML config file) onto matching fields."""
        for key, value in (overrides or {}).items():
            if not hasattr(self, key):
                raise ValueError(f"unknown config key: {key}")
            setattr(self, key, value)
        self.__post_init__()
