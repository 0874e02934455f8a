"""Scenario manifest loading.

Manifests are plain multi-document YAML files. They are applied as-is with
kubectl; the suite only reads the handful of numbers it needs to validate
against (replicas, PDB minAvailable, HPA maxReplicas).
"""

import os
from typing import Any, Dict, List, Optional

import yaml


def manifest_path(manifests_dir: str, name: str) -> str:
    path = os.path.join(manifests_dir, name)
    if not os.path.exists(path):
        raise FileNotFoundError(f"manifest not found: {path}")
    return path


def load_manifest(manifests_dir: str, name: str, namespace: Optional[str] = None) -> List[Dict[str, Any]]:
    """Load every document of a manifest file, optionally pinning its namespace."""
    with open(manifest_path(manifests_dir, name)) as f:
        docs = [doc for doc in yaml.safe_load_all(f) if doc]
    if namespace:
        for doc in docs:
            doc.setdefault("metadata", {})["namespace"] = namespace
    return docs


def dump_manifest(docs: List[Dict[str, Any]]) -> str:
    return yaml.safe_dump_all(docs, sort_keys=False)


def find_kind(docs: List[Dict[str, Any]], kind: str) -> Optional[Dict[str, Any]]:
    for doc in docs:
        if doc.get("kind") == kind:
            return doc
    return None


def find_replicas(docs: List[Dict[str, Any]]) -> int:
    """spec.replicas of the first Deployment or StatefulSet."""
    for doc in docs:
        if doc.get("kind") in ("Deployment", "StatefulSet"):
            return int(doc.get("spec", {}).get("replicas", 1))
    raise ValueError("no Deployment or StatefulSet found in manifest")


def find_pdb_min_available(docs: List[Dict[str, Any]]) -> int:
    pdb = find_kind(docs, "PodDisruptionBudget")
    if pdb is None or "minAvailable" not in pdb.get("spec", {}):
        raise ValueError("no PodDisruptionBudget with minAvailable found in manifest")
    return int(pdb["spec"]["minAvailable"])


def find_hpa_max_replicas(docs: List[Dict[str, Any]]) -> int:
    hpa = find_kind(docs, "HorizontalPodAutoscaler")
    if hpa is None:
        raise ValueError("no HorizontalPodAutoscaler found in manifest")
    return int(hpa["spec"]["maxReplicas"])
