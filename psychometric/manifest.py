# -*- coding: utf-8 -*-
"""
psychometric/manifest.py  •  PSE pipeline

Run provenance.

  run_hash = SHA-256 of canonical JSON {params, input_sha256}

compute_pse.py writes output/run_manifest.json and stamps run_hash into every
CSV it writes; make_pse_figures.py refuses CSVs whose run_hash disagrees with
the manifest, so a figure can never mix tables from different runs.
"""
from __future__ import annotations

import datetime as _dt
import hashlib
import json
import os
import subprocess
from typing import Any, Dict, Mapping, Optional

import numpy as np
import pandas as pd

MANIFEST_NAME = "run_manifest.json"
SCHEMA_VERSION = 1
HASH_BLOCK = 1 << 20


def _timestamp() -> str:
    return _dt.datetime.now(_dt.timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def git_revision(repo_root: str) -> Dict[str, Any]:
    """{"commit": sha or None, "dirty": bool or None} of the checkout at repo_root."""
    rev = {"commit": None, "dirty": None}
    try:
        head = subprocess.run(["git", "rev-parse", "--verify", "HEAD"], cwd=repo_root,
                              capture_output=True, text=True, check=False)
        if head.returncode != 0:
            return rev
        status = subprocess.run(["git", "status", "--porcelain", "--untracked-files=no"], cwd=repo_root,
                                capture_output=True, text=True, check=False)
    except OSError:
        return rev
    rev["commit"] = head.stdout.strip() or None
    if status.returncode == 0:
        rev["dirty"] = bool(status.stdout.strip())
    return rev


def sha256_of_file(path: str, block_size: int = HASH_BLOCK) -> str:
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        block = f.read(block_size)
        while block:
            digest.update(block)
            block = f.read(block_size)
    return digest.hexdigest()


def _jsonable(v: Any) -> Any:
    # numpy values as plain JSON, anything else by its str()
    if isinstance(v, np.generic):
        return v.item()
    if isinstance(v, np.ndarray):
        return v.tolist()
    if isinstance(v, (set, frozenset)):
        return sorted(v, key=str)
    return str(v)


def hash_payload(params: Mapping[str, Any], input_sha256: Optional[str]) -> bytes:
    """Key-sorted, whitespace-free JSON of what determines a run's numbers."""
    doc = {"params": dict(params), "input_sha256": input_sha256}
    return json.dumps(doc, sort_keys=True, separators=(",", ":"), default=_jsonable).encode("utf-8")


def compute_run_hash(params: Mapping[str, Any], input_sha256: Optional[str] = None) -> str:
    return hashlib.sha256(hash_payload(params, input_sha256)).hexdigest()


def read_json(path: str) -> dict:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def write_run_manifest(
    out_dir: str,
    run_hash: str,
    config_path: str,
    params: Mapping[str, Any],
    input_path: str,
    input_sha256: str,
    outputs: Mapping[str, str],
    summary: Mapping[str, Any],
    repo_root: str,
) -> str:
    manifest = {
        "schema_version": SCHEMA_VERSION,
        "run_hash": run_hash,
        "generated_utc": _timestamp(),
        "git": git_revision(repo_root),
        "config_path": os.path.abspath(config_path),
        "config_sha256": sha256_of_file(config_path),
        "input_path": os.path.abspath(input_path),
        "input_sha256": input_sha256,
        "params": dict(params),
        "outputs": dict(outputs),
        "summary": dict(summary),
    }
    path = os.path.join(out_dir, MANIFEST_NAME)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(manifest, f, indent=2, sort_keys=True, ensure_ascii=False, default=_jsonable)
    return path


def load_manifest_run_hash(out_dir: str) -> str:
    man_path = os.path.join(out_dir, MANIFEST_NAME)
    if not os.path.exists(man_path):
        raise RuntimeError(
            f"Missing {man_path}. Rerun psychometric/compute_pse.py before generating figures."
        )
    manifest = read_json(man_path)
    if "run_hash" not in manifest:
        raise RuntimeError(f"{MANIFEST_NAME} missing key 'run_hash'.")
    return str(manifest["run_hash"])


def get_df_run_hash(df: pd.DataFrame, *, name: str) -> str:
    if "run_hash" not in df.columns:
        raise RuntimeError(f"{name} is missing its run_hash column. Regenerate outputs.")
    uniq = df["run_hash"].dropna().astype(str).unique()
    if len(uniq) == 0:
        raise RuntimeError(f"{name} has run_hash column but it is empty.")
    if len(uniq) != 1:
        raise RuntimeError(f"{name} has multiple run_hash values: {uniq}. Mixed outputs detected.")
    return str(uniq[0])


def enforce_run_hash(out_dir: str, dfs: Dict[str, pd.DataFrame]) -> str:
    """Every table must carry the manifest's run_hash. Returns it."""
    run_hash = load_manifest_run_hash(out_dir)
    for name, df in dfs.items():
        h = get_df_run_hash(df, name=name)
        if h != run_hash:
            raise RuntimeError(
                f"run_hash mismatch for {name}:\n"
                f"  {name}.run_hash={h}\n"
                f"  manifest.run_hash={run_hash}\n"
                "Fix: rerun compute_pse.py so all outputs come from one run."
            )
    return run_hash
