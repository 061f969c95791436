# -*- coding: utf-8 -*-
"""
psychometric/params.py  •  PSE pipeline

YAML parameters (key `pse`).

Precedence:
  1) explicit `config_path` / --config
  2) env var PSE_CONFIG
  3) psychometric/default_params.yml (fallback)

Relative paths are tried against the working directory, the repo root, then
psychometric/.
Defaults are applied with setdefault and become part of the effective params
that are hashed into run_hash.
"""
from __future__ import annotations

import os
from typing import Any, Dict, Optional, Tuple

import yaml

PKG = os.path.dirname(os.path.abspath(__file__))
ROOT = os.path.abspath(os.path.join(PKG, os.pardir))
ENV_CONFIG = "PSE_CONFIG"


def _resolve_params_path(config_path: Optional[str] = None) -> str:
    if config_path is None:
        config_path = os.getenv(ENV_CONFIG)

    if config_path is None:
        config_path = os.path.join(PKG, "default_params.yml")

    if not os.path.isabs(config_path):
        for base in (os.getcwd(), ROOT, PKG):
            cand = os.path.join(base, config_path)
            if os.path.exists(cand):
                config_path = cand
                break

    if not os.path.exists(config_path):
        raise FileNotFoundError(f"Cannot find PSE YAML config: {config_path}")

    return os.path.abspath(config_path)


def apply_defaults(p: Dict[str, Any]) -> Dict[str, Any]:
    p = dict(p)

    p.setdefault("data_path", "data.csv")
    p.setdefault("sheet", 0)
    p.setdefault("sep", ",")
    cols = {"id": "ID", "condition": "Condition", "x": "X", "y": "Y"}
    cols.update(p.get("columns") or {})
    p["columns"] = cols
    p["condition_factors"] = list(p.get("condition_factors") or [])

    p.setdefault("max_iter", 25)
    p.setdefault("tol", 1e-8)
    p.setdefault("coef_limit", 1e6)
    p.setdefault("pse_floor", 1e-12)

    p.setdefault("x_min", None)
    p.setdefault("x_max", None)
    p.setdefault("x_step", 1.0)
    p.setdefault("n_points", 200)
    p.setdefault("figure_dpi", 150)

    p.setdefault("write_xlsx", True)
    return p


def sanity_check_params(p: Dict[str, Any]) -> None:
    if int(p["max_iter"]) < 1:
        raise ValueError(f"Require max_iter >= 1; got {p['max_iter']}")
    if not float(p["tol"]) > 0:
        raise ValueError(f"Require tol > 0; got {p['tol']}")
    if not float(p["coef_limit"]) > 0:
        raise ValueError(f"Require coef_limit > 0; got {p['coef_limit']}")
    if float(p["pse_floor"]) < 0:
        raise ValueError(f"Require pse_floor >= 0; got {p['pse_floor']}")
    if int(p["n_points"]) < 2:
        raise ValueError("Require n_points >= 2")
    if not float(p["x_step"]) > 0:
        raise ValueError(f"Require x_step > 0; got {p['x_step']}")

    x_min, x_max = p.get("x_min"), p.get("x_max")
    if x_min is not None and x_max is not None and not float(x_min) < float(x_max):
        raise ValueError(f"Require x_min < x_max; got x_min={x_min}, x_max={x_max}")

    unknown = set(p["columns"]).difference({"id", "condition", "x", "y"})
    if unknown:
        raise ValueError(f"Unknown entries under 'columns': {sorted(unknown)}")


def load_params(config_path: Optional[str] = None) -> Tuple[dict, str]:
    """Load YAML and return (effective_params_dict, abs_path)."""
    path = _resolve_params_path(config_path)

    with open(path, "r", encoding="utf-8") as f:
        obj = yaml.safe_load(f) or {}

    p = obj["pse"] if isinstance(obj, dict) and "pse" in obj else obj
    if not isinstance(p, dict):
        raise ValueError("YAML did not parse into a dict (expected either top-level dict or key 'pse').")

    p = apply_defaults(p)
    sanity_check_params(p)
    return p, path
