"""
Provider doctor: preflight checks for deps, config, provider registration and health.
Run: python -m market_fetch doctor [--timeout SECONDS] [-v]
Exit: 0 all OK, 2 deps/config, 3 registration, 4 no healthy provider.
"""
from __future__ import annotations

import argparse
import logging
import sys
from typing import Any, List, Optional, Tuple

DEPENDENCIES = ["requests", "yaml"]


def check_dependencies() -> bool:
    """Return True if all required packages import; else print pip install and return False."""
    missing = []
    for pkg in DEPENDENCIES:
        try:
            __import__(pkg)
        except ImportError:
            missing.append(pkg)
    if not missing:
        print("[OK] dependencies  " + " ".join(DEPENDENCIES))
        return True
    print("[FAIL] Missing packages: " + ", ".join(missing))
    print("  Fix: python -m pip install -e .")
    return False


def check_config() -> Optional[dict]:
    from .config import get_config

    try:
        cfg = get_config()
    except Exception as e:
        print(f"[FAIL] config error: {e}")
        return None
    names = list((cfg.get("providers") or {}).keys())
    print(f"[OK] config  providers configured: {', '.join(names) or '(none)'}")
    return cfg


def check_registry(cfg: dict) -> Tuple[Optional[Any], int]:
    """Build the default registry. Returns (registry, 0) or (None, exit code)."""
    from .errors import ProviderError
    from .providers.defaults import create_default_registry

    try:
        registry = create_default_registry(cfg)
    except ProviderError as e:
        print(f"[FAIL] registration  {e}")
        return None, 3
    except (ValueError, TypeError) as e:
        print(f"[FAIL] config  invalid setting: {e}")
        return None, 2
    chain = registry.get_fallback_chain()
    if not chain:
        print("[WARN] registry  no providers registered (set BIRDEYE_API_KEY or edit config.yaml)")
    else:
        print(f"[OK] registry  fallback chain: {' -> '.join(chain)}")
    return registry, 0


def check_health(registry, timeout_s: Optional[float]) -> bool:
    status = registry.health_check(timeout_s=timeout_s)
    for name, ok in status.items():
        print(f"  [{'OK' if ok else 'DOWN'}] {name}")
    healthy = [n for n, ok in status.items() if ok]
    if not healthy:
        print("[FAIL] health  no healthy provider")
        return False
    print(f"[OK] health  {len(healthy)}/{len(status)} providers healthy")
    return True


def main(argv: Optional[List[str]] = None) -> int:
    """Run all checks; return 0 OK, 2 deps/config, 3 registration, 4 health."""
    parser = argparse.ArgumentParser(prog="market-fetch doctor", description="Provider preflight checks")
    parser.add_argument("--timeout", type=float, default=None, help="Per-provider health probe timeout (s)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log retries and registry events")
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    print("market-fetch provider doctor")
    print("-" * 40)
    if not check_dependencies():
        return 2
    cfg = check_config()
    if cfg is None:
        return 2
    registry, code = check_registry(cfg)
    if registry is None:
        return code
    if not check_health(registry, args.timeout):
        return 4
    print("-" * 40)
    print("All checks passed.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
