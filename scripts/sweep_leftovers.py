#!/usr/bin/env python3
"""Delete namespaces left behind by aborted E2E runs.

Every namespace the E2E fixtures create carries the ``wko-e2e/owned=true``
label. A scenario sweeps its own namespaces at teardown, but a killed pytest
process, a lost cluster connection or a failed sweep can leave some behind.
Deleting a namespace takes everything in it (domains, pods, secrets).

Usage:
    # Dry run - list leftovers without deleting
    ./scripts/sweep_leftovers.py

    # Delete leftovers older than an hour
    ./scripts/sweep_leftovers.py --delete --min-age 3600

The script must be run from the repository root, or with the package
installed (``pip install -e .``).
"""

import argparse
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path

# Add e2e-tests to path for imports
repo_root = Path(__file__).parent.parent
sys.path.insert(0, str(repo_root / "e2e-tests"))

from wko_e2e.exceptions import CommandError  # noqa: E402
from wko_e2e.k8s_client import K8sClient  # noqa: E402

OWNED_SELECTOR = "wko-e2e/owned=true"


def namespace_age(namespace: dict, now: datetime) -> float | None:
    """Seconds since the namespace was created (None if unknown)."""
    created = namespace.get("metadata", {}).get("creationTimestamp")
    if not created:
        return None
    try:
        ts = datetime.fromisoformat(created.replace("Z", "+00:00"))
    except ValueError:
        return None
    return (now - ts).total_seconds()


def find_leftovers(
    k8s: K8sClient, min_age: float = 0, now: datetime | None = None
) -> list[dict]:
    """Owned namespaces at least ``min_age`` seconds old, oldest first.

    Namespaces already terminating are skipped.
    """
    now = now or datetime.now(timezone.utc)
    leftovers = []
    for namespace in k8s.list_resources("namespace", OWNED_SELECTOR):
        if namespace.get("status", {}).get("phase") == "Terminating":
            continue
        age = namespace_age(namespace, now)
        if min_age and (age is None or age < min_age):
            continue
        leftovers.append(namespace)
    return sorted(leftovers, key=lambda ns: ns["metadata"].get("creationTimestamp", ""))


def delete_leftovers(k8s: K8sClient, names: list[str], dry_run: bool = True) -> int:
    """Delete leftover namespaces.

    Args:
        k8s: K8sClient instance
        names: Namespace names
        dry_run: If True, only print what would be deleted

    Returns:
        Number of namespaces deleted (or would be deleted in dry run)
    """
    if dry_run:
        print("\n[DRY RUN] Would delete the following namespaces:")
        for name in names:
            print(f"  - {name}")
        return len(names)

    deleted = 0
    for name in names:
        print(f"Deleting {name}...", end=" ")
        try:
            if k8s.delete_namespace(name, wait=False):
                print("OK")
                deleted += 1
            else:
                print("NOT FOUND (already deleted)")
        except CommandError as e:
            print(f"FAILED: {e}")
    return deleted


def main(argv: list[str] | None = None, k8s: K8sClient | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Delete namespaces left behind by aborted E2E runs"
    )
    parser.add_argument(
        "--kubeconfig",
        help="Path to kubeconfig file (uses default if not specified)",
    )
    parser.add_argument(
        "--min-age",
        type=float,
        default=0,
        help="Only consider namespaces at least this many seconds old",
    )
    parser.add_argument(
        "--delete",
        action="store_true",
        help="Actually delete leftover namespaces (default is dry run)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log every kubectl call",
    )

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    k8s = k8s or K8sClient(kubeconfig=args.kubeconfig)

    print(f"Looking for namespaces labelled {OWNED_SELECTOR}")
    try:
        leftovers = find_leftovers(k8s, args.min_age)
    except CommandError as e:
        print(f"Error listing namespaces: {e}")
        return 2

    if not leftovers:
        print("\n✓ No leftover namespaces found")
        return 0

    now = datetime.now(timezone.utc)
    print(f"\n⚠ Found {len(leftovers)} leftover namespace(s):")
    for namespace in leftovers:
        age = namespace_age(namespace, now)
        age_text = f"{age / 60:.0f} min old" if age is not None else "age unknown"
        print(f"  - {namespace['metadata']['name']} ({age_text})")

    names = [ns["metadata"]["name"] for ns in leftovers]
    if args.delete:
        print("\nDeleting leftover namespaces...")
        deleted = delete_leftovers(k8s, names, dry_run=False)
        print(f"\n✓ Deleted {deleted} namespace(s)")
        return 0 if deleted == len(names) else 1

    delete_leftovers(k8s, names, dry_run=True)
    print("\nRun with --delete to remove these namespaces")
    return 1


if __name__ == "__main__":
    sys.exit(main())
