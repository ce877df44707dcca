#!/usr/bin/env python3
"""
kube-meta - Kubernetes metadata for log tags.
Resolve container log tags into pod metadata (labels, annotations, pod id).
"""

import argparse
import dataclasses
import json
import logging
import sys
from typing import Any, Dict, List, Optional

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s", stream=sys.stderr
)

logger = logging.getLogger("kubemeta.cli")


def _read_tags(args: argparse.Namespace) -> List[str]:
    tags = list(args.tags or [])
    if args.stdin:
        tags.extend(line.strip() for line in sys.stdin if line.strip())
    return tags


def resolve_tags(resolver: Any, tags: List[str]) -> int:
    """Print one JSON object per tag; return the number of tags that failed."""
    from kubemeta.errors import KubeMetaError

    failures = 0
    for tag in tags:
        try:
            record: Dict[str, Any] = resolver.resolve_record(tag)
        except KubeMetaError as e:
            failures += 1
            logger.error("Failed to resolve %s: %s", tag, e)
            continue
        print(json.dumps({"tag": tag, "kubernetes": record}, sort_keys=False))
    return failures


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Resolve container log tags into Kubernetes pod metadata",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Resolve a single tag (in-cluster, service-account auth)
  python main.py kube.var.log.containers.myapp-abc123_default_myapp-<id>.log

  # Against `kubectl proxy`, with a custom pattern and no startup check
  python main.py --api-url http://127.0.0.1:8001 --no-warmup \\
      --regex '(?<pod_name>[^_]+)_(?<namespace_name>[^_]+)_(?<container_name>.+)\\.log$' TAG

  # Tags from stdin, one per line
  ls /var/log/containers | python main.py --stdin
        """,
    )
    parser.add_argument("tags", nargs="*", help="Tags to resolve")
    parser.add_argument("--stdin", action="store_true", help="Also read tags from stdin (one per line)")
    parser.add_argument("--api-url", help="API server base URL (overrides KUBE_URL)")
    parser.add_argument("--regex", help="Tag pattern with named groups (overrides KUBE_TAG_REGEX)")
    parser.add_argument(
        "--no-warmup", action="store_true", help="Skip the API server connectivity check at startup"
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    args = parser.parse_args(argv)

    if args.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    tags = _read_tags(args)
    if not tags:
        parser.print_help()
        return 2

    from kubemeta.config import load_kube_meta_config
    from kubemeta.errors import KubeMetaError
    from kubemeta.resolver import build_resolver

    config = load_kube_meta_config()
    overrides: Dict[str, Any] = {}
    if args.api_url:
        overrides["api_url"] = args.api_url.rstrip("/")
    if args.regex:
        overrides["tag_regex"] = args.regex
    if args.no_warmup:
        overrides["warmup"] = False
    if overrides:
        config = dataclasses.replace(config, **overrides)

    try:
        resolver = build_resolver(config)
    except (KubeMetaError, ValueError) as e:
        print(f"Error during startup: {e}", file=sys.stderr)
        return 1

    try:
        failures = resolve_tags(resolver, tags)
    finally:
        resolver.close()
    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
