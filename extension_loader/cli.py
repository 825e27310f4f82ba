"""Command line entry point for checking and admitting extensions.

Usage:
  python -m extension_loader [--policy policy.yaml] scan <file>
  python -m extension_loader [--policy policy.yaml] load <file> --type chart
  python -m extension_loader [--policy policy.yaml] policy
"""
import argparse
import asyncio
import json
import sys
from pathlib import Path

import yaml

from .config import LoaderSettings, build_policies
from .host import ExtensionHost
from .logging_config import configure_logging
from .manager import SecurityManager
from .paths import PathValidator
from .results import ValidationResult
from .scanner import ContentScanner


def _scan(bundle, file_path: str) -> int:
    report = {"path": file_path}
    path_check = PathValidator(bundle.security).validate_file_path(file_path)
    report["path_check"] = path_check.to_dict()
    ok = path_check.valid
    if ok:
        try:
            content = Path(file_path).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            content_check = ValidationResult.fail(f"Cannot read extension source: {e}")
        else:
            content_check = ContentScanner(bundle.security).validate_extension_content(content)
        report["content_check"] = content_check.to_dict()
        ok = content_check.valid
    print(json.dumps(report, indent=2))
    return 0 if ok else 1


async def _load(bundle, file_path: str, ext_type: str) -> int:
    host = ExtensionHost(SecurityManager.from_policies(bundle))
    try:
        result = await host.load(file_path, ext_type)
        print(json.dumps({"result": result.to_dict(), "stats": host.stats()}, indent=2, default=str))
        return 0 if result.success else 1
    finally:
        await host.close()


def main(argv=None):
    parser = argparse.ArgumentParser(prog="extension-loader")
    parser.add_argument("--policy", help="YAML policy file (overrides EXTENSION_LOADER_POLICY_FILE)")
    parser.add_argument("--log-level", default=None)
    parser.add_argument("--pipeline-log-level", default=None, help="level for extension_loader.* loggers")
    sub = parser.add_subparsers(dest="cmd")

    p_scan = sub.add_parser("scan", help="run path and content checks without loading")
    p_scan.add_argument("file")

    p_load = sub.add_parser("load", help="run the full admission pipeline")
    p_load.add_argument("file")
    p_load.add_argument("--type", dest="ext_type", required=True)

    sub.add_parser("policy", help="print the effective policy")

    args = parser.parse_args(argv)

    settings = LoaderSettings()
    if args.policy:
        settings = settings.model_copy(update={"policy_file": args.policy})
    configure_logging(args.log_level or settings.log_level, args.pipeline_log_level)

    try:
        bundle = build_policies(settings)
    except (OSError, ValueError, yaml.YAMLError) as e:
        print(f"Cannot load policy: {e}", file=sys.stderr)
        return 2

    if args.cmd == "scan":
        return _scan(bundle, args.file)
    if args.cmd == "load":
        return asyncio.run(_load(bundle, args.file, args.ext_type))
    if args.cmd == "policy":
        print(yaml.safe_dump(bundle.model_dump(mode="json"), sort_keys=True), end="")
        return 0

    parser.print_help()
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
