"""
Operator CLI for supplier imports.

Usage:
    # Stage a file already uploaded somewhere reachable
    python scripts/run_import.py stage --provider mrm \
        --file-url https://files.example.com/Precios_OCT2026_A.xlsx

    # Review before committing
    python scripts/run_import.py preview <batch_id>

    # Publish into the catalog
    python scripts/run_import.py commit <batch_id>

    # Recent batches
    python scripts/run_import.py list --status staged

    # Guess the provider of a local file
    python scripts/run_import.py detect Disp_cte_admin.csv
"""

import argparse
import json
import os
import sys

# Allow imports from the project root when running as a script
_root_dir = os.path.join(os.path.dirname(__file__), "..")
sys.path.insert(0, _root_dir)

from dotenv import load_dotenv
load_dotenv(os.path.join(_root_dir, ".env"))

from exceptions import AppError
from models.imports import BatchStatus, ProviderCode, StageImportRequest
from parsers import detect_provider
from parsers.file_reader import detect_file_format, read_rows


def _print(model) -> None:
    print(json.dumps(model.model_dump(mode="json"), indent=2, ensure_ascii=False))


def cmd_stage(args) -> int:
    from services.import_service import get_import_service

    request = StageImportRequest(
        provider_code=args.provider,
        file_url=args.file_url,
        created_by=args.created_by,
    )
    result = get_import_service().stage_import(request)
    _print(result)
    return 0 if result.status == BatchStatus.STAGED else 1


def cmd_preview(args) -> int:
    from services.import_service import get_import_service

    _print(get_import_service().preview_import(args.batch_id))
    return 0


def cmd_commit(args) -> int:
    from services.commit_service import get_commit_service

    result = get_commit_service().commit_import(args.batch_id)
    _print(result)
    return 0 if result.summary.failed == 0 else 1


def cmd_list(args) -> int:
    from services.import_service import get_import_service

    status = BatchStatus(args.status) if args.status else None
    _print(get_import_service().list_batches(limit=args.limit, status=status))
    return 0


def cmd_detect(args) -> int:
    with open(args.path, "rb") as f:
        content = f.read()

    rows = read_rows(content, detect_file_format(args.path, content))
    headers = list(rows[0].keys()) if rows else []
    provider = detect_provider(headers)

    print(f"Headers:  {', '.join(headers) or '(none)'}")
    print(f"Provider: {provider.value if provider else 'unknown'}")
    return 0 if provider else 1


def main():
    parser = argparse.ArgumentParser(
        description="Stage, preview and commit supplier imports",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    stage = subparsers.add_parser("stage", help="Download and stage a supplier file")
    stage.add_argument(
        "--provider",
        required=True,
        choices=[p.value for p in ProviderCode],
        help="Supplier whose layout the file uses"
    )
    stage.add_argument("--file-url", required=True, help="URL of the CSV/XLSX file")
    stage.add_argument("--created-by", default="cli", help="Recorded on the batch")
    stage.set_defaults(func=cmd_stage)

    preview = subparsers.add_parser("preview", help="Show counts and sample rows")
    preview.add_argument("batch_id")
    preview.set_defaults(func=cmd_preview)

    commit = subparsers.add_parser("commit", help="Commit staged rows into the catalog")
    commit.add_argument("batch_id")
    commit.set_defaults(func=cmd_commit)

    list_parser = subparsers.add_parser("list", help="List recent batches")
    list_parser.add_argument("--limit", type=int, default=20)
    list_parser.add_argument("--status", choices=[s.value for s in BatchStatus])
    list_parser.set_defaults(func=cmd_list)

    detect = subparsers.add_parser("detect", help="Guess the provider of a local file")
    detect.add_argument("path")
    detect.set_defaults(func=cmd_detect)

    args = parser.parse_args()

    try:
        sys.exit(args.func(args))
    except AppError as e:
        print(json.dumps(e.to_dict(), indent=2, ensure_ascii=False), file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
