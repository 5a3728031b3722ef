# main.py: local runner, feeds saved AI extraction outputs through the pipeline in order
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from errors import ClaimReconError
from extraction_processor import process_extraction, to_claim_state_update
from schemas import ClaimContext, ExtractionSource, TrackedClaimRecord
from settings import ClaimReconSettings
from telemetry import APP_LOGGER, go_quiet

log = logging.getLogger(f"{APP_LOGGER}.main")

SOURCES = {
    "document": ExtractionSource.DOCUMENT,
    "chat": ExtractionSource.CHAT,
    "intake": ExtractionSource.INTAKE,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Reconcile AI extraction outputs into one claim record and recommend the next document."
    )
    parser.add_argument("files", nargs="+", metavar="FILE", help="Raw extraction output (JSON text)")
    parser.add_argument("--source", choices=sorted(SOURCES), default="document",
                        help="Where the extractions came from (default: document)")
    parser.add_argument("--existing", metavar="STATE.json",
                        help="Previously merged record to merge into")
    parser.add_argument("--court-filed", action="store_true", help="Claim has been issued at court")
    parser.add_argument("--defendant-responded", action="store_true", help="Defendant has filed a response")
    parser.add_argument("--judgment", action="store_true", help="Judgment has been obtained")
    parser.add_argument("--claim-strength", choices=["low", "medium", "high"])
    parser.add_argument("--relationship", choices=["preserve", "neutral", "terminated"])
    parser.add_argument("--config", default="claimrecon.yaml", help="Settings YAML (optional)")
    parser.add_argument("--out", metavar="OUT.json", help="Write the final result here instead of stdout")
    return parser


def load_existing(path: str | None) -> TrackedClaimRecord | None:
    if not path:
        return None
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    # accept either a bare record or a previously written result bundle
    if isinstance(data, dict) and "record" in data:
        data = data["record"]
    return TrackedClaimRecord.model_validate(data)


def run(args: argparse.Namespace) -> dict:
    config = ClaimReconSettings.from_yaml(args.config)
    context = ClaimContext(
        court_filed=args.court_filed,
        defendant_responded=args.defendant_responded,
        judgment_obtained=args.judgment,
        claim_strength=args.claim_strength,
        relationship=args.relationship,
    )

    record = load_existing(args.existing)
    result = None
    for file_name in args.files:
        raw = Path(file_name).read_text(encoding="utf-8")
        result = process_extraction(
            raw,
            source=SOURCES[args.source],
            existing=record,
            context=context,
            source_reference=Path(file_name).name,
            config=config,
        )
        record = result.record
        for error in result.validation_errors:
            log.info(f"[{file_name}] skipped: {error}")

    payload = result.model_dump(mode="json")
    payload["claim_state_update"] = to_claim_state_update(result)
    return payload


def main(argv: list[str] | None = None) -> int:
    go_quiet()
    args = build_parser().parse_args(argv)
    try:
        payload = run(args)
    except (ClaimReconError, OSError, ValueError) as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        return 1

    text = json.dumps(payload, indent=2, ensure_ascii=False)
    if args.out:
        Path(args.out).write_text(text, encoding="utf-8")
        log.info(f"Result written to {args.out}")
    else:
        print(text)
    return 0


if __name__ == "__main__":
    sys.exit(main())
