"""
Demo script: validate flat files against their layouts via the public API.

Usage:
    python scripts/validate_files.py MAPPING FILE [FILE ...]            # validate only
    python scripts/validate_files.py MAPPING FILE [FILE ...] --ingest   # also export tables

MAPPING is a mapping YAML path or a built-in layout name (e.g. ``nacha``).
Each file is read independently; a violation in one file is logged with
its line number and the script moves on to the next file.  The exit code
is 1 if any file failed.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
    datefmt="%H:%M:%S",
)
log = logging.getLogger("validate_files")

OUTPUT_ROOT = Path("outputs")


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def main() -> int:
    import flatseq
    from flatseq.exceptions import StreamError

    args = [a for a in sys.argv[1:] if not a.startswith("--")]
    ingest = "--ingest" in sys.argv
    if len(args) < 2:
        print(__doc__)
        return 2

    mapping, files = args[0], args[1:]
    failed = 0

    for input_path in files:
        if not Path(input_path).exists():
            log.warning("SKIP  %s  (file not found)", input_path)
            continue

        log.info("=" * 70)
        log.info("Validating: %s", input_path)
        log.info("=" * 70)

        try:
            summary = flatseq.validate(input_path, mapping)
        except StreamError as exc:
            failed += 1
            log.error("INVALID  %s: %s", input_path, exc)
            continue

        for record_name, count in summary.record_counts.items():
            log.info("  %-24s %s", record_name, f"{count:,}")

        if ingest:
            output_dir = str(OUTPUT_ROOT / Path(input_path).stem)
            written = flatseq.ingest(input_path, mapping, output_dir=output_dir)
            log.info("  wrote %d file(s) to %s", len(written), output_dir)

        log.info("Done: %s\n", input_path)

    log.info("%d of %d file(s) valid.", len(files) - failed, len(files))
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
