# src/nlmorph/__main__.py
from __future__ import annotations

# General imports (stdlib)
import logging
import sys

# Local imports
from .config import make_config
from .core import ConversionPipeline


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(name)s: %(message)s")

    cfg = make_config()

    report = ConversionPipeline(cfg).run()

    if report.failed:
        sys.exit(1)


if __name__ == "__main__":
    main()
