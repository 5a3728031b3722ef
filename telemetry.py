# telemetry.py
import os, sys, logging, warnings

APP_LOGGER = "claimrecon"


def get_logger(component: str) -> logging.Logger:
    """Component logger under the application namespace, e.g. claimrecon.reconciler."""
    return logging.getLogger(f"{APP_LOGGER}.{component}")


def go_quiet(default_level="ERROR"):
    """
    Configure logging for command line entry points.

    Root logging is forced to CLAIMRECON_LOG_LEVEL (default ERROR) so third-party
    libraries stay silent, while the claimrecon logger keeps emitting INFO lines on
    stderr (stdout carries the JSON result). Call once, before running the pipeline.
    """
    os.environ.setdefault("PYTHONUTF8", "1")
    os.environ.setdefault("PYTHONIOENCODING", "utf-8")

    if sys.platform.startswith("win"):
        try:
            sys.stdout.reconfigure(encoding="utf-8")
            sys.stderr.reconfigure(encoding="utf-8")
        except (AttributeError, OSError):
            pass

    lvl_name = os.getenv("CLAIMRECON_LOG_LEVEL", default_level).upper()
    lvl = getattr(logging, lvl_name, logging.ERROR)
    logging.basicConfig(
        level=lvl,
        format="%(levelname)s %(name)s: %(message)s",
        force=True,
    )

    noisy = ["urllib3", "urllib3.connectionpool", "httpx", "requests", "asyncio"]
    for name in noisy:
        lg = logging.getLogger(name)
        lg.setLevel(logging.CRITICAL)
        lg.propagate = False

    logging.captureWarnings(True)
    warnings.simplefilter("ignore")

    app_logger = logging.getLogger(APP_LOGGER)
    app_logger.setLevel(min(lvl, logging.INFO))
    app_logger.propagate = False
    if not app_logger.handlers:
        h = logging.StreamHandler(sys.stderr)
        h.setLevel(min(lvl, logging.INFO))
        h.setFormatter(logging.Formatter("%(message)s"))
        app_logger.addHandler(h)
