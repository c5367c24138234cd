"""Entry point: python -m azboards.dashboard"""

import argparse
import logging

from ..api import BoardsClient
from ..config import get_keybinds_path, get_logs_dir, get_templates_dir, get_tmp_dir, get_token, load_config
from ..templates import TemplateStore
from .app import BoardsDashboard
from .coordinator import Dashboard
from .keybinds import load_keybinds

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def run(debug: bool = False) -> None:
    """Configure file logging, build the coordinator and run the TUI."""
    log_path = get_logs_dir() / "dashboard.log"
    logging.basicConfig(
        filename=str(log_path),
        level=logging.DEBUG if debug else logging.WARNING,
        format=LOG_FORMAT,
    )
    logger = logging.getLogger("azboards.dashboard")

    cfg = load_config()
    cfg.require()
    client = BoardsClient(cfg.organization_url, cfg.project, get_token())
    dashboard = Dashboard(
        client,
        TemplateStore(get_templates_dir()),
        load_keybinds(get_keybinds_path(), logger),
        logger=logger,
        tmp_dir=get_tmp_dir(),
        organization=cfg.organization,
        project=cfg.project,
    )
    logger.info("Starting dashboard for %s/%s", cfg.organization, cfg.project)
    try:
        BoardsDashboard(dashboard).run()
    except Exception:
        logger.exception("Dashboard crashed")
        raise


def main() -> None:
    parser = argparse.ArgumentParser(prog="azb-dashboard", description="Azure Boards dashboard")
    parser.add_argument("--debug", action="store_true", help="Log debug output to dashboard.log")
    args = parser.parse_args()
    run(debug=args.debug)


if __name__ == "__main__":
    main()
