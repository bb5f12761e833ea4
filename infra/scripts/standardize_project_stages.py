from __future__ import annotations

import logging
import sys

from noor.infra.log import configure_logging
from noor.services.site_service import SiteService

logger = logging.getLogger("noor.scripts.standardize")


def main() -> int:
    configure_logging()
    results = SiteService().standardize_all()
    for item in results:
        if item.applied:
            logger.info("site %s rebuilt with %d phases", item.site_id, item.phase_count)
        else:
            logger.info("site %s already standardized", item.site_id)
    return 0


if __name__ == "__main__":
    sys.exit(main())
