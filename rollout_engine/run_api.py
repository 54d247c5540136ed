# rollout_engine/run_api.py
"""Run the rollout engine admin API (development)."""

import logging
import sys

import uvicorn

from rollout_engine.api.main import create_app
from rollout_engine.config import EngineSettings
from rollout_engine.container import build_engine

logger = logging.getLogger(__name__)


def main():
    """Main entry point."""
    settings = EngineSettings()

    logging.basicConfig(
        level=settings.log_level.upper(),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    logger.info(f"Starting Rollout Engine API on {settings.api_host}:{settings.api_port}")
    engine = build_engine(settings)

    try:
        uvicorn.run(create_app(engine), host=settings.api_host, port=settings.api_port)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)
    finally:
        engine.shutdown()


if __name__ == "__main__":
    main()
