"""
Project Activity Background Worker Runner
Run this as a separate process: python run_activity_worker.py
"""

import logging
import sys
from pathlib import Path

from arq import run_worker

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent))

from workspan.worker import WorkerSettings  # noqa: E402

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)

logger = logging.getLogger(__name__)

if __name__ == "__main__":
    logger.info("🚀 Starting Project Activity Background Worker...")
    try:
        run_worker(WorkerSettings)
    except KeyboardInterrupt:
        logger.info("👋 Activity worker stopped by user")
    except Exception as e:
        logger.error(f"❌ Activity worker crashed: {e}")
        sys.exit(1)
