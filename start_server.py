#!/usr/bin/env python3
"""Start the shop route planner API, honouring the PORT environment variable."""

import logging
import os
import subprocess
import sys

logging.basicConfig(level=os.environ.get("SHOPROUTE_LOG_LEVEL", "INFO"), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger("start_server")

port = os.environ.get("PORT", "8000")
try:
    port_int = int(port)
except ValueError:
    logger.warning("Invalid PORT value '%s', using default 8000", port)
    port_int = 8000

src_path = os.path.abspath("src")
if os.path.isdir(src_path):
    pythonpath = os.environ.get("PYTHONPATH", "")
    os.environ["PYTHONPATH"] = f"{src_path}{os.pathsep}{pythonpath}" if pythonpath else src_path

cmd = [
    sys.executable,
    "-m",
    "uvicorn",
    "shoproute.main:app",
    "--host",
    "0.0.0.0",
    "--port",
    str(port_int),
    "--proxy-headers",
    "--forwarded-allow-ips",
    "*",
]

logger.info("Starting server on port %d", port_int)
try:
    sys.exit(subprocess.call(cmd))
except KeyboardInterrupt:
    logger.info("Server interrupted by user")
    sys.exit(0)
