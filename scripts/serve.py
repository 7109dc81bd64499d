#!/usr/bin/env python
"""Run the battle analysis HTTP API."""
import argparse
import logging

from dotenv import load_dotenv

def main():
    parser = argparse.ArgumentParser(description="Serve the battle analysis API")
    parser.add_argument("--host", help="Bind address (default: ANALYSIS_HOST or 0.0.0.0)")
    parser.add_argument("--port", type=int, help="Port (default: ANALYSIS_PORT or 8080)")
    args = parser.parse_args()

    # Environment must be loaded before the config is built
    load_dotenv()

    from replay_analysis.config import Config
    from replay_analysis.service.api import run

    config = Config()
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    if args.host:
        config.server.host = args.host
    if args.port:
        config.server.port = args.port

    run(config.server)

if __name__ == "__main__":
    main()
