#!/usr/bin/env python3
"""
Entry point for the Tournament Service.

Usage:
    python run.py

Environment Variables:
    FLASK_ENV: development, production or testing (default: development)
    PORT: Port to run on (default: 5000)
    DATABASE_URL: SQLAlchemy database URL
    REDIS_URL: Redis URL for domain events
"""
import logging
import os

from tourney.app import create_app


def run():
    app = create_app()
    logging.basicConfig(
        level=app.config['LOG_LEVEL'],
        format='%(asctime)s %(levelname)s %(name)s: %(message)s'
    )

    port = int(os.getenv('PORT', 5000))
    debug = os.getenv('FLASK_ENV', 'development') == 'development'

    logging.getLogger(__name__).info(f"Starting Tournament Service on port {port}")
    app.run(host='0.0.0.0', port=port, debug=debug)


if __name__ == '__main__':
    run()
