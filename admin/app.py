#!/usr/bin/env python3
"""
CloudNet Web Admin Panel
Live service and node consoles over the CloudNet REST API
"""

import logging
import os

from cloudnet_admin import create_app
from cloudnet_admin.config import Config

logging.basicConfig(
    level=getattr(logging, Config.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s %(levelname)s %(name)s: %(message)s',
)

app = create_app()


if __name__ == '__main__':
    cfg = app.cloudnet_config
    print("=" * 50)
    print("CloudNet Web Admin Panel")
    print("=" * 50)
    print(f"REST address:     {cfg.REST_ADDRESS or '(entered at login)'}")
    print(f"Console buffer:   {cfg.CONSOLE_MAX_LINES or 'unbounded'} lines")
    print(f"Access:           http://0.0.0.0:{os.environ.get('PORT', '5000')}")
    print("=" * 50)

    app.run(host='0.0.0.0', port=int(os.environ.get('PORT', '5000')), debug=False)
