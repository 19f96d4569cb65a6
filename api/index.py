"""
Serverless entry point.

The platform imports ``handler`` from this file. The repository root is put
on the import path because the package is deployed as source, not
installed. Schema creation is skipped (lifespan off); tables are created
ahead of deployment with ``home_account.db.init_db``.
"""

import os
import sys

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from mangum import Mangum

from home_account.api.main import app

handler = Mangum(app, lifespan="off")
