import os
import sys

from mangum import Mangum

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from splitledger.api import create_app
from splitledger.config import Settings, configure_logging

settings = Settings.from_env()
configure_logging(settings)

app = create_app(settings=settings, root_path="/api")

handler = Mangum(app)
