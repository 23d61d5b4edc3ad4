import os
import warnings

# Ignore warnings from app.shared
warnings.filterwarnings("ignore", category=DeprecationWarning, module="app.shared.*")

# Tests never reach a real provider
os.environ.update({"DEMO_MODE": "true", "PROVIDER_WEBHOOK_SIGNING_SECRET": ""})

# Import database fixtures so they are available to all tests
from tests.fixtures.mongo_fixtures import *  # noqa: E402, F403
