import logging
import os

from dotenv import load_dotenv

# Load .env before the config classes read the environment
dotenv_path = os.path.join(os.path.dirname(__file__), '.env')
if os.path.exists(dotenv_path):
    load_dotenv(dotenv_path, override=True)

from courierhub import create_app  # noqa: E402
from extensions import db  # noqa: E402

app = create_app()
logger = logging.getLogger(__name__)

if not os.path.exists(dotenv_path):
    logger.info(f".env not found at {dotenv_path}, using process environment")

# Create tables on startup (won't recreate existing tables)
with app.app_context():
    db.create_all()

if __name__ == '__main__':
    port = int(os.getenv('PORT', 5000))
    debug = os.getenv('FLASK_DEBUG', 'false').lower() == 'true'
    app.run(port=port, debug=debug)
