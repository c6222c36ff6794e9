# run.py
import os
from dotenv import load_dotenv

# Load environment variables from .env BEFORE creating the app
# so that the Config class in src/lakemeta/config.py reads them
load_dotenv()

from lakemeta import create_app

app = create_app()


if __name__ == '__main__':
    host = os.environ.get('FLASK_RUN_HOST', '0.0.0.0')
    port = int(os.environ.get('FLASK_RUN_PORT', os.environ.get('PORT', 5000)))
    debug_mode = os.environ.get('FLASK_DEBUG', '1').lower() in ['true', '1', 't']

    app.logger.info(f"Starting Flask server on {host}:{port} (Debug Mode: {debug_mode})")
    # Use debug=False in production environments!
    app.run(host=host, port=port, debug=debug_mode)
