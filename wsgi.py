"""WSGI entry point for Gunicorn."""
import os

from app import create_app

# Config object can be swapped per deployment, e.g. APP_CONFIG=config.TestConfig
app = create_app(os.getenv('APP_CONFIG', 'config.Config'))

if __name__ == "__main__":
    app.run()
