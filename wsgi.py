"""
Gunicorn entry point: ``gunicorn --bind 127.0.0.1:5001 wsgi:application``.

Run directly (``python wsgi.py``) for a local server on port 5001.
"""

from pathlib import Path

from dotenv import load_dotenv

load_dotenv(Path(__file__).resolve().parent / '.env')

from livedata.api.app import create_app  # noqa: E402

application = create_app()

if __name__ == "__main__":
    application.run(host='0.0.0.0', port=5001)
