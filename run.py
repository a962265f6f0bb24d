# /run.py
import os

# Load environment variables from .env file
from dotenv import load_dotenv
load_dotenv()

# Now, import the app factory
from myhome import create_app

# Create the app instance
app = create_app()

if __name__ == '__main__':
    # Flask's development server; use a WSGI server (gunicorn, waitress) in production.
    # The in-memory session store is per process, so run a single worker.
    app.run(host=os.environ.get('HOST', '127.0.0.1'), port=int(os.environ.get('PORT', 3005)))
