# backend/wsgi.py
from opscore import create_app

app = create_app()
