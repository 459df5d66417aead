# backend/wsgi.py
from cashpoint import create_app

app = create_app()
