# backend/wsgi.py
from warehouse_control import create_app

app = create_app()
