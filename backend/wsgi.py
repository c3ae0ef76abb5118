# backend/wsgi.py
from storefront import create_app, start_background

app = create_app()
start_background(app)
