"""
Local / Docker entry-point.
Run with:  uvicorn monsterden.local_api.main:app --reload
"""

from monsterden.app import create_app

app = create_app()
