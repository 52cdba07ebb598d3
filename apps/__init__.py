from apps.api.main import create_app, main

__all__ = ['create_app', 'main']
