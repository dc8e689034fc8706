# routers/__init__.py
# Each module exposes ``router``; main.create_app() registers them.
